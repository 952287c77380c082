"""IPFS gateway content retrieval.

Content is requested from every configured gateway at once and the race is settled by the
first gateway to answer. When the race fails, gateways are tried one after another with a
fixed number of attempts each.

Race strategies:
    ``first_settled``: the first gateway to settle decides the race. If it failed, the race
    fails even when a slower gateway would have succeeded, and the sequential fallback runs.
    ``first_success``: the race waits for any gateway to succeed and only fails when every
    gateway failed.

Gateways that lose the race are cancelled. Responses that arrive after the race is settled
are released, and their failures are consumed, through a done callback.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
from typing import List, Optional, Sequence, Tuple, Type
from urllib.parse import urlparse

from aiohttp import ClientError, ClientResponse, ClientSession, hdrs

from dweb.brave.gateway.app.metrics import MetricsClient
from dweb.brave.gateway.errors import ContentFetchException

logger = logging.getLogger(__name__)

CID_PLACEHOLDER = "{cid}"


class RaceStrategy(str, Enum):
    first_settled = "first_settled"
    first_success = "first_success"


@dataclass(frozen=True)
class FetchedContent:
    """
    Content delivered by a gateway.

    Attributes:
        body: Response bytes
        url: Final URL the content was served from, after redirects
        content_type: Content-Type declared by the gateway, if any
        gateway: Gateway URL the request was sent to
    """

    body: bytes
    url: str
    content_type: Optional[str]
    gateway: str


class GatewayAttemptError(Exception):
    """A gateway answered with a non-success status."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None) -> None:
        super().__init__(f"Gateway {url} returned status {status} {reason or ''}".rstrip())
        self.url = url
        self.status = status


ATTEMPT_ERRORS: Tuple[Type[BaseException], ...] = (
    GatewayAttemptError,
    ClientError,
    asyncio.TimeoutError,
)
"""Failures of a single gateway attempt. These drive fallback and are never surfaced."""


def gateway_urls(templates: Sequence[str], cid: str) -> List[str]:
    return [template.replace(CID_PLACEHOLDER, cid) for template in templates]


def _gateway_tag(url: str) -> str:
    return urlparse(url).hostname or url


async def _request_gateway(session: ClientSession, url: str) -> ClientResponse:
    resp = await session.get(url)
    if resp.status < 200 or resp.status >= 300:
        resp.release()
        raise GatewayAttemptError(url, resp.status, resp.reason)
    return resp


async def _read_content(resp: ClientResponse, gateway: str) -> FetchedContent:
    try:
        body = await resp.read()
    finally:
        resp.release()
    return FetchedContent(
        body=body,
        url=str(resp.url),
        content_type=resp.headers.get(hdrs.CONTENT_TYPE),
        gateway=gateway,
    )


def _discard_candidate(task: "asyncio.Task[ClientResponse]") -> None:
    if task.cancelled():
        return
    if task.exception() is not None:
        return
    task.result().release()


async def race_gateways(
    session: ClientSession,
    metrics_client: MetricsClient,
    urls: Sequence[str],
    strategy: RaceStrategy = RaceStrategy.first_settled,
) -> Optional[FetchedContent]:
    """Request every gateway concurrently and return the content of the race winner.

    Args:
        session: HTTP client session
        metrics_client: Metrics client
        urls: Candidate gateway URLs
        strategy: How the race is settled

    Returns:
        FetchedContent of the winning gateway, or None if the race failed
    """
    tasks = [asyncio.create_task(_request_gateway(session, url)) for url in urls]
    winner: Optional[int] = None

    try:
        pending = set(tasks)
        while pending and winner is None:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )

            # Completions observed together are considered in gateway order.
            settled = [index for index, task in enumerate(tasks) if task in done]
            if strategy is RaceStrategy.first_settled:
                settled = settled[:1]

            for index in settled:
                exc = tasks[index].exception()
                if exc is None:
                    winner = index
                    break
                if not isinstance(exc, ATTEMPT_ERRORS):
                    raise exc
                logger.info("Gateway %s failed in race: %s", urls[index], exc)
                metrics_client.increment(
                    "gateway.ipfs.race.failure",
                    1,
                    tag_dict={"gateway": _gateway_tag(urls[index])},
                )

            if strategy is RaceStrategy.first_settled:
                break
    finally:
        for index, task in enumerate(tasks):
            if index == winner:
                continue
            if not task.done():
                task.cancel()
            task.add_done_callback(_discard_candidate)

    if winner is None:
        logger.info("Gateway race failed, falling back to sequential retries")
        return None

    url = urls[winner]
    try:
        content = await _read_content(tasks[winner].result(), url)
    except ATTEMPT_ERRORS as e:
        logger.info("Gateway %s failed reading content: %s", url, e)
        return None

    logger.info("Success with gateway: %s", url)
    metrics_client.increment(
        "gateway.ipfs.race.win", 1, tag_dict={"gateway": _gateway_tag(url)}
    )
    return content


async def fallback_gateways(
    session: ClientSession,
    metrics_client: MetricsClient,
    urls: Sequence[str],
    retries: int = 3,
    retry_delay_ms: int = 1000,
) -> Optional[FetchedContent]:
    """Try gateways one at a time, in order, with a fixed number of attempts each.

    The delay is only waited between attempts on the same gateway.

    Returns:
        FetchedContent of the first successful attempt, or None if every attempt failed
    """
    for url in urls:
        for attempt in range(retries):
            try:
                logger.info("Fallback attempt %d for gateway: %s", attempt + 1, url)
                resp = await _request_gateway(session, url)
                content = await _read_content(resp, url)
                logger.info("Fallback success with gateway: %s", url)
                metrics_client.increment(
                    "gateway.ipfs.fallback.success",
                    1,
                    tag_dict={"gateway": _gateway_tag(url), "attempt": attempt + 1},
                )
                return content
            except ATTEMPT_ERRORS as e:
                logger.info("Fallback gateway %s failed: %s", url, e)
                metrics_client.increment(
                    "gateway.ipfs.fallback.failure",
                    1,
                    tag_dict={"gateway": _gateway_tag(url)},
                )

            if attempt < retries - 1:
                await asyncio.sleep(retry_delay_ms / 1000)

    return None


async def fetch_content(
    session: ClientSession,
    metrics_client: MetricsClient,
    cid: str,
    gateways: Sequence[str],
    retries: int = 3,
    retry_delay_ms: int = 1000,
    race_strategy: RaceStrategy = RaceStrategy.first_settled,
) -> FetchedContent:
    """Fetch content for an IPFS content identifier from the configured gateways.

    Args:
        session: HTTP client session
        metrics_client: Metrics client
        cid: IPFS content identifier
        gateways: Gateway URL templates containing a ``{cid}`` placeholder
        retries: Attempts per gateway during the sequential fallback
        retry_delay_ms: Delay between attempts on the same gateway, in milliseconds
        race_strategy: How the concurrent race is settled

    Returns:
        FetchedContent from the first gateway to deliver

    Raises:
        ContentFetchException: If every gateway failed in the race and the fallback
    """
    urls = gateway_urls(gateways, cid)

    content = await race_gateways(session, metrics_client, urls, race_strategy)
    if content is None:
        content = await fallback_gateways(
            session, metrics_client, urls, retries, retry_delay_ms
        )

    if content is None:
        logger.warning("All IPFS gateways and fallbacks failed for %s", cid)
        metrics_client.increment("gateway.ipfs.exhausted", 1)
        raise ContentFetchException.all_gateways_failed(cid)

    return content
