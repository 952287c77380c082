from typing import List
import argparse
import aiohttp
import asyncio
import logging

from dweb.brave.gateway.app.config import Settings
from dweb.brave.gateway.app.metrics import NoOpMetricsClient
from dweb.brave.gateway.errors import GatewayException
from dweb.brave.gateway.resolve.domains import resolve_domain
from dweb.brave.gateway.resolve.hostname import HostnameType, parse_hostname
from dweb.brave.gateway.resolve.records import interpret_record

logger = logging.getLogger(__name__)


async def realMain() -> None:
    parser = argparse.ArgumentParser(
        prog="resolve", description="Resolve .brave.site hostnames"
    )
    parser.add_argument("hostname", nargs="+", help="The hostname(s) to resolve.")
    parser.add_argument(
        "--api-url",
        default=None,
        help="The resolution API base URL. Defaults to the RESOLUTION_API_URL setting.",
    )

    args = vars(parser.parse_args())

    settings = Settings()  # type: ignore
    api_url: str = args.get("api_url") or settings.resolution_api_url
    hostnames: List[str] = args.get("hostname", [])
    metrics_client = NoOpMetricsClient()

    async with aiohttp.ClientSession() as session:
        for hostname in hostnames:
            try:
                parsed = parse_hostname(hostname)
                if parsed.hostname_type == HostnameType.welcome:
                    print(f"{hostname} welcome")
                    continue
                record = await resolve_domain(
                    session,
                    metrics_client,
                    api_url,
                    settings.unstoppable_api_key,
                    str(parsed.lookup_key),
                )
                outcome = interpret_record(record)
                print(
                    f"{hostname} {parsed.lookup_key} {outcome.outcome_type.name} {outcome.value}"
                )
            except GatewayException as e:
                print(f"{hostname} error {e.status} {e.message}")
            except Exception:
                logging.exception("Exception resolving hostname %s", hostname)


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
