"""Response assembly for every terminal pipeline outcome.

All error bodies are plain text with a human-readable cause and never include tracebacks.
"""

from typing import Final

from aiohttp import hdrs, web

from dweb.brave.gateway.errors import GatewayException
from dweb.brave.gateway.ipfs.content_type import resolve_content_type
from dweb.brave.gateway.ipfs.fetch import FetchedContent

WELCOME_MESSAGE: Final = (
    "Welcome to the .brave domain resolver. Access a .brave domain like "
    "yourdomain.brave.site or a subdomain like sub.yourdomain.brave.site."
)

NOT_FOUND_MESSAGE: Final = "No IPFS hash found for domain"

CONTENT_CACHE_CONTROL: Final = "public, max-age=3600"


def text_response(message: str, status: int) -> web.Response:
    return web.Response(text=message, status=status, content_type="text/plain")


def welcome_response() -> web.Response:
    return text_response(WELCOME_MESSAGE, 200)


def redirect_response(url: str) -> web.Response:
    return web.Response(status=302, headers={hdrs.LOCATION: url})


def not_found_response() -> web.Response:
    return text_response(NOT_FOUND_MESSAGE, 404)


def error_response(exc: GatewayException) -> web.Response:
    return text_response(exc.message, exc.status)


def error_cause(exc: BaseException) -> str:
    """Human-readable cause of an exception, falling back to its type for empty messages."""
    return str(exc) or type(exc).__name__


def server_error_response(exc: BaseException) -> web.Response:
    return text_response(f"Server error: {error_cause(exc)}", 500)


def content_response(content: FetchedContent) -> web.Response:
    """Serve fetched IPFS content with public caching and open CORS headers."""
    return web.Response(
        body=content.body,
        status=200,
        headers={
            hdrs.CONTENT_TYPE: resolve_content_type(content.content_type, content.url),
            hdrs.CACHE_CONTROL: CONTENT_CACHE_CONTROL,
            hdrs.ACCESS_CONTROL_ALLOW_ORIGIN: "*",
        },
    )
