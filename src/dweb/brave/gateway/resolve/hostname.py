"""Request hostname parsing.

Maps ``*.brave.site`` request hostnames onto ``.brave`` lookup keys used by the resolution
service. The bare ``brave.site`` root is recognized separately so that it can be answered
without any resolution.
"""

from enum import IntEnum
from typing import Final, List, Optional

from pydantic import BaseModel

from dweb.brave.gateway.errors import HostnameException

ROOT_DOMAIN: Final = "brave.site"
ROOT_SUFFIX: Final = f".{ROOT_DOMAIN}"
LOOKUP_SUFFIX: Final = ".brave"


class HostnameType(IntEnum):
    """Classification of a parsed request hostname."""

    welcome = 1
    domain = 2


class ParsedHostname(BaseModel):
    """Parsed request hostname.

    ``lookup_key`` is only set for ``HostnameType.domain`` hostnames.
    """

    hostname_type: HostnameType
    hostname: str
    lookup_key: Optional[str] = None
    labels: List[str] = []


def parse_hostname(hostname: str) -> ParsedHostname:
    """Parse a request hostname into a lookup key.

    The hostname is matched case as received. ``name.brave.site`` becomes ``name.brave`` and
    ``sub.name.brave.site`` becomes ``sub.name.brave``.

    Args:
        hostname: Hostname of the incoming request, without port

    Returns:
        ParsedHostname describing either the welcome root or a domain lookup

    Raises:
        HostnameException: If the hostname does not belong to the root domain or is malformed
    """
    if not hostname.endswith(ROOT_SUFFIX):
        if hostname == ROOT_DOMAIN:
            return ParsedHostname(hostname_type=HostnameType.welcome, hostname=hostname)
        raise HostnameException.unsupported(hostname)

    parts = hostname.split(".")
    if len(parts) < 3:
        raise HostnameException.malformed(hostname)

    labels = parts[:-2]
    if len(labels) == 0:
        raise HostnameException.missing_domain(hostname)

    if any(len(label) == 0 for label in labels):
        raise HostnameException.malformed(hostname)

    return ParsedHostname(
        hostname_type=HostnameType.domain,
        hostname=hostname,
        lookup_key=".".join(labels) + LOOKUP_SUFFIX,
        labels=labels,
    )


def is_gateway_hostname(hostname: str) -> bool:
    """Whether a hostname is the root domain or any name under it, ignoring case."""
    hostname = hostname.lower()
    return hostname == ROOT_DOMAIN or hostname.endswith(ROOT_SUFFIX)
