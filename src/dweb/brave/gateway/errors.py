"""
Exception types raised by the resolution and delivery pipeline.

Each exception carries the HTTP status it maps to and a human-readable message. Messages are
safe to return to clients as-is; internal details are only attached through ``detail`` and
are meant for logs.
"""

from typing import Optional


class GatewayException(Exception):
    """Base class for pipeline failures that map onto an HTTP response."""

    status: int = 500

    def __init__(
        self, message: str, status: Optional[int] = None, detail: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class HostnameException(GatewayException):
    """
    Exception raised when a request hostname cannot be turned into a lookup key.

    The static methods create specific rejection instances. The message is the client facing
    body, the detail carries the error code and the offending hostname.
    """

    status = 400

    @staticmethod
    def unsupported(hostname: str) -> "HostnameException":
        """Hostname is neither the bare root nor a child of it."""
        return HostnameException(
            "Invalid or unsupported domain format. Must end with .brave.site",
            detail=f"error-hostname-1000 Unsupported domain format: {hostname}",
        )

    @staticmethod
    def malformed(hostname: str) -> "HostnameException":
        """Hostname has too few labels or contains an empty label."""
        return HostnameException(
            "Invalid domain format.",
            detail=f"error-hostname-1001 Malformed domain: {hostname}",
        )

    @staticmethod
    def missing_domain(hostname: str) -> "HostnameException":
        """No labels remain once the root suffix is removed."""
        return HostnameException(
            "Please specify a domain, e.g., yourdomain.brave.site.",
            detail=f"error-hostname-1002 Missing domain: {hostname}",
        )


class ResolutionException(GatewayException):
    """
    Exception raised when the name resolution service cannot produce a record.
    """

    status = 500

    @staticmethod
    def missing_api_key() -> "ResolutionException":
        """The resolution API credential is not configured."""
        return ResolutionException(
            "API key not valid",
            detail="error-resolve-1000 Resolution API key not configured",
        )

    @staticmethod
    def upstream_status(
        status: int, reason: Optional[str], body: str
    ) -> "ResolutionException":
        """The resolution service answered with a non-success status."""
        return ResolutionException(
            f"Error querying Unstoppable Domains: {reason or status} - {body}",
            detail=f"error-resolve-1001 Upstream status {status}",
        )

    @staticmethod
    def malformed_response(msg: str = "") -> "ResolutionException":
        """The resolution service answered with a body that could not be decoded."""
        return ResolutionException(
            f"Server error: malformed resolution response {msg}".rstrip(),
            detail=f"error-resolve-1002 Malformed response: {msg}",
        )


class ContentFetchException(GatewayException):
    """
    Exception raised when no IPFS gateway could deliver the requested content.
    """

    status = 500

    @staticmethod
    def all_gateways_failed(cid: str) -> "ContentFetchException":
        """Every gateway failed in both the race and the sequential fallback."""
        return ContentFetchException(
            "Error fetching IPFS content: All gateways failed",
            detail=f"error-ipfs-1000 All gateways failed for {cid}",
        )
