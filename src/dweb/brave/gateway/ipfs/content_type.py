from typing import Dict, Final, Optional
from urllib.parse import urlparse

DEFAULT_CONTENT_TYPE: Final = "text/html"

EXTENSION_CONTENT_TYPES: Final[Dict[str, str]] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".json": "application/json",
}


def resolve_content_type(declared: Optional[str], url: str) -> str:
    """Return the gateway's declared content type, or infer one from the URL path.

    Args:
        declared: Content-Type header sent by the gateway, if any
        url: URL the content was served from

    Returns:
        MIME type, defaulting to text/html
    """
    if declared:
        return declared

    path = urlparse(url).path
    for extension, content_type in EXTENSION_CONTENT_TYPES.items():
        if path.endswith(extension):
            return content_type
    return DEFAULT_CONTENT_TYPE
