from __future__ import annotations

from urllib.parse import urlparse

from .errors import InvalidURL


def parse_url(url: str):
    """Split a request URL into the parts cookie matching needs."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidURL("Only http and https schemes are supported")
    host = parsed.hostname or ""
    if not host:
        raise InvalidURL(f"URL has no host: {url!r}")
    path = parsed.path or "/"
    return parsed.scheme, host, path
