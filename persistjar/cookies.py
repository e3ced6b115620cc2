"""Set-Cookie parsing and Cookie header building."""

from __future__ import annotations

import email.utils
import logging
import re
from collections.abc import Iterable
from datetime import timezone

from .errors import MalformedCookie
from .matching import domain_matches
from .models import MAX_EXPIRES_AT, CookieRecord, normalize_domain
from .utils import parse_url

logger = logging.getLogger(__name__)


def default_path(request_path: str) -> str:
    """RFC 6265 section 5.1.4 default-path of a request URI path."""
    if not request_path.startswith("/"):
        return "/"
    cut = request_path.rfind("/")
    if cut == 0:
        return "/"
    return request_path[:cut]


_MAX_AGE_RE = re.compile(r"-?[0-9]+")


def _parse_max_age(raw: str, now: int) -> int | None:
    raw = raw.strip()
    if not _MAX_AGE_RE.fullmatch(raw):
        return None
    seconds = int(raw)
    if seconds <= 0:
        # Already expired; servers use this to delete cookies.
        return 0
    return min(now + seconds * 1000, MAX_EXPIRES_AT)


def _parse_expires(raw: str) -> int | None:
    try:
        dt = email.utils.parsedate_to_datetime(raw.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0, min(int(dt.timestamp() * 1000), MAX_EXPIRES_AT))


def parse_set_cookie(header_value: str, request_url: str, now: int) -> CookieRecord:
    """
    Parse one Set-Cookie header value received from ``request_url``.

    Args:
        header_value: Raw header value, e.g. "sid=abc; Path=/; Max-Age=60".
        request_url: URL of the request that produced the response.
        now: Current time in epoch milliseconds, used for Max-Age.

    Returns:
        The cookie record, possibly already expired.

    Raises:
        MalformedCookie: If the name or value is absent, or the Domain
            attribute does not cover the request host.
    """
    _, host, path = parse_url(request_url)

    pair, *attributes = header_value.split(";")
    name, sep, value = pair.partition("=")
    name = name.strip()
    if not sep or not name:
        raise MalformedCookie(f"Missing cookie name or value in {header_value!r}")
    value = value.strip()

    domain = ""
    cookie_path = None
    max_age = None
    expires = None
    secure = False
    http_only = False

    for attribute in attributes:
        key, _, attr_value = attribute.partition("=")
        key = key.strip().lower()
        attr_value = attr_value.strip()
        if key == "domain":
            domain = normalize_domain(attr_value)
        elif key == "path":
            cookie_path = attr_value
        elif key == "max-age":
            max_age = _parse_max_age(attr_value, now)
        elif key == "expires":
            expires = _parse_expires(attr_value)
        elif key == "secure":
            secure = True
        elif key == "httponly":
            http_only = True

    if domain:
        if not domain_matches(domain, False, host):
            raise MalformedCookie(
                f"Domain {domain!r} of cookie {name!r} does not cover host {host!r}"
            )
        host_only = False
    else:
        domain = normalize_domain(host)
        host_only = True

    if not cookie_path or not cookie_path.startswith("/"):
        cookie_path = default_path(path)

    expires_at = max_age if max_age is not None else expires

    return CookieRecord(
        name=name,
        value=value,
        domain=domain,
        path=cookie_path,
        expires_at=expires_at,
        secure=secure,
        http_only=http_only,
        host_only=host_only,
        persistent=expires_at is not None,
    )


def parse_set_cookie_headers(
    headers: Iterable[tuple[str, str]], request_url: str, now: int
) -> list[CookieRecord]:
    """Parse every Set-Cookie header in ``headers``; malformed ones are skipped."""
    records: list[CookieRecord] = []
    for name, value in headers:
        if name.lower() != "set-cookie":
            continue
        try:
            records.append(parse_set_cookie(value, request_url, now))
        except MalformedCookie as e:
            logger.warning("Skipping cookie from %s: %s", request_url, e)
    return records


def cookie_header(records: Iterable[CookieRecord]) -> str | None:
    """Build a Cookie request header value, or None when there is nothing to send."""
    header = "; ".join(record.to_wire_string() for record in records)
    return header or None
