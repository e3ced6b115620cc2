"""Cookie-to-request matching rules (RFC 6265 sections 5.1.3 and 5.1.4).

Matching is purely suffix based. There is no Public Suffix List check, so a
domain cookie scoped to a public suffix matches every host below it.
"""

from __future__ import annotations

from .models import CookieRecord, normalize_domain


def domain_matches(cookie_domain: str, host_only: bool, request_host: str) -> bool:
    cd = normalize_domain(cookie_domain)
    rh = normalize_domain(request_host)
    if host_only:
        return cd == rh
    return rh == cd or rh.endswith("." + cd)


def path_matches(cookie_path: str, request_path: str) -> bool:
    if cookie_path == request_path:
        return True
    if request_path.startswith(cookie_path):
        if cookie_path.endswith("/"):
            return True
        # Prefix must end on a segment boundary: /a matches /a/b, not /ab.
        if request_path[len(cookie_path)] == "/":
            return True
    return False


def secure_matches(record: CookieRecord, scheme: str) -> bool:
    return not record.secure or scheme == "https"


def record_matches(record: CookieRecord, scheme: str, host: str, path: str) -> bool:
    """True when ``record`` should be sent on a request to scheme://host/path."""
    return (
        domain_matches(record.domain, record.host_only, host)
        and path_matches(record.path, path)
        and secure_matches(record, scheme)
    )
