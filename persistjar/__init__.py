from persistjar.jar import PersistentCookieJar
from persistjar.models import CookieRecord, JarResult, normalize_domain, effective_domain
from persistjar.store import CookieStore
from persistjar.storage import CookieStorage, MemoryStorage, JsonFileStorage
from persistjar.sync import CookieSyncBridge, CookieSyncTarget
from persistjar.session import Session, AsyncSession
from persistjar.cookies import parse_set_cookie, parse_set_cookie_headers, cookie_header
from persistjar.matching import domain_matches, path_matches, secure_matches
from persistjar.errors import (
    JarError,
    NotInitializedError,
    MalformedCookie,
    InvalidURL,
    StorageError,
)

__all__ = [
    "PersistentCookieJar",
    "CookieRecord",
    "JarResult",
    "normalize_domain",
    "effective_domain",
    "CookieStore",
    "CookieStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "CookieSyncBridge",
    "CookieSyncTarget",
    "Session",
    "AsyncSession",
    "parse_set_cookie",
    "parse_set_cookie_headers",
    "cookie_header",
    "domain_matches",
    "path_matches",
    "secure_matches",
    "JarError",
    "NotInitializedError",
    "MalformedCookie",
    "InvalidURL",
    "StorageError",
]
