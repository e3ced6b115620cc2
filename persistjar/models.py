from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import JarError

T = TypeVar("T")

SESSION_EXPIRES_AT = None

# Upper bound for expiry timestamps (9999-12-31T23:59:59.999Z).
MAX_EXPIRES_AT = 253402300799999


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def normalize_domain(domain: str) -> str:
    return domain.lstrip(".").lower()


@dataclass(frozen=True)
class CookieRecord:
    """
    Immutable cookie as held by the jar.

    ``expires_at`` is epoch milliseconds for persistent cookies and
    ``None`` for session cookies. ``domain`` is always normalized.
    """

    name: str
    value: str
    domain: str
    path: str = "/"
    expires_at: int | None = SESSION_EXPIRES_AT
    secure: bool = False
    http_only: bool = False
    host_only: bool = True
    persistent: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Cookie name must not be empty")
        if self.persistent != (self.expires_at is not None):
            raise ValueError(
                f"Cookie {self.name!r}: persistent cookies need expires_at, "
                "session cookies must not have one"
            )
        normalized = normalize_domain(self.domain)
        if normalized != self.domain:
            object.__setattr__(self, "domain", normalized)

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.name, self.domain, self.path)

    def is_expired(self, now: int) -> bool:
        return self.persistent and self.expires_at <= now

    def to_wire_string(self) -> str:
        return f"{self.name}={self.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "expiresAt": self.expires_at,
            "domain": self.domain,
            "path": self.path,
            "secure": self.secure,
            "httpOnly": self.http_only,
            "persistent": self.persistent,
            "hostOnly": self.host_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookieRecord:
        """
        Rebuild a record from its persisted form.

        Raises KeyError, TypeError or ValueError when the entry is not a
        well-formed record.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a cookie object, got {type(data).__name__}")
        expires_at = data.get("expiresAt")
        if expires_at is not None and (
            isinstance(expires_at, bool) or not isinstance(expires_at, int)
        ):
            raise TypeError(f"expiresAt must be an integer, got {expires_at!r}")
        for field in ("name", "value", "domain", "path"):
            if not isinstance(data[field], str):
                raise TypeError(f"{field} must be a string")
        return cls(
            name=data["name"],
            value=data["value"],
            domain=data["domain"],
            path=data["path"],
            expires_at=expires_at,
            secure=bool(data.get("secure", False)),
            http_only=bool(data.get("httpOnly", False)),
            host_only=bool(data.get("hostOnly", True)),
            persistent=bool(data.get("persistent", False)),
        )

    def __repr__(self) -> str:
        kind = "persistent" if self.persistent else "session"
        return f"<Cookie {self.name}={self.value} for {self.domain}{self.path} ({kind})>"


def effective_domain(record: CookieRecord, request_host: str) -> str:
    """Domain a record is stored and matched under for a given request host."""
    if record.host_only or not record.domain:
        return normalize_domain(request_host)
    return record.domain


@dataclass(frozen=True)
class JarResult(Generic[T]):
    """
    Outcome of a public jar operation.

    Either ``value`` is set and ``error`` is None, or ``error`` carries the
    failure. Callers branch on ``ok`` or call ``unwrap()`` to re-raise.
    """

    value: T | None = None
    error: JarError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T | None = None) -> JarResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: JarError) -> JarResult[T]:
        return cls(error=error)
