"""Domain-keyed cookie store with expiry sweep and durable write-back.

Every public operation runs inside one lock so remove-then-add and
sweep-then-writeback sequences are atomic. Buckets are immutable tuples:
an operation builds the new tuple and swaps the reference, so readers never
iterate a bucket while it changes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace

from .errors import NotInitializedError
from .matching import domain_matches, record_matches
from .models import CookieRecord, effective_domain, normalize_domain, now_ms
from .persistence import CookiePersistence
from .storage import CookieStorage
from .utils import parse_url

logger = logging.getLogger(__name__)


class CookieStore:
    """
    Cookie records grouped by normalized domain.

    Args:
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self.clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, tuple[CookieRecord, ...]] = {}
        self._persistence: CookiePersistence | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self, storage: CookieStorage) -> None:
        """Load the persisted snapshot. Calls after the first are no-ops."""
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            self._persistence = CookiePersistence(storage)
            self._buckets = self._persistence.load(self.clock())
            self._initialized = True
        logger.debug("Cookie store initialized from %r", storage)

    def _ensure_initialized(self) -> CookiePersistence:
        if not self._initialized:
            raise NotInitializedError(
                "Cookie store has not been initialized. Call init() first."
            )
        return self._persistence

    def save(self, request_url: str, records: Iterable[CookieRecord]) -> list[CookieRecord]:
        """
        Install cookies received in a response to ``request_url``.

        Returns:
            The records that were inserted. Expired persistent cookies only
            remove their predecessor and are not returned.
        """
        persistence = self._ensure_initialized()
        _, host, _ = parse_url(request_url)
        records = list(records)
        accepted: list[CookieRecord] = []

        with self._lock:
            now = self.clock()
            dirty: set[str] = set()
            for record in records:
                domain = effective_domain(record, host)
                if not record.host_only and not domain_matches(domain, False, host):
                    logger.warning(
                        "Skipping cookie %s: domain %s does not cover host %s",
                        record.name, domain, host,
                    )
                    continue
                if record.domain != domain:
                    record = replace(record, domain=domain)
                bucket = self._buckets.get(domain, ())
                kept = tuple(r for r in bucket if r.identity != record.identity)
                if any(r.persistent for r in bucket if r.identity == record.identity):
                    dirty.add(domain)

                if record.persistent:
                    if record.is_expired(now):
                        logger.debug("Discarding expired cookie %s for %s", record.name, domain)
                    else:
                        kept += (record,)
                        accepted.append(record)
                        dirty.add(domain)
                else:
                    kept += (record,)
                    accepted.append(record)

                if kept:
                    self._buckets[domain] = kept
                else:
                    self._buckets.pop(domain, None)

            if dirty:
                persistence.flush(self._buckets, dirty)
        return accepted

    def load(self, request_url: str) -> list[CookieRecord]:
        """
        Sweep expired persistent cookies and return those matching ``request_url``.

        The order of the returned records is not meaningful.
        """
        persistence = self._ensure_initialized()
        scheme, host, path = parse_url(request_url)
        matching: list[CookieRecord] = []

        with self._lock:
            now = self.clock()
            dirty: set[str] = set()
            for domain, bucket in list(self._buckets.items()):
                live = tuple(r for r in bucket if not r.is_expired(now))
                if len(live) != len(bucket):
                    dirty.add(domain)
                    if live:
                        self._buckets[domain] = live
                    else:
                        del self._buckets[domain]
                matching.extend(r for r in live if record_matches(r, scheme, host, path))

            if dirty:
                logger.debug("Swept expired cookies for %s", ", ".join(sorted(dirty)))
                persistence.flush(self._buckets, dirty)
        return matching

    def clear_all(self) -> None:
        persistence = self._ensure_initialized()
        with self._lock:
            self._buckets.clear()
            persistence.clear()
        logger.debug("All cookies cleared")

    def clear_for_host(self, host: str) -> None:
        """Drop the buckets for ``host`` and for every parent domain of it."""
        persistence = self._ensure_initialized()
        normalized = normalize_domain(host)
        with self._lock:
            removed = [
                domain
                for domain in self._buckets
                if normalized == domain or normalized.endswith("." + domain)
            ]
            for domain in removed:
                del self._buckets[domain]
            # Persisted entries may exist without a live bucket.
            for key_domain in persistence.domains():
                if key_domain not in removed and (
                    normalized == key_domain or normalized.endswith("." + key_domain)
                ):
                    removed.append(key_domain)
            persistence.remove(removed)
        if removed:
            logger.debug("Cleared cookies for %s (related to host %s)", ", ".join(removed), host)

    def records(self) -> list[CookieRecord]:
        """Every live record, including expired ones not yet swept."""
        self._ensure_initialized()
        with self._lock:
            return [r for bucket in self._buckets.values() for r in bucket]

    def __repr__(self) -> str:
        return f"<CookieStore {len(self._buckets)} domains>"
