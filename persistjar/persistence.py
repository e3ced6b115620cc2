"""Durable snapshot of the persistent cookies, one entry per domain."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping

from .errors import StorageError
from .models import CookieRecord
from .storage import CookieStorage

logger = logging.getLogger(__name__)

KEY_PREFIX = "cookies_for_domain_"

Buckets = Mapping[str, tuple[CookieRecord, ...]]


def domain_key(domain: str) -> str:
    return KEY_PREFIX + domain


def domain_from_key(key: str) -> str | None:
    if not key.startswith(KEY_PREFIX):
        return None
    return key[len(KEY_PREFIX):] or None


def encode_bucket(records: Iterable[CookieRecord]) -> str:
    """Serialize the persistent records of a bucket; session records are left out."""
    return json.dumps([r.to_dict() for r in records if r.persistent])


def decode_bucket(blob: str) -> list[CookieRecord]:
    """
    Deserialize one domain entry.

    Raises:
        ValueError, KeyError, TypeError: If the blob is not a list of records.
    """
    data = json.loads(blob)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return [CookieRecord.from_dict(entry) for entry in data]


class CookiePersistence:
    """
    Reads and writes the per-domain snapshot held in a storage handle.

    Write failures are logged and swallowed: the in-memory store stays
    authoritative for the rest of the process.

    Only entries this instance loaded or wrote are ever swept as stale, so
    several jars can share one storage handle without deleting each
    other's domains.
    """

    def __init__(self, storage: CookieStorage) -> None:
        self.storage = storage
        self._owned: set[str] = set()

    def _apply(self, puts: Mapping[str, str], removes: Iterable[str]) -> bool:
        try:
            self.storage.apply(puts, removes)
        except (StorageError, OSError) as e:
            logger.warning("Failed to persist cookies: %s", e)
            return False
        return True

    def load(self, now: int) -> dict[str, tuple[CookieRecord, ...]]:
        """
        Load every domain entry, dropping corrupt entries and expired records.

        Keys of corrupt or fully expired entries are removed, and partially
        expired entries rewritten, in one batch.
        """
        try:
            entries = self.storage.items()
        except (StorageError, OSError) as e:
            logger.warning("Failed to read persisted cookies, starting empty: %s", e)
            return {}

        buckets: dict[str, tuple[CookieRecord, ...]] = {}
        puts: dict[str, str] = {}
        removes: list[str] = []
        for key, blob in entries:
            domain = domain_from_key(key)
            if domain is None:
                continue
            try:
                records = decode_bucket(blob)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Discarding corrupt cookie entry %s: %s", key, e)
                removes.append(key)
                continue

            valid = tuple(r for r in records if r.persistent and not r.is_expired(now))
            if len(valid) != len(records):
                logger.debug(
                    "Dropped %d expired cookies for %s", len(records) - len(valid), domain
                )
                if valid:
                    puts[key] = encode_bucket(valid)
                else:
                    removes.append(key)
            if valid:
                buckets[domain] = valid
                self._owned.add(domain)

        if puts or removes:
            self._apply(puts, removes)
        logger.debug("Loaded persisted cookies for %d domains", len(buckets))
        return buckets

    def flush(self, buckets: Buckets, dirty: Iterable[str]) -> bool:
        """
        Write the dirty domains and remove stale keys in a single batch.

        A key is stale when this instance loaded or wrote its domain and the
        domain no longer holds any persistent record. Entries written by other
        jars sharing the storage are left alone. Returns False when the write
        failed.
        """
        written: set[str] = set()
        dropped: set[str] = set()
        for domain in dirty:
            if any(r.persistent for r in buckets.get(domain, ())):
                written.add(domain)
            else:
                dropped.add(domain)
        for domain in self._owned - written:
            if not any(r.persistent for r in buckets.get(domain, ())):
                dropped.add(domain)

        if not written and not dropped:
            return True
        puts = {
            domain_key(domain): encode_bucket(buckets[domain]) for domain in written
        }
        self._owned |= written
        if not self._apply(puts, [domain_key(domain) for domain in dropped]):
            return False
        self._owned -= dropped
        return True

    def domains(self) -> list[str]:
        """Domains that currently have a persisted entry."""
        try:
            keys = self.storage.keys()
        except (StorageError, OSError) as e:
            logger.warning("Failed to list persisted cookies: %s", e)
            return []
        return [d for d in (domain_from_key(k) for k in keys) if d is not None]

    def remove(self, domains: Iterable[str]) -> bool:
        domains = set(domains)
        if not domains:
            return True
        self._owned -= domains
        return self._apply({}, [domain_key(domain) for domain in domains])

    def clear(self) -> bool:
        """Remove every key in the cookie namespace."""
        self._owned.clear()
        try:
            keys = [k for k in self.storage.keys() if k.startswith(KEY_PREFIX)]
        except (StorageError, OSError) as e:
            logger.warning("Failed to list persisted cookies: %s", e)
            return False
        if not keys:
            return True
        return self._apply({}, keys)
