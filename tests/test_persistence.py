"""Tests for persistjar.persistence module."""

import json

import pytest
from persistjar.errors import StorageError
from persistjar.models import CookieRecord
from persistjar.persistence import (
    KEY_PREFIX,
    CookiePersistence,
    decode_bucket,
    domain_from_key,
    domain_key,
    encode_bucket,
)
from persistjar.storage import MemoryStorage

NOW = 1_700_000_000_000


def persistent(name="sid", domain="example.com", expires_at=NOW + 3_600_000, **kw):
    return CookieRecord(
        name=name, value="v-" + name, domain=domain,
        expires_at=expires_at, persistent=True, **kw,
    )


def session(name="tmp", domain="example.com"):
    return CookieRecord(name=name, value="s", domain=domain)


class TestKeys:
    """Tests for key derivation."""

    def test_domain_key(self):
        assert domain_key("example.com") == "cookies_for_domain_example.com"

    def test_domain_from_key(self):
        assert domain_from_key("cookies_for_domain_example.com") == "example.com"

    def test_foreign_key(self):
        assert domain_from_key("theme") is None
        assert domain_from_key(KEY_PREFIX) is None


class TestEncoding:
    """Tests for encode_bucket/decode_bucket."""

    def test_session_records_never_encoded(self):
        blob = encode_bucket([persistent(), session()])
        names = [entry["name"] for entry in json.loads(blob)]
        assert names == ["sid"]

    def test_decode_restores_records(self):
        record = persistent(path="/p", secure=True)
        assert decode_bucket(encode_bucket([record])) == [record]

    def test_decode_rejects_non_list(self):
        with pytest.raises(ValueError):
            decode_bucket('{"name": "sid"}')

    def test_decode_rejects_bad_json(self):
        with pytest.raises(ValueError):
            decode_bucket("not json")


class TestLoad:
    """Tests for CookiePersistence.load."""

    def test_loads_each_domain(self):
        storage = MemoryStorage({
            domain_key("a.com"): encode_bucket([persistent(domain="a.com")]),
            domain_key("b.com"): encode_bucket([persistent(domain="b.com")]),
            "unrelated": "keep me",
        })
        buckets = CookiePersistence(storage).load(NOW)
        assert sorted(buckets) == ["a.com", "b.com"]
        assert storage.get("unrelated") == "keep me"

    def test_corrupt_entry_dropped_others_loaded(self, caplog):
        """Test a corrupt blob is discarded and loading continues."""
        storage = MemoryStorage({
            domain_key("bad.com"): "[{broken",
            domain_key("good.com"): encode_bucket([persistent(domain="good.com")]),
        })
        buckets = CookiePersistence(storage).load(NOW)
        assert list(buckets) == ["good.com"]
        assert storage.get(domain_key("bad.com")) is None
        assert "Discarding corrupt cookie entry" in caplog.text

    def test_entry_with_invalid_record_is_corrupt(self):
        storage = MemoryStorage({
            domain_key("a.com"): json.dumps([{"name": "x", "value": "y"}]),
        })
        assert CookiePersistence(storage).load(NOW) == {}
        assert storage.keys() == []

    def test_expired_records_dropped(self):
        """Test expired records are dropped and the entry rewritten."""
        storage = MemoryStorage({
            domain_key("a.com"): encode_bucket([
                persistent("old", domain="a.com", expires_at=NOW - 1),
                persistent("new", domain="a.com"),
            ]),
        })
        buckets = CookiePersistence(storage).load(NOW)
        assert [r.name for r in buckets["a.com"]] == ["new"]
        assert [e["name"] for e in json.loads(storage.get(domain_key("a.com")))] == ["new"]

    def test_fully_expired_entry_removed(self):
        storage = MemoryStorage({
            domain_key("a.com"): encode_bucket([persistent(domain="a.com", expires_at=NOW)]),
        })
        assert CookiePersistence(storage).load(NOW) == {}
        assert storage.keys() == []

    def test_read_failure_starts_empty(self, mocker):
        storage = mocker.MagicMock()
        storage.items.side_effect = StorageError("disk gone")
        assert CookiePersistence(storage).load(NOW) == {}


class TestFlush:
    """Tests for CookiePersistence.flush."""

    def test_writes_only_persistent_records(self):
        storage = MemoryStorage()
        buckets = {"a.com": (persistent(domain="a.com"), session(domain="a.com"))}
        assert CookiePersistence(storage).flush(buckets, {"a.com"})
        entries = json.loads(storage.get(domain_key("a.com")))
        assert [e["name"] for e in entries] == ["sid"]

    def test_session_only_domain_not_written(self):
        storage = MemoryStorage()
        CookiePersistence(storage).flush({"a.com": (session(domain="a.com"),)}, {"a.com"})
        assert storage.keys() == []

    def test_stale_keys_removed_in_same_batch(self, mocker):
        """Test stale domains are removed in the same apply call as writes."""
        storage = MemoryStorage({
            domain_key("gone.com"): encode_bucket([persistent(domain="gone.com")]),
        })
        persistence = CookiePersistence(storage)
        assert list(persistence.load(NOW)) == ["gone.com"]
        spy = mocker.spy(storage, "apply")
        buckets = {"a.com": (persistent(domain="a.com"),)}
        persistence.flush(buckets, {"a.com"})
        assert spy.call_count == 1
        assert storage.keys() == [domain_key("a.com")]

    def test_entries_written_elsewhere_kept(self):
        """Test flush never sweeps domains this instance did not load or write."""
        storage = MemoryStorage()
        persistence = CookiePersistence(storage)
        persistence.load(NOW)
        storage.apply({domain_key("b.com"): encode_bucket([persistent(domain="b.com")])})

        persistence.flush({"a.com": (persistent(domain="a.com"),)}, {"a.com"})

        assert sorted(storage.keys()) == [domain_key("a.com"), domain_key("b.com")]

    def test_failed_removal_retried_on_next_flush(self, mocker):
        storage = MemoryStorage()
        persistence = CookiePersistence(storage)
        persistence.flush({"a.com": (persistent(domain="a.com"),)}, {"a.com"})

        mocker.patch.object(storage, "apply", side_effect=StorageError("busy"))
        assert persistence.flush({}, {"a.com"}) is False
        mocker.stopall()

        assert persistence.flush({}, set())
        assert storage.keys() == []

    def test_write_failure_is_swallowed(self, mocker, caplog):
        storage = MemoryStorage()
        mocker.patch.object(storage, "apply", side_effect=StorageError("read-only"))
        ok = CookiePersistence(storage).flush({"a.com": (persistent(domain="a.com"),)}, {"a.com"})
        assert ok is False
        assert "Failed to persist cookies" in caplog.text

    def test_nothing_to_do(self, mocker):
        storage = MemoryStorage()
        spy = mocker.spy(storage, "apply")
        assert CookiePersistence(storage).flush({}, set())
        spy.assert_not_called()


class TestRemoveAndClear:
    """Tests for remove, clear and domains."""

    def test_remove_domains(self):
        storage = MemoryStorage({domain_key("a.com"): "[]", domain_key("b.com"): "[]"})
        CookiePersistence(storage).remove(["a.com"])
        assert storage.keys() == [domain_key("b.com")]

    def test_clear_only_cookie_namespace(self):
        storage = MemoryStorage({domain_key("a.com"): "[]", "theme": "dark"})
        CookiePersistence(storage).clear()
        assert storage.keys() == ["theme"]

    def test_domains(self):
        storage = MemoryStorage({domain_key("a.com"): "[]", "theme": "dark"})
        assert CookiePersistence(storage).domains() == ["a.com"]
