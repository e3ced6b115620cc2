#!/usr/bin/env python3
"""
Persistent cookie jar example: save, match, reload, and mirror cookies.
"""

import logging
import tempfile
from pathlib import Path

from persistjar import JsonFileStorage, PersistentCookieJar


class PrintingRenderer:
    """Stand-in for an embedded renderer's cookie manager."""

    def set_cookie(self, url: str, cookie: str) -> None:
        print(f"  [renderer] set {cookie} for {url}")

    def flush(self) -> None:
        print("  [renderer] flush")


def save_and_load_example(path: Path):
    print("=== Save and load ===")
    with PersistentCookieJar(PrintingRenderer()) as jar:
        jar.init(JsonFileStorage(path))

        result = jar.save(
            "https://a.example.com/x",
            [
                "sid=abc; Domain=example.com; Path=/; Max-Age=3600",
                "tmp=1; Path=/",
                "not-a-cookie",
            ],
        )
        print(f"  Accepted: {[r.to_wire_string() for r in result.unwrap()]}")

        for url in ("https://b.example.com/y", "https://a.example.com/", "https://other.com/"):
            header = jar.cookie_header(url).unwrap()
            print(f"  Cookie for {url}: {header}")


def reload_example(path: Path):
    print("\n=== Reload from disk ===")
    jar = PersistentCookieJar()
    jar.init(JsonFileStorage(path))
    # Only the persistent cookie survives the restart.
    print(f"  Cookies after reload: {jar.cookies().unwrap()}")
    print(f"  Stored document: {path.read_text()}")


def not_initialized_example():
    print("\n=== Use before init ===")
    result = PersistentCookieJar().load("https://example.com/")
    print(f"  ok={result.ok} error={result.error!r}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "cookies.json"
        save_and_load_example(path)
        reload_example(path)
    not_initialized_example()
    print("\n✓ Persistent cookie jar examples completed!")
