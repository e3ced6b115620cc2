from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Executor

from .cookies import cookie_header, parse_set_cookie, parse_set_cookie_headers
from .errors import JarError, MalformedCookie, NotInitializedError
from .models import CookieRecord, JarResult, now_ms
from .storage import CookieStorage
from .store import CookieStore
from .sync import CookieSyncBridge, CookieSyncTarget
from .utils import parse_url

logger = logging.getLogger(__name__)


class PersistentCookieJar:
    """
    Cookie jar for an HTTP client: session cookies in memory, persistent
    cookies in a storage handle, accepted cookies mirrored to an optional
    secondary consumer.

    Construct one jar at process start, call ``init(storage)`` once, and pass
    the jar to every transport that needs it. Operations never raise for
    jar-level failures; they return a ``JarResult`` whose ``error`` is set,
    e.g. to ``NotInitializedError`` when ``init`` was not called.

    Args:
        sync_target: Secondary cookie consumer to mirror accepted cookies into.
        executor: Execution context for sync pushes (see CookieSyncBridge).
        clock: Returns the current time in epoch milliseconds.
        sync_max_attempts: Attempts per sync push, including the first.
        sync_base_delay: First sync backoff delay in seconds.
        sync_max_delay: Cap for a single sync backoff delay in seconds.
        sync_jitter: Randomize sync backoff delays.
    """

    def __init__(
        self,
        sync_target: CookieSyncTarget | None = None,
        *,
        executor: Executor | None = None,
        clock: Callable[[], int] = now_ms,
        sync_max_attempts: int = 3,
        sync_base_delay: float = 0.2,
        sync_max_delay: float = 2.0,
        sync_jitter: bool = True,
    ) -> None:
        self.clock = clock
        self.store = CookieStore(clock=clock)
        self.bridge: CookieSyncBridge | None = None
        if sync_target is not None:
            self.bridge = CookieSyncBridge(
                sync_target,
                executor=executor,
                max_attempts=sync_max_attempts,
                base_delay=sync_base_delay,
                max_delay=sync_max_delay,
                jitter=sync_jitter,
            )

    @property
    def initialized(self) -> bool:
        return self.store.initialized

    def init(self, storage: CookieStorage) -> None:
        """Bind the jar to its storage and load persisted cookies. Idempotent."""
        self.store.init(storage)

    def _guard(self) -> None:
        if not self.store.initialized:
            raise NotInitializedError(
                "Cookie jar has not been initialized. Call init() first."
            )

    def save(
        self, url: str, cookies: Iterable[str | CookieRecord]
    ) -> JarResult[list[CookieRecord]]:
        """
        Install cookies from a response to ``url``.

        ``cookies`` may mix raw Set-Cookie values and already built records.
        Malformed Set-Cookie values are skipped. The result holds the records
        that were accepted into the store.
        """
        try:
            self._guard()
            parse_url(url)
            now = self.clock()
            records: list[CookieRecord] = []
            for cookie in cookies:
                if isinstance(cookie, CookieRecord):
                    records.append(cookie)
                    continue
                try:
                    records.append(parse_set_cookie(cookie, url, now))
                except MalformedCookie as e:
                    logger.warning("Skipping cookie from %s: %s", url, e)
            accepted = self.store.save(url, records)
        except JarError as e:
            return JarResult.failure(e)

        if accepted and self.bridge is not None:
            self.bridge.mirror(url, accepted)
        return JarResult.success(accepted)

    def save_from_headers(
        self, url: str, headers: Iterable[tuple[str, str]]
    ) -> JarResult[list[CookieRecord]]:
        """Install the Set-Cookie headers among ``headers`` (name, value) pairs."""
        try:
            self._guard()
            records = parse_set_cookie_headers(headers, url, self.clock())
        except JarError as e:
            return JarResult.failure(e)
        return self.save(url, records)

    def load(self, url: str) -> JarResult[list[CookieRecord]]:
        """Cookies to send with a request to ``url``, in no particular order."""
        try:
            self._guard()
            return JarResult.success(self.store.load(url))
        except JarError as e:
            return JarResult.failure(e)

    def cookie_header(self, url: str) -> JarResult[str | None]:
        result = self.load(url)
        if not result.ok:
            return JarResult.failure(result.error)
        return JarResult.success(cookie_header(result.value))

    def cookies(self) -> JarResult[list[CookieRecord]]:
        """Every record currently held, matching or not."""
        try:
            self._guard()
            return JarResult.success(self.store.records())
        except JarError as e:
            return JarResult.failure(e)

    def clear_all(self) -> JarResult[None]:
        try:
            self._guard()
            self.store.clear_all()
        except JarError as e:
            return JarResult.failure(e)
        return JarResult.success()

    def clear_for_host(self, host: str) -> JarResult[None]:
        try:
            self._guard()
            self.store.clear_for_host(host)
        except JarError as e:
            return JarResult.failure(e)
        return JarResult.success()

    def close(self) -> None:
        if self.bridge is not None:
            self.bridge.close()

    def __enter__(self) -> PersistentCookieJar:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "initialized" if self.initialized else "uninitialized"
        return f"<PersistentCookieJar {state} {self.store!r}>"
