"""Best-effort mirroring of accepted cookies into a secondary cookie consumer.

The consumer (an embedded renderer's cookie manager, for example) is owned
elsewhere and only has to offer ``set_cookie(url, cookie)`` and ``flush()``.
Pushes run on an executor that stands for the consumer's designated execution
context; they never run under the store lock and never raise into ``save``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from collections.abc import Iterable
from typing import Protocol

from .models import CookieRecord
from .retry import RetryError, RetryState, retry

logger = logging.getLogger(__name__)


class CookieSyncTarget(Protocol):
    """Narrow contract of the secondary cookie consumer. set_cookie must be idempotent."""

    def set_cookie(self, url: str, cookie: str) -> None: ...

    def flush(self) -> None: ...


class SyncCancelled(Exception):
    """Raised inside a backoff wait when the bridge is closed."""


class CookieSyncBridge:
    """
    Schedules retried pushes of cookies to a ``CookieSyncTarget``.

    Args:
        target: The secondary cookie consumer.
        executor: Where pushes run. Defaults to a private single-thread
            executor, which keeps pushes in submission order.
        max_attempts: Attempts per push, including the first.
        base_delay: First backoff delay in seconds.
        max_delay: Cap for a single backoff delay in seconds.
        jitter: Randomize backoff delays.
    """

    def __init__(
        self,
        target: CookieSyncTarget,
        executor: Executor | None = None,
        max_attempts: int = 3,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        jitter: bool = True,
    ) -> None:
        self.target = target
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="persistjar-sync"
        )
        self._closed = threading.Event()
        self._push = retry(
            max_attempts=max_attempts,
            base_delay=base_delay,
            max_delay=max_delay,
            jitter=jitter,
            retryable_exceptions={Exception},
            on_retry=self._on_retry,
            sleep=self._wait,
        )(self._push_once)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _wait(self, delay: float) -> None:
        if self._closed.wait(delay):
            raise SyncCancelled("Cookie sync cancelled during backoff")

    @staticmethod
    def _on_retry(state: RetryState, exc: Exception, delay: float) -> None:
        logger.debug(
            "Cookie sync attempt %d/%d failed (%s), retrying in %.2fs",
            state.attempt + 1,
            state.max_attempts,
            exc,
            delay,
        )

    def _push_once(self, url: str, cookies: list[str]) -> None:
        for cookie in cookies:
            self.target.set_cookie(url, cookie)
        self.target.flush()

    def _run(self, url: str, cookies: list[str]) -> bool:
        if self.closed:
            return False
        try:
            self._push(url, cookies)
        except RetryError as e:
            logger.warning(
                "Giving up syncing %d cookies for %s: %s", len(cookies), url, e.__cause__
            )
            return False
        except SyncCancelled:
            logger.debug("Cookie sync for %s cancelled", url)
            return False
        return True

    def mirror(self, url: str, records: Iterable[CookieRecord]) -> Future | None:
        """
        Schedule a push of ``records`` for ``url`` and return immediately.

        Returns:
            A future resolving to True when the push succeeded, or None when
            nothing was scheduled.
        """
        cookies = [record.to_wire_string() for record in records]
        if not cookies or self.closed:
            return None
        try:
            return self._executor.submit(self._run, url, cookies)
        except RuntimeError as e:
            # Executor already shut down.
            logger.warning("Failed to schedule cookie sync for %s: %s", url, e)
            return None

    def close(self, wait: bool = True) -> None:
        """Abort pending backoff waits and stop the private executor."""
        self._closed.set()
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    def __repr__(self) -> str:
        return f"<CookieSyncBridge target={self.target!r} closed={self.closed}>"
