"""
Background dispatch for remote writes that callers do not wait on.
"""

import asyncio
import concurrent.futures
from typing import Any, Awaitable, Callable, Optional, Set, Union, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

WriteFuture = Union["asyncio.Task[Any]", "concurrent.futures.Future[Any]"]
FailureCallback = Callable[[str, BaseException], None]


class BackgroundWriter:
    """Runs remote writes without blocking the caller.

    Inside a running event loop a write becomes a task on that loop. Outside
    one it runs on a worker thread with its own loop. Failures are logged,
    counted and handed to ``on_failure``; they are never raised to the code
    that dispatched the write.
    """

    def __init__(
        self,
        max_workers: int = 4,
        *,
        on_failure: Optional[FailureCallback] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.max_workers = max_workers
        self.on_failure = on_failure
        self.metrics = metrics
        self.logger = get_logger("roaming.background_writer")
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._pending: Set[WriteFuture] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, key: str, write: Callable[[], Awaitable[Any]]) -> WriteFuture:
        """Schedule ``write()`` and return its future."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            future: WriteFuture = loop.create_task(write())
        else:
            future = self._get_executor().submit(asyncio.run, write())

        self._pending.add(future)
        future.add_done_callback(lambda done: self._on_done(key, done))
        return future

    async def flush(self) -> int:
        """Wait for every pending write. Returns the number that failed."""
        failed = 0
        while self._pending:
            batch = list(self._pending)
            results = await asyncio.gather(
                *(self._as_awaitable(future) for future in batch),
                return_exceptions=True
            )
            failed += sum(1 for result in results if isinstance(result, BaseException))
            # Done callbacks may not have run yet for futures finished on other threads.
            self._pending.difference_update(batch)
        return failed

    def shutdown(self, wait: bool = True):
        """Stop the worker threads used for writes dispatched outside a loop."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def _get_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="roaming-write"
            )
        return self._executor

    @staticmethod
    def _as_awaitable(future: WriteFuture) -> Awaitable[Any]:
        if isinstance(future, concurrent.futures.Future):
            return asyncio.wrap_future(future)
        return future

    def _on_done(self, key: str, future: WriteFuture):
        self._pending.discard(future)

        if future.cancelled():
            self.logger.warning("Background remote write cancelled", key=key)
            return

        error = future.exception()
        if error is None:
            self._record("success")
            return

        self._record("failure")
        self.logger.error("Background remote write failed", key=key, error=str(error))
        if self.on_failure is not None:
            try:
                self.on_failure(key, error)
            except Exception as callback_error:
                self.logger.error(
                    "Write failure callback raised",
                    key=key,
                    error=str(callback_error)
                )

    def _record(self, outcome: str):
        if self.metrics is not None:
            self.metrics.increment_counter("roaming_remote_writes_total", outcome=outcome)
