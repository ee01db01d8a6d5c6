"""
Cooperative cancellation primitives.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Generator, Generic, List, Optional, TypeVar

from .errors import AttemptCancelledError

logger = logging.getLogger("api_reach.cancellation")

T = TypeVar("T")


class CancellationToken:
    """
    Signal handed to a transport for a single attempt.

    Cancelling is idempotent; callbacks run once, synchronously, on the
    first call to ``cancel()``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[["CancellationToken"], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for callback in list(self._callbacks):
            try:
                callback(self)
            except Exception:
                logger.exception("cancellation callback failed")

    def add_callback(self, callback: Callable[["CancellationToken"], None]) -> None:
        """Run ``callback`` on cancel, or right away if already cancelled."""
        if self._event.is_set():
            callback(self)
            return
        self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AttemptCancelledError(self._reason or "cancelled")


class CancellableTask(Generic[T]):
    """
    Awaitable result of one execution, with a first-class ``cancel()``.

    ``cancel()`` asks the execution to abort; it does not cancel the
    underlying asyncio task, so the execution still settles with a typed
    error. Calling it after settlement does nothing.

    Example:
        task = client.get("/slow")
        task.cancel()
        try:
            await task
        except AbortError:
            ...
    """

    def __init__(self, coro: Awaitable[T], on_cancel: Callable[[], None]) -> None:
        self._task: "asyncio.Future[T]" = asyncio.ensure_future(coro)
        self._on_cancel = on_cancel

    def cancel(self) -> None:
        if self._task.done():
            return
        self._on_cancel()

    def done(self) -> bool:
        return self._task.done()

    def result(self) -> T:
        return self._task.result()

    def exception(self) -> Optional[BaseException]:
        return self._task.exception()

    def add_done_callback(self, callback: Callable[["asyncio.Future[T]"], Any]) -> None:
        self._task.add_done_callback(callback)

    def __await__(self) -> Generator[Any, None, T]:
        return self._task.__await__()
