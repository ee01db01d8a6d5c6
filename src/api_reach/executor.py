"""
Request executor: the attempt loop with per-attempt and global timeouts,
retries and external abort.
"""
import asyncio
import logging
from typing import Callable, Optional, TypeVar

from .cancellation import CancellationToken
from .classifier import build_envelope, release_body, serve_response
from .config import ExecutionOptions, is_enabled_timeout
from .errors import (
    AbortError,
    ApiReachError,
    ApiTimeoutError,
    AttemptCancelledError,
    UnknownError,
    normalize_error,
)
from .types import RawResponse, RequestDescriptor, ResponseEnvelope, Transport, TryInfo

logger = logging.getLogger("api_reach.executor")

T = TypeVar("T")


def _ask_policy(callback: Callable[[TryInfo], T], try_info: TryInfo) -> T:
    """Call a retry policy hook. Its failures surface as typed errors."""
    try:
        return callback(try_info)
    except ApiReachError:
        raise
    except Exception as error:
        raise normalize_error(error) from error


def _consume_result(task: "asyncio.Future[RawResponse]") -> None:
    # Abandoned transport tasks may still fail after the race is decided.
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"abandoned transport call failed: {task.exception()!r}")


class RequestExecutor:
    """
    Runs the attempts of one execution.

    Attempts are strictly sequential. Each attempt gets a fresh
    ``CancellationToken`` that is cancelled by the per-attempt timer, the
    global timer or ``abort()``. The transport call is raced against the
    token, so a transport that ignores the token is still abandoned.

    Example:
        executor = RequestExecutor(descriptor, options, transport)
        response = await executor.run()
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        options: ExecutionOptions,
        transport: Transport,
        token_factory: Callable[[], CancellationToken] = CancellationToken,
    ):
        self._descriptor = descriptor
        self._options = options
        self._transport = transport
        self._token_factory = token_factory

        self._token: Optional[CancellationToken] = None
        self._wake = asyncio.Event()
        self._global_handle: Optional[asyncio.TimerHandle] = None
        self._attempt_handle: Optional[asyncio.TimerHandle] = None
        self._started_at = 0.0

        self._aborted = False
        self._timed_out_globally = False
        self._timed_out_locally = False
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def abort(self) -> None:
        """Cancel the execution. Does nothing once settled."""
        if self._settled or self._aborted:
            return
        logger.debug(f"{self._descriptor.method} {self._descriptor.url}: abort requested")
        self._aborted = True
        self._wake.set()
        if self._token is not None:
            self._token.cancel("abort")

    async def run(self) -> ResponseEnvelope:
        """
        Run attempts until one produces a response or the retry policy,
        a timer or an abort ends the loop.

        Returns:
            The classified response of the successful attempt

        Raises:
            ApiReachError: the last recorded error
        """
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        total = self._options.timeout.total
        if is_enabled_timeout(total):
            self._global_handle = loop.call_later(total, self._on_global_timeout)

        try:
            return await self._attempt_loop(loop)
        finally:
            self._clear_timers()
            self._settled = True

    async def _attempt_loop(self, loop: asyncio.AbstractEventLoop) -> ResponseEnvelope:
        timeout = self._options.timeout
        retry = self._options.retry
        request = self._descriptor

        try_no = 0
        last_error: Optional[ApiReachError] = None

        while try_no == 0 or _ask_policy(retry.allows_try, TryInfo(try_no + 1, last_error)):
            try_no += 1
            token = self._token_factory()
            self._token = token
            self._timed_out_locally = False

            if try_no > 1:
                if last_error is not None:
                    await release_body(last_error.response)
                wait = _ask_policy(retry.interval_for, TryInfo(try_no, last_error))
                if self._global_handle is None or self._remaining_total(loop) > wait:
                    logger.debug(f"{request.method} {request.url}: waiting {wait:.3f}s before try {try_no}")
                    await self._sleep(wait)
                else:
                    logger.info(
                        f"{request.method} {request.url}: no time left for try {try_no}, "
                        f"stopping at global timeout"
                    )
                    self._global_handle.cancel()
                    self._global_handle = None
                    self._timed_out_globally = True

            if self._aborted or self._timed_out_globally:
                last_error = self._abort_error("waiting", try_no - 1, last_error)
                break

            if is_enabled_timeout(timeout.single):
                self._attempt_handle = loop.call_later(
                    timeout.single, self._on_attempt_timeout, token
                )

            logger.debug(f"{request.method} {request.url}: try {try_no}")
            try:
                raw = await self._race(token)
                response = await build_envelope(raw, request)
                return serve_response(response)
            except AttemptCancelledError:
                last_error = self._abort_error("connection", try_no, last_error)
                if self._timed_out_globally or not self._timed_out_locally:
                    break
                logger.debug(f"{request.method} {request.url}: try {try_no} timed out")
            except Exception as error:
                last_error = normalize_error(error)
                logger.debug(f"{request.method} {request.url}: try {try_no} failed: {last_error!r}")
            finally:
                self._stop_attempt_timer()

        if last_error is None:
            raise UnknownError("No error recorded")
        raise last_error

    async def _race(self, token: CancellationToken) -> RawResponse:
        """Run the transport call until it finishes or the token fires."""
        transport_task = asyncio.ensure_future(self._transport(self._descriptor, token))
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({transport_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not transport_task.done():
                transport_task.add_done_callback(_consume_result)
                transport_task.cancel()

        if not transport_task.done():
            raise AttemptCancelledError(token.reason or "cancelled")
        if transport_task.cancelled():
            raise AttemptCancelledError("transport call cancelled")
        try:
            return transport_task.result()
        except asyncio.CancelledError as error:
            raise AttemptCancelledError("transport call cancelled") from error

    async def _sleep(self, seconds: float) -> None:
        """Sleep between attempts. Returns early on abort or global timeout."""
        if seconds <= 0 or self._wake.is_set():
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _abort_error(
        self, phase: str, tries: int, cause: Optional[ApiReachError]
    ) -> ApiReachError:
        timeout = self._options.timeout
        details = {
            "tries": tries,
            "while": phase,
            "timeout": timeout.single,
            "global_timeout": timeout.total,
        }
        url = self._descriptor.url
        if self._timed_out_globally or self._timed_out_locally:
            return ApiTimeoutError(f"Request to {url} timed out", details, cause)
        return AbortError(f"Request to {url} aborted", details, cause)

    def _remaining_total(self, loop: asyncio.AbstractEventLoop) -> float:
        total = self._options.timeout.total or 0.0
        return total - (loop.time() - self._started_at)

    def _on_global_timeout(self) -> None:
        logger.info(f"{self._descriptor.method} {self._descriptor.url}: global timeout fired")
        self._global_handle = None
        self._timed_out_globally = True
        self._wake.set()
        if self._token is not None:
            self._token.cancel("global timeout")

    def _on_attempt_timeout(self, token: CancellationToken) -> None:
        logger.debug(f"{self._descriptor.method} {self._descriptor.url}: attempt timeout fired")
        self._attempt_handle = None
        self._timed_out_locally = True
        token.cancel("timeout")

    def _stop_attempt_timer(self) -> None:
        if self._attempt_handle is not None:
            self._attempt_handle.cancel()
            self._attempt_handle = None

    def _clear_timers(self) -> None:
        self._stop_attempt_timer()
        if self._global_handle is not None:
            self._global_handle.cancel()
            self._global_handle = None
