"""
Tests for api_reach cancellation primitives.
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from api_reach.cancellation import CancellableTask, CancellationToken
from api_reach.errors import AttemptCancelledError


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_is_idempotent(self):
        """Should run callbacks once and keep the first reason."""
        token = CancellationToken()
        callback = MagicMock()
        token.add_callback(callback)

        token.cancel("first")
        token.cancel("second")

        assert token.cancelled
        assert token.reason == "first"
        callback.assert_called_once_with(token)

    def test_callback_after_cancel_runs_immediately(self):
        """Should call late callbacks right away."""
        token = CancellationToken()
        token.cancel()
        callback = MagicMock()
        token.add_callback(callback)
        callback.assert_called_once_with(token)

    def test_failing_callback_does_not_stop_others(self):
        """Should keep running callbacks after one fails."""
        token = CancellationToken()
        token.add_callback(MagicMock(side_effect=RuntimeError("boom")))
        second = MagicMock()
        token.add_callback(second)
        token.cancel()
        second.assert_called_once()

    def test_raise_if_cancelled(self):
        """Should raise AttemptCancelledError once cancelled."""
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel("timeout")
        with pytest.raises(AttemptCancelledError, match="timeout"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_wait(self):
        """Should wake waiters on cancel."""
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)


class TestCancellableTask:
    """Tests for CancellableTask."""

    @pytest.mark.asyncio
    async def test_awaits_result(self):
        """Should resolve to the coroutine result."""

        async def work():
            return 42

        task = CancellableTask(work(), MagicMock())
        assert await task == 42
        assert task.done()
        assert task.result() == 42

    @pytest.mark.asyncio
    async def test_cancel_calls_hook(self):
        """Should call the cancel hook while running."""
        on_cancel = MagicMock()

        async def work():
            await asyncio.sleep(0.01)
            return "done"

        task = CancellableTask(work(), on_cancel)
        task.cancel()
        on_cancel.assert_called_once()
        assert await task == "done"

    @pytest.mark.asyncio
    async def test_cancel_after_settlement_is_noop(self):
        """Should ignore cancel once settled."""
        on_cancel = MagicMock()

        async def work():
            return 1

        task = CancellableTask(work(), on_cancel)
        await task
        task.cancel()
        on_cancel.assert_not_called()
