"""Shared test transports for api_reach tests."""
import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

from api_reach.cancellation import CancellationToken
from api_reach.types import RawResponse, RequestDescriptor


class ScriptedTransport:
    """
    Transport returning scripted results in order. The last item repeats.

    Each item is a RawResponse, an exception to raise, or an async callable
    taking (request, token).
    """

    def __init__(self, *script: Union[RawResponse, BaseException, Callable]):
        self.script: List[Any] = list(script)
        self.calls: List[RequestDescriptor] = []

    async def __call__(self, request: RequestDescriptor, cancel_token: CancellationToken) -> RawResponse:
        self.calls.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item(request, cancel_token)
        return item


def raw(
    status: int = 200,
    body: Optional[bytes] = b'{"ok": true}',
    status_text: str = "OK",
    headers: Optional[Dict[str, str]] = None,
) -> RawResponse:
    return RawResponse(status=status, status_text=status_text, headers=headers or {}, body=body)


def hanging(delay: float = 10.0):
    """Transport step that sleeps longer than any test timeout."""

    async def _step(request, cancel_token):
        await asyncio.sleep(delay)
        return raw()

    return _step
