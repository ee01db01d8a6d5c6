"""
Response classification: status grouping, body decoding and the mapping of
error categories to typed errors.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .const import ExpectedResponseBodyType, ResponseCategory
from .errors import (
    HttpClientError,
    HttpServerError,
    ResponseDataTypeMismatchError,
    UnknownStatusError,
)
from .types import RawResponse, RequestDescriptor, ResponseEnvelope

logger = logging.getLogger("api_reach.classifier")


# 499 is a non-standard but common nginx code; it sits in both the client
# error and aborted ranges and the check order makes it a client error.
_PREDICATES: Dict[ResponseCategory, Callable[[int], bool]] = {
    ResponseCategory.SUCCESS: lambda status: 200 <= status < 300,
    ResponseCategory.CLIENT_ERROR: lambda status: 400 <= status <= 499,
    ResponseCategory.SERVER_ERROR: lambda status: 500 <= status < 600,
    ResponseCategory.REDIRECT: lambda status: 300 <= status < 400,
    ResponseCategory.ABORTED: lambda status: not status or status == 499 or status >= 600,
    ResponseCategory.INFORMATIONAL: lambda status: 100 <= status < 200,
}

CHECK_ORDER: List[ResponseCategory] = [
    ResponseCategory.SUCCESS,
    ResponseCategory.CLIENT_ERROR,
    ResponseCategory.SERVER_ERROR,
    ResponseCategory.REDIRECT,
    ResponseCategory.ABORTED,
    ResponseCategory.INFORMATIONAL,
]


def classify(status: int) -> ResponseCategory:
    """
    Match an HTTP status code to its group.

    Args:
        status: HTTP status code

    Returns:
        The first matching category in ``CHECK_ORDER``

    Raises:
        UnknownStatusError: status is negative or in 1..99
    """
    for category in CHECK_ORDER:
        if _PREDICATES[category](status):
            return category
    raise UnknownStatusError("Unknown HTTP status", {"status": status})


def is_success(status: int) -> bool:
    return _PREDICATES[ResponseCategory.SUCCESS](status)


def is_client_error(status: int) -> bool:
    return _PREDICATES[ResponseCategory.CLIENT_ERROR](status)


def is_server_error(status: int) -> bool:
    return _PREDICATES[ResponseCategory.SERVER_ERROR](status)


def is_redirect(status: int) -> bool:
    return _PREDICATES[ResponseCategory.REDIRECT](status)


def is_aborted(status: int) -> bool:
    return _PREDICATES[ResponseCategory.ABORTED](status)


def is_informational(status: int) -> bool:
    return _PREDICATES[ResponseCategory.INFORMATIONAL](status)


async def _read_all(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    chunks = []
    async for chunk in body:
        chunks.append(chunk)
    return b"".join(chunks)


async def decode_body(
    raw: RawResponse, response_type: ExpectedResponseBodyType
) -> Tuple[Any, Optional[str]]:
    """
    Decode a raw body according to the expected type.

    Returns:
        ``(body, raw_body)``. ``raw_body`` is the undecoded text when a JSON
        body could not be parsed, otherwise None.
    """
    if response_type == ExpectedResponseBodyType.STREAM:
        return raw.body, None

    content = await _read_all(raw.body)

    if response_type == ExpectedResponseBodyType.BINARY:
        return content, None

    text = content.decode("utf-8", errors="replace")
    if response_type == ExpectedResponseBodyType.TEXT:
        return text, None

    try:
        return json.loads(text), None
    except ValueError:
        logger.debug(f"decode_body: body is not valid JSON ({len(text)} chars)")
        return "", text


NO_BODY_STATUSES = (204, 304)


def _has_no_body(raw: RawResponse, request: RequestDescriptor) -> bool:
    return raw.status in NO_BODY_STATUSES or request.method.upper() == "HEAD"


async def build_envelope(raw: RawResponse, request: RequestDescriptor) -> ResponseEnvelope:
    """
    Decode and classify a raw transport result.

    A JSON response that carries no body by definition (204, 304, HEAD)
    gets a None body. Any other empty JSON body is a type mismatch.
    """
    if request.response_type == ExpectedResponseBodyType.JSON and _has_no_body(raw, request):
        body, raw_body = None, None
    else:
        body, raw_body = await decode_body(raw, request.response_type)
    return ResponseEnvelope(
        status=raw.status,
        status_text=raw.status_text,
        headers=dict(raw.headers),
        body=body,
        category=classify(raw.status),
        request=request,
        raw_body=raw_body,
    )


async def release_body(response: Optional[ResponseEnvelope]) -> None:
    """Close an unread stream body. Buffered bodies need nothing."""
    if response is None:
        return
    aclose = getattr(response.body, "aclose", None)
    if aclose is not None:
        await aclose()


def serve_response(response: ResponseEnvelope) -> ResponseEnvelope:
    """
    Return the response, or raise the typed error its category calls for.

    A body type mismatch wins over the status based errors.
    """
    if response.raw_body is not None:
        expected = response.request.response_type if response.request else None
        raise ResponseDataTypeMismatchError(
            "Unexpected type of data received",
            {"response": response, "expected_type": expected},
        )
    if response.category == ResponseCategory.CLIENT_ERROR:
        raise HttpClientError(response.status_text, {"response": response})
    if response.category == ResponseCategory.SERVER_ERROR:
        raise HttpServerError(response.status_text, {"response": response})
    return response
