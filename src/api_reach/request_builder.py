"""
Request builder utilities for api_reach.
"""
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote, urlencode, urlparse

from .config import ClientOptions, DEFAULT_REQUEST_TYPE, DEFAULT_RESPONSE_TYPE
from .const import REQUEST_CONTENT_TYPES, RequestBodyType
from .types import RequestData, RequestDescriptor

logger = logging.getLogger("api_reach.request_builder")


def is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def join_url(base_url: str, path: str) -> str:
    """Join base and path with exactly one slash between them."""
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def replace_params(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Replace every ``:name`` placeholder with the url-quoted value.

    Example:
        replace_params("/users/:id/posts/:id", {"id": 5})  # "/users/5/posts/5"
    """
    if not params:
        return url
    # Longest names first so ":id" does not eat the start of ":idx"
    for name in sorted(params, key=len, reverse=True):
        value = quote(str(params[name]), safe="")
        pattern = re.compile(":" + re.escape(name) + r"(?![A-Za-z0-9_])")
        url = pattern.sub(lambda _match: value, url)
    return url


def build_query_string(query: Optional[Mapping[str, Any]] = None) -> str:
    """Encode query values. Lists become repeated keys; None values are skipped."""
    if not query:
        return ""
    pairs = {key: value for key, value in query.items() if value is not None}
    return urlencode(pairs, doseq=True)


def build_url(
    base_url: Optional[str],
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Build the full URL from base, path, params and query.

    Query values are appended to any query already in the url, so
    ``?x=1`` plus ``{"x": 4}`` gives ``?x=1&x=4``.

    Raises:
        ValueError: ``url`` is absolute while a base url is set
    """
    if base_url and urlparse(base_url).netloc:
        if is_absolute_url(url):
            raise ValueError("Cannot use absolute url with base url.")
        full_url = join_url(base_url, url)
    else:
        full_url = url

    full_url = replace_params(full_url, params)

    query_str = build_query_string(query)
    if query_str:
        separator = "&" if "?" in full_url else "?"
        full_url = f"{full_url}{separator}{query_str}"
    return full_url


def build_headers(
    headers: Optional[Mapping[str, str]] = None,
    request_headers: Optional[Mapping[str, str]] = None,
    request_type: RequestBodyType = DEFAULT_REQUEST_TYPE,
    has_body: bool = False,
) -> Dict[str, str]:
    """Merge client and request headers and set the content type for bodies."""
    result = dict(headers or {})
    if request_headers:
        # Same header with a different case replaces the client one
        lowered = {k.lower() for k in request_headers}
        result = {k: v for k, v in result.items() if k.lower() not in lowered}
        result.update(request_headers)

    content_type = REQUEST_CONTENT_TYPES.get(request_type)
    if has_body and content_type and "content-type" not in {k.lower() for k in result}:
        result["Content-Type"] = content_type

    return result


def build_body(body: Any, request_type: RequestBodyType = DEFAULT_REQUEST_TYPE) -> Optional[Union[str, bytes]]:
    """
    Encode the request body.

    ``str`` and ``bytes`` bodies are passed through as already encoded.

    Raises:
        TypeError: plain body that is not a string
    """
    if body is None:
        return None
    if isinstance(body, (str, bytes)):
        return body

    if request_type == RequestBodyType.JSON:
        return json.dumps(body)
    if request_type == RequestBodyType.URLENCODED:
        return urlencode(body, doseq=True)
    raise TypeError("Plain body must be a string")


def build_request(
    method: str,
    url: str,
    data: Union[RequestData, Mapping[str, Any], None],
    options: ClientOptions,
) -> RequestDescriptor:
    """
    Build the immutable request descriptor for one execution.

    Args:
        method: HTTP method
        url: Absolute url, or path joined with ``options.base``
        data: params, query, body and headers for this request
        options: Merged client and request options
    """
    if data is None:
        data = RequestData()
    elif not isinstance(data, RequestData):
        data = RequestData(**dict(data))

    request_type = RequestBodyType(options.request_type or DEFAULT_REQUEST_TYPE)
    response_type = options.response_type or DEFAULT_RESPONSE_TYPE

    full_url = build_url(options.base, url, data.params, data.query)
    body = build_body(data.body, request_type)
    headers = build_headers(options.headers, data.headers, request_type, has_body=body is not None)

    logger.debug(f"build_request: {method.upper()} {full_url} (body={body is not None})")
    return RequestDescriptor(
        method=method.upper(),
        url=full_url,
        headers=headers,
        body=body,
        original_url=url,
        query=dict(data.query) if data.query else None,
        params=dict(data.params) if data.params else None,
        request_type=request_type,
        response_type=response_type,
    )
