"""
Constants and enums for api_reach
"""
from enum import Enum
from typing import Dict, Optional


class ResponseCategory(str, Enum):
    """Status group a response falls into"""
    ABORTED = "aborted"
    INFORMATIONAL = "informational"
    SUCCESS = "success"
    REDIRECT = "redirect"
    CLIENT_ERROR = "clientError"
    SERVER_ERROR = "serverError"


class ExpectedResponseBodyType(str, Enum):
    """Body type we expect to receive"""
    JSON = "json"
    TEXT = "text"
    BINARY = "binary"
    STREAM = "stream"


class RequestBodyType(str, Enum):
    """Body type that can be sent"""
    JSON = "json"
    """Plain object or pre-serialized JSON string. Sets Content-Type."""

    URLENCODED = "urlencoded"
    """Plain object or pre-encoded form string. Sets Content-Type."""

    PLAIN = "plain"
    """String only. No Content-Type is set."""


class LoadStrategy(str, Enum):
    """When the cache is read relative to the attempt loop"""
    PREFER_CACHE = "prefer-cache"
    PREFER_REQUEST = "prefer-request"
    CACHE_ONLY = "cache-only"
    REQUEST_ONLY = "request-only"


class SaveStrategy(str, Enum):
    """Whether the final response is written to the cache"""
    SAVE = "save"
    NO_SAVE = "no-save"


REQUEST_CONTENT_TYPES: Dict[RequestBodyType, Optional[str]] = {
    RequestBodyType.JSON: "application/json; charset=utf-8",
    RequestBodyType.URLENCODED: "application/x-www-form-urlencoded",
    RequestBodyType.PLAIN: None,
}

# HTTP methods
HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
