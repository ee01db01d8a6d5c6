"""Pytest configuration for api_reach tests."""
import pytest

from api_reach.const import ExpectedResponseBodyType
from api_reach.types import RequestDescriptor


@pytest.fixture
def descriptor():
    """GET request expecting JSON."""
    return RequestDescriptor(
        method="GET",
        url="https://api.example.com/items",
        original_url="/items",
        response_type=ExpectedResponseBodyType.JSON,
    )
