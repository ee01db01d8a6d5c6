"""
Tests for api_reach console tracing.
"""
from unittest.mock import patch

from api_reach.console import format_body, mask_auth_header, mask_headers, print_request, print_response
from api_reach.const import ResponseCategory
from api_reach.types import RequestDescriptor, ResponseEnvelope


class TestMasking:
    """Tests for header masking."""

    def test_masks_long_values(self):
        """Should keep the first 15 characters."""
        assert mask_auth_header("Bearer abcdefghijklmnop") == "Bearer abcdefgh***"

    def test_masks_short_values_fully(self):
        """Should mask short values completely."""
        assert mask_auth_header("abc") == "***"
        assert mask_auth_header(None) == "<none>"

    def test_masks_only_sensitive_headers(self):
        """Should mask authorization and x-api-key only."""
        masked = mask_headers({"Authorization": "Bearer abcdefghijklmnop", "X-API-Key": "k", "Accept": "*/*"})
        assert masked["Authorization"].endswith("***")
        assert masked["X-API-Key"] == "*"
        assert masked["Accept"] == "*/*"


class TestFormatBody:
    """Tests for format_body."""

    def test_formats(self):
        """Should pretty print JSON and describe binary data."""
        assert format_body({"a": 1}) == '{\n  "a": 1\n}'
        assert format_body(b"\xff\xfe") == "<binary data: 2 bytes>"
        assert format_body(None) == ""


class TestPrinting:
    """Tests for request and response panels."""

    def test_prints_request_and_response(self):
        """Should print through the rich console without leaking secrets."""
        request = RequestDescriptor(
            method="POST",
            url="https://api.example.com/x",
            headers={"Authorization": "Bearer abcdefghijklmnop"},
            body='{"a": 1}',
        )
        response = ResponseEnvelope(
            status=200, status_text="OK", headers={}, body={"ok": True},
            category=ResponseCategory.SUCCESS, request=request,
        )
        with patch("api_reach.console.console") as console:
            print_request(request)
            print_response(response)

        printed = " ".join(str(arg) for call in console.print.call_args_list for arg in call.args)
        assert "abcdefghijklmnop" not in printed
