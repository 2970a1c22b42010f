"""Tests for the HTTP transport."""

from __future__ import annotations

import http.client
import json
import socket
import urllib.error
from unittest.mock import patch

import pytest

from electrolux_api.client import ApplianceGateway
from electrolux_api.exceptions import ApiError, AuthError
from electrolux_api.http import HttpTransport, mask_token
from electrolux_api.models import ApplianceIdentity
from electrolux_api.session import CredentialManager

from .conftest import API_KEY, API_URL, token_response

URL = f"{API_URL}/api/v1/appliances"


class FakeResponse:
    """Minimal stand-in for the object urlopen returns."""

    def __init__(self, body: bytes, status: int = 200):
        self.body = body
        self.status = status

    def read(self) -> bytes:
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def json_response(data, status: int = 200) -> FakeResponse:
    return FakeResponse(json.dumps(data).encode("utf-8"), status)


def test_request_decodes_json() -> None:
    """Test a JSON body is decoded and default headers are sent."""
    with patch("urllib.request.urlopen", return_value=json_response([{"applianceId": "1"}])) as urlopen:
        result = HttpTransport(timeout=3).request("GET", URL, headers={"x-api-key": API_KEY})

    assert result == [{"applianceId": "1"}]
    request = urlopen.call_args.args[0]
    assert request.get_header("Accept") == "application/json"
    assert request.get_header("X-api-key") == API_KEY
    assert urlopen.call_args.kwargs["timeout"] == 3


def test_request_sends_json_body() -> None:
    """Test json_body is encoded with a content type."""
    with patch("urllib.request.urlopen", return_value=json_response({})) as urlopen:
        HttpTransport().request("POST", URL, json_body={"refreshToken": "r"})

    request = urlopen.call_args.args[0]
    assert request.get_method() == "POST"
    assert json.loads(request.data) == {"refreshToken": "r"}
    assert request.get_header("Content-type") == "application/json"


def test_empty_body_is_none() -> None:
    """Test an empty response body decodes to None."""
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"")):
        assert HttpTransport().request("GET", URL) is None


def test_http_error_keeps_status() -> None:
    """Test HTTP error statuses are carried on the ApiError."""
    error = urllib.error.HTTPError(URL, 401, "Unauthorized", hdrs=None, fp=None)
    with patch("urllib.request.urlopen", side_effect=error):
        with pytest.raises(ApiError) as exc_info:
            HttpTransport().request("GET", URL)

    assert exc_info.value.status == 401


@pytest.mark.parametrize(
    "error",
    [
        urllib.error.URLError("Name or service not known"),
        socket.timeout("timed out"),
        TimeoutError("timed out"),
        ConnectionResetError("reset"),
        http.client.RemoteDisconnected("Remote end closed connection"),
        http.client.IncompleteRead(b"partial"),
    ],
)
def test_transport_failures_become_api_errors(error) -> None:
    """Test network failures surface as ApiError without a status."""
    with patch("urllib.request.urlopen", side_effect=error):
        with pytest.raises(ApiError) as exc_info:
            HttpTransport().request("GET", URL)

    assert exc_info.value.status is None


def test_invalid_json() -> None:
    """Test an unparseable body is an ApiError."""
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"<html>oops</html>")):
        with pytest.raises(ApiError, match="invalid JSON"):
            HttpTransport().request("GET", URL)


def test_invalid_utf8() -> None:
    """Test a body that is not UTF-8 is an ApiError."""
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"\xff\xfe\x00")):
        with pytest.raises(ApiError):
            HttpTransport().request("GET", URL)


def test_reset_on_token_call_is_auth_error() -> None:
    """Test a dropped connection during renewal fails as AuthError."""
    manager = CredentialManager(api_url=API_URL, http=HttpTransport(), refresh_token="refresh-1")

    with patch("urllib.request.urlopen", side_effect=ConnectionResetError("reset")):
        with pytest.raises(AuthError):
            manager.ensure_valid()

    assert manager.session is None


def test_timeout_on_device_call_is_device_error() -> None:
    """Test a timed-out appliance request becomes that appliance's DeviceError."""
    def urlopen(request, timeout=None):
        if request.full_url.endswith("/token/refresh"):
            return json_response(token_response())
        raise socket.timeout("timed out")

    transport = HttpTransport()
    credentials = CredentialManager(api_url=API_URL, http=transport, refresh_token="refresh-1")
    gateway = ApplianceGateway(api_url=API_URL, api_key=API_KEY, credentials=credentials, http=transport)

    with patch("urllib.request.urlopen", side_effect=urlopen):
        result = gateway.fetch_appliance(ApplianceIdentity("1", "Fridge"))

    assert not result.ok
    assert result.error.appliance_id == "1"
    assert "timed out" in result.error.message


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "<none>"),
        ("", "<none>"),
        ("abcd", "***"),
        ("secret-token-1234", "***1234"),
    ],
)
def test_mask_token(value, expected) -> None:
    """Test secrets are masked down to their last four characters."""
    assert mask_token(value) == expected
