"""Minimal JSON-over-HTTPS transport for the Electrolux API."""

import http.client
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from .config.constants import DEFAULT_TIMEOUT
from .exceptions import ApiError

_LOGGER = logging.getLogger(__name__)


def mask_token(value: Optional[str]) -> str:
    """Mask a secret for logging, keeping the last 4 characters."""
    if not value:
        return "<none>"
    if len(value) <= 4:
        return "***"
    return f"***{value[-4:]}"


class HttpTransport:
    """Performs HTTP requests and decodes JSON responses.

    Every call is bounded by a request timeout; a timeout or network error
    surfaces as an ApiError with no status.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, user_agent: str = "electrolux2mqtt"):
        self.timeout = timeout
        self.user_agent = user_agent

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Extra request headers
            json_body: Object to send as JSON body
            timeout: Override of the default timeout (seconds)

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            ApiError: On HTTP error status, network error, timeout or bad JSON
        """
        request_headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        request_headers.update(headers or {})

        data = None
        if json_body is not None:
            data = json.dumps(json_body).encode("utf-8")
            request_headers["Content-Type"] = "application/json"

        request = urllib.request.Request(url, data=data, headers=request_headers, method=method)
        _LOGGER.debug("HTTP %s %s", method, url)

        try:
            with urllib.request.urlopen(request, timeout=timeout or self.timeout) as response:
                raw = response.read()
                status = response.status
        except urllib.error.HTTPError as e:
            raise ApiError(f"{method} {url} failed: {e.code} {e.reason}", status=e.code) from e
        except urllib.error.URLError as e:
            raise ApiError(f"{method} {url} failed: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise ApiError(f"{method} {url} timed out after {timeout or self.timeout}s") from e
        except (OSError, http.client.HTTPException) as e:
            raise ApiError(f"{method} {url} failed: {e!r}") from e

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ApiError(f"{method} {url} returned undecodable body: {e}", status=status) from e

        _LOGGER.debug("HTTP %s -> %s (%d bytes)", url, status, len(body))

        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ApiError(f"{method} {url} returned invalid JSON: {e}", status=status) from e
