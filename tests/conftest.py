"""Fixtures for electrolux2mqtt tests."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from electrolux_api.exceptions import ApiError, PublishError
from electrolux_api.models import ApplianceIdentity, ApplianceRecord

API_URL = "https://api.example.test"
API_KEY = "test-api-key"


class FakeHttp:
    """HTTP transport answering from a route table.

    Routes map "METHOD path" to a value, an exception, or a callable taking
    (headers, json_body) and returning either.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[tuple[str, str, dict, Any]] = []
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, json_body=None, timeout=None):
        path = url[len(API_URL):] if url.startswith(API_URL) else url
        with self._lock:
            self.calls.append((method, path, dict(headers or {}), json_body))
        route = self.routes.get(f"{method} {path}")
        if route is None:
            raise ApiError(f"{method} {path} failed: 404 Not Found", status=404)
        if callable(route) and not isinstance(route, Exception):
            route = route(headers or {}, json_body)
        if isinstance(route, Exception):
            raise route
        return route

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _, _ in self.calls if m == method and p == path)


class FakePublisher:
    """Records publishes instead of talking to a broker."""

    def __init__(self):
        self.messages: list[tuple[str, Any, bool]] = []
        self.fail_topics: set[str] = set()
        self._lock = threading.Lock()

    def publish(self, topic, payload, retain=False, qos=0, wait=False):
        if topic in self.fail_topics:
            raise PublishError(topic, "broker unavailable")
        with self._lock:
            self.messages.append((topic, payload, retain))

    def topics(self) -> list[str]:
        return [topic for topic, _, _ in self.messages]

    def payload(self, topic: str) -> Any:
        """Last payload published to topic, JSON decoded when possible."""
        for published_topic, payload, _ in reversed(self.messages):
            if published_topic == topic:
                if isinstance(payload, str):
                    try:
                        return json.loads(payload)
                    except ValueError:
                        return payload
                return payload
        raise KeyError(topic)


def token_response(access: str = "access-1", refresh: str = "refresh-2", expires_in: int = 3600) -> dict:
    return {"accessToken": access, "refreshToken": refresh, "expiresIn": expires_in}


def appliance_listing(*ids: str) -> list[dict]:
    return [
        {"applianceId": appliance_id, "applianceName": f"Appliance {appliance_id}", "created": "2024-01-01T00:00:00Z"}
        for appliance_id in ids
    ]


def appliance_info(device_type: str = "FRIDGE", model: str = "EN3854", variant: str = "XL") -> dict:
    return {
        "applianceInfo": {
            "serialNumber": "12345678",
            "pnc": "925060324",
            "brand": "ELECTROLUX",
            "deviceType": device_type,
            "model": model,
            "variant": variant,
        }
    }


def appliance_state(reported: dict | None = None, connection_state: str = "CONNECTED") -> dict:
    reported = dict(reported or {})
    reported.setdefault("connectionState", connection_state)
    return {"properties": {"reported": reported}, "connectionState": connection_state}


def make_record(
    appliance_id: str = "916099949",
    name: str = "Kitchen Fridge",
    device_type: str = "FRIDGE",
    reported: dict | None = None,
    connected: bool = True,
) -> ApplianceRecord:
    identity = ApplianceIdentity(appliance_id=appliance_id, name=name)
    state = appliance_state(reported, "CONNECTED" if connected else "DISCONNECTED")
    # Keep connectionState out of the capabilities unless the test sets it
    if reported is None or "connectionState" not in reported:
        del state["properties"]["reported"]["connectionState"]
    return ApplianceRecord.from_api(identity, appliance_info(device_type), state)


@pytest.fixture
def fake_http() -> FakeHttp:
    """HTTP transport with no routes."""
    return FakeHttp()


@pytest.fixture
def fake_publisher() -> FakePublisher:
    """Publisher recording every message."""
    return FakePublisher()


@pytest.fixture
def session_path(tmp_path):
    """Path of a session file inside a temporary directory."""
    return tmp_path / "session.json"


@pytest.fixture
def mock_paho_client() -> MagicMock:
    """Mock paho client whose publishes succeed."""
    client = MagicMock()
    info = MagicMock()
    info.rc = 0
    client.publish.return_value = info
    return client


@pytest.fixture
def record_factory() -> Callable[..., ApplianceRecord]:
    return make_record
