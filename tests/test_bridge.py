"""Tests for the bridge lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from electrolux_api.exceptions import ConfigError

from electrolux2mqtt.bridge import ElectroluxMQTTBridge
from electrolux2mqtt.config import DEFAULT_CONFIG, deep_merge


@pytest.fixture
def bridge_config(tmp_path) -> dict:
    return deep_merge(DEFAULT_CONFIG, {
        "mqtt": {"host": "broker.local"},
        "api": {"api_key": "key", "refresh_token": "refresh"},
        "home_assistant": {"enabled": True},
        "options": {"session_file": str(tmp_path / "session.json"), "poll_interval": 2},
    })


@pytest.fixture
def mock_publisher() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mock_poller():
    with patch("electrolux2mqtt.bridge.PollingOrchestrator") as poller_cls:
        yield poller_cls


def test_start_connects_and_polls(bridge_config, mock_publisher, mock_poller) -> None:
    """Test start announces availability, registers the bridge and polls."""
    bridge = ElectroluxMQTTBridge(bridge_config, publisher=mock_publisher)

    bridge.start()

    mock_publisher.connect.assert_called_once_with(attempts=5, interval=5)
    mock_publisher.publish_availability.assert_called_once_with(True)
    discovery_topics = [c.args[0] for c in mock_publisher.publish.call_args_list]
    assert "homeassistant/sensor/electrolux2mqtt/electrolux2mqtt_uptime/config" in discovery_topics

    kwargs = mock_poller.call_args.kwargs
    # Intervals below the floor fall back to the default
    assert kwargs["interval"] == 30
    assert kwargs["registry"] is bridge.registry
    mock_poller.return_value.start.assert_called_once()


def test_start_logs_token_status(bridge_config, mock_publisher, mock_poller, caplog) -> None:
    """Test the credential state is reported at startup."""
    caplog.set_level("INFO", logger="electrolux2mqtt.bridge")
    bridge = ElectroluxMQTTBridge(bridge_config, publisher=mock_publisher)

    bridge.start()

    assert "Token status: session=True, access_valid=False" in caplog.text


def test_start_without_discovery(bridge_config, mock_publisher, mock_poller) -> None:
    """Test no registry exists when discovery is disabled."""
    bridge_config["home_assistant"]["enabled"] = False
    bridge = ElectroluxMQTTBridge(bridge_config, publisher=mock_publisher)

    bridge.start()

    assert bridge.registry is None
    mock_publisher.publish.assert_not_called()


def test_start_rejects_invalid_config(bridge_config, mock_publisher, mock_poller) -> None:
    """Test missing credentials fail before touching the broker."""
    bridge_config["api"]["api_key"] = None
    bridge = ElectroluxMQTTBridge(bridge_config, publisher=mock_publisher)

    with pytest.raises(ConfigError):
        bridge.start()
    mock_publisher.connect.assert_not_called()


def test_stop_order(bridge_config, mock_publisher, mock_poller) -> None:
    """Test stop drains polling before going offline and disconnecting."""
    calls = MagicMock()
    mock_poller.return_value.is_running = True
    mock_poller.return_value.stop.side_effect = lambda **kwargs: calls.poller_stop()
    mock_publisher.publish_availability.side_effect = lambda available, **kwargs: calls.availability(available)
    mock_publisher.disconnect.side_effect = lambda: calls.disconnect()

    bridge = ElectroluxMQTTBridge(bridge_config, publisher=mock_publisher)
    bridge.start()
    calls.reset_mock()
    bridge.stop()
    bridge.stop()

    assert [c[0] for c in calls.mock_calls] == ["poller_stop", "availability", "disconnect"]
    assert calls.availability.call_args.args == (False,)
    mock_poller.return_value.stop.assert_called_once_with(wait=True)
