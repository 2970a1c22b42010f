"""Exceptions raised by the Electrolux API client and the bridge."""

from typing import Optional


class ElectroluxError(Exception):
    """Base class for all electrolux2mqtt errors."""


class ConfigError(ElectroluxError):
    """Required credential or connection settings are missing."""


class AuthError(ElectroluxError):
    """Token renewal failed or no usable refresh token is left."""


class ApiError(ElectroluxError):
    """An HTTP call to the Electrolux API failed.

    ``status`` is None for network errors and timeouts.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DeviceError(ElectroluxError):
    """Fetching info or state for a single appliance failed."""

    def __init__(self, appliance_id: str, name: str, message: str):
        super().__init__(f"{appliance_id}: {message}")
        self.appliance_id = appliance_id
        self.name = name
        self.message = message


class PublishError(ElectroluxError):
    """Publishing to one MQTT topic failed."""

    def __init__(self, topic: str, message: str):
        super().__init__(f"Failed to publish to {topic}: {message}")
        self.topic = topic


class PersistenceError(ElectroluxError):
    """The session file could not be written."""

    def __init__(self, path, message: str):
        super().__init__(f"Failed to write {path}: {message}")
        self.path = path
