"""Configuration constants and session storage for the Electrolux API client."""

from .constants import (
    DEFAULT_API_URL,
    TOKEN_REFRESH_PATH,
    APPLIANCES_PATH,
    APPLIANCE_INFO_PATH_FMT,
    APPLIANCE_STATE_PATH_FMT,
    DEFAULT_TIMEOUT,
    TOKEN_SAFETY_MARGIN_SECONDS,
    DEFAULT_SESSION_FILENAME,
    CONNECTION_STATE_CONNECTED,
)
from .storage import SessionStorage


__all__ = [
    "DEFAULT_API_URL",
    "TOKEN_REFRESH_PATH",
    "APPLIANCES_PATH",
    "APPLIANCE_INFO_PATH_FMT",
    "APPLIANCE_STATE_PATH_FMT",
    "DEFAULT_TIMEOUT",
    "TOKEN_SAFETY_MARGIN_SECONDS",
    "DEFAULT_SESSION_FILENAME",
    "CONNECTION_STATE_CONNECTED",
    "SessionStorage",
]
