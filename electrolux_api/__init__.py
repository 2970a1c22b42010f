"""Electrolux appliance cloud API client.

Token lifecycle with single-use refresh tokens, appliance inventory and
per-appliance state fetching.
"""

from .client import ApplianceGateway
from .config import SessionStorage
from .exceptions import (
    ElectroluxError,
    ConfigError,
    AuthError,
    ApiError,
    DeviceError,
    PublishError,
    PersistenceError,
)
from .http import HttpTransport, mask_token
from .models import (
    ApplianceIdentity,
    ApplianceInfo,
    ApplianceRecord,
    CapabilityKind,
    CapabilityMap,
    FetchResult,
)
from .session import CredentialManager, Session

__version__ = "0.1.0"

__all__ = [
    "ApplianceGateway",
    "SessionStorage",
    "ElectroluxError",
    "ConfigError",
    "AuthError",
    "ApiError",
    "DeviceError",
    "PublishError",
    "PersistenceError",
    "HttpTransport",
    "mask_token",
    "ApplianceIdentity",
    "ApplianceInfo",
    "ApplianceRecord",
    "CapabilityKind",
    "CapabilityMap",
    "FetchResult",
    "CredentialManager",
    "Session",
]
