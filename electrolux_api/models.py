"""Canonical appliance records built from Electrolux API responses."""

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config.constants import (
    CONNECTION_STATE_CONNECTED,
    UNKNOWN_DEVICE,
    UNKNOWN_MODEL,
    UNKNOWN_SERIAL,
    UNKNOWN_VARIANT,
)
from .exceptions import DeviceError


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CapabilityKind(Enum):
    """Tag of a reported state value."""
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    NESTED = "nested"  # objects, arrays and null

    @classmethod
    def of(cls, value: Any) -> "CapabilityKind":
        """Classify a decoded JSON value."""
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.TEXT
        return cls.NESTED

    @property
    def is_scalar(self) -> bool:
        return self is not CapabilityKind.NESTED


class CapabilityMap(Mapping):
    """Read-only, ordered view of an appliance's reported state.

    The appliance can report any key at any time, so there is no schema:
    each value is kept as decoded from JSON and tagged with its
    CapabilityKind.
    """

    def __init__(self, reported: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = copy.deepcopy(dict(reported or {}))
        self._kinds: Dict[str, CapabilityKind] = {
            key: CapabilityKind.of(value) for key, value in self._values.items()
        }

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CapabilityMap({self._values!r})"

    def kind(self, key: str) -> CapabilityKind:
        """Tag of the value stored under key."""
        return self._kinds[key]

    def tagged_items(self) -> List[Tuple[str, CapabilityKind, Any]]:
        return [(key, self._kinds[key], value) for key, value in self._values.items()]

    def get_path(self, path: str, default: Any = None) -> Any:
        """Look up a dotted path into nested values, e.g. 'userSelections.programUID'."""
        current: Any = self._values
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def has_path(self, path: str) -> bool:
        marker = object()
        return self.get_path(path, marker) is not marker

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy of the reported values."""
        return copy.deepcopy(self._values)


@dataclass(frozen=True)
class ApplianceIdentity:
    """Stable identity of an appliance from the inventory listing."""
    appliance_id: str
    name: str
    created_at: Optional[str] = None
    appliance_type: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ApplianceIdentity":
        appliance_id = str(data["applianceId"])
        return cls(
            appliance_id=appliance_id,
            name=data.get("applianceName") or appliance_id,
            created_at=data.get("created"),
            appliance_type=data.get("applianceType"),
        )


@dataclass(frozen=True)
class ApplianceInfo:
    """Static appliance metadata."""
    serial_number: str = UNKNOWN_SERIAL
    model: str = UNKNOWN_MODEL
    variant: str = UNKNOWN_VARIANT
    device_type: str = UNKNOWN_DEVICE
    brand: Optional[str] = None
    pnc: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ApplianceInfo":
        info = data.get("applianceInfo") or {}
        return cls(
            serial_number=info.get("serialNumber") or UNKNOWN_SERIAL,
            model=info.get("model") or UNKNOWN_MODEL,
            variant=info.get("variant") or UNKNOWN_VARIANT,
            device_type=info.get("deviceType") or UNKNOWN_DEVICE,
            brand=info.get("brand"),
            pnc=info.get("pnc"),
        )


@dataclass(frozen=True)
class ApplianceRecord:
    """Per-cycle snapshot of one appliance."""
    identity: ApplianceIdentity
    info: ApplianceInfo
    connected: bool
    capabilities: CapabilityMap
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def appliance_id(self) -> str:
        return self.identity.appliance_id

    @property
    def name(self) -> str:
        return self.identity.name

    @classmethod
    def from_api(
        cls,
        identity: ApplianceIdentity,
        info: Dict[str, Any],
        state: Dict[str, Any],
    ) -> "ApplianceRecord":
        """Merge the info and state responses into a canonical record."""
        reported = (state.get("properties") or {}).get("reported") or {}
        connection_state = reported.get("connectionState", state.get("connectionState"))
        return cls(
            identity=identity,
            info=ApplianceInfo.from_api(info),
            connected=connection_state == CONNECTION_STATE_CONNECTED,
            capabilities=CapabilityMap(reported),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Full record as published on the per-appliance topic."""
        return {
            "timestamp": self.timestamp,
            "applianceId": self.appliance_id,
            "name": self.name,
            "info": {
                "modelName": self.info.model,
                "variant": self.info.variant,
                "serialNumber": self.info.serial_number,
                "deviceType": self.info.device_type,
                "connected": self.connected,
            },
            "state": self.capabilities.to_dict(),
        }


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching one appliance: a record or a DeviceError."""
    identity: ApplianceIdentity
    record: Optional[ApplianceRecord] = None
    error: Optional[DeviceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, record: ApplianceRecord) -> "FetchResult":
        return cls(identity=record.identity, record=record)

    @classmethod
    def failure(cls, identity: ApplianceIdentity, message: str) -> "FetchResult":
        return cls(
            identity=identity,
            error=DeviceError(identity.appliance_id, identity.name, message),
        )

    def summary(self) -> Dict[str, Any]:
        """Entry for the aggregate data topic."""
        entry: Dict[str, Any] = {
            "id": self.identity.appliance_id,
            "name": self.identity.name,
            "connected": self.record.connected if self.record else False,
        }
        if self.error is not None:
            entry["error"] = self.error.message
        return entry
