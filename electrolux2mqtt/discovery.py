"""Home Assistant MQTT Discovery for electrolux2mqtt.

Appliances report an open-ended set of state properties, so the sensors of a
device are derived from its reported capabilities, in a fixed order:

1. a connectivity binary sensor and an aggregate "Device Status" sensor;
2. measurement sensors common to all categories (temperature, humidity);
3. the rules of the device category (CATEGORY_RULES);
4. one generic sensor per remaining scalar property, in key order.

The derivation is a pure function of the record: the same capabilities
always give the same documents.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from electrolux_api.config.constants import UNKNOWN_VARIANT
from electrolux_api.exceptions import PublishError
from electrolux_api.models import ApplianceRecord, CapabilityKind, CapabilityMap, utc_now_iso

from . import __version__
from .topics import (
    AVAILABILITY_OFFLINE,
    AVAILABILITY_ONLINE,
    appliance_state_topic,
    bridge_state_topic,
    discovery_topic,
    status_topic,
    unique_id_safe,
)

logger = logging.getLogger(__name__)

BINARY_SENSOR = "binary_sensor"
SENSOR = "sensor"

ENTITY_CATEGORY_DIAGNOSTIC = "diagnostic"
STATE_CLASS_MEASUREMENT = "measurement"

# Keys of the state payload that are written by the bridge itself
RESERVED_STATE_KEYS = ("connected", "timestamp")


@dataclass(frozen=True)
class DiscoverySettings:
    """Where discovery documents and state payloads are published."""
    discovery_prefix: str = "homeassistant"
    topic_prefix: str = "electrolux2mqtt"
    node_id: str = "electrolux2mqtt"
    manufacturer: str = "Electrolux"

    @property
    def availability_topic(self) -> str:
        return status_topic(self.topic_prefix)

    @classmethod
    def from_config(cls, config: dict) -> "DiscoverySettings":
        ha_config = config.get("home_assistant", {})
        return cls(
            discovery_prefix=ha_config.get("discovery_prefix", "homeassistant"),
            topic_prefix=config.get("mqtt", {}).get("topic_prefix", "electrolux2mqtt"),
            node_id=ha_config.get("node_id", "electrolux2mqtt"),
        )


@dataclass(frozen=True)
class DiscoveryDocument:
    """One Home Assistant entity, published retained on its config topic."""
    component: str
    unique_id: str
    name: str
    topic: str
    state_topic: str
    value_template: str
    availability_topic: str
    device: Dict[str, Any]
    device_class: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    icon: Optional[str] = None
    entity_category: Optional[str] = None
    payload_on: Optional[str] = None
    payload_off: Optional[str] = None
    state_class: Optional[str] = None

    def to_payload(self) -> dict:
        payload = {
            "name": self.name,
            "unique_id": self.unique_id,
            "object_id": self.unique_id,
            "state_topic": self.state_topic,
            "value_template": self.value_template,
            "availability_topic": self.availability_topic,
            "payload_available": AVAILABILITY_ONLINE,
            "payload_not_available": AVAILABILITY_OFFLINE,
            "device": self.device,
        }
        optional = (
            ("device_class", self.device_class),
            ("unit_of_measurement", self.unit_of_measurement),
            ("icon", self.icon),
            ("entity_category", self.entity_category),
            ("payload_on", self.payload_on),
            ("payload_off", self.payload_off),
            ("state_class", self.state_class),
        )
        for key, value in optional:
            if value is not None:
                payload[key] = value
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload())


@dataclass(frozen=True)
class SensorSpec:
    """What to build for one entity, before it is bound to a device."""
    name: str
    suffix: str
    value_template: str
    component: str = SENSOR
    device_class: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    icon: Optional[str] = None
    entity_category: Optional[str] = None
    payload_on: Optional[str] = None
    payload_off: Optional[str] = None
    state_class: Optional[str] = None


@dataclass(frozen=True)
class SensorRule:
    """A sensor emitted when its required capability is reported.

    ``covers`` lists the top-level capability keys the sensor accounts for,
    so they get no generic sensor.
    """
    sensor: SensorSpec
    requires: Optional[str] = None
    covers: Tuple[str, ...] = ()

    def applies(self, capabilities: CapabilityMap) -> bool:
        return self.requires is None or capabilities.has_path(self.requires)


def _binary_template(path: str) -> str:
    return "{{ 'true' if " + path + " else 'false' }}"


CONNECTION_RULE = SensorRule(
    SensorSpec(
        name="Connection",
        suffix="connection",
        value_template=_binary_template("value_json.connected"),
        component=BINARY_SENSOR,
        device_class="connectivity",
        icon="mdi:wifi",
        entity_category=ENTITY_CATEGORY_DIAGNOSTIC,
        payload_on="true",
        payload_off="false",
    ),
    covers=RESERVED_STATE_KEYS,
)

DEVICE_STATUS_RULE = SensorRule(
    SensorSpec(
        name="Device Status",
        suffix="device_status",
        value_template="{{ value_json.status | default(value_json.applianceState | default('Unknown')) }}",
        icon="mdi:information",
    ),
    covers=("device_status",),
)

TUMBLE_DRYER_STATUS_RULE = SensorRule(
    SensorSpec(
        name="Device Status",
        suffix="device_status",
        value_template=(
            "{{ value_json.applianceState | default('Unknown') }}"
            "{% if value_json.doorState is defined %} (Door {{ value_json.doorState }}){% endif %}"
        ),
        icon="mdi:information",
    ),
    covers=("device_status",),
)

MEASUREMENT_RULES = (
    SensorRule(
        SensorSpec(
            name="Temperature",
            suffix="temperature",
            value_template="{{ value_json.temperature }}",
            device_class="temperature",
            unit_of_measurement="°C",
            state_class=STATE_CLASS_MEASUREMENT,
        ),
        requires="temperature",
        covers=("temperature",),
    ),
    SensorRule(
        SensorSpec(
            name="Humidity",
            suffix="humidity",
            value_template="{{ value_json.humidity }}",
            device_class="humidity",
            unit_of_measurement="%",
            state_class=STATE_CLASS_MEASUREMENT,
        ),
        requires="humidity",
        covers=("humidity",),
    ),
)

_REFRIGERATION_RULES = (
    SensorRule(
        SensorSpec(
            name="Fridge Temperature",
            suffix="fridge_temperature",
            value_template="{{ value_json.fridgeTemperature }}",
            device_class="temperature",
            unit_of_measurement="°C",
            state_class=STATE_CLASS_MEASUREMENT,
        ),
        requires="fridgeTemperature",
        covers=("fridgeTemperature",),
    ),
    SensorRule(
        SensorSpec(
            name="Freezer Temperature",
            suffix="freezer_temperature",
            value_template="{{ value_json.freezerTemperature }}",
            device_class="temperature",
            unit_of_measurement="°C",
            state_class=STATE_CLASS_MEASUREMENT,
        ),
        requires="freezerTemperature",
        covers=("freezerTemperature",),
    ),
)

# Washers, dryers and dishwashers report remaining time in minutes
_PROGRAM_CYCLE_RULES = (
    SensorRule(
        SensorSpec(
            name="Program",
            suffix="program",
            value_template="{{ value_json.program }}",
            icon="mdi:washing-machine",
        ),
        covers=("program",),
    ),
    SensorRule(
        SensorSpec(
            name="Status",
            suffix="status",
            value_template="{{ value_json.status }}",
            icon="mdi:information-outline",
        ),
        covers=("status",),
    ),
    SensorRule(
        SensorSpec(
            name="Remaining Time",
            suffix="remaining_time",
            value_template="{{ value_json.remainingTime }}",
            unit_of_measurement="min",
            icon="mdi:timer-outline",
        ),
        requires="remainingTime",
        covers=("remainingTime",),
    ),
)

# Tumble dryers nest the program in userSelections and report seconds
_TUMBLE_DRYER_RULES = (
    SensorRule(
        SensorSpec(
            name="Program",
            suffix="program",
            value_template="{{ value_json.userSelections.programUID }}",
            icon="mdi:washing-machine",
        ),
        covers=("userSelections",),
    ),
    SensorRule(
        SensorSpec(
            name="Status",
            suffix="status",
            value_template="{{ value_json.applianceState }}",
            icon="mdi:information-outline",
        ),
        covers=("applianceState",),
    ),
    SensorRule(
        SensorSpec(
            name="Remaining Time",
            suffix="remaining_time",
            value_template="{{ (value_json.timeToEnd | int / 60) | round(0) | int }}",
            unit_of_measurement="min",
            icon="mdi:timer-outline",
        ),
        requires="timeToEnd",
        covers=("timeToEnd",),
    ),
    SensorRule(
        SensorSpec(
            name="Door State",
            suffix="door_state",
            value_template="{{ value_json.doorState }}",
            icon="mdi:door",
        ),
        requires="doorState",
        covers=("doorState",),
    ),
    SensorRule(
        SensorSpec(
            name="Cycle Phase",
            suffix="cycle_phase",
            value_template="{{ value_json.cyclePhase }}",
            icon="mdi:washing-machine",
        ),
        requires="cyclePhase",
        covers=("cyclePhase",),
    ),
    SensorRule(
        SensorSpec(
            name="Humidity Target",
            suffix="humidity_target",
            value_template="{{ value_json.userSelections.humidityTarget }}",
            icon="mdi:water-percent",
        ),
        requires="userSelections.humidityTarget",
        covers=("userSelections",),
    ),
)

CATEGORY_RULES: Dict[str, Tuple[SensorRule, ...]] = {
    "FRIDGE": _REFRIGERATION_RULES,
    "FREEZER": _REFRIGERATION_RULES,
    "FRIDGE_FREEZER": _REFRIGERATION_RULES,
    "REFRIGERATOR": _REFRIGERATION_RULES,
    "WASHER": _PROGRAM_CYCLE_RULES,
    "DRYER": _PROGRAM_CYCLE_RULES,
    "WASHER_DRYER": _PROGRAM_CYCLE_RULES,
    "DISHWASHER": _PROGRAM_CYCLE_RULES,
    "TUMBLE_DRYER": _TUMBLE_DRYER_RULES,
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def format_property_name(key: str) -> str:
    """Turn a camelCase or snake_case key into a readable name."""
    name = re.sub(r"([A-Z])", r" \1", key.replace("_", " "))
    name = " ".join(name.split())
    return name[:1].upper() + name[1:]


def _value_path(key: str) -> str:
    if _IDENTIFIER.match(key):
        return f"value_json.{key}"
    return f"value_json[{json.dumps(key)}]"


def generic_sensor(key: str, kind: CapabilityKind) -> SensorSpec:
    """Sensor for a scalar capability not covered by any rule."""
    path = _value_path(key)
    if kind is CapabilityKind.BOOL:
        return SensorSpec(
            name=format_property_name(key),
            suffix=key,
            value_template=_binary_template(path),
            component=BINARY_SENSOR,
            payload_on="true",
            payload_off="false",
        )
    return SensorSpec(
        name=format_property_name(key),
        suffix=key,
        value_template="{{ " + path + " }}",
    )


def rules_for(device_type: str) -> List[SensorRule]:
    """Rules 1-3, in evaluation order, for a device category."""
    status_rule = TUMBLE_DRYER_STATUS_RULE if device_type == "TUMBLE_DRYER" else DEVICE_STATUS_RULE
    return [CONNECTION_RULE, status_rule, *MEASUREMENT_RULES, *CATEGORY_RULES.get(device_type, ())]


def get_device_info(record: ApplianceRecord, settings: DiscoverySettings) -> dict:
    """Generate Home Assistant device info for an appliance."""
    info = record.info
    model = info.model
    if info.variant and info.variant != UNKNOWN_VARIANT:
        model = f"{model} ({info.variant})"

    device = {
        "identifiers": [unique_id_safe(record.appliance_id)],
        "name": record.name or f"Electrolux {info.device_type}",
        "manufacturer": settings.manufacturer,
        "model": model,
        "serial_number": info.serial_number,
    }
    sw_version = (
        record.capabilities.get("applianceMainBoardSwVersion")
        or record.capabilities.get("applianceUiSwVersion")
    )
    if isinstance(sw_version, str):
        device["sw_version"] = sw_version
    device["via_device"] = unique_id_safe(settings.node_id)
    return device


def _bind(
    spec: SensorSpec,
    node: str,
    state_topic: str,
    device: dict,
    settings: DiscoverySettings,
) -> DiscoveryDocument:
    unique_id = unique_id_safe(f"{node}_{spec.suffix}")
    return DiscoveryDocument(
        component=spec.component,
        unique_id=unique_id,
        name=spec.name,
        topic=discovery_topic(settings.discovery_prefix, spec.component, node, unique_id),
        state_topic=state_topic,
        value_template=spec.value_template,
        availability_topic=settings.availability_topic,
        device=device,
        device_class=spec.device_class,
        unit_of_measurement=spec.unit_of_measurement,
        icon=spec.icon,
        entity_category=spec.entity_category,
        payload_on=spec.payload_on,
        payload_off=spec.payload_off,
        state_class=spec.state_class,
    )


def build_discovery_documents(
    record: ApplianceRecord, settings: DiscoverySettings
) -> List[DiscoveryDocument]:
    """Derive every discovery document for an appliance.

    Args:
        record: Appliance snapshot
        settings: Topic prefixes and bridge node id

    Returns:
        Documents in rule order, without duplicate unique ids
    """
    capabilities = record.capabilities
    node = unique_id_safe(record.appliance_id)
    state_topic = appliance_state_topic(settings.topic_prefix, record.appliance_id)
    device = get_device_info(record, settings)

    specs: List[SensorSpec] = []
    covered = set()
    for rule in rules_for(record.info.device_type):
        if rule.applies(capabilities):
            specs.append(rule.sensor)
            covered.update(rule.covers)

    for key, kind, _ in sorted(capabilities.tagged_items(), key=lambda item: item[0]):
        if key in covered or not kind.is_scalar:
            continue
        specs.append(generic_sensor(key, kind))

    documents = []
    seen = set()
    for spec in specs:
        document = _bind(spec, node, state_topic, device, settings)
        if document.unique_id in seen:
            continue
        seen.add(document.unique_id)
        documents.append(document)
    return documents


def build_bridge_documents(settings: DiscoverySettings, version: str = __version__) -> List[DiscoveryDocument]:
    """Discovery documents for the bridge's own diagnostic sensors."""
    node = unique_id_safe(settings.node_id)
    device = {
        "identifiers": [node],
        "name": "Electrolux2MQTT Bridge",
        "manufacturer": "electrolux2mqtt",
        "model": "MQTT Bridge",
        "sw_version": version,
    }
    state_topic = bridge_state_topic(settings.node_id)
    specs = (
        SensorSpec(
            name="Uptime",
            suffix="uptime",
            value_template="{{ value_json.uptime }}",
            device_class="duration",
            unit_of_measurement="s",
            icon="mdi:timer-outline",
            entity_category=ENTITY_CATEGORY_DIAGNOSTIC,
        ),
        SensorSpec(
            name="Version",
            suffix="version",
            value_template="{{ value_json.version }}",
            icon="mdi:information-outline",
            entity_category=ENTITY_CATEGORY_DIAGNOSTIC,
        ),
    )
    return [_bind(spec, node, state_topic, device, settings) for spec in specs]


class DiscoveryRegistry:
    """Publishes discovery documents once per appliance and state every cycle."""

    def __init__(self, publisher, settings: DiscoverySettings):
        """Initialize the registry.

        Args:
            publisher: Object with publish(topic, payload, retain=False)
            settings: Discovery settings
        """
        self.publisher = publisher
        self.settings = settings
        self._registered: set = set()
        self._lock = threading.Lock()

    def is_registered(self, appliance_id: str) -> bool:
        with self._lock:
            return unique_id_safe(appliance_id) in self._registered

    def _claim(self, appliance_id: str) -> bool:
        """Atomically add an appliance to the ledger; False if already there."""
        key = unique_id_safe(appliance_id)
        with self._lock:
            if key in self._registered:
                return False
            self._registered.add(key)
            return True

    def _publish_documents(self, documents: List[DiscoveryDocument]) -> int:
        published = 0
        for document in documents:
            try:
                self.publisher.publish(document.topic, document.to_json(), retain=True)
                published += 1
                logger.debug(f"Discovery: {document.topic}")
            except PublishError as e:
                logger.error(f"Failed to publish discovery config for {document.name}: {e}")
        return published

    def ensure_registered(self, record: ApplianceRecord) -> bool:
        """Publish the appliance's discovery documents the first time it is seen.

        Returns:
            True if the documents were published by this call
        """
        if not self._claim(record.appliance_id):
            return False

        documents = build_discovery_documents(record, self.settings)
        published = self._publish_documents(documents)
        logger.info(
            f"Registered device with Home Assistant: {record.name} "
            f"({published}/{len(documents)} discovery messages)"
        )
        return True

    def publish_state(self, record: ApplianceRecord) -> bool:
        """Publish the Home Assistant state payload of an appliance."""
        payload = record.capabilities.to_dict()
        payload["connected"] = record.connected
        payload["timestamp"] = utc_now_iso()

        topic = appliance_state_topic(self.settings.topic_prefix, record.appliance_id)
        try:
            self.publisher.publish(topic, json.dumps(payload), retain=True)
        except PublishError as e:
            logger.error(f"Failed to publish state for {record.appliance_id}: {e}")
            return False
        logger.debug(f"Published state for {record.name}: {topic}")
        return True

    def register_bridge(self, version: str = __version__) -> int:
        """Publish discovery documents for the bridge itself."""
        documents = build_bridge_documents(self.settings, version)
        published = self._publish_documents(documents)
        logger.info(f"Published {published} bridge discovery messages")
        return published

    def publish_bridge_state(self, uptime_seconds: int, version: str = __version__) -> bool:
        """Publish the bridge's uptime/version payload."""
        payload = {
            "uptime": int(uptime_seconds),
            "version": version,
            "timestamp": utc_now_iso(),
        }
        topic = bridge_state_topic(self.settings.node_id)
        try:
            self.publisher.publish(topic, json.dumps(payload), retain=True)
        except PublishError as e:
            logger.error(f"Failed to publish bridge state: {e}")
            return False
        return True
