"""MQTT topic definitions and identifier sanitizing for electrolux2mqtt."""

import re

AVAILABILITY_ONLINE = "online"
AVAILABILITY_OFFLINE = "offline"

# Topic templates
TOPIC_STATUS = "{prefix}/status"
TOPIC_DATA = "{prefix}/data"
TOPIC_APPLIANCE = "{prefix}/{appliance}"
TOPIC_APPLIANCE_STATE = "{prefix}/{appliance}/state"
TOPIC_BRIDGE_STATE = "{node_id}/state"
TOPIC_DISCOVERY = "{discovery_prefix}/{component}/{node}/{object_id}/config"

# MQTT wildcards are replaced by words so distinct ids stay distinct
_WILDCARD_WORDS = {"+": "_plus_", "#": "_hash_"}

_TOPIC_INVALID = re.compile(r"[^A-Za-z0-9_-]")
_TOPIC_SEPARATOR_RUN = re.compile(r"[_-]{2,}")
_UNIQUE_ID_INVALID = re.compile(r"[^A-Za-z0-9._-]")
_UNIQUE_ID_SEPARATOR_RUN = re.compile(r"[._-]{2,}")

_FILLER = "d"
_EMPTY = "unknown"


def _finish(value: str, separator_run: "re.Pattern[str]", separators: str) -> str:
    # Runs of separators collapse to their first character
    value = separator_run.sub(lambda m: m.group(0)[0], value)
    value = value.rstrip(separators)
    if not value:
        return _EMPTY
    if value[0].isdigit() or value[0] == "-":
        value = _FILLER + value
    return value


def topic_safe_id(raw: str) -> str:
    """Make an id safe to use as a single MQTT topic level.

    Keeps letters, digits, underscore and dash. Wildcards become words,
    everything else (spaces, slashes, dots, ...) becomes an underscore.
    """
    value = str(raw)
    for char, word in _WILDCARD_WORDS.items():
        value = value.replace(char, word)
    value = _TOPIC_INVALID.sub("_", value)
    return _finish(value, _TOPIC_SEPARATOR_RUN, "_-")


def unique_id_safe(raw: str) -> str:
    """Make an id safe to use as a Home Assistant unique_id.

    Like topic_safe_id, but dots are allowed too.
    """
    value = str(raw)
    for char, word in _WILDCARD_WORDS.items():
        value = value.replace(char, word)
    value = _UNIQUE_ID_INVALID.sub("_", value)
    return _finish(value, _UNIQUE_ID_SEPARATOR_RUN, "._-")


def status_topic(prefix: str) -> str:
    return TOPIC_STATUS.format(prefix=prefix)


def data_topic(prefix: str) -> str:
    return TOPIC_DATA.format(prefix=prefix)


def appliance_topic(prefix: str, appliance_id: str) -> str:
    """Topic carrying the full appliance record."""
    return TOPIC_APPLIANCE.format(prefix=prefix, appliance=topic_safe_id(appliance_id))


def appliance_state_topic(prefix: str, appliance_id: str) -> str:
    """Topic carrying the Home Assistant state payload of an appliance."""
    return TOPIC_APPLIANCE_STATE.format(prefix=prefix, appliance=topic_safe_id(appliance_id))


def bridge_state_topic(node_id: str) -> str:
    return TOPIC_BRIDGE_STATE.format(node_id=topic_safe_id(node_id))


def discovery_topic(discovery_prefix: str, component: str, node: str, unique_id: str) -> str:
    """Discovery config topic of one entity."""
    return TOPIC_DISCOVERY.format(
        discovery_prefix=discovery_prefix,
        component=component,
        node=topic_safe_id(node),
        object_id=topic_safe_id(unique_id),
    )
