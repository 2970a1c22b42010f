"""MQTT broker connection for electrolux2mqtt."""

import json
import logging
import threading
import time
from typing import Any, Optional

import paho.mqtt.client as mqtt

from electrolux_api.exceptions import PublishError

from .topics import AVAILABILITY_OFFLINE, AVAILABILITY_ONLINE, status_topic

logger = logging.getLogger(__name__)

DEFAULT_PUBLISH_TIMEOUT = 5.0


class MQTTPublisher:
    """Thin wrapper around a paho client with a last will on the status topic."""

    def __init__(self, config: dict, client: Optional[mqtt.Client] = None):
        """Initialize the publisher.

        Args:
            config: Configuration dictionary
            client: Pre-built paho client, mostly for tests
        """
        mqtt_config = config.get("mqtt", {})
        self.host = mqtt_config.get("host", "localhost")
        self.port = int(mqtt_config.get("port", 1883))
        self.keepalive = int(mqtt_config.get("keepalive", 60))
        self.topic_prefix = mqtt_config.get("topic_prefix", "electrolux2mqtt")
        self.status_topic = status_topic(self.topic_prefix)

        self._connected = threading.Event()
        self._client = client or mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=mqtt_config.get("client_id", "electrolux2mqtt"),
        )

        username = mqtt_config.get("username")
        if username:
            self._client.username_pw_set(username, mqtt_config.get("password"))

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

        # Last Will and Testament
        self._client.will_set(
            self.status_topic,
            payload=AVAILABILITY_OFFLINE,
            qos=1,
            retain=True,
        )

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        """Handle broker connection."""
        if rc == 0:
            logger.info(f"Connected to MQTT broker at {self.host}:{self.port}")
            self._connected.set()
            # Re-announce after a reconnect
            client.publish(self.status_topic, AVAILABILITY_ONLINE, qos=1, retain=True)
        else:
            logger.error(f"Failed to connect to MQTT broker: {rc}")

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        """Handle broker disconnection."""
        self._connected.clear()
        logger.warning(f"Disconnected from MQTT broker: {rc}")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def connect(self, attempts: int = 5, interval: float = 5, timeout: float = 10.0):
        """Connect to the broker, retrying a bounded number of times.

        Args:
            attempts: Number of connection attempts
            interval: Seconds between attempts
            timeout: Seconds to wait for the CONNACK of each attempt

        Raises:
            ConnectionError: If the broker could not be reached
        """
        logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}")
        self._client.loop_start()
        last_error: Any = None
        for attempt in range(1, attempts + 1):
            try:
                self._client.connect(self.host, self.port, keepalive=self.keepalive)
                if self._connected.wait(timeout):
                    return
                last_error = "no CONNACK received"
            except OSError as e:
                last_error = e
            logger.error(f"Failed to connect to MQTT broker (attempt {attempt}/{attempts}): {last_error}")
            if attempt < attempts:
                logger.info(f"Retrying in {interval} seconds...")
                time.sleep(interval)

        self._client.loop_stop()
        raise ConnectionError(f"Could not connect to MQTT broker at {self.host}:{self.port}: {last_error}")

    def publish(self, topic: str, payload: Any, retain: bool = False, qos: int = 0, wait: bool = False):
        """Publish a message.

        Args:
            topic: MQTT topic
            payload: String payload, or a dict/list that is JSON encoded
            retain: Retain flag
            qos: QoS level
            wait: Block until the message has been sent

        Raises:
            PublishError: If the client refused or failed the publish
        """
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)
        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retain)
        except (ValueError, RuntimeError) as e:
            raise PublishError(topic, str(e)) from e
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(topic, mqtt.error_string(info.rc))
        if wait:
            try:
                info.wait_for_publish(DEFAULT_PUBLISH_TIMEOUT)
            except (ValueError, RuntimeError) as e:
                raise PublishError(topic, str(e)) from e
        logger.debug(f"Published: {topic}")

    def publish_availability(self, available: bool, wait: bool = False):
        """Publish online/offline on the status topic."""
        value = AVAILABILITY_ONLINE if available else AVAILABILITY_OFFLINE
        self.publish(self.status_topic, value, retain=True, qos=1, wait=wait)
        logger.info(f"Availability: {value}")

    def disconnect(self):
        """Disconnect from the broker and stop the network loop."""
        self._client.disconnect()
        self._client.loop_stop()
        self._connected.clear()
