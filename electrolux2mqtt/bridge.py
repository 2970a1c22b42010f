"""Main bridge class for electrolux2mqtt."""

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

from electrolux_api.client import ApplianceGateway
from electrolux_api.config import SessionStorage
from electrolux_api.exceptions import ConfigError, PublishError
from electrolux_api.http import HttpTransport, mask_token
from electrolux_api.session import CredentialManager

from . import __version__
from .config import resolve_poll_interval, validate_config
from .discovery import DiscoveryRegistry, DiscoverySettings
from .mqtt import MQTTPublisher
from .poller import PollingOrchestrator

logger = logging.getLogger(__name__)


class ElectroluxMQTTBridge:
    """Bridge between the Electrolux cloud API and an MQTT broker."""

    def __init__(self, config: dict, publisher: Optional[MQTTPublisher] = None):
        """Initialize the bridge.

        Args:
            config: Configuration dictionary
            publisher: MQTT publisher, built from config if None
        """
        self.config = config
        self.running = False

        self.credentials: Optional[CredentialManager] = None
        self.gateway: Optional[ApplianceGateway] = None
        self.publisher = publisher
        self.registry: Optional[DiscoveryRegistry] = None
        self.poller: Optional[PollingOrchestrator] = None

        self._stop_event = threading.Event()

    def _setup_api_client(self):
        """Set up credentials and the appliance gateway."""
        api_config = self.config.get("api", {})
        options = self.config.get("options", {})

        http = HttpTransport(timeout=float(api_config.get("timeout", 10.0)))
        storage = SessionStorage(Path(options.get("session_file", "session.json")))
        self.credentials = CredentialManager(
            api_url=api_config["url"],
            http=http,
            storage=storage,
            refresh_token=api_config.get("refresh_token"),
        )
        if self.credentials.load():
            logger.info(f"Loaded stored session from {storage.storage_path}")
        logger.debug(
            f"Using refresh token {mask_token(api_config.get('refresh_token'))}"
        )
        status = self.credentials.token_status()
        logger.info(
            f"Token status: session={status['has_session']}, "
            f"access_valid={status['access_valid']}, expires_in={status['expires_in']}s, "
            f"known_appliances={status['known_appliances']}"
        )

        self.gateway = ApplianceGateway(
            api_url=api_config["url"],
            api_key=api_config["api_key"],
            credentials=self.credentials,
            http=http,
            max_workers=api_config.get("max_workers"),
        )

    def _setup_discovery(self):
        """Set up Home Assistant discovery if enabled."""
        if not self.config.get("home_assistant", {}).get("enabled", False):
            logger.info("Home Assistant discovery disabled")
            return
        settings = DiscoverySettings.from_config(self.config)
        self.registry = DiscoveryRegistry(self.publisher, settings)
        self.registry.register_bridge(__version__)

    def start(self):
        """Start the bridge.

        Raises:
            ConfigError: If the configuration is invalid
            ConnectionError: If the MQTT broker cannot be reached
        """
        logger.info("Starting electrolux2mqtt bridge...")

        errors = validate_config(self.config)
        if errors:
            for error in errors:
                logger.error(f"Config error: {error}")
            raise ConfigError("Invalid configuration")

        self._setup_api_client()

        if self.publisher is None:
            self.publisher = MQTTPublisher(self.config)
        options = self.config.get("options", {})
        self.publisher.connect(
            attempts=int(options.get("connect_attempts", 5)),
            interval=options.get("reconnect_interval", 5),
        )
        self.running = True

        self.publisher.publish_availability(True)
        self._setup_discovery()

        self.poller = PollingOrchestrator(
            gateway=self.gateway,
            publisher=self.publisher,
            topic_prefix=self.config.get("mqtt", {}).get("topic_prefix", "electrolux2mqtt"),
            interval=resolve_poll_interval(options.get("poll_interval")),
            registry=self.registry,
        )
        self.poller.start()

        logger.info("electrolux2mqtt bridge started")

    def stop(self):
        """Stop the bridge."""
        if not self.running:
            return
        logger.info("Stopping electrolux2mqtt bridge...")
        self.running = False
        self._stop_event.set()

        if self.poller is not None and self.poller.is_running:
            self.poller.stop(wait=True)

        if self.publisher is not None:
            try:
                self.publisher.publish_availability(False, wait=True)
            except PublishError as e:
                logger.warning(f"Failed to publish offline status: {e}")
            self.publisher.disconnect()

        logger.info("electrolux2mqtt bridge stopped")

    def run_forever(self):
        """Run the bridge until interrupted."""
        # Set up signal handlers
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self._stop_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        self.start()

        try:
            while not self._stop_event.wait(1):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
