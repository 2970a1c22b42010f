"""Polling loop for electrolux2mqtt.

A timer thread fires one cycle immediately and then every ``interval``
seconds. Each cycle runs in its own thread; a tick that arrives while the
previous cycle is still running is skipped.
"""

import logging
import threading
import time
from typing import List, Optional

from electrolux_api.exceptions import ApiError, AuthError, PublishError
from electrolux_api.models import FetchResult, utc_now_iso

from .topics import appliance_topic, data_topic

logger = logging.getLogger(__name__)


class PollingOrchestrator:
    """Fetch all appliances periodically and publish the results."""

    def __init__(
        self,
        gateway,
        publisher,
        topic_prefix: str,
        interval: int,
        registry=None,
    ):
        """Initialize the orchestrator.

        Args:
            gateway: ApplianceGateway used to fetch appliance data
            publisher: Object with publish(topic, payload, retain=False)
            topic_prefix: Base MQTT topic
            interval: Seconds between cycles
            registry: DiscoveryRegistry, or None when discovery is disabled
        """
        self.gateway = gateway
        self.publisher = publisher
        self.topic_prefix = topic_prefix
        self.interval = interval
        self.registry = registry

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._cycle_thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._timer_thread is not None and self._timer_thread.is_alive()

    def start(self):
        """Start polling. Does nothing if already running."""
        with self._lock:
            if self._timer_thread is not None:
                logger.warning("Polling already running")
                return
            self._stop_event.clear()
            self._started_at = time.monotonic()
            self._timer_thread = threading.Thread(
                target=self._run, name="electrolux_poll_timer", daemon=True
            )
            self._timer_thread.start()
        logger.info(f"Started polling every {self.interval} seconds")

    def stop(self, wait: bool = True, timeout: Optional[float] = None):
        """Stop polling.

        Args:
            wait: Join the timer thread and any in-flight cycle
            timeout: Upper bound for each join
        """
        with self._lock:
            timer = self._timer_thread
            if timer is None:
                logger.warning("Polling not running")
                return
            self._timer_thread = None
            self._stop_event.set()

        if wait:
            timer.join(timeout)
            cycle = self._cycle_thread
            if cycle is not None and cycle.is_alive():
                logger.info("Waiting for in-flight polling cycle to finish")
                cycle.join(timeout)
        logger.info("Stopped polling")

    def _run(self):
        self._tick()
        while not self._stop_event.wait(self.interval):
            self._tick()

    def _tick(self):
        """Start a cycle thread unless the previous one is still running."""
        if self._cycle_thread is not None and self._cycle_thread.is_alive():
            logger.warning("Previous polling cycle still running, skipping this one")
            return
        self._cycle_thread = threading.Thread(
            target=self._safe_cycle, name="electrolux_poll_cycle", daemon=True
        )
        self._cycle_thread.start()

    def _safe_cycle(self):
        try:
            self.run_cycle()
        except Exception as e:
            logger.exception(f"Unexpected error in polling cycle: {e}")

    def _publish(self, topic: str, payload, retain: bool = False) -> bool:
        try:
            self.publisher.publish(topic, payload, retain=retain)
            return True
        except PublishError as e:
            logger.error(f"Failed to publish to {topic}: {e}")
            return False

    def run_cycle(self) -> Optional[List[FetchResult]]:
        """Run one fetch-and-publish cycle.

        Returns:
            The fetch results, or None if the cycle was skipped because the
            inventory could not be listed
        """
        logger.debug("Polling Electrolux appliances")
        try:
            results = self.gateway.fetch_all()
        except AuthError as e:
            logger.error(f"Authentication failed, skipping polling cycle: {e}")
            return None
        except ApiError as e:
            logger.error(f"Failed to list appliances, skipping polling cycle: {e}")
            return None

        for result in results:
            if not result.ok:
                logger.warning(f"Appliance {result.identity.name} unavailable: {result.error.message}")
                continue

            record = result.record
            if self.registry is not None:
                self.registry.ensure_registered(record)
                self.registry.publish_state(record)
            self._publish(appliance_topic(self.topic_prefix, record.appliance_id), record.to_payload())

        summary = {
            "timestamp": utc_now_iso(),
            "devices": len(results),
            "appliances": [result.summary() for result in results],
        }
        self._publish(data_topic(self.topic_prefix), summary)

        if self.registry is not None and self._started_at is not None:
            self.registry.publish_bridge_state(time.monotonic() - self._started_at)

        ok = sum(1 for result in results if result.ok)
        logger.info(f"Polling cycle complete: {ok}/{len(results)} appliances updated")
        return results
