"""Electrolux appliance cloud client.

Fetches the appliance inventory and each appliance's info and state, and
merges them into canonical ApplianceRecords. A failure for one appliance
never aborts the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

from .config.constants import (
    APPLIANCE_INFO_PATH_FMT,
    APPLIANCE_STATE_PATH_FMT,
    APPLIANCES_PATH,
)
from .exceptions import ApiError
from .http import HttpTransport
from .models import ApplianceIdentity, ApplianceRecord, FetchResult
from .session import CredentialManager

_LOGGER = logging.getLogger(__name__)


class ApplianceGateway:
    """Client for the Electrolux appliance endpoints."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        credentials: CredentialManager,
        http: HttpTransport,
        max_workers: Optional[int] = None,
    ):
        """Initialize the gateway.

        Args:
            api_url: Base URL of the Electrolux API
            api_key: API key sent as x-api-key
            credentials: Credential manager providing access tokens
            http: HTTP transport
            max_workers: Upper bound on concurrent appliance fetches
                (one worker per appliance if None)
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.credentials = credentials
        self.http = http
        self.max_workers = max_workers

    def _get(self, path: str) -> Any:
        """Authenticated GET, renewing once if the token is rejected."""
        url = f"{self.api_url}{path}"
        for attempt in range(2):
            session = self.credentials.ensure_valid()
            headers = {
                "Authorization": f"Bearer {session.access_token}",
                "x-api-key": self.api_key,
            }
            try:
                return self.http.request("GET", url, headers=headers)
            except ApiError as e:
                if e.status == 401 and attempt == 0:
                    _LOGGER.warning("Access token rejected for %s, renewing", path)
                    self.credentials.invalidate(session.access_token)
                    continue
                raise

    def list_appliances(self) -> List[ApplianceIdentity]:
        """Get the appliance inventory.

        Raises:
            AuthError: If no valid session can be obtained
            ApiError: If the listing request fails or is not a list
        """
        _LOGGER.debug("Fetching appliances from Electrolux API")
        data = self._get(APPLIANCES_PATH) or []
        if not isinstance(data, list):
            raise ApiError(f"Unexpected appliance listing: {type(data).__name__}")

        appliances = []
        for item in data:
            if not isinstance(item, dict) or not item.get("applianceId"):
                _LOGGER.warning("Skipping appliance without ID: %r", item)
                continue
            appliances.append(ApplianceIdentity.from_api(item))
        _LOGGER.info("Found %d Electrolux appliances", len(appliances))

        self.credentials.remember_appliances(appliances)
        return appliances

    def get_appliance_info(self, appliance_id: str) -> dict:
        """Get static metadata for an appliance."""
        _LOGGER.debug("Fetching information for appliance %s", appliance_id)
        return self._get(APPLIANCE_INFO_PATH_FMT.format(appliance_id=appliance_id)) or {}

    def get_appliance_state(self, appliance_id: str) -> dict:
        """Get the reported state of an appliance."""
        _LOGGER.debug("Fetching state for appliance %s", appliance_id)
        return self._get(APPLIANCE_STATE_PATH_FMT.format(appliance_id=appliance_id)) or {}

    def fetch_appliance(self, identity: ApplianceIdentity) -> FetchResult:
        """Fetch info and state for one appliance, capturing any failure."""
        try:
            info = self.get_appliance_info(identity.appliance_id)
            state = self.get_appliance_state(identity.appliance_id)
            return FetchResult.success(ApplianceRecord.from_api(identity, info, state))
        except Exception as e:
            _LOGGER.error("Failed to fetch data for appliance %s: %s", identity.appliance_id, e)
            return FetchResult.failure(identity, f"Failed to fetch appliance data: {e}")

    def fetch_all(self) -> List[FetchResult]:
        """Fetch every appliance concurrently.

        Returns:
            One FetchResult per appliance, in inventory order. Empty if the
            inventory is empty.

        Raises:
            AuthError: If no valid session can be obtained
            ApiError: If the inventory listing fails
        """
        appliances = self.list_appliances()
        if not appliances:
            _LOGGER.warning("No appliances found")
            return []

        workers = self.max_workers or len(appliances)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="electrolux_fetch") as executor:
            results = list(executor.map(self.fetch_appliance, appliances))

        failed = sum(1 for r in results if not r.ok)
        if failed:
            _LOGGER.warning("Fetched %d appliances, %d failed", len(results), failed)
        return results
