"""Session storage for persistent authentication.

Stores the single-use refresh token, the current access token and the last
known appliance inventory in one JSON file, so a restart picks up the most
recently issued refresh token instead of the (possibly rotated) configured one.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import PersistenceError
from .constants import DEFAULT_SESSION_FILENAME

_LOGGER = logging.getLogger(__name__)


class SessionStorage:
    """Manages persistent storage of the API session."""

    DEFAULT_STORAGE_PATH = Path.cwd() / DEFAULT_SESSION_FILENAME

    def __init__(self, storage_path: Optional[Path] = None):
        """Initialize session storage.

        Args:
            storage_path: Path to session file. Defaults to ./session.json
        """
        self.storage_path = Path(storage_path) if storage_path else self.DEFAULT_STORAGE_PATH

    def load(self) -> Optional[Dict[str, Any]]:
        """Load the stored session.

        Returns:
            Dict with 'refresh_token', 'access_token', 'expires_at_ms' and
            'appliances', or None if no usable session is stored.
        """
        if not self.storage_path.exists():
            return None
        try:
            with open(self.storage_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            _LOGGER.warning("Ignoring unreadable session file %s: %s", self.storage_path, e)
            return None

        if not isinstance(data, dict) or not data.get("refreshToken"):
            return None

        appliances = []
        entries = data.get("appliances")
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and entry.get("applianceId"):
                appliances.append({
                    "appliance_id": entry["applianceId"],
                    "name": entry.get("applianceName") or entry["applianceId"],
                })

        try:
            expires_at_ms = int(data.get("tokenExpiry") or 0)
        except (TypeError, ValueError):
            _LOGGER.warning("Ignoring invalid token expiry in %s, access token will be renewed", self.storage_path)
            expires_at_ms = 0

        return {
            "refresh_token": data["refreshToken"],
            "access_token": data.get("accessToken"),
            "expires_at_ms": expires_at_ms,
            "appliances": appliances,
        }

    def save(
        self,
        refresh_token: str,
        access_token: Optional[str] = None,
        expires_at_ms: Optional[int] = None,
        appliances: Optional[List[Dict[str, str]]] = None,
    ):
        """Save the session, replacing the file atomically.

        Args:
            refresh_token: Most recently issued refresh token
            access_token: Current access token
            expires_at_ms: Access token expiry (epoch milliseconds)
            appliances: Known inventory as dicts with 'appliance_id' and 'name'

        Raises:
            PersistenceError: If the file cannot be written
        """
        data: Dict[str, Any] = {"refreshToken": refresh_token}
        if access_token:
            data["accessToken"] = access_token
        if expires_at_ms:
            data["tokenExpiry"] = expires_at_ms
        if appliances is not None:
            data["appliances"] = [
                {"applianceId": a["appliance_id"], "applianceName": a["name"]}
                for a in appliances
            ]
        data["updatedAt"] = datetime.now(timezone.utc).isoformat()

        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.storage_path.parent), prefix=".session-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.storage_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(self.storage_path, str(e)) from e

