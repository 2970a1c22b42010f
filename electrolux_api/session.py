"""Session token lifecycle for the Electrolux API.

The API issues single-use refresh tokens: every renewal returns a new refresh
token and invalidates the one that was sent. Two renewals racing with the
same refresh token therefore kill the session. CredentialManager serializes
renewal (single-flight) and persists every newly issued token pair.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .config.constants import TOKEN_REFRESH_PATH, TOKEN_SAFETY_MARGIN_SECONDS
from .config.storage import SessionStorage
from .exceptions import ApiError, AuthError, PersistenceError
from .http import HttpTransport, mask_token

_LOGGER = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Session:
    """Access/refresh token pair and access token expiry."""
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at_ms: int = 0

    def is_valid(self, margin_seconds: int = TOKEN_SAFETY_MARGIN_SECONDS, now_ms: Optional[int] = None) -> bool:
        """True if the access token outlives now + margin."""
        if not self.access_token:
            return False
        now_ms = _now_ms() if now_ms is None else now_ms
        return now_ms < self.expires_at_ms - margin_seconds * 1000


class CredentialManager:
    """Owns the API session: renewal, persistence and restore."""

    def __init__(
        self,
        api_url: str,
        http: HttpTransport,
        storage: Optional[SessionStorage] = None,
        refresh_token: Optional[str] = None,
        margin_seconds: int = TOKEN_SAFETY_MARGIN_SECONDS,
    ):
        """Initialize the credential manager.

        Args:
            api_url: Base URL of the Electrolux API
            http: Transport used for the token endpoint
            storage: Session file storage (no persistence if None)
            refresh_token: Initially configured refresh token. A token
                restored by load() takes priority over it.
            margin_seconds: Renew when the access token expires within this margin
        """
        self.api_url = api_url.rstrip("/")
        self.http = http
        self.storage = storage
        self.margin_seconds = margin_seconds

        self._session: Optional[Session] = (
            Session(access_token=None, refresh_token=refresh_token) if refresh_token else None
        )
        self._appliances: List[Dict[str, str]] = []

        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def known_appliances(self) -> List[Dict[str, str]]:
        """Last known inventory as dicts with 'appliance_id' and 'name'."""
        return list(self._appliances)

    def load(self) -> bool:
        """Restore the session and inventory from storage.

        Returns:
            True if a persisted refresh token was found
        """
        if self.storage is None:
            return False

        stored = self.storage.load()
        if stored is None:
            _LOGGER.info("No stored session at %s, using configured refresh token", self.storage.storage_path)
            return False

        with self._lock:
            self._session = Session(
                access_token=stored["access_token"],
                refresh_token=stored["refresh_token"],
                expires_at_ms=stored["expires_at_ms"],
            )
            self._appliances = stored["appliances"]

        _LOGGER.info(
            "Restored session from %s (refresh token %s, %d known appliances)",
            self.storage.storage_path,
            mask_token(stored["refresh_token"]),
            len(stored["appliances"]),
        )
        return True

    def persist(self) -> bool:
        """Write the current session and inventory to storage.

        A write failure is logged and the in-memory state stays authoritative.

        Returns:
            True if the session was written
        """
        if self.storage is None:
            return False

        session = self._session
        if session is None or not session.refresh_token:
            return False

        try:
            self.storage.save(
                refresh_token=session.refresh_token,
                access_token=session.access_token,
                expires_at_ms=session.expires_at_ms,
                appliances=self._appliances,
            )
        except PersistenceError as e:
            _LOGGER.error("%s; continuing with in-memory session only", e)
            return False
        return True

    def remember_appliances(self, identities: Iterable[Any]):
        """Record the inventory (id and name only) and persist it."""
        appliances = [{"appliance_id": i.appliance_id, "name": i.name} for i in identities]
        if appliances == self._appliances:
            return
        self._appliances = appliances
        self.persist()

    def ensure_valid(self) -> Session:
        """Return a session valid for at least the safety margin.

        Renews when needed. Concurrent callers share a single renewal: the
        first one performs it, the others wait for its outcome.

        Raises:
            AuthError: If renewal fails
        """
        with self._lock:
            session = self._session
            if session is not None and session.is_valid(self.margin_seconds):
                return session
            future = self._inflight
            owner = future is None
            if owner:
                future = self._inflight = Future()

        if not owner:
            _LOGGER.debug("Token renewal already in progress, waiting for it")
            return future.result()

        try:
            session = self.renew()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(session)
            return session
        finally:
            with self._lock:
                self._inflight = None

    def renew(self) -> Session:
        """Exchange the refresh token for a new token pair.

        On success the new session replaces the old one and is persisted.
        On failure the in-memory session is cleared.

        Call through ensure_valid() when other threads may renew as well.

        Raises:
            AuthError: If no refresh token is available or the exchange fails
        """
        refresh_token = self._session.refresh_token if self._session else None
        if not refresh_token and self.storage is not None:
            stored = self.storage.load()
            if stored is not None:
                _LOGGER.warning("Retrying with last persisted refresh token")
                refresh_token = stored["refresh_token"]
        if not refresh_token:
            raise AuthError("No refresh token available")

        _LOGGER.debug("Refreshing access token (refresh token %s)", mask_token(refresh_token))

        try:
            response = self.http.request(
                "POST",
                f"{self.api_url}{TOKEN_REFRESH_PATH}",
                json_body={"refreshToken": refresh_token},
            )
            session = Session(
                access_token=response["accessToken"],
                refresh_token=response["refreshToken"],
                expires_at_ms=_now_ms() + int(response["expiresIn"]) * 1000,
            )
        except (ApiError, KeyError, TypeError, ValueError) as e:
            with self._lock:
                self._session = None
            _LOGGER.error("Failed to refresh access token: %s", e)
            raise AuthError(f"Token refresh failed: {e}") from e

        with self._lock:
            self._session = session
        self.persist()

        _LOGGER.info("Refreshed access token, valid for %ss", int(response["expiresIn"]))
        return session

    def invalidate(self, access_token: str):
        """Mark an access token rejected by the API as expired.

        Ignored if a newer token has already replaced it.
        """
        with self._lock:
            session = self._session
            if session is not None and session.access_token == access_token:
                self._session = Session(
                    access_token=None,
                    refresh_token=session.refresh_token,
                    expires_at_ms=0,
                )

    def token_status(self) -> Dict[str, Any]:
        """Get token status for diagnostics.

        Returns:
            Dict with:
                - has_session: bool - a refresh token is held
                - access_valid: bool - access token valid beyond the margin
                - expires_in: int - seconds until the access token expires (or 0)
                - known_appliances: int - size of the remembered inventory
        """
        session = self._session
        if session is None:
            return {"has_session": False, "access_valid": False, "expires_in": 0,
                    "known_appliances": len(self._appliances)}
        return {
            "has_session": bool(session.refresh_token),
            "access_valid": session.is_valid(self.margin_seconds),
            "expires_in": max(0, (session.expires_at_ms - _now_ms()) // 1000),
            "known_appliances": len(self._appliances),
        }
