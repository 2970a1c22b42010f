"""Tests for session file storage."""

from __future__ import annotations

import json
import os

import pytest

from electrolux_api.config import SessionStorage
from electrolux_api.exceptions import PersistenceError


def test_load_missing_file(session_path) -> None:
    """Test a missing session file loads as None."""
    assert SessionStorage(session_path).load() is None


def test_save_and_load(session_path) -> None:
    """Test the saved session is restored with the same values."""
    storage = SessionStorage(session_path)
    storage.save(
        refresh_token="refresh",
        access_token="access",
        expires_at_ms=1_700_000_000_000,
        appliances=[{"appliance_id": "916099949", "name": "Kitchen Fridge"}],
    )

    loaded = storage.load()

    assert loaded == {
        "refresh_token": "refresh",
        "access_token": "access",
        "expires_at_ms": 1_700_000_000_000,
        "appliances": [{"appliance_id": "916099949", "name": "Kitchen Fridge"}],
    }


def test_file_format(session_path) -> None:
    """Test the on-disk JSON uses the documented keys."""
    SessionStorage(session_path).save(
        refresh_token="refresh",
        appliances=[{"appliance_id": "1", "name": "Washer"}],
    )

    data = json.loads(session_path.read_text())

    assert data["refreshToken"] == "refresh"
    assert data["appliances"] == [{"applianceId": "1", "applianceName": "Washer"}]
    assert "updatedAt" in data
    assert "accessToken" not in data


def test_save_leaves_no_temp_files(session_path) -> None:
    """Test atomic replace cleans up after itself."""
    storage = SessionStorage(session_path)
    storage.save(refresh_token="one")
    storage.save(refresh_token="two")

    assert os.listdir(session_path.parent) == ["session.json"]
    assert storage.load()["refresh_token"] == "two"


def test_load_corrupt_file(session_path) -> None:
    """Test an unreadable session file is ignored."""
    session_path.write_text("{not json")
    assert SessionStorage(session_path).load() is None


def test_load_invalid_token_expiry(session_path) -> None:
    """Test a malformed expiry keeps the refresh token and forces renewal."""
    session_path.write_text(json.dumps({"refreshToken": "r", "tokenExpiry": "soon", "appliances": 7}))

    loaded = SessionStorage(session_path).load()

    assert loaded["refresh_token"] == "r"
    assert loaded["expires_at_ms"] == 0
    assert loaded["appliances"] == []


def test_load_file_without_refresh_token(session_path) -> None:
    """Test a session file without a refresh token is ignored."""
    session_path.write_text(json.dumps({"accessToken": "access"}))
    assert SessionStorage(session_path).load() is None


def test_save_failure_raises_persistence_error(tmp_path) -> None:
    """Test write failures surface as PersistenceError."""
    blocker = tmp_path / "not_a_directory"
    blocker.write_text("")
    storage = SessionStorage(blocker / "session.json")

    with pytest.raises(PersistenceError):
        storage.save(refresh_token="refresh")
