"""Tests for the OS keychain backend."""

from unittest.mock import MagicMock, patch

import orjson
import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from git_super.auth.storage import KeyringBackend
from git_super.exceptions import CredentialsStorageError


RECORD = {"accessToken": "tok", "issuedAt": "2026-01-15T10:00:00Z"}


@pytest.fixture
def mock_keyring() -> MagicMock:
    with patch("git_super.auth.storage.keyring.keyring") as mock:
        yield mock


@pytest.mark.unit
class TestKeyringAvailability:
    """Test the one-time keychain probe."""

    def test_available_with_positive_priority(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_keyring.return_value = MagicMock(priority=5)

        assert KeyringBackend.is_available() is True

    def test_unavailable_with_fail_backend(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_keyring.return_value = MagicMock(priority=0)

        assert KeyringBackend.is_available() is False

    def test_unavailable_when_probe_raises(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_keyring.side_effect = RuntimeError("no dbus")

        assert KeyringBackend.is_available() is False


@pytest.mark.unit
class TestKeyringBackend:
    """Test keychain reads and writes."""

    def test_set_stores_json_under_default_account(self, mock_keyring: MagicMock) -> None:
        KeyringBackend().set("git-super-acme", RECORD)

        service, account, payload = mock_keyring.set_password.call_args.args
        assert (service, account) == ("git-super-acme", "default")
        assert orjson.loads(payload) == RECORD

    def test_get_parses_json(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_password.return_value = orjson.dumps(RECORD).decode()

        assert KeyringBackend().get("git-super-acme") == RECORD
        mock_keyring.get_password.assert_called_once_with("git-super-acme", "default")

    def test_get_missing_returns_none(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_password.return_value = None

        assert KeyringBackend().get("git-super-acme") is None

    def test_get_corrupted_entry_returns_none(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_password.return_value = "not-json"

        assert KeyringBackend().get("git-super-acme") is None

    def test_read_failure_raises_storage_error(self, mock_keyring: MagicMock) -> None:
        mock_keyring.get_password.side_effect = KeyringError("locked")

        with pytest.raises(CredentialsStorageError, match="Keychain read failed"):
            KeyringBackend().get("git-super-acme")

    def test_write_failure_raises_storage_error(self, mock_keyring: MagicMock) -> None:
        mock_keyring.set_password.side_effect = KeyringError("locked")

        with pytest.raises(CredentialsStorageError, match="Keychain write failed"):
            KeyringBackend().set("git-super-acme", RECORD)

    def test_delete_missing_entry_is_noop(self, mock_keyring: MagicMock) -> None:
        mock_keyring.delete_password.side_effect = PasswordDeleteError("not found")

        KeyringBackend().delete("git-super-acme")

    def test_custom_account(self, mock_keyring: MagicMock) -> None:
        KeyringBackend(account="work").delete("git-super-acme")

        mock_keyring.delete_password.assert_called_once_with("git-super-acme", "work")
