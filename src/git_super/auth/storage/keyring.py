"""OS keychain storage through the ``keyring`` library."""

from typing import Any

import keyring
import orjson
from keyring.errors import KeyringError, PasswordDeleteError
from structlog import get_logger

from git_super.auth.storage.base import SecretBackend
from git_super.exceptions import CredentialsStorageError


logger = get_logger(__name__)


class KeyringBackend(SecretBackend):
    """One keychain entry per service, JSON payload, fixed account name."""

    name = "keychain"

    def __init__(self, account: str = "default") -> None:
        self.account = account

    @staticmethod
    def is_available() -> bool:
        """Probe for a usable OS keychain.

        The fail and null backends report a priority of zero or less; real
        backends signal unavailability by raising from ``priority``.
        """
        try:
            backend = keyring.get_keyring()
            return float(backend.priority) > 0
        except (KeyringError, RuntimeError, ImportError, OSError) as e:
            logger.debug("keychain_probe_failed", error=str(e))
            return False

    def get(self, service: str) -> dict[str, Any] | None:
        try:
            raw = keyring.get_password(service, self.account)
        except KeyringError as e:
            raise CredentialsStorageError(f"Keychain read failed: {e}") from e
        if not raw:
            return None
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.error("keychain_entry_corrupted", service=service)
            return None
        return data if isinstance(data, dict) else None

    def set(self, service: str, data: dict[str, Any]) -> None:
        try:
            keyring.set_password(service, self.account, orjson.dumps(data).decode())
        except KeyringError as e:
            raise CredentialsStorageError(f"Keychain write failed: {e}") from e

    def delete(self, service: str) -> None:
        try:
            keyring.delete_password(service, self.account)
        except PasswordDeleteError:
            return
        except KeyringError as e:
            raise CredentialsStorageError(f"Keychain delete failed: {e}") from e

    def get_location(self) -> str:
        try:
            backend_name = type(keyring.get_keyring()).__name__
        except (KeyringError, RuntimeError):
            backend_name = "unknown"
        return f"OS keychain ({backend_name})"
