"""Secure credential storage.

Stores token records in the OS keychain when one is available, otherwise in
an encrypted file. Exactly one backend is active at a time and serves every
``get``/``set``/``delete``; the keychain is probed once at construction.
"""

import asyncio
from typing import Any, Literal

from pydantic import ValidationError
from structlog import get_logger

from git_super.auth.models import TokenRecord
from git_super.auth.storage import EncryptedFileBackend, KeyringBackend, SecretBackend
from git_super.config.auth import CredentialStorageSettings
from git_super.core.async_utils import run_in_executor
from git_super.exceptions import CredentialsStorageError


logger = get_logger(__name__)


class CredentialStore:
    """Durable, encrypted-at-rest storage of token records keyed by service."""

    def __init__(
        self,
        settings: CredentialStorageSettings | None = None,
        *,
        keychain: SecretBackend | None = None,
        file_backend: EncryptedFileBackend | None = None,
    ) -> None:
        """Initialize the store and select its backend.

        Args:
            settings: Storage configuration, uses defaults if not provided
            keychain: Keychain backend to use instead of probing the OS
            file_backend: Encrypted file backend to use instead of the default

        """
        self.settings = settings or CredentialStorageSettings()
        self.service_prefix = self.settings.service_prefix
        self._file = file_backend or EncryptedFileBackend(
            self.settings.storage_file,
            iterations=self.settings.kdf_iterations,
        )
        self._backend: SecretBackend = self._select_backend(keychain)
        self._lock = asyncio.Lock()

    def _select_backend(self, keychain: SecretBackend | None) -> SecretBackend:
        if keychain is not None:
            return keychain
        if not self.settings.use_keychain:
            return self._file
        if KeyringBackend.is_available():
            return KeyringBackend(self.settings.keychain_account)
        logger.info(
            "keychain_unavailable_using_file",
            location=self._file.get_location(),
        )
        return self._file

    def _demote_to_file(self, error: CredentialsStorageError) -> None:
        logger.warning(
            "keychain_failed_falling_back_to_file",
            error=str(error),
            location=self._file.get_location(),
        )
        self._backend = self._file

    async def _call(self, operation: str, *args: Any) -> Any:
        backend = self._backend
        try:
            return await run_in_executor(getattr(backend, operation), *args)
        except CredentialsStorageError as e:
            if backend is self._file:
                raise
            self._demote_to_file(e)
            return await run_in_executor(getattr(self._file, operation), *args)

    def service_name(self, provider_id: str) -> str:
        """Credential service name for a provider."""
        return f"{self.service_prefix}-{provider_id}"

    async def get(self, service: str) -> TokenRecord | None:
        """Load a token record.

        Unreadable, undecryptable or malformed data is reported as missing so
        that callers can fall back to re-authentication.

        Args:
            service: Credential service name

        Returns:
            The stored record, or None

        """
        data = await self._call("get", service)
        if data is None:
            return None
        try:
            return TokenRecord.model_validate(data)
        except ValidationError:
            logger.error("credential_record_invalid", service=service)
            return None

    async def set(self, service: str, record: TokenRecord) -> None:
        """Store a token record, replacing any previous one.

        Raises:
            CredentialsStorageError: If the record cannot be persisted

        """
        async with self._lock:
            await self._call("set", service, record.to_storage())
        logger.debug("credential_saved", service=service, backend=self._backend.name)

    async def delete(self, service: str) -> None:
        """Delete a token record; deleting a missing record is a no-op."""
        async with self._lock:
            await self._call("delete", service)
        logger.debug("credential_deleted", service=service, backend=self._backend.name)

    def get_storage_method(self) -> Literal["keychain", "file"]:
        """Report which backend is active, for diagnostics."""
        return "keychain" if self._backend is not self._file else "file"

    def get_location(self) -> str:
        """Human-readable description of where credentials are stored."""
        return self._backend.get_location()
