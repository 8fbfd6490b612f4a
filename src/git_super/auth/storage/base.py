"""Abstract base class for secret storage backends."""

from abc import ABC, abstractmethod
from typing import Any


class SecretBackend(ABC):
    """Key/value persistence for serialized token records.

    Backends are synchronous; ``CredentialStore`` moves the calls off the
    event loop.
    """

    name: str

    @abstractmethod
    def get(self, service: str) -> dict[str, Any] | None:
        """Load the record stored for a service.

        Args:
            service: Credential service name

        Returns:
            The stored record, or None if missing or unreadable

        """

    @abstractmethod
    def set(self, service: str, data: dict[str, Any]) -> None:
        """Store a record, replacing any previous one.

        Args:
            service: Credential service name
            data: JSON-serializable record

        Raises:
            CredentialsStorageError: If the record cannot be persisted

        """

    @abstractmethod
    def delete(self, service: str) -> None:
        """Delete the record for a service; absent records are not an error.

        Args:
            service: Credential service name

        """

    @abstractmethod
    def get_location(self) -> str:
        """Get the storage location description.

        Returns:
            Human-readable description of where credentials are stored

        """
