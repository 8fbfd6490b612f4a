"""Secret storage backends for OAuth credentials."""

from git_super.auth.storage.base import SecretBackend
from git_super.auth.storage.encrypted_file import EncryptedFileBackend
from git_super.auth.storage.keyring import KeyringBackend


__all__ = [
    "EncryptedFileBackend",
    "KeyringBackend",
    "SecretBackend",
]
