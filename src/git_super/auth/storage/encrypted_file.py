"""AES-256 encrypted credentials file.

The whole ``service -> record`` map lives in one envelope
``{"iv": <hex>, "data": <hex ciphertext>}`` and is re-encrypted with a fresh
IV on every write. The key is derived with PBKDF2 from the hostname and home
directory, so a copied file does not decrypt on another machine.
"""

import os
import socket
import tempfile
from pathlib import Path
from typing import Any

import orjson
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from structlog import get_logger

from git_super.auth.storage.base import SecretBackend
from git_super.exceptions import CredentialsStorageError


logger = get_logger(__name__)

KDF_SALT = b"git-super-credential-store-v1"
KEY_LENGTH = 32
IV_LENGTH = 16
DIR_MODE = 0o700
FILE_MODE = 0o600


def default_machine_id() -> str:
    """Machine-identifying material the file key is derived from."""
    return f"{socket.gethostname()}-{Path.home()}"


class EncryptedFileBackend(SecretBackend):
    """Stores every record in a single encrypted, owner-only file."""

    name = "file"

    def __init__(
        self,
        file_path: Path,
        *,
        machine_id: str | None = None,
        iterations: int = 100_000,
    ) -> None:
        """Initialize the backend.

        Args:
            file_path: Path of the encrypted credentials file
            machine_id: Key material; defaults to hostname plus home directory
            iterations: PBKDF2 iteration count

        """
        self.file_path = file_path
        self._machine_id = machine_id or default_machine_id()
        self._iterations = iterations
        self._key: bytes | None = None

    @property
    def storage_dir(self) -> Path:
        return self.file_path.parent

    def _get_key(self) -> bytes:
        if self._key is None:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=KEY_LENGTH,
                salt=KDF_SALT,
                iterations=self._iterations,
            )
            self._key = kdf.derive(self._machine_id.encode())
        return self._key

    def _encrypt(self, entries: dict[str, Any]) -> dict[str, str]:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        plaintext = padder.update(orjson.dumps(entries)) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._get_key()), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return {"iv": iv.hex(), "data": ciphertext.hex()}

    def _decrypt(self, envelope: dict[str, Any]) -> dict[str, Any]:
        iv = bytes.fromhex(envelope["iv"])
        ciphertext = bytes.fromhex(envelope["data"])
        decryptor = Cipher(algorithms.AES(self._get_key()), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        entries = orjson.loads(unpadder.update(padded) + unpadder.finalize())
        if not isinstance(entries, dict):
            raise ValueError("Decrypted credentials are not a mapping")
        return entries

    def _load_all(self) -> dict[str, Any] | None:
        """Load and decrypt the whole map.

        Returns:
            The decrypted map ({} when the file does not exist), or None if
            the file exists but cannot be read or decrypted

        """
        if not self.file_path.exists():
            return {}

        try:
            envelope = orjson.loads(self.file_path.read_bytes())
            return self._decrypt(envelope)
        except OSError:
            logger.exception(
                "credentials_file_read_error",
                path=str(self.file_path),
            )
            return None
        except (ValueError, KeyError, TypeError) as e:
            # Wrong machine key, truncated file or foreign format
            logger.error(
                "credentials_file_decrypt_failed",
                path=str(self.file_path),
                error_type=type(e).__name__,
            )
            return None

    def _ensure_dir(self) -> None:
        try:
            self.storage_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            os.chmod(self.storage_dir, DIR_MODE)
        except OSError as e:
            raise CredentialsStorageError(
                f"Cannot create credentials directory with owner-only permissions: {e}",
                path=str(self.storage_dir),
            ) from e

    def _save_all(self, entries: dict[str, Any]) -> None:
        """Encrypt and atomically replace the credentials file.

        Raises:
            CredentialsStorageError: If the file cannot be written or its
                permissions cannot be restricted to the owner

        """
        self._ensure_dir()
        payload = orjson.dumps(self._encrypt(entries))

        tmp_path: Path | None = None
        try:
            # mkstemp creates the file with mode 0600
            fd, tmp_name = tempfile.mkstemp(
                dir=self.storage_dir, prefix=".credentials-", suffix=".tmp"
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CredentialsStorageError(
                f"Failed to write credentials file: {e}",
                path=str(self.file_path),
            ) from e

    def get(self, service: str) -> dict[str, Any] | None:
        entries = self._load_all()
        if not entries:
            return None
        record = entries.get(service)
        return record if isinstance(record, dict) else None

    def set(self, service: str, data: dict[str, Any]) -> None:
        entries = self._load_all()
        if entries is None:
            logger.warning(
                "credentials_file_unreadable_replacing",
                path=str(self.file_path),
            )
            entries = {}
        entries[service] = data
        self._save_all(entries)
        logger.debug("credentials_file_entry_saved", service=service)

    def delete(self, service: str) -> None:
        entries = self._load_all()
        if not entries or service not in entries:
            return
        del entries[service]
        self._save_all(entries)
        logger.debug("credentials_file_entry_deleted", service=service)

    def get_location(self) -> str:
        return f"encrypted file {self.file_path}"
