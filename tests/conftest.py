"""Shared fixtures for git-super tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from git_super.auth.credential_store import CredentialStore
from git_super.auth.models import TokenRecord
from git_super.auth.storage import EncryptedFileBackend, SecretBackend
from git_super.config.auth import (
    CredentialStorageSettings,
    OAuthProviderSettings,
    OAuthSettings,
)
from git_super.exceptions import CredentialsStorageError


TEST_MACHINE_ID = "test-host-/home/tester"

ACME_TOKEN_URL = "https://auth.acme.test/oauth/token"
ACME_DEVICE_URL = "https://auth.acme.test/oauth/device"
ACME_AUTHORIZE_URL = "https://auth.acme.test/oauth/authorize"
ACME_REVOKE_URL = "https://auth.acme.test/oauth/revoke"

FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

_ISOLATED_ENV_VARS = (
    "AI_PROVIDER",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GITHUB_CLIENT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_TENANT_ID",
    "OIDC_ISSUER",
    "OIDC_CLIENT_ID",
    "OIDC_SCOPES",
    "LOG_LEVEL",
    "CONFIG_FILE",
    "GIT_SUPER_CONFIG_OVERRIDES",
    "GIT_SUPER_VERBOSE_API",
)


class InMemoryBackend(SecretBackend):
    """Keychain stand-in that can be told to fail specific operations."""

    name = "keychain"

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.entries: dict[str, dict[str, Any]] = {}
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise CredentialsStorageError(f"Keychain {operation} failed")

    def get(self, service: str) -> dict[str, Any] | None:
        self._check("get")
        return self.entries.get(service)

    def set(self, service: str, data: dict[str, Any]) -> None:
        self._check("set")
        self.entries[service] = data

    def delete(self, service: str) -> None:
        self._check("delete")
        self.entries.pop(service, None)

    def get_location(self) -> str:
        return "in-memory keychain"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's environment and config files out of tests."""
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def storage_settings(tmp_path: Path) -> CredentialStorageSettings:
    """Storage settings pointing at a temporary directory, keychain disabled."""
    return CredentialStorageSettings(
        storage_dir=tmp_path / ".gitsuper",
        use_keychain=False,
    )


@pytest.fixture
def make_file_backend(
    storage_settings: CredentialStorageSettings,
) -> Callable[..., EncryptedFileBackend]:
    """Factory for file backends sharing one credentials file."""

    def _make(machine_id: str = TEST_MACHINE_ID) -> EncryptedFileBackend:
        return EncryptedFileBackend(
            storage_settings.storage_file, machine_id=machine_id
        )

    return _make


@pytest.fixture
def file_backend(
    make_file_backend: Callable[..., EncryptedFileBackend],
) -> EncryptedFileBackend:
    return make_file_backend()


@pytest.fixture
def credential_store(
    storage_settings: CredentialStorageSettings,
    file_backend: EncryptedFileBackend,
) -> CredentialStore:
    return CredentialStore(storage_settings, file_backend=file_backend)


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(request_timeout=5.0, max_poll_attempts=5)


@pytest.fixture
def acme_config() -> OAuthProviderSettings:
    """Device-code provider used across token and flow tests."""
    return OAuthProviderSettings(
        provider_id="acme",
        client_id="acme-client",
        scopes=["read", "write"],
        token_endpoint=ACME_TOKEN_URL,
        device_auth_endpoint=ACME_DEVICE_URL,
        revoke_endpoint=ACME_REVOKE_URL,
    )


@pytest.fixture
def acme_pkce_config() -> OAuthProviderSettings:
    return OAuthProviderSettings(
        provider_id="acme-web",
        client_id="acme-web-client",
        scopes=["openid", "profile"],
        token_endpoint=ACME_TOKEN_URL,
        auth_endpoint=ACME_AUTHORIZE_URL,
        redirect_uri="http://localhost:8080/callback",
    )


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


def make_record(
    access_token: str = "tok1",
    refresh_token: str | None = "ref1",
    expires_in: timedelta | None = timedelta(hours=1),
    scope: str = "read write",
) -> TokenRecord:
    """Build a token record relative to ``FIXED_NOW``."""
    return TokenRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        scope=scope,
        issued_at=FIXED_NOW - timedelta(hours=2),
        expires_at=FIXED_NOW + expires_in if expires_in is not None else None,
    )
