"""Configuration module for git-super."""

from git_super.exceptions import ConfigurationError

from .auth import (
    AuthSettings,
    CredentialStorageSettings,
    OAuthProviderSettings,
    OAuthSettings,
)
from .settings import Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "AuthSettings",
    "OAuthSettings",
    "OAuthProviderSettings",
    "CredentialStorageSettings",
    "ConfigurationError",
]
