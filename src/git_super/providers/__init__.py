"""AI provider authentication wiring."""

from git_super.providers.oauth import OAuthProvider
from git_super.providers.registry import (
    API_KEY_PROVIDERS,
    NO_AUTH_PROVIDERS,
    OAUTH_PRESETS,
    ProviderRegistry,
)


__all__ = [
    "API_KEY_PROVIDERS",
    "NO_AUTH_PROVIDERS",
    "OAUTH_PRESETS",
    "OAuthProvider",
    "ProviderRegistry",
]
