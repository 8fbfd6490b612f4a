"""Authentication for AI providers: credential storage, OAuth flows, tokens."""

from git_super.auth.credential_store import CredentialStore
from git_super.auth.models import (
    DeviceAuthorization,
    OAuthTokenResponse,
    PKCEAuthorizationRequest,
    TokenInfo,
    TokenRecord,
    TokenState,
)
from git_super.auth.oauth import DeviceCodeFlow, PKCEFlow
from git_super.auth.strategies import (
    ApiKeyAuthStrategy,
    BaseAuthStrategy,
    NoAuthStrategy,
    OAuthAuthStrategy,
)
from git_super.auth.token_manager import TokenManager


__all__ = [
    "ApiKeyAuthStrategy",
    "BaseAuthStrategy",
    "CredentialStore",
    "DeviceAuthorization",
    "DeviceCodeFlow",
    "NoAuthStrategy",
    "OAuthAuthStrategy",
    "OAuthTokenResponse",
    "PKCEAuthorizationRequest",
    "PKCEFlow",
    "TokenInfo",
    "TokenManager",
    "TokenRecord",
    "TokenState",
]
