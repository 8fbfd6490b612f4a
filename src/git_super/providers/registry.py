"""Provider registry: resolves provider names to auth strategies and OAuth facades."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import httpx
from structlog import get_logger

from git_super.auth.credential_store import CredentialStore
from git_super.auth.oauth.browser import open_browser
from git_super.auth.oauth.flows import SleepFunc
from git_super.auth.strategies import (
    ApiKeyAuthStrategy,
    BaseAuthStrategy,
    NoAuthStrategy,
)
from git_super.auth.token_manager import Clock, TokenManager, utcnow
from git_super.config.auth import OAuthProviderSettings
from git_super.config.settings import Settings
from git_super.exceptions import ConfigurationError
from git_super.providers.oauth import OAuthProvider


logger = get_logger(__name__)

GITHUB_CLI_CLIENT_ID = "Iv1.b507a08c87ecfe98"
AZURE_COGNITIVE_SCOPE = "https://cognitiveservices.azure.com/.default"


@dataclass(frozen=True)
class ApiKeyProviderSpec:
    """How an API-key provider authenticates."""

    key_name: str
    env_var: str
    header_name: str
    header_format: str


API_KEY_PROVIDERS: dict[str, ApiKeyProviderSpec] = {
    "anthropic": ApiKeyProviderSpec(
        key_name="anthropic_api_key",
        env_var="ANTHROPIC_API_KEY",
        header_name="x-api-key",
        header_format="{key}",
    ),
    "openai": ApiKeyProviderSpec(
        key_name="openai_api_key",
        env_var="OPENAI_API_KEY",
        header_name="Authorization",
        header_format="Bearer {key}",
    ),
}

NO_AUTH_PROVIDERS = frozenset({"ollama"})


def github_copilot_settings(settings: Settings) -> OAuthProviderSettings:
    return OAuthProviderSettings(
        provider_id="github-copilot",
        client_id=settings.github_client_id or GITHUB_CLI_CLIENT_ID,
        scopes=["read:user", "read:org"],
        device_auth_endpoint="https://github.com/login/device/code",
        token_endpoint="https://github.com/login/oauth/access_token",
    )


def azure_openai_settings(settings: Settings) -> OAuthProviderSettings:
    """Azure AD (Microsoft identity platform v2.0) device-code preset.

    Raises:
        ConfigurationError: If no Azure client ID is configured

    """
    if not settings.azure_client_id:
        raise ConfigurationError(
            "Azure Client ID is required for azure-openai. "
            "Set AZURE_CLIENT_ID or add azure_client_id to the config file."
        )
    base = f"https://login.microsoftonline.com/{settings.azure_tenant_id}/oauth2/v2.0"
    return OAuthProviderSettings(
        provider_id="azure-openai",
        client_id=settings.azure_client_id,
        scopes=[AZURE_COGNITIVE_SCOPE, "offline_access"],
        device_auth_endpoint=f"{base}/devicecode",
        token_endpoint=f"{base}/token",
    )


def generic_oidc_settings(settings: Settings) -> OAuthProviderSettings:
    """Device-code preset for any OIDC issuer.

    Raises:
        ConfigurationError: If the issuer or client ID is missing

    """
    missing = [
        env
        for env, value in (
            ("OIDC_ISSUER", settings.oidc_issuer),
            ("OIDC_CLIENT_ID", settings.oidc_client_id),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"OIDC configuration required: {' and '.join(missing)} must be set"
        )
    assert settings.oidc_issuer is not None
    assert settings.oidc_client_id is not None
    issuer = settings.oidc_issuer.rstrip("/")
    return OAuthProviderSettings(
        provider_id="generic-oidc",
        client_id=settings.oidc_client_id,
        scopes=settings.oidc_scopes or ["openid", "profile", "email"],
        token_endpoint=settings.oidc_token_endpoint or f"{issuer}/oauth2/token",
        device_auth_endpoint=settings.oidc_device_auth_endpoint
        or f"{issuer}/oauth2/device/authorize",
        revoke_endpoint=settings.oidc_revoke_endpoint,
    )


OAUTH_PRESETS: dict[str, Callable[[Settings], OAuthProviderSettings]] = {
    "github-copilot": github_copilot_settings,
    "azure-openai": azure_openai_settings,
    "generic-oidc": generic_oidc_settings,
}


class ProviderRegistry:
    """Builds auth strategies and OAuth providers from ``Settings``.

    All providers share one ``CredentialStore``; OAuth providers are created
    lazily and cached so each has a single ``TokenManager``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        credential_store: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
        browser: Callable[[str], bool] = open_browser,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self.credential_store = credential_store or CredentialStore(
            settings.auth.storage
        )
        self._http_client = http_client
        self._sleep = sleep
        self._browser = browser
        self._clock = clock
        self._oauth_providers: dict[str, OAuthProvider] = {}

    def oauth_provider_names(self) -> list[str]:
        """Built-in OAuth presets followed by user-defined providers."""
        names = list(OAUTH_PRESETS)
        names.extend(n for n in self.settings.auth.providers if n not in names)
        return names

    def available_providers(self) -> list[str]:
        return [*API_KEY_PROVIDERS, *sorted(NO_AUTH_PROVIDERS), *self.oauth_provider_names()]

    def is_oauth_provider(self, name: str) -> bool:
        return name in OAUTH_PRESETS or name in self.settings.auth.providers

    def get_oauth_settings(self, name: str) -> OAuthProviderSettings:
        """Resolve a provider's OAuth configuration.

        User-defined providers take precedence over presets of the same name.

        Raises:
            ConfigurationError: If the provider is unknown, not an OAuth
                provider, or missing required configuration

        """
        if name in self.settings.auth.providers:
            return self.settings.auth.providers[name]
        if name in OAUTH_PRESETS:
            return OAUTH_PRESETS[name](self.settings)
        if name in API_KEY_PROVIDERS or name in NO_AUTH_PROVIDERS:
            raise ConfigurationError(
                f"Provider '{name}' does not use OAuth authentication"
            )
        raise ConfigurationError(
            f"Provider '{name}' not found. "
            f"Available providers: {', '.join(self.available_providers())}"
        )

    def get_oauth_provider(self, name: str) -> OAuthProvider:
        """Get the OAuth facade for a provider, creating it on first use."""
        provider = self._oauth_providers.get(name)
        if provider is not None:
            return provider

        config = self.get_oauth_settings(name)
        auth = self.settings.auth
        token_manager = TokenManager(
            config,
            self.credential_store,
            service_prefix=auth.storage.service_prefix,
            http_client=self._http_client,
            clock=self._clock,
            request_timeout=auth.oauth.request_timeout,
            verbose_api=auth.oauth.verbose_api,
        )
        provider = OAuthProvider(
            config,
            token_manager,
            oauth_settings=auth.oauth,
            http_client=self._http_client,
            sleep=self._sleep,
            browser=self._browser,
        )
        self._oauth_providers[name] = provider
        return provider

    def configured_oauth_providers(self) -> list[OAuthProvider]:
        """OAuth providers whose configuration is complete."""
        providers = []
        for name in self.oauth_provider_names():
            try:
                providers.append(self.get_oauth_provider(name))
            except ConfigurationError as e:
                logger.debug("oauth_provider_not_configured", provider=name, reason=str(e))
        return providers

    def get_strategy(self, name: str | None = None) -> BaseAuthStrategy:
        """Get the auth strategy for a provider, the active one by default.

        Raises:
            ConfigurationError: If the provider is unknown or misconfigured

        """
        name = name or self.settings.ai_provider
        spec = API_KEY_PROVIDERS.get(name)
        if spec is not None:
            return ApiKeyAuthStrategy(
                self.settings,
                spec.key_name,
                header_name=spec.header_name,
                header_format=spec.header_format,
                env_var=spec.env_var,
            )
        if name in NO_AUTH_PROVIDERS:
            return NoAuthStrategy()
        return self.get_oauth_provider(name).auth_strategy
