"""Tests for provider resolution and the OAuth provider facade."""

from collections.abc import Callable
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from conftest import (
    ACME_AUTHORIZE_URL,
    ACME_DEVICE_URL,
    ACME_REVOKE_URL,
    ACME_TOKEN_URL,
    FIXED_NOW,
)
from git_super.auth.credential_store import CredentialStore
from git_super.auth.models import DeviceAuthorization, PKCEAuthorizationRequest
from git_super.auth.strategies import (
    ApiKeyAuthStrategy,
    NoAuthStrategy,
    OAuthAuthStrategy,
)
from git_super.config import Settings
from git_super.exceptions import ConfigurationError, OAuthCallbackError, StateMismatchError
from git_super.providers import ProviderRegistry
from git_super.providers.registry import AZURE_COGNITIVE_SCOPE, GITHUB_CLI_CLIENT_ID


TOKEN_RESPONSE = {"access_token": "tok1", "refresh_token": "ref1", "expires_in": 3600}

ACME_PROVIDERS = {
    "acme": {
        "client_id": "acme-client",
        "scopes": "read write",
        "token_endpoint": ACME_TOKEN_URL,
        "device_auth_endpoint": ACME_DEVICE_URL,
        "revoke_endpoint": ACME_REVOKE_URL,
    },
    "acme-web": {
        "client_id": "acme-web-client",
        "scopes": ["openid"],
        "token_endpoint": ACME_TOKEN_URL,
        "auth_endpoint": ACME_AUTHORIZE_URL,
    },
}


@pytest.fixture
def make_registry(
    credential_store: CredentialStore,
    clock: Callable[[], datetime],
) -> Callable[..., ProviderRegistry]:
    def _make(**settings: object) -> ProviderRegistry:
        settings.setdefault("auth", {"providers": ACME_PROVIDERS})
        return ProviderRegistry(
            Settings(**settings),
            credential_store=credential_store,
            sleep=AsyncMock(),
            browser=MagicMock(return_value=True),
            clock=clock,
        )

    return _make


@pytest.mark.unit
class TestOAuthPresets:
    """Test built-in provider presets."""

    def test_github_copilot_uses_cli_client_by_default(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        config = make_registry().get_oauth_settings("github-copilot")

        assert config.client_id == GITHUB_CLI_CLIENT_ID
        assert config.flow == "device_code"
        assert config.device_auth_endpoint == "https://github.com/login/device/code"
        assert config.token_endpoint == "https://github.com/login/oauth/access_token"
        assert config.scopes == ["read:user", "read:org"]

    def test_github_copilot_client_override(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        config = make_registry(github_client_id="Iv1.custom").get_oauth_settings(
            "github-copilot"
        )

        assert config.client_id == "Iv1.custom"

    def test_azure_requires_client_id(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        with pytest.raises(ConfigurationError, match="AZURE_CLIENT_ID"):
            make_registry().get_oauth_settings("azure-openai")

    def test_azure_endpoints_use_tenant(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        config = make_registry(
            azure_client_id="azure-app", azure_tenant_id="contoso"
        ).get_oauth_settings("azure-openai")

        base = "https://login.microsoftonline.com/contoso/oauth2/v2.0"
        assert config.device_auth_endpoint == f"{base}/devicecode"
        assert config.token_endpoint == f"{base}/token"
        assert AZURE_COGNITIVE_SCOPE in config.scopes
        assert "offline_access" in config.scopes

    @pytest.mark.parametrize(
        ("settings", "missing"),
        [
            ({}, "OIDC_ISSUER and OIDC_CLIENT_ID must be set"),
            ({"oidc_issuer": "https://idp.test"}, "OIDC_CLIENT_ID must be set"),
            ({"oidc_client_id": "cli"}, "OIDC_ISSUER must be set"),
        ],
    )
    def test_oidc_requires_issuer_and_client(
        self,
        make_registry: Callable[..., ProviderRegistry],
        settings: dict[str, str],
        missing: str,
    ) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            make_registry(**settings).get_oauth_settings("generic-oidc")

        assert str(exc_info.value) == f"OIDC configuration required: {missing}"

    def test_oidc_derives_endpoints_from_issuer(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        config = make_registry(
            oidc_issuer="https://idp.test/", oidc_client_id="cli"
        ).get_oauth_settings("generic-oidc")

        assert config.token_endpoint == "https://idp.test/oauth2/token"
        assert config.device_auth_endpoint == "https://idp.test/oauth2/device/authorize"
        assert config.scopes == ["openid", "profile", "email"]

    def test_oidc_explicit_endpoints_and_scopes(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        config = make_registry(
            oidc_issuer="https://idp.test",
            oidc_client_id="cli",
            oidc_token_endpoint="https://idp.test/token",
            oidc_scopes="openid,offline_access",
        ).get_oauth_settings("generic-oidc")

        assert config.token_endpoint == "https://idp.test/token"
        assert config.scopes == ["openid", "offline_access"]


@pytest.mark.unit
class TestProviderResolution:
    """Test name resolution and strategy selection."""

    def test_user_defined_provider(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        registry = make_registry()

        config = registry.get_oauth_settings("acme")

        assert config.provider_id == "acme"
        assert config.scopes == ["read", "write"]
        assert registry.is_oauth_provider("acme")
        assert registry.oauth_provider_names()[-2:] == ["acme", "acme-web"]

    def test_user_defined_provider_overrides_preset(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        registry = make_registry(
            auth={
                "providers": {
                    "github-copilot": {
                        "client_id": "enterprise",
                        "token_endpoint": "https://ghe.test/login/oauth/access_token",
                        "device_auth_endpoint": "https://ghe.test/login/device/code",
                    }
                }
            }
        )

        config = registry.get_oauth_settings("github-copilot")

        assert config.client_id == "enterprise"
        assert registry.oauth_provider_names().count("github-copilot") == 1

    def test_unknown_provider(self, make_registry: Callable[..., ProviderRegistry]) -> None:
        with pytest.raises(ConfigurationError, match="Provider 'nope' not found"):
            make_registry().get_oauth_settings("nope")

    def test_api_key_provider_is_not_oauth(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        registry = make_registry()

        assert not registry.is_oauth_provider("anthropic")
        with pytest.raises(ConfigurationError, match="does not use OAuth"):
            registry.get_oauth_settings("anthropic")

    @pytest.mark.asyncio
    async def test_anthropic_strategy(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        strategy = make_registry(anthropic_api_key="sk-ant").get_strategy()

        assert isinstance(strategy, ApiKeyAuthStrategy)
        assert await strategy.get_auth_headers() == {"x-api-key": "sk-ant"}

    @pytest.mark.asyncio
    async def test_openai_strategy(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        strategy = make_registry(openai_api_key="sk-oai").get_strategy("openai")

        assert await strategy.get_auth_headers() == {"Authorization": "Bearer sk-oai"}

    def test_ollama_strategy(self, make_registry: Callable[..., ProviderRegistry]) -> None:
        strategy = make_registry(ai_provider="ollama").get_strategy()

        assert isinstance(strategy, NoAuthStrategy)

    def test_oauth_strategy_is_shared(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        registry = make_registry(ai_provider="acme")

        strategy = registry.get_strategy()

        assert isinstance(strategy, OAuthAuthStrategy)
        assert strategy is registry.get_oauth_provider("acme").auth_strategy
        assert registry.get_oauth_provider("acme") is registry.get_oauth_provider("acme")

    def test_configured_providers_skip_incomplete_presets(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        names = [p.name for p in make_registry().configured_oauth_providers()]

        assert names == ["github-copilot", "acme", "acme-web"]

    def test_available_providers(self, make_registry: Callable[..., ProviderRegistry]) -> None:
        available = make_registry().available_providers()

        assert available[:3] == ["anthropic", "openai", "ollama"]
        assert "generic-oidc" in available
        assert "acme" in available

    def test_token_manager_uses_storage_prefix(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        provider = make_registry().get_oauth_provider("acme")

        assert provider.token_manager.service_name == "git-super-acme"


@pytest.mark.unit
class TestOAuthProvider:
    """Test the provider facade over the flows and token manager."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_device_login_stores_tokens(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        respx.post(ACME_DEVICE_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "device_code": "dev",
                    "user_code": "WXYZ-0000",
                    "verification_uri": "https://auth.acme.test/activate",
                    "interval": 1,
                },
            )
        )
        respx.post(ACME_TOKEN_URL).mock(
            side_effect=[
                httpx.Response(400, json={"error": "authorization_pending"}),
                httpx.Response(200, json=TOKEN_RESPONSE),
            ]
        )
        provider = make_registry().get_oauth_provider("acme")
        on_user_code = MagicMock()

        record = await provider.login(on_user_code=on_user_code)

        on_user_code.assert_called_once()
        assert record.access_token == "tok1"
        assert record.expires_at == FIXED_NOW + timedelta(hours=1)
        assert await provider.is_authenticated() is True
        assert await provider.get_auth_headers() == {"Authorization": "Bearer tok1"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_initiate_and_complete_device_auth(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        respx.post(ACME_DEVICE_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "device_code": "dev",
                    "user_code": "WXYZ-0000",
                    "verification_uri": "https://auth.acme.test/activate",
                },
            )
        )
        respx.post(ACME_TOKEN_URL).mock(return_value=httpx.Response(200, json=TOKEN_RESPONSE))
        provider = make_registry().get_oauth_provider("acme")

        authorization = await provider.initiate_auth()
        assert isinstance(authorization, DeviceAuthorization)
        record = await provider.complete_auth(authorization)

        assert await provider.get_access_token() == record.access_token

    @pytest.mark.asyncio
    async def test_initiate_pkce_returns_request(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        provider = make_registry().get_oauth_provider("acme-web")

        authorization = await provider.initiate_auth()

        assert provider.flow == "pkce"
        assert isinstance(authorization, PKCEAuthorizationRequest)
        assert authorization.url.startswith(ACME_AUTHORIZE_URL)

    @pytest.mark.asyncio
    @respx.mock
    async def test_complete_pkce_auth(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        respx.post(ACME_TOKEN_URL).mock(return_value=httpx.Response(200, json=TOKEN_RESPONSE))
        provider = make_registry().get_oauth_provider("acme-web")
        authorization = await provider.initiate_auth()
        assert isinstance(authorization, PKCEAuthorizationRequest)

        record = await provider.complete_auth(
            authorization, code="code-1", returned_state=authorization.state
        )

        assert record.access_token == "tok1"
        assert record.scope == "openid"

    @pytest.mark.asyncio
    async def test_complete_pkce_auth_rejects_foreign_state(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        provider = make_registry().get_oauth_provider("acme-web")
        authorization = await provider.initiate_auth()

        with pytest.raises(StateMismatchError):
            await provider.complete_auth(
                authorization, code="code-1", returned_state="forged"
            )
        with pytest.raises(OAuthCallbackError, match="No authorization code"):
            await provider.complete_auth(authorization)

        assert await provider.get_access_token() is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_logout_revokes_and_clears(
        self,
        make_registry: Callable[..., ProviderRegistry],
        credential_store: CredentialStore,
    ) -> None:
        respx.post(ACME_TOKEN_URL).mock(return_value=httpx.Response(200, json=TOKEN_RESPONSE))
        revoke = respx.post(ACME_REVOKE_URL).mock(return_value=httpx.Response(200))
        provider = make_registry().get_oauth_provider("acme")
        authorization = DeviceAuthorization(
            device_code="dev", user_code="X", verification_uri="https://a.test"
        )
        await provider.complete_auth(authorization)

        await provider.logout()

        assert revoke.call_count == 1
        assert await provider.is_authenticated() is False
        assert await credential_store.get("git-super-acme") is None

    def test_open_browser_uses_injected_opener(
        self, make_registry: Callable[..., ProviderRegistry]
    ) -> None:
        provider = make_registry().get_oauth_provider("acme")

        assert provider.open_browser("https://auth.acme.test/activate") is True
