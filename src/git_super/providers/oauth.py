"""OAuth-backed AI provider facade."""

import asyncio
from collections.abc import Callable

import httpx
from structlog import get_logger

from git_super.auth.models import DeviceAuthorization, PKCEAuthorizationRequest, TokenRecord
from git_super.auth.oauth.browser import open_browser
from git_super.auth.oauth.flows import (
    DeviceCodeFlow,
    PKCEFlow,
    SleepFunc,
    UserCodeCallback,
)
from git_super.auth.strategies import OAuthAuthStrategy
from git_super.auth.token_manager import TokenManager
from git_super.config.auth import OAuthProviderSettings, OAuthSettings
from git_super.exceptions import OAuthCallbackError


logger = get_logger(__name__)


class OAuthProvider:
    """Ties a provider's interactive login flow to its token manager."""

    def __init__(
        self,
        config: OAuthProviderSettings,
        token_manager: TokenManager,
        *,
        oauth_settings: OAuthSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
        browser: Callable[[str], bool] = open_browser,
    ) -> None:
        self.config = config
        self.token_manager = token_manager
        self.oauth_settings = oauth_settings or OAuthSettings()
        self.auth_strategy = OAuthAuthStrategy(token_manager)
        self._http_client = http_client
        self._sleep = sleep
        self._browser = browser

    @property
    def name(self) -> str:
        return self.config.provider_id

    @property
    def flow(self) -> str:
        return self.config.flow

    def _device_flow(self) -> DeviceCodeFlow:
        return DeviceCodeFlow(
            self.config,
            self.oauth_settings,
            http_client=self._http_client,
            sleep=self._sleep,
        )

    def _pkce_flow(self) -> PKCEFlow:
        return PKCEFlow(
            self.config,
            self.oauth_settings,
            http_client=self._http_client,
            browser=self._browser,
        )

    def open_browser(self, url: str) -> bool:
        return self._browser(url)

    async def get_access_token(self) -> str | None:
        return await self.token_manager.get_access_token()

    async def get_auth_headers(self) -> dict[str, str]:
        """Get authentication headers, refreshing the token if needed."""
        return await self.auth_strategy.get_auth_headers()

    async def is_authenticated(self) -> bool:
        return await self.auth_strategy.is_valid()

    async def initiate_auth(self) -> DeviceAuthorization | PKCEAuthorizationRequest:
        """Start an interactive login.

        Returns:
            The device authorization to show the user, or the PKCE
            authorization request whose URL the user must open

        """
        if self.config.flow == "device_code":
            return await self._device_flow().initiate()
        return self._pkce_flow().build_auth_url()

    async def complete_auth(
        self,
        authorization: DeviceAuthorization | PKCEAuthorizationRequest,
        *,
        code: str | None = None,
        returned_state: str | None = None,
    ) -> TokenRecord:
        """Finish a login started with ``initiate_auth`` and store the tokens.

        Args:
            authorization: Value returned by ``initiate_auth``
            code: Authorization code received on the PKCE redirect
            returned_state: ``state`` received on the PKCE redirect

        """
        if isinstance(authorization, DeviceAuthorization):
            tokens = await self._device_flow().poll_for_token(
                authorization.device_code, authorization.interval
            )
        else:
            if code is None:
                raise OAuthCallbackError("No authorization code received")
            tokens = await self._pkce_flow().exchange_code(
                code,
                authorization.code_verifier,
                returned_state=returned_state,
                expected_state=authorization.state,
            )
        return await self.token_manager.store_tokens(tokens)

    async def login(
        self,
        *,
        on_user_code: UserCodeCallback,
        on_auth_url: Callable[[str], None] | None = None,
        launch_browser: bool = True,
    ) -> TokenRecord:
        """Run the provider's whole interactive flow and store the tokens."""
        if self.config.flow == "device_code":
            tokens = await self._device_flow().execute(on_user_code)
        else:
            tokens = await self._pkce_flow().login(
                launch_browser=launch_browser, on_auth_url=on_auth_url
            )
        record = await self.token_manager.store_tokens(tokens)
        logger.info("provider_login_completed", provider=self.name, flow=self.flow)
        return record

    async def logout(self) -> None:
        """Revoke the token where supported and clear local state."""
        await self.token_manager.revoke_token()
