"""Interactive OAuth 2.0 grants.

``DeviceCodeFlow`` implements the Device Authorization Grant (RFC 8628) and
``PKCEFlow`` the Authorization Code grant with PKCE (RFC 7636). Both return
the provider's raw ``OAuthTokenResponse``; turning it into a stored
``TokenRecord`` is the token manager's job.
"""

import asyncio
import base64
import hashlib
import inspect
import secrets
import urllib.parse
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from git_super.auth.models import (
    DeviceAuthorization,
    OAuthTokenResponse,
    PKCEAuthorizationRequest,
)
from git_super.auth.oauth.browser import open_browser
from git_super.auth.oauth.callback import LoopbackCallbackServer
from git_super.auth.oauth.http import (
    OAuthHTTPClient,
    log_http_error_compact,
    parse_json_body,
    truncate_error_text,
)
from git_super.config.auth import OAuthProviderSettings, OAuthSettings
from git_super.exceptions import (
    AuthorizationError,
    AuthorizationTimeoutError,
    ConfigurationError,
    DeviceAuthorizationError,
    DeviceCodeExpiredError,
    StateMismatchError,
    TokenExchangeError,
    UserDeniedError,
)


logger = get_logger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

SleepFunc = Callable[[float], Awaitable[Any]]
UserCodeCallback = Callable[[DeviceAuthorization], Awaitable[None] | None]


class _AuthorizationPending(Exception):
    """The user has not finished authorizing yet."""


class _SlowDown(Exception):
    """The provider asked us to poll less often."""


class _TransientPollError(Exception):
    """Network failure or unreadable response while polling."""


class DeviceCodeFlow:
    """Device Authorization Grant executor."""

    def __init__(
        self,
        config: OAuthProviderSettings,
        oauth_settings: OAuthSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the flow.

        Args:
            config: Provider endpoints and client registration
            oauth_settings: Timeouts and polling limits
            http_client: Optional shared httpx client for connection pooling
            sleep: Coroutine used to wait between polls

        """
        if not config.device_auth_endpoint:
            raise ConfigurationError(
                f"Provider '{config.provider_id}' has no device authorization endpoint"
            )
        self.config = config
        self.oauth_settings = oauth_settings or OAuthSettings()
        self._http = OAuthHTTPClient(
            http_client, timeout=self.oauth_settings.request_timeout
        )
        self._sleep = sleep

    async def initiate(self) -> DeviceAuthorization:
        """Request a device and user code.

        Raises:
            DeviceAuthorizationError: If the endpoint is unreachable, answers
                non-2xx, or returns an unusable body

        """
        endpoint = self.config.device_auth_endpoint
        assert endpoint is not None
        data = {
            "client_id": self.config.client_id,
            "scope": " ".join(self.config.scopes),
        }

        try:
            response = await self._http.post_form(endpoint, data)
        except httpx.HTTPError as e:
            raise DeviceAuthorizationError(
                f"Device authorization failed: {e}", reason=str(e)
            ) from e

        if not response.is_success:
            log_http_error_compact(
                "Device authorization",
                response,
                verbose=self.oauth_settings.verbose_api,
            )
            raise DeviceAuthorizationError(
                f"Device authorization failed: {response.status_code} "
                f"{response.reason_phrase}",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )

        try:
            authorization = DeviceAuthorization.model_validate(
                parse_json_body(response)
            )
        except ValueError as e:
            raise DeviceAuthorizationError(
                "Device authorization returned an invalid response",
                status_code=response.status_code,
                reason=str(e),
            ) from e

        logger.info(
            "device_authorization_started",
            provider=self.config.provider_id,
            verification_uri=authorization.verification_uri,
            expires_in=authorization.expires_in,
            interval=authorization.interval,
        )
        return authorization

    async def poll_for_token(
        self, device_code: str, interval: float
    ) -> OAuthTokenResponse:
        """Poll the token endpoint until the user approves or denies.

        Sleeps ``interval`` seconds before every attempt; after ``slow_down``
        the next wait is one interval longer.

        Raises:
            DeviceCodeExpiredError: If the device code expired
            UserDeniedError: If the user denied the request
            AuthorizationError: For any other provider error code
            AuthorizationTimeoutError: If the attempt budget runs out

        """
        max_attempts = self.oauth_settings.max_poll_attempts

        def poll_wait(retry_state: RetryCallState) -> float:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            return interval * 2 if isinstance(exc, _SlowDown) else interval

        def before_sleep_log(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            if isinstance(exc, _AuthorizationPending):
                return
            logger.debug(
                "device_poll_retry",
                provider=self.config.provider_id,
                attempt=retry_state.attempt_number,
                reason=type(exc).__name__ if exc else None,
                error=str(exc) if exc else None,
            )

        await self._sleep(interval)
        try:
            async for attempt in AsyncRetrying(
                wait=poll_wait,
                stop=stop_after_attempt(max_attempts),
                retry=retry_if_exception_type(
                    (_AuthorizationPending, _SlowDown, _TransientPollError)
                ),
                before_sleep=before_sleep_log,
                sleep=self._sleep,
            ):
                with attempt:
                    return await self._poll_once(device_code)
        except RetryError as e:
            logger.warning(
                "device_poll_exhausted",
                provider=self.config.provider_id,
                attempts=max_attempts,
            )
            raise AuthorizationTimeoutError() from e

        raise AuthorizationTimeoutError()  # pragma: no cover

    async def _poll_once(self, device_code: str) -> OAuthTokenResponse:
        data = {
            "grant_type": DEVICE_CODE_GRANT_TYPE,
            "client_id": self.config.client_id,
            "device_code": device_code,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            response = await self._http.post_form(self.config.token_endpoint, data)
        except httpx.HTTPError as e:
            logger.warning(
                "device_poll_network_error",
                provider=self.config.provider_id,
                error=str(e),
            )
            raise _TransientPollError(str(e)) from e

        try:
            payload = parse_json_body(response)
        except ValueError as e:
            logger.warning(
                "device_poll_invalid_response",
                provider=self.config.provider_id,
                status_code=response.status_code,
            )
            raise _TransientPollError("Unreadable token response") from e

        error = payload.get("error")
        if error:
            _raise_for_device_error(str(error), payload.get("error_description"))

        if response.status_code >= 500:
            raise _TransientPollError(f"Token endpoint returned {response.status_code}")

        if not payload.get("access_token"):
            raise AuthorizationError(
                "Token response did not include an access token",
                error_code="invalid_response",
            )

        try:
            token = OAuthTokenResponse.model_validate(payload)
        except ValueError as e:
            raise AuthorizationError(
                "Token response is invalid", error_code="invalid_response"
            ) from e

        logger.info("device_authorization_completed", provider=self.config.provider_id)
        return token

    async def execute(self, on_user_code: UserCodeCallback) -> OAuthTokenResponse:
        """Run the whole grant: initiate, show the code, poll.

        Args:
            on_user_code: Displays the user code and verification URI; awaited
                before polling starts when it returns an awaitable

        """
        authorization = await self.initiate()
        shown = on_user_code(authorization)
        if inspect.isawaitable(shown):
            await shown
        return await self.poll_for_token(
            authorization.device_code, authorization.interval
        )


def _raise_for_device_error(error: str, description: str | None) -> None:
    if error == "authorization_pending":
        raise _AuthorizationPending(error)
    if error == "slow_down":
        raise _SlowDown(error)
    if error == "expired_token":
        raise DeviceCodeExpiredError()
    if error == "access_denied":
        raise UserDeniedError()
    raise AuthorizationError(
        f"Authorization failed: {description or error}",
        error_code=error,
        description=description,
    )


class PKCEFlow:
    """Authorization Code grant with PKCE (S256)."""

    def __init__(
        self,
        config: OAuthProviderSettings,
        oauth_settings: OAuthSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        browser: Callable[[str], bool] = open_browser,
    ) -> None:
        if not config.auth_endpoint:
            raise ConfigurationError(
                f"Provider '{config.provider_id}' has no authorization endpoint"
            )
        self.config = config
        self.oauth_settings = oauth_settings or OAuthSettings()
        self._http = OAuthHTTPClient(
            http_client, timeout=self.oauth_settings.request_timeout
        )
        self._browser = browser

    @staticmethod
    def generate_pkce_pair() -> tuple[str, str]:
        """Generate PKCE code verifier and challenge pair using SHA256.

        Returns:
            Tuple of (code_verifier, code_challenge)

        """
        # 43 URL-safe characters, the RFC 7636 minimum
        code_verifier = secrets.token_urlsafe(32)
        code_challenge = (
            base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
            .decode()
            .rstrip("=")
        )
        return code_verifier, code_challenge

    def build_auth_url(self) -> PKCEAuthorizationRequest:
        """Build the authorization URL with a fresh verifier and state."""
        state = secrets.token_urlsafe(32)
        code_verifier, code_challenge = self.generate_pkce_pair()

        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.config.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        endpoint = self.config.auth_endpoint
        assert endpoint is not None
        separator = "&" if "?" in endpoint else "?"
        url = f"{endpoint}{separator}{urllib.parse.urlencode(params)}"

        return PKCEAuthorizationRequest(
            url=url,
            code_verifier=code_verifier,
            code_challenge=code_challenge,
            state=state,
        )

    async def exchange_code(
        self,
        code: str,
        code_verifier: str,
        *,
        returned_state: str | None,
        expected_state: str,
    ) -> OAuthTokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the redirect
            code_verifier: Verifier generated by ``build_auth_url``
            returned_state: ``state`` received on the redirect
            expected_state: ``state`` sent in the authorization request

        Raises:
            StateMismatchError: If the states differ; nothing is sent
            TokenExchangeError: If the endpoint fails or answers non-2xx

        """
        if not returned_state or returned_state != expected_state:
            logger.warning("oauth_state_mismatch", provider=self.config.provider_id)
            raise StateMismatchError()

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "code_verifier": code_verifier,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            response = await self._http.post_form(self.config.token_endpoint, data)
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token exchange failed: {e}") from e

        if not response.is_success:
            log_http_error_compact(
                "Token exchange", response, verbose=self.oauth_settings.verbose_api
            )
            raise TokenExchangeError(
                f"Token exchange failed: {response.status_code} - "
                f"{truncate_error_text(response.text)}",
                status_code=response.status_code,
                response_text=response.text,
            )

        try:
            tokens = OAuthTokenResponse.model_validate(parse_json_body(response))
        except ValueError as e:
            raise TokenExchangeError(
                "Token exchange returned an invalid token response",
                status_code=response.status_code,
            ) from e

        logger.info("oauth_login_completed", provider=self.config.provider_id)
        return tokens

    async def login(
        self,
        *,
        launch_browser: bool = True,
        on_auth_url: Callable[[str], None] | None = None,
    ) -> OAuthTokenResponse:
        """Run the whole grant through a loopback redirect receiver.

        Args:
            launch_browser: Try to open the authorization URL automatically
            on_auth_url: Receives the authorization URL, for manual opening

        Raises:
            OAuthCallbackError: If the callback fails or times out
            StateMismatchError: If the redirect carries a foreign state
            TokenExchangeError: If the code exchange fails

        """
        request = self.build_auth_url()

        with LoopbackCallbackServer(
            self.config.redirect_uri, request.state
        ) as receiver:
            if on_auth_url is not None:
                on_auth_url(request.url)
            if launch_browser:
                self._browser(request.url)
            callback = await receiver.wait(self.oauth_settings.callback_timeout)

        assert callback.authorization_code is not None
        return await self.exchange_code(
            callback.authorization_code,
            request.code_verifier,
            returned_state=callback.state,
            expected_state=request.state,
        )
