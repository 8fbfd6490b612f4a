"""Per-provider OAuth token lifecycle.

One ``TokenManager`` per provider owns the in-process token cache and the
refresh coordination. At most one refresh request is in flight per instance;
concurrent callers of ``refresh_token()`` await the same outcome.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import httpx
from pydantic import ValidationError
from structlog import get_logger

from git_super.auth.credential_store import CredentialStore
from git_super.auth.models import OAuthTokenResponse, TokenInfo, TokenRecord, TokenState
from git_super.auth.oauth.http import (
    OAuthHTTPClient,
    log_http_error_compact,
    parse_json_body,
)
from git_super.config.auth import OAuthProviderSettings
from git_super.exceptions import CredentialsStorageError


logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class TokenManager:
    """Authoritative token state for one OAuth provider."""

    def __init__(
        self,
        config: OAuthProviderSettings,
        credential_store: CredentialStore,
        *,
        service_prefix: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utcnow,
        request_timeout: float = 30.0,
        verbose_api: bool = False,
    ) -> None:
        """Initialize the token manager.

        Args:
            config: Provider endpoints and client registration
            credential_store: Durable storage for the provider's token record
            service_prefix: Credential service name prefix, defaults to the
                store's prefix
            http_client: Optional shared httpx client for connection pooling
            clock: Returns the current UTC time
            request_timeout: Timeout in seconds for refresh and revoke requests
            verbose_api: Log full HTTP error bodies

        """
        self.config = config
        self.credential_store = credential_store
        prefix = service_prefix or credential_store.service_prefix
        self.service_name = f"{prefix}-{config.provider_id}"
        self._http = OAuthHTTPClient(http_client, timeout=request_timeout)
        self._clock = clock
        self._verbose_api = verbose_api
        self._cached: TokenRecord | None = None
        self._refresh_task: asyncio.Task[bool] | None = None

    @property
    def provider_id(self) -> str:
        return self.config.provider_id

    @property
    def refresh_threshold(self) -> timedelta:
        return timedelta(milliseconds=self.config.refresh_threshold_ms)

    async def _load(self) -> TokenRecord | None:
        if self._cached is None:
            self._cached = await self.credential_store.get(self.service_name)
        return self._cached

    def _is_valid(self, record: TokenRecord) -> bool:
        if record.expires_at is None:
            return True
        return record.expires_at > self._clock()

    async def get_access_token(self) -> str | None:
        """Return the cached or stored access token without refreshing it."""
        record = await self._load()
        return record.access_token if record else None

    async def has_valid_token(self) -> bool:
        """Check whether a token exists and has not expired.

        Tokens without an expiry are assumed valid.
        """
        record = await self._load()
        return record is not None and self._is_valid(record)

    async def needs_refresh(self) -> bool:
        """Check whether the token expires within the refresh threshold."""
        record = await self._load()
        if record is None or record.expires_at is None:
            return False
        return record.expires_at <= self._clock() + self.refresh_threshold

    async def store_tokens(self, tokens: OAuthTokenResponse) -> TokenRecord:
        """Normalize a token response, persist it and update the cache.

        The cache changes only after the record is durable.

        Raises:
            CredentialsStorageError: If the record cannot be persisted

        """
        now = self._clock()
        expires_at = (
            now + timedelta(seconds=tokens.expires_in)
            if tokens.expires_in is not None
            else None
        )
        record = TokenRecord(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type or "Bearer",
            scope=tokens.scope or " ".join(self.config.scopes),
            issued_at=now,
            expires_at=expires_at,
        )
        await self.credential_store.set(self.service_name, record)
        self._cached = record
        logger.debug(
            "tokens_stored",
            provider=self.provider_id,
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        return record

    async def refresh_token(self) -> bool:
        """Refresh the access token, sharing one request among concurrent callers.

        Returns:
            True if a new token was stored. False when there is no refresh
            token, the provider rejects it, or the request fails.

        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._run_refresh())
        # A cancelled caller must not cancel the refresh other callers await
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> bool:
        try:
            return await self._do_refresh()
        finally:
            self._refresh_task = None

    async def _do_refresh(self) -> bool:
        record = await self._load()
        if record is None or not record.refresh_token:
            logger.info(
                "token_refresh_skipped",
                provider=self.provider_id,
                reason="no_refresh_token",
            )
            return False

        data = {
            "grant_type": "refresh_token",
            "refresh_token": record.refresh_token,
            "client_id": self.config.client_id,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            response = await self._http.post_form(self.config.token_endpoint, data)
        except httpx.HTTPError as e:
            logger.warning(
                "token_refresh_failed",
                provider=self.provider_id,
                error=str(e),
            )
            return False

        if not response.is_success:
            log_http_error_compact("Token refresh", response, verbose=self._verbose_api)
            return False

        try:
            tokens = OAuthTokenResponse.model_validate(parse_json_body(response))
        except (ValidationError, ValueError):
            logger.error(
                "token_refresh_invalid_response",
                provider=self.provider_id,
                status_code=response.status_code,
            )
            return False

        if not tokens.refresh_token:
            # Refresh token rotation is optional
            tokens = tokens.model_copy(update={"refresh_token": record.refresh_token})

        try:
            await self.store_tokens(tokens)
        except CredentialsStorageError as e:
            logger.error(
                "token_refresh_store_failed",
                provider=self.provider_id,
                error=str(e),
            )
            return False

        logger.info(
            "token_refresh_success",
            provider=self.provider_id,
            expires_in=tokens.expires_in,
        )
        return True

    async def revoke_token(self, revoke_endpoint: str | None = None) -> None:
        """Revoke the token at the provider and clear local state.

        The revocation request is best effort; local state is cleared even
        when it fails.

        Args:
            revoke_endpoint: Overrides the configured revocation endpoint

        """
        endpoint = revoke_endpoint or self.config.revoke_endpoint
        try:
            record = await self._load()
            if endpoint and record is not None:
                await self._post_revocation(endpoint, record.access_token)
        finally:
            self._cached = None
            await self.credential_store.delete(self.service_name)
            logger.info("tokens_cleared", provider=self.provider_id)

    async def _post_revocation(self, endpoint: str, access_token: str) -> None:
        try:
            response = await self._http.post_form(
                endpoint,
                {"token": access_token, "client_id": self.config.client_id},
            )
        except httpx.HTTPError as e:
            logger.warning(
                "token_revoke_failed",
                provider=self.provider_id,
                error=str(e),
            )
            return
        if response.is_success:
            logger.info("token_revoked", provider=self.provider_id)
        else:
            logger.warning(
                "token_revoke_rejected",
                provider=self.provider_id,
                status_code=response.status_code,
            )

    async def get_token_info(self) -> TokenInfo | None:
        """Read-only projection of the stored token, or None if there is none."""
        record = await self._load()
        if record is None:
            return None
        return TokenInfo(
            has_token=True,
            expires_at=record.expires_at,
            scope=record.scope,
            issued_at=record.issued_at,
            is_valid=self._is_valid(record),
        )

    async def get_state(self) -> TokenState:
        """Report the token's lifecycle state."""
        if self._refresh_task is not None:
            return TokenState.REFRESHING
        record = await self._load()
        if record is None:
            return TokenState.NO_TOKEN
        return TokenState.CACHED if self._is_valid(record) else TokenState.EXPIRED
