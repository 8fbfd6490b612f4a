"""Authentication strategies producing request headers for AI providers."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from structlog import get_logger

from git_super.auth.token_manager import TokenManager
from git_super.exceptions import MissingCredentialError, NoTokenError, TokenExpiredError


logger = get_logger(__name__)


class BaseAuthStrategy(ABC):
    """Uniform capability: headers for the next request, and a validity check."""

    @abstractmethod
    async def get_auth_headers(self) -> dict[str, str]:
        """Get the headers that authenticate a request.

        Raises:
            AuthenticationError: If no usable credential is available

        """

    @abstractmethod
    async def is_valid(self) -> bool:
        """Check whether ``get_auth_headers()`` would currently succeed."""


class ApiKeyAuthStrategy(BaseAuthStrategy):
    """Static API key placed in a header."""

    def __init__(
        self,
        config: Mapping[str, Any] | Any,
        key_name: str,
        *,
        header_name: str = "Authorization",
        header_format: str = "Bearer {key}",
        env_var: str | None = None,
    ) -> None:
        """Initialize the strategy.

        Args:
            config: Mapping or settings object holding the key
            key_name: Key or attribute name to look up in ``config``
            header_name: Header carrying the key
            header_format: Header value template with a ``{key}`` placeholder
            env_var: Environment variable named in the missing-key message

        """
        self.config = config
        self.key_name = key_name
        self.header_name = header_name
        self.header_format = header_format
        self.env_var = env_var

    def _lookup_key(self) -> str | None:
        if isinstance(self.config, Mapping):
            value = self.config.get(self.key_name)
        else:
            value = getattr(self.config, self.key_name, None)
        return value or None

    async def get_auth_headers(self) -> dict[str, str]:
        key = self._lookup_key()
        if key is None:
            raise MissingCredentialError(self.key_name, env_var=self.env_var)
        return {self.header_name: self.header_format.format(key=key)}

    async def is_valid(self) -> bool:
        return self._lookup_key() is not None


class OAuthAuthStrategy(BaseAuthStrategy):
    """Bearer token managed by a ``TokenManager``, refreshed on demand."""

    def __init__(self, token_manager: TokenManager) -> None:
        self.token_manager = token_manager

    @property
    def provider_id(self) -> str:
        return self.token_manager.provider_id

    async def get_auth_headers(self) -> dict[str, str]:
        """Get ``Authorization: Bearer <token>``, refreshing first if needed.

        A valid token that is about to expire is refreshed preemptively; if
        that refresh fails the still-valid token is used.

        Raises:
            TokenExpiredError: If the token is expired and cannot be refreshed
            NoTokenError: If no token string is available despite a valid state

        """
        manager = self.token_manager
        if not await manager.has_valid_token():
            if not await manager.refresh_token():
                raise TokenExpiredError(
                    f"OAuth token for '{self.provider_id}' has expired. "
                    f"Please run: git-super auth login --provider {self.provider_id}"
                )
        elif await manager.needs_refresh():
            if not await manager.refresh_token():
                logger.info("preemptive_refresh_failed", provider=self.provider_id)

        token = await manager.get_access_token()
        if not token:
            raise NoTokenError(
                f"No OAuth token available for '{self.provider_id}'. "
                f"Please run: git-super auth login --provider {self.provider_id}"
            )
        return {"Authorization": f"Bearer {token}"}

    async def is_valid(self) -> bool:
        return await self.token_manager.has_valid_token()


class NoAuthStrategy(BaseAuthStrategy):
    """For credential-less backends such as a local Ollama server."""

    async def get_auth_headers(self) -> dict[str, str]:
        return {}

    async def is_valid(self) -> bool:
        return True
