"""Authentication configuration settings."""

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from git_super.core.system import get_default_storage_dir
from git_super.core.validators import parse_comma_separated


DEFAULT_REDIRECT_URI = "http://localhost:8080/callback"
DEFAULT_REFRESH_THRESHOLD_MS = 5 * 60 * 1000
DEFAULT_SERVICE_PREFIX = "git-super"


class OAuthProviderSettings(BaseModel):
    """Endpoints and client registration for one OAuth identity provider."""

    provider_id: str = Field(
        ...,
        pattern=r"^[a-z0-9][a-z0-9_-]*$",
        description="Provider identifier, also used in the credential service name",
    )
    client_id: str = Field(..., min_length=1, description="OAuth client ID")
    client_secret: str | None = Field(
        default=None,
        repr=False,
        description="OAuth client secret (confidential clients only)",
    )
    scopes: list[str] = Field(default_factory=list, description="Requested scopes")
    token_endpoint: str = Field(..., description="Token endpoint URL")
    device_auth_endpoint: str | None = Field(
        default=None, description="Device authorization endpoint (RFC 8628)"
    )
    auth_endpoint: str | None = Field(
        default=None, description="Authorization endpoint for the PKCE flow"
    )
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Redirect URI registered for the PKCE flow",
    )
    revoke_endpoint: str | None = Field(
        default=None, description="Token revocation endpoint (RFC 7009)"
    )
    refresh_threshold_ms: int = Field(
        default=DEFAULT_REFRESH_THRESHOLD_MS,
        ge=0,
        description="Refresh tokens expiring within this many milliseconds",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def parse_scopes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_comma_separated(v.replace(" ", ","))
        return v

    @model_validator(mode="after")
    def require_grant_endpoint(self) -> "OAuthProviderSettings":
        if not self.device_auth_endpoint and not self.auth_endpoint:
            raise ValueError(
                f"Provider '{self.provider_id}' needs either device_auth_endpoint "
                "or auth_endpoint"
            )
        return self

    @property
    def flow(self) -> Literal["device_code", "pkce"]:
        """Interactive grant used to log in to this provider."""
        return "device_code" if self.device_auth_endpoint else "pkce"


class OAuthSettings(BaseSettings):
    """Timeouts and limits for interactive OAuth flows."""

    model_config = SettingsConfigDict(
        env_prefix="GIT_SUPER_OAUTH_",
        case_sensitive=False,
        extra="ignore",
    )

    request_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for OAuth HTTP requests"
    )
    max_poll_attempts: int = Field(
        default=180,
        ge=1,
        description="Maximum device-code polling attempts before giving up",
    )
    callback_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for the PKCE browser callback",
    )
    verbose_api: bool = Field(
        default=False,
        validation_alias=AliasChoices("verbose_api", "GIT_SUPER_VERBOSE_API"),
        description="Log full HTTP error bodies instead of a truncated preview",
    )


class CredentialStorageSettings(BaseSettings):
    """Where and how OAuth tokens are persisted."""

    model_config = SettingsConfigDict(
        env_prefix="GIT_SUPER_STORAGE_",
        case_sensitive=False,
        extra="ignore",
    )

    storage_dir: Path = Field(
        default_factory=get_default_storage_dir,
        description="Directory holding the encrypted credentials file",
    )
    file_name: str = Field(
        default="credentials.enc", description="Encrypted credentials file name"
    )
    use_keychain: bool = Field(
        default=True,
        description="Use the OS keychain when one is available",
    )
    service_prefix: str = Field(
        default=DEFAULT_SERVICE_PREFIX,
        description="Prefix of the per-provider credential service name",
    )
    keychain_account: str = Field(
        default="default", description="Account name used for keychain entries"
    )
    kdf_iterations: int = Field(
        default=100_000,
        ge=100_000,
        description="PBKDF2 iterations for the file encryption key",
    )

    @field_validator("storage_dir", mode="after")
    @classmethod
    def expand_storage_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def storage_file(self) -> Path:
        """Full path of the encrypted credentials file."""
        return self.storage_dir / self.file_name


class AuthSettings(BaseModel):
    """Authentication and credentials configuration."""

    storage: CredentialStorageSettings = Field(
        default_factory=CredentialStorageSettings,
        description="Credential storage settings",
    )
    oauth: OAuthSettings = Field(
        default_factory=OAuthSettings,
        description="OAuth flow settings",
    )
    providers: dict[str, OAuthProviderSettings] = Field(
        default_factory=dict,
        description="Additional OAuth providers keyed by name",
    )

    @field_validator("providers", mode="before")
    @classmethod
    def default_provider_ids(cls, v: Any) -> Any:
        # TOML tables are keyed by name; provider_id defaults to that key.
        if isinstance(v, dict):
            return {
                name: {"provider_id": name, **conf} if isinstance(conf, dict) else conf
                for name, conf in v.items()
            }
        return v
