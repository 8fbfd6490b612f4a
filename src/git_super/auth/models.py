"""Data models for OAuth tokens and interactive authorization."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TokenRecord(BaseModel):
    """The unit persisted per provider.

    Stored with camelCase keys (``accessToken``, ``expiresAt``...) so the
    on-disk layout is the same whichever backend holds it. ``expires_at`` is
    computed once when the record is created and never recomputed.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    access_token: str = Field(..., repr=False, description="Opaque bearer credential")
    refresh_token: str | None = Field(default=None, repr=False)
    token_type: str = Field(default="Bearer")
    scope: str = Field(default="", description="Space-joined granted scopes")
    issued_at: datetime
    expires_at: datetime | None = Field(
        default=None, description="Absent for non-expiring tokens"
    )

    def to_storage(self) -> dict[str, Any]:
        """Serialize for a storage backend."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OAuthTokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 section 5.1)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_in: int | None = Field(default=None, ge=0)
    token_type: str | None = None
    scope: str | None = None


class DeviceAuthorization(BaseModel):
    """Device authorization response (RFC 8628 section 3.2).

    Lives in memory only. ``device_code`` is a short-lived bearer secret
    and is excluded from ``repr``.
    """

    device_code: str = Field(..., repr=False)
    user_code: str
    # Azure AD and Google spell it verification_url
    verification_uri: str = Field(
        ..., validation_alias=AliasChoices("verification_uri", "verification_url")
    )
    verification_uri_complete: str | None = None
    expires_in: int = Field(default=900, ge=0)
    interval: int = Field(default=5, ge=0)
    message: str | None = None

    @model_validator(mode="after")
    def default_complete_uri(self) -> "DeviceAuthorization":
        if not self.verification_uri_complete:
            self.verification_uri_complete = self.verification_uri
        return self


class PKCEAuthorizationRequest(BaseModel):
    """Everything needed to finish an Authorization Code + PKCE login."""

    url: str
    code_verifier: str = Field(..., repr=False)
    code_challenge: str
    state: str


class TokenInfo(BaseModel):
    """Read-only token projection for status reporting."""

    has_token: bool
    expires_at: datetime | None = None
    scope: str = ""
    issued_at: datetime | None = None
    is_valid: bool


class TokenState(StrEnum):
    """Lifecycle state of a provider's token."""

    NO_TOKEN = "no_token"
    CACHED = "cached"
    EXPIRED = "expired"
    REFRESHING = "refreshing"
