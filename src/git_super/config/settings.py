"""Settings configuration for git-super."""

import contextlib
import os
import tomllib
from pathlib import Path
from typing import Annotated, Any

import orjson
import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from git_super.config.discovery import find_toml_config_file
from git_super.core.validators import parse_comma_separated
from git_super.exceptions import ConfigurationError

from .auth import AuthSettings


__all__ = [
    "Settings",
    "get_settings",
]


logger = structlog.get_logger(__name__)


def _coerce_settings(value: Any, settings_class: type) -> Any:
    """Coerce value to settings class instance.

    Handles: None → default, dict → instance, passthrough existing instances.
    """
    if value is None:
        return settings_class()
    if isinstance(value, settings_class):
        return value
    if isinstance(value, dict):
        return settings_class(**value)
    if hasattr(value, "model_dump"):
        return settings_class(**value.model_dump())
    return value


class Settings(BaseSettings):
    """
    Configuration settings for git-super.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Environment variables take precedence over .env file values.
    TOML configuration files are loaded in the following order:
    1. .gitsuper.toml in current directory
    2. .gitsuper.toml in git repository root
    3. config.toml in user config directory/git_super/ (platform-specific)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    ai_provider: str = Field(default="anthropic", description="Active AI provider")

    # API key providers
    anthropic_api_key: str | None = Field(default=None, repr=False)
    openai_api_key: str | None = Field(default=None, repr=False)

    # GitHub Copilot
    github_client_id: str | None = Field(default=None)
    github_org: str | None = Field(default=None)

    # Azure OpenAI with Azure AD
    azure_tenant_id: str = Field(default="common")
    azure_client_id: str | None = Field(default=None)

    # Generic OIDC
    oidc_issuer: str | None = Field(default=None)
    oidc_client_id: str | None = Field(default=None)
    oidc_token_endpoint: str | None = Field(default=None)
    oidc_device_auth_endpoint: str | None = Field(default=None)
    oidc_revoke_endpoint: str | None = Field(default=None)
    # Comma-separated in the environment
    oidc_scopes: Annotated[list[str] | None, NoDecode] = Field(default=None)

    # Logging
    log_level: str = Field(default="WARNING", description="Log level for the CLI")
    log_json: bool = Field(default=False, description="Emit JSON log lines")
    log_file: Path | None = Field(default=None, description="Append logs to this file")

    auth: AuthSettings = Field(
        default_factory=AuthSettings,
        description="Authentication and credentials configuration",
    )

    @field_validator("auth", mode="before")
    @classmethod
    def validate_auth(cls, v: Any) -> Any:
        return _coerce_settings(v, AuthSettings)

    @field_validator("oidc_scopes", mode="before")
    @classmethod
    def validate_oidc_scopes(cls, v: Any) -> Any:
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return orjson.loads(v)
            return parse_comma_separated(v)
        return v

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Args:
            toml_path: Path to the TOML configuration file

        Returns:
            dict: Configuration data from the TOML file

        Raises:
            ValueError: If the TOML file is invalid or cannot be read
        """
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ValueError(f"Cannot read TOML config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings instance from configuration file.

        Args:
            config_path: Path to configuration file. Can be:
                - None: Auto-discover config file or use CONFIG_FILE env var
                - Path or str: Use this specific config file
            **kwargs: Additional keyword arguments to override config values

        Returns:
            Settings: Configured Settings instance
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ValueError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)
            logger.debug("config_file_loaded", path=str(config_path))

        merged_config = {**config_data, **kwargs}
        return cls(**merged_config)


def get_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings with configuration file support.

    Args:
        config_path: Optional path to configuration file. If None, uses CONFIG_FILE env var
                    or auto-discovers config file.

    Returns:
        Settings: Configured Settings instance

    Raises:
        ConfigurationError: If the configuration cannot be loaded or is invalid
    """
    try:
        overrides: dict[str, Any] = {}
        overrides_json = os.environ.get("GIT_SUPER_CONFIG_OVERRIDES")
        if overrides_json:
            with contextlib.suppress(ValueError):
                overrides = orjson.loads(overrides_json)

        return Settings.from_config(config_path=config_path, **overrides)
    except (OSError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        raise ConfigurationError(f"Configuration error: {e}") from e
