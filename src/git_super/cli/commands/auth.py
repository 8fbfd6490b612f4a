"""Authentication commands: login, logout and status."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from structlog import get_logger

from git_super.auth.models import DeviceAuthorization, TokenInfo
from git_super.cli.commands.auth_display_helpers import (
    build_status_table,
    display_device_code,
    display_login_success,
)
from git_super.config.settings import get_settings
from git_super.exceptions import ConfigurationError, GitSuperError
from git_super.providers import OAuthProvider, ProviderRegistry
from git_super.providers.registry import API_KEY_PROVIDERS


app = typer.Typer(
    name="auth",
    help="Authenticate with OAuth/SSO AI providers",
    no_args_is_help=True,
)

console = Console(soft_wrap=True)
logger = get_logger(__name__)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a TOML configuration file",
        exists=True,
        dir_okay=False,
    ),
]


def get_registry(config_path: Path | None = None) -> ProviderRegistry:
    """Build a provider registry from the loaded settings."""
    return ProviderRegistry(get_settings(config_path))


async def _run_login(
    provider: OAuthProvider, *, launch_browser: bool
) -> TokenInfo | None:
    def show_user_code(authorization: DeviceAuthorization) -> None:
        display_device_code(console, authorization)
        url = authorization.verification_uri_complete or authorization.verification_uri
        if launch_browser and provider.open_browser(url):
            console.print("\nBrowser opened. Complete authentication in your browser.")
        else:
            console.print("\nOpen the URL above in a browser to continue.")
        console.print(
            f"Waiting for authorization "
            f"(expires in {authorization.expires_in // 60} minutes)..."
        )

    def show_auth_url(url: str) -> None:
        console.print("\nOpen this URL to authorize git-super:")
        console.print(f"[cyan]{url}[/cyan]")
        console.print("Waiting for the browser callback...")

    await provider.login(
        on_user_code=show_user_code,
        on_auth_url=show_auth_url,
        launch_browser=launch_browser,
    )
    return await provider.token_manager.get_token_info()


@app.command(name="login")
def login_command(
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="OAuth provider to log in to"),
    ] = None,
    no_browser: Annotated[
        bool,
        typer.Option("--no-browser", help="Print the URL instead of opening a browser"),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Log in to an OAuth provider.

    Device-code providers show a user code to enter in the browser; PKCE
    providers open the authorization page and wait for its redirect.

    Examples:
        git-super auth login --provider github-copilot
        git-super auth login --provider azure-openai --no-browser

    """
    try:
        registry = get_registry(config)
        if provider is None:
            console.print("Usage: git-super auth login --provider <name>")
            console.print("\nAvailable OAuth providers:")
            for name in registry.oauth_provider_names():
                console.print(f"  • {name}")
            raise typer.Exit(1)

        oauth_provider = registry.get_oauth_provider(provider)
        console.print(f"Initiating OAuth authentication for [bold]{provider}[/bold]...")
        info = asyncio.run(_run_login(oauth_provider, launch_browser=not no_browser))
        display_login_success(console, provider, info)

    except KeyboardInterrupt:
        console.print("\n[yellow]Login cancelled by user.[/yellow]")
        raise typer.Exit(1) from None
    except GitSuperError as e:
        logger.debug("login_failed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]✗[/red] Authentication failed: {e}")
        raise typer.Exit(1) from e


async def _logout_all(registry: ProviderRegistry) -> None:
    for oauth_provider in registry.configured_oauth_providers():
        try:
            await oauth_provider.logout()
            console.print(f"  [green]✓[/green] {oauth_provider.name}")
        except GitSuperError as e:
            console.print(f"  [yellow]![/yellow] {oauth_provider.name}: {e}")


@app.command(name="logout")
def logout_command(
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Provider to log out from"),
    ] = None,
    all_providers: Annotated[
        bool,
        typer.Option("--all", "-a", help="Log out from every OAuth provider"),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Revoke tokens and remove them from local storage.

    Without options, logs out from the current AI provider.
    """
    try:
        registry = get_registry(config)
        if all_providers:
            console.print("Logging out from all providers...")
            asyncio.run(_logout_all(registry))
            console.print("[green]✓[/green] Logged out from all providers")
            return

        name = provider or registry.settings.ai_provider
        oauth_provider = registry.get_oauth_provider(name)
        asyncio.run(oauth_provider.logout())
        console.print(f"[green]✓[/green] Logged out from {name}")

    except GitSuperError as e:
        console.print(f"[red]✗[/red] Logout failed: {e}")
        raise typer.Exit(1) from e


async def _collect_status(
    registry: ProviderRegistry,
) -> tuple[list[tuple[str, TokenInfo | None]], bool]:
    rows = [
        (p.name, await p.token_manager.get_token_info())
        for p in registry.configured_oauth_providers()
    ]
    try:
        current_valid = await registry.get_strategy().is_valid()
    except ConfigurationError as e:
        logger.debug("current_provider_not_configured", error=str(e))
        current_valid = False
    return rows, current_valid


@app.command(name="status")
def status_command(config: ConfigOption = None) -> None:
    """Show the authentication state of every provider."""
    try:
        registry = get_registry(config)
        rows, current_valid = asyncio.run(_collect_status(registry))
    except GitSuperError as e:
        console.print(f"[red]✗[/red] Status check failed: {e}")
        raise typer.Exit(1) from e

    current = registry.settings.ai_provider
    store = registry.credential_store
    console.print(f"Current Provider: [cyan]{current}[/cyan]")
    console.print(
        f"Credential Storage: {store.get_storage_method()} [dim]({store.get_location()})[/dim]"
    )
    console.print(build_status_table(rows))

    if current in API_KEY_PROVIDERS:
        if current_valid:
            console.print(f"[green]✓[/green] {current}: API key configured")
        else:
            env_var = API_KEY_PROVIDERS[current].env_var
            console.print(f"[red]✗[/red] {current}: No API key (set {env_var})")
    elif not registry.is_oauth_provider(current):
        console.print(f"[green]✓[/green] {current}: No authentication required")
