"""Display helpers for authentication commands."""

from datetime import UTC, datetime

from rich import box
from rich.console import Console
from rich.table import Table

from git_super.auth.models import DeviceAuthorization, TokenInfo


def format_time_remaining(expires_at: datetime, now: datetime | None = None) -> str:
    """Format time remaining until expiration.

    Args:
        expires_at: Expiration datetime
        now: Reference time, defaults to the current UTC time

    Returns:
        Formatted string with time remaining or "Expired"
    """
    now = now or datetime.now(UTC)
    time_diff = expires_at - now

    if time_diff.total_seconds() <= 0:
        return "[red]Expired[/red]"

    days = time_diff.days
    hours = time_diff.seconds // 3600
    minutes = (time_diff.seconds % 3600) // 60

    if days:
        return f"{days}d {hours}h remaining"
    return f"{hours}h {minutes}m remaining"


def format_expiry(expires_at: datetime | None) -> str:
    if expires_at is None:
        return "Never"
    return (
        f"{expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')} "
        f"({format_time_remaining(expires_at)})"
    )


def display_device_code(console: Console, authorization: DeviceAuthorization) -> None:
    """Show the user code and where to enter it."""
    console.print(
        f"\nUser Code: [bold green]{authorization.user_code}[/bold green]"
    )
    console.print(
        f"Verification URL: [cyan]{authorization.verification_uri}[/cyan]"
    )
    if authorization.message:
        console.print(f"[dim]{authorization.message}[/dim]")


def display_login_success(
    console: Console, provider_name: str, info: TokenInfo | None
) -> None:
    console.print(f"\n[green]✓[/green] Authenticated with {provider_name}")
    if info is not None and info.expires_at is not None:
        console.print(f"  Token valid until: {format_expiry(info.expires_at)}")


def build_status_table(
    rows: list[tuple[str, TokenInfo | None]],
    *,
    title: str = "OAuth Providers",
) -> Table:
    """Build the provider status table.

    Args:
        rows: Provider name and token info pairs; None means not authenticated
        title: Table title

    Returns:
        Rich table ready to print
    """
    table = Table(
        show_header=True,
        header_style="bold cyan",
        box=box.ROUNDED,
        title=title,
        title_style="bold white",
    )
    table.add_column("Provider", style="cyan")
    table.add_column("Status")
    table.add_column("Expires", style="white")
    table.add_column("Scopes", style="dim")

    for name, info in rows:
        if info is None:
            table.add_row(name, "[yellow]Not authenticated[/yellow]", "-", "-")
            continue
        status = "[green]Valid[/green]" if info.is_valid else "[red]Expired[/red]"
        table.add_row(name, status, format_expiry(info.expires_at), info.scope or "-")

    return table
