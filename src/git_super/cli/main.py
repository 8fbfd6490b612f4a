"""Main entry point for the git-super CLI."""

from typing import Annotated

import typer

from git_super import __version__
from git_super.cli.commands.auth import app as auth_app
from git_super.config.settings import get_settings
from git_super.core.logging import setup_logging
from git_super.exceptions import ConfigurationError


app = typer.Typer(
    name="git-super",
    help="AI commit messages with OAuth/SSO provider authentication",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(auth_app, name="auth")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"git-super {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    try:
        settings = get_settings()
    except ConfigurationError:
        # The command itself reports the configuration error
        setup_logging(log_level_name="DEBUG" if verbose else "WARNING")
        return
    setup_logging(
        json_logs=settings.log_json,
        log_level_name="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file,
    )


@app.callback()
def app_main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """git-super command line interface."""
    _configure_logging(verbose)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
