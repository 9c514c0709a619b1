"""``splashkit`` command: version info and the ``auth`` command group."""

from __future__ import annotations

import logging

try:
    import typer
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    import sys

    print("The splashkit command needs the cli extra: pip install 'splashkit[cli]'")
    sys.exit(1)

from splashkit import __version__

from .commands import auth

app = typer.Typer(
    name="splashkit",
    help="Sign in to the photo API and manage the stored token.",
    no_args_is_help=True,
)
app.add_typer(auth.app, name="auth")


def _print_version() -> None:
    typer.echo(f"splashkit {__version__}")


def _on_version(requested: bool) -> None:
    if requested:
        _print_version()
        raise typer.Exit()


def _enable_debug_logging() -> None:
    """Send splashkit's own log records (state changes, server start) to stderr."""
    package_logger = logging.getLogger("splashkit")
    if any(isinstance(handler, RichHandler) for handler in package_logger.handlers):
        return
    package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False, markup=False))
    package_logger.setLevel(logging.DEBUG)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each step of the sign in."),
    _version: bool = typer.Option(
        False,
        "--version",
        help="Print the version and exit.",
        callback=_on_version,
        is_eager=True,
    ),
) -> None:
    if verbose:
        _enable_debug_logging()


@app.command("version")
def show_version() -> None:
    """Print the version."""
    _print_version()


if __name__ == "__main__":
    app()
