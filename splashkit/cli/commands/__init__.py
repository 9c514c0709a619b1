"""CLI command modules."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from splashkit.auth.credentials import FileTokenStorage, resolve_access_key

_console = Console()


def get_client(host: str, port: int, storage: Optional[FileTokenStorage] = None):
    """Get a SplashkitClient backed by the token file, or exit with an error message."""
    from splashkit.client import SplashkitClient

    if not resolve_access_key():
        _console.print("[red]No access key. Set SPLASHKIT_ACCESS_KEY (and SPLASHKIT_SECRET_KEY to sign in).[/red]")
        raise typer.Exit(1)

    return SplashkitClient(
        storage=storage or FileTokenStorage(),
        callback_host=host,
        callback_port=port,
    )
