"""Authentication commands for the splashkit CLI."""

from __future__ import annotations

import webbrowser
from datetime import datetime, timezone
from typing import List, Optional

import typer
from rich.console import Console

from splashkit.auth.constants import DEFAULT_CALLBACK_HOST, DEFAULT_CALLBACK_PORT
from splashkit.auth.credentials import FileTokenStorage
from splashkit.auth.login_form import LoginFormController
from splashkit.auth.scope import AuthScope
from splashkit.auth.types import mask_secret
from splashkit.exceptions import AuthenticationError, AuthFlowError

from ..constants import LOGIN_TIMEOUT_SECONDS, MAX_LOGIN_ATTEMPTS
from . import get_client

app = typer.Typer(help="Manage authentication")
console = Console()


class ConsoleLoginFormController(LoginFormController):
    """Prompts for email and password on the terminal."""

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS) -> None:
        super().__init__()
        self._attempts = 0
        self._max_attempts = max_attempts

    def activate_form(self, cause: Optional[BaseException]) -> None:
        if cause is not None:
            console.print(f"[red]{cause}[/red]")
        if self._attempts >= self._max_attempts:
            self.give_up(cause)
            return
        self._attempts += 1
        email = typer.prompt("Email")
        password = typer.prompt("Password", hide_input=True)
        self.submit(email, password)


def _open_browser(url: str) -> None:
    console.print("\n[bold]Opening browser for authorization...[/bold]")
    console.print(f"If it doesn't open, visit: {url}\n")
    webbrowser.open(url)
    console.print("[dim]Waiting for authorization...[/dim]")


@app.command()
def login(
    browser: bool = typer.Option(True, "--browser/--scripted", help="Sign in through the browser or the terminal"),
    host: str = typer.Option(DEFAULT_CALLBACK_HOST, help="Local callback server host"),
    port: int = typer.Option(DEFAULT_CALLBACK_PORT, help="Local callback server port"),
    scope: Optional[List[str]] = typer.Option(None, "--scope", help="Scope to request (repeatable, default: all)"),
) -> None:
    """Sign in to the photo API.

    Opens your browser to authorize the application, or with --scripted asks
    for your email and password here.
    """
    client = get_client(host, port)
    try:
        if client.is_signed_in:
            console.print("[yellow]You are already authenticated.[/yellow]")
            console.print("Run [bold]splashkit auth logout[/bold] first to re-authenticate.")
            raise typer.Exit(1)

        scopes = AuthScope(scope) if scope else AuthScope.ALL
        acquirer = _open_browser if browser else ConsoleLoginFormController()

        try:
            session = client.sign_in(acquirer, scopes, timeout=LOGIN_TIMEOUT_SECONDS)
        except (AuthFlowError, AuthenticationError) as e:
            console.print(f"\n[red]Authentication failed: {e}[/red]")
            raise typer.Exit(1)

        console.print("\n[green]Successfully authenticated![/green]")
        console.print(f"  Scope: {session.token.scope.value}")
    finally:
        client.close()


@app.command()
def logout() -> None:
    """Remove the stored token."""
    storage = FileTokenStorage()
    if storage.load() is None:
        console.print("[yellow]No credentials found.[/yellow]")
        return
    storage.clear()
    console.print("[green]Successfully logged out.[/green]")


@app.command()
def status() -> None:
    """Show current authentication status."""
    storage = FileTokenStorage()
    token = storage.load()

    if token is None:
        console.print("[yellow]Not authenticated.[/yellow]")
        console.print("Run [bold]splashkit auth login[/bold] to authenticate.")
        raise typer.Exit(1)

    console.print("[green]Authenticated[/green]")
    console.print(f"  Token: {mask_secret(token.access_token)}")
    console.print(f"  Scope: {token.scope.value or '-'}")
    if token.created_at:
        created = datetime.fromtimestamp(token.created_at, tz=timezone.utc).isoformat()
        console.print(f"  Created: {created}")
    console.print(f"  Stored in: {storage.path}")
