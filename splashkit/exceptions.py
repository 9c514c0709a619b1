"""Custom exceptions raised by the splashkit SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .auth.types import AuthorizeForm


class SplashkitError(Exception):
    """Base exception for all SDK specific failures."""


class AuthenticationError(SplashkitError):
    """Raised when an access key or token is missing or rejected by the server."""


class APIError(SplashkitError):
    """Raised when the photo API returns a non-successful response."""

    def __init__(self, message: str, status_code: int, response: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.status_code}: {self.message}"


class AuthFlowError(SplashkitError):
    """Base exception for outcomes of the authorization flow."""


class SignedOutError(AuthFlowError):
    """Raised when a token is requested while no session is signed in."""

    def __init__(self, message: str = "Signed out. Authorize first.") -> None:
        super().__init__(message)


class NeedsLoginError(AuthFlowError):
    """The authorize page asked for a login; carries the CSRF token of the login form."""

    def __init__(self, authenticity_token: str) -> None:
        super().__init__("Login required")
        self.authenticity_token = authenticity_token


class NeedsConfirmAuthorizeFormError(AuthFlowError):
    """Login succeeded but the provider asks to confirm the authorization."""

    def __init__(self, form: AuthorizeForm) -> None:
        super().__init__("Authorization must be confirmed")
        self.form = form


class InvalidCredentialsError(AuthFlowError):
    """The login page rejected the submitted email/password."""

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class ConfirmAuthorizeError(AuthFlowError):
    """Resubmitting the confirm-authorization form did not yield a code."""

    def __init__(self, message: str = "Could not confirm authorization") -> None:
        super().__init__(message)


class FlowStateError(AuthFlowError):
    """A provider page or response did not have the expected shape."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GiveUpError(AuthFlowError):
    """The user abandoned the login form."""

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        super().__init__("Login abandoned" if cause is None else f"Login abandoned: {cause}")
        self.cause = cause


class ServerStartError(AuthFlowError):
    """The local callback server could not be started."""


class BrowserLaunchError(AuthFlowError):
    """The system browser could not be launched."""


class AuthorizationTimeoutError(AuthFlowError):
    """No authorization code arrived in time."""


class AuthorizationCancelledError(AuthFlowError):
    """The authorization was cancelled before it completed."""
