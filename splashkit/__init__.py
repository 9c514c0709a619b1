"""splashkit - Python SDK for the photo API with OAuth sign in."""

from importlib.metadata import PackageNotFoundError, version

from .auth.scope import AuthScope
from .client import AuthenticatedSession, SplashkitClient
from .exceptions import APIError, AuthenticationError, AuthFlowError, SignedOutError, SplashkitError

__all__ = [
    "SplashkitClient",
    "AuthenticatedSession",
    "AuthScope",
    "SplashkitError",
    "AuthenticationError",
    "AuthFlowError",
    "SignedOutError",
    "APIError",
]

try:
    __version__ = version("splashkit")
except PackageNotFoundError:
    __version__ = "0.1.0"
