"""Authentication utilities for the splashkit SDK.

Lightweight imports (scope, types, storage, context) are eager. Heavyweight
imports (authorizer, flow: they pull in http.server, threading and bs4) are lazy to
avoid penalizing SDK users who only make public API calls.
"""

from .context import AuthContext, CachedAuthContext
from .credentials import (
    FileTokenStorage,
    KeyringTokenStorage,
    NoTokenStorage,
    TokenStorage,
    resolve_access_key,
    resolve_secret_key,
)
from .login_form import LoginFormController, LoginFormListener, OneShotLoginFormController
from .scope import AuthScope
from .secret import SecretBuffer
from .types import AuthorizeForm, AuthToken, FlowResult

_LAZY = {
    "Authorizer": ".authorizer",
    "AuthorizationState": ".authorizer",
    "AuthorizationTask": ".authorizer",
    "BrowserCodeStrategy": ".authorizer",
    "ScriptedCodeStrategy": ".authorizer",
    "CallbackListener": ".callback_server",
    "CredentialFlow": ".flow",
    "SystemBrowserLauncher": ".browser",
}


def __getattr__(name: str):
    module = _LAZY.get(name)
    if module is not None:
        from importlib import import_module

        return getattr(import_module(module, __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AuthContext",
    "AuthScope",
    "AuthToken",
    "AuthorizationState",
    "AuthorizationTask",
    "Authorizer",
    "AuthorizeForm",
    "BrowserCodeStrategy",
    "CachedAuthContext",
    "CallbackListener",
    "CredentialFlow",
    "FileTokenStorage",
    "FlowResult",
    "KeyringTokenStorage",
    "LoginFormController",
    "LoginFormListener",
    "NoTokenStorage",
    "OneShotLoginFormController",
    "ScriptedCodeStrategy",
    "SecretBuffer",
    "SystemBrowserLauncher",
    "TokenStorage",
    "resolve_access_key",
    "resolve_secret_key",
]
