"""Constants for splashkit authentication and configuration."""

from __future__ import annotations

import os

# Provider OAuth pages and token endpoint
OAUTH_BASE_URL = os.environ.get("SPLASHKIT_OAUTH_BASE_URL", "https://unsplash.com/oauth")

# Callback server. "localhost" is bound as 127.0.0.1; the redirect URI keeps
# the host name the integrator registered.
DEFAULT_CALLBACK_HOST = "localhost"
DEFAULT_CALLBACK_PORT = 3000
LOOPBACK_ADDRESS = "127.0.0.1"
SERVER_START_TIMEOUT_SECONDS = 30
AUTH_TIMEOUT_SECONDS = 300
HTTP_TIMEOUT_SECONDS = 30.0

# Credentials
ACCESS_KEY_ENV = "SPLASHKIT_ACCESS_KEY"
SECRET_KEY_ENV = "SPLASHKIT_SECRET_KEY"

# Token storage
CONFIG_DIR = ".splashkit"
TOKEN_FILE = "token.json"
KEYRING_SERVICE_NAME = "splashkit"
KEYRING_USERNAME = "auth_token"

# Login form
UTF8_CHECKMARK = "✓"
CONFIRM_FORM_FIELDS = (
    "utf8",
    "authenticity_token",
    "client_id",
    "redirect_uri",
    "state",
    "response_type",
    "scope",
)

# Error messages
ERROR_SERVER_NOT_STARTED = "Auth code server hasn't started"
ERROR_AUTH_TIMEOUT = "Authorization timed out. Please try again."
ERROR_CODE_NOT_FOUND = "Neither an authorization code nor a login form was found"
ERROR_AUTH_CANCELLED = "Authorization cancelled"
