"""Configuration helpers for the splashkit SDK."""

from __future__ import annotations

import os

DEFAULT_BASE_URL = os.environ.get("SPLASHKIT_API_BASE_URL", "https://api.unsplash.com")
DEFAULT_TIMEOUT_SECONDS = 30.0
API_VERSION = "v1"


def sanitize_base_url(url: str) -> str:
    """Ensure the base URL never ends with a trailing slash."""

    return url.rstrip("/")
