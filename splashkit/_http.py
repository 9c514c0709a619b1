"""Shared HTTP request utilities for public and authenticated API calls."""

from __future__ import annotations

from typing import Any

import httpx

from .config import API_VERSION
from .exceptions import APIError, AuthenticationError


def build_headers(credential: str, auth_type: str = "client_id") -> dict[str, str]:
    """Build request headers with appropriate authentication.

    ``client_id`` authenticates public calls with the access key, ``bearer``
    authenticates user calls with the access token.
    """
    headers = {"Accept-Version": API_VERSION}

    if auth_type == "client_id":
        headers["Authorization"] = f"Client-ID {credential}"
    elif auth_type == "bearer":
        headers["Authorization"] = f"Bearer {credential}"
    else:
        raise ValueError(f"Unsupported auth type: {auth_type}")

    return headers


def handle_response(response: httpx.Response) -> Any:
    """Process HTTP response, raising appropriate errors for failures."""
    if response.status_code == 401:
        raise AuthenticationError("Invalid or missing access key or token")

    if response.status_code >= 400:
        raise APIError(
            message=response.text or "Photo API call failed",
            status_code=response.status_code,
            response=response,
        )

    if response.content:
        return response.json()
    return {}


def build_query_params(**kwargs: Any) -> dict[str, Any]:
    """Build query parameters, filtering out None values."""
    return {k: v for k, v in kwargs.items() if v is not None}
