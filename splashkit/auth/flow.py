"""Scripted OAuth flow against the provider's HTML pages.

Used when no interactive browser can be delegated to: the authorize, login and
confirm pages are fetched and parsed as documents, and the authorization code
is read from the page the provider finally renders. All operations return a
FlowResult and never raise past this module.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar, Union
from urllib.parse import urlencode

import httpx
from bs4 import BeautifulSoup

from ..exceptions import (
    ConfirmAuthorizeError,
    FlowStateError,
    InvalidCredentialsError,
    NeedsConfirmAuthorizeFormError,
    NeedsLoginError,
)
from .constants import (
    CONFIRM_FORM_FIELDS,
    ERROR_CODE_NOT_FOUND,
    HTTP_TIMEOUT_SECONDS,
    OAUTH_BASE_URL,
    UTF8_CHECKMARK,
)
from .scope import AuthScope
from .secret import SecretBuffer
from .types import AuthorizeForm, AuthToken, FlowResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_CACHE = {"Cache-Control": "no-cache"}


def _parse(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def extract_authorization_code(doc: BeautifulSoup) -> Optional[str]:
    element = doc.select_one("code")
    if element is None:
        return None
    code = element.get_text(strip=True)
    return code or None


def extract_authenticity_token(doc: BeautifulSoup) -> Optional[str]:
    """Return the login form CSRF token, "" when the input has no value, None when absent."""
    element = doc.select_one("input[name=authenticity_token]")
    if element is None:
        return None
    return str(element.get("value", ""))


def extract_confirm_form(doc: BeautifulSoup) -> Optional[AuthorizeForm]:
    """Return the confirm-authorization form fields, or None if the page has no such form.

    Raises:
        FlowStateError: If the form is present but lacks one of the required fields.
    """
    client_id = doc.select_one("form input[name=client_id]")
    if client_id is None:
        return None
    form = client_id.find_parent("form")
    fields: dict[str, str] = {}
    for element in form.select("input[name]"):
        fields.setdefault(str(element["name"]), str(element.get("value", "")))
    missing = [name for name in CONFIRM_FORM_FIELDS if name not in fields]
    if missing:
        raise FlowStateError(f"Confirm authorization form is missing: {', '.join(missing)}")
    return tuple((name, fields[name]) for name in CONFIRM_FORM_FIELDS)


class CredentialFlow:
    """Provider calls of the authorization flow.

    Example:
        >>> flow = CredentialFlow()
        >>> result = flow.authorize("access-key", "http://localhost:3000/", AuthScope.PUBLIC)
        >>> if isinstance(result.error, NeedsLoginError):
        ...     result = flow.login_form(result.error.authenticity_token, "me@mail.com", "password")
    """

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        *,
        oauth_base_url: str = OAUTH_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        # Redirects are followed so a redirect to the callback server lands on its code page.
        self._client = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._owns_client = http_client is None
        self._base_url = oauth_base_url.rstrip("/")

    def build_authorize_url(self, access_key: str, redirect_uri: str, scopes: AuthScope) -> str:
        """Build the provider authorization URL.

        The scope is appended verbatim so its ``+`` separators survive encoding.
        """
        params = urlencode({"client_id": access_key, "redirect_uri": redirect_uri, "response_type": "code"})
        return f"{self._base_url}/authorize?{params}&scope={scopes.value}"

    def authorize(self, access_key: str, redirect_uri: str, scopes: AuthScope) -> FlowResult[str]:
        """Request an authorization code.

        Fails with NeedsLoginError (carrying the CSRF token) when the provider
        shows its login page instead of a code.
        """
        url = self.build_authorize_url(access_key, redirect_uri, scopes)
        return self._call("GET", url, self._parse_authorize)

    def login_form(self, authenticity_token: str, email: str, password: str) -> FlowResult[str]:
        """Submit the login form.

        Fails with NeedsConfirmAuthorizeFormError when the provider asks to
        confirm the authorization, InvalidCredentialsError otherwise.
        """
        data = {
            "utf8": UTF8_CHECKMARK,
            "authenticity_token": authenticity_token,
            "user[email]": email,
            "user[password]": password,
        }
        return self._call("POST", f"{self._base_url}/login", self._parse_login, data=data)

    def authorize_form(self, form: AuthorizeForm) -> FlowResult[str]:
        """Resubmit the confirm-authorization form exactly as the provider rendered it."""
        return self._call("POST", f"{self._base_url}/authorize", self._parse_confirm, data=dict(form))

    def token(
        self,
        code: str,
        access_key: str,
        secret_key: Union[SecretBuffer, str],
        redirect_uri: str,
    ) -> FlowResult[AuthToken]:
        """Exchange the authorization code for an access token."""
        secret = secret_key.reveal() if isinstance(secret_key, SecretBuffer) else secret_key
        data = {
            "client_id": access_key,
            "client_secret": secret,
            "redirect_uri": redirect_uri,
            "code": code,
            "grant_type": "authorization_code",
        }
        return self._call("POST", f"{self._base_url}/token", self._parse_token, data=data)

    def _call(
        self,
        method: str,
        url: str,
        parse: Callable[[httpx.Response], FlowResult[T]],
        **kwargs: Any,
    ) -> FlowResult[T]:
        try:
            response = self._client.request(method, url, headers=_NO_CACHE, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url.split("?")[0], e)
            return FlowResult.failure(e)

        if response.is_error:
            logger.warning("%s %s returned %s", method, url.split("?")[0], response.status_code)
            return FlowResult.failure(
                FlowStateError(response.text or f"HTTP {response.status_code}", status_code=response.status_code)
            )

        try:
            return parse(response)
        except FlowStateError as e:
            return FlowResult.failure(e)

    @staticmethod
    def _parse_authorize(response: httpx.Response) -> FlowResult[str]:
        doc = _parse(response.text)
        code = extract_authorization_code(doc)
        if code is not None:
            return FlowResult.success(code)
        authenticity_token = extract_authenticity_token(doc)
        if authenticity_token is not None:
            return FlowResult.failure(NeedsLoginError(authenticity_token))
        return FlowResult.failure(FlowStateError(ERROR_CODE_NOT_FOUND))

    @staticmethod
    def _parse_login(response: httpx.Response) -> FlowResult[str]:
        doc = _parse(response.text)
        code = extract_authorization_code(doc)
        if code is not None:
            return FlowResult.success(code)
        form = extract_confirm_form(doc)
        if form is not None:
            return FlowResult.failure(NeedsConfirmAuthorizeFormError(form))
        return FlowResult.failure(InvalidCredentialsError())

    @staticmethod
    def _parse_confirm(response: httpx.Response) -> FlowResult[str]:
        code = extract_authorization_code(_parse(response.text))
        if code is None:
            return FlowResult.failure(ConfirmAuthorizeError())
        return FlowResult.success(code)

    @staticmethod
    def _parse_token(response: httpx.Response) -> FlowResult[AuthToken]:
        try:
            payload = response.json()
        except ValueError:
            return FlowResult.failure(FlowStateError("Token response is not JSON", status_code=response.status_code))
        return FlowResult.success(AuthToken.from_json(payload))

    def close(self) -> None:
        """Release the underlying HTTP client if this flow created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CredentialFlow:
        return self

    def __exit__(self, exc_type: type | None, exc: BaseException | None, traceback: Any) -> None:
        self.close()
