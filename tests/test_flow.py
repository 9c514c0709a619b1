"""Tests for the scripted provider calls."""

from __future__ import annotations

import httpx
import pytest

from splashkit.auth.flow import CredentialFlow, extract_authenticity_token, _parse
from splashkit.auth.scope import AuthScope
from splashkit.auth.secret import SecretBuffer
from splashkit.exceptions import (
    ConfirmAuthorizeError,
    FlowStateError,
    InvalidCredentialsError,
    NeedsConfirmAuthorizeFormError,
    NeedsLoginError,
)

from conftest import OAUTH_BASE, TOKEN_JSON, code_page, form_data, html_response, json_response, load_page

REDIRECT_URI = "http://localhost:3000/"

CONFIRM_FORM = (
    ("utf8", "✓"),
    ("authenticity_token", "authenticity_token_xxx"),
    ("client_id", "client_id_xxx"),
    ("redirect_uri", "http://localhost:3000"),
    ("state", ""),
    ("response_type", "code"),
    ("scope", "public read_user"),
)


# ---------------------------------------------------------------------------
# Authorize URL
# ---------------------------------------------------------------------------

class TestBuildAuthorizeUrl:
    def test_contains_required_params(self):
        url = CredentialFlow(httpx.Client(), oauth_base_url=OAUTH_BASE).build_authorize_url(
            "key", REDIRECT_URI, AuthScope.PUBLIC + AuthScope.READ_USER
        )
        assert url == (
            f"{OAUTH_BASE}/authorize?client_id=key&redirect_uri=http%3A%2F%2Flocalhost%3A3000%2F"
            "&response_type=code&scope=public+read_user"
        )

    def test_trailing_slash_in_base_url(self):
        flow = CredentialFlow(httpx.Client(), oauth_base_url=f"{OAUTH_BASE}/")
        assert flow.build_authorize_url("key", REDIRECT_URI, AuthScope.PUBLIC).startswith(f"{OAUTH_BASE}/authorize?")


# ---------------------------------------------------------------------------
# authorize
# ---------------------------------------------------------------------------

class TestAuthorize:
    def test_code_page(self, provider):
        provider.on("GET", "/authorize", html_response(code_page("code123")))

        result = provider.flow().authorize("key", REDIRECT_URI, AuthScope.PUBLIC)

        assert result.ok
        assert result.value == "code123"
        request = provider.calls("GET", "/authorize")[0]
        assert request.url.params["client_id"] == "key"
        assert request.url.params["redirect_uri"] == REDIRECT_URI
        assert request.url.params["response_type"] == "code"
        assert request.headers["Cache-Control"] == "no-cache"

    def test_login_page_needs_login(self, provider):
        provider.on("GET", "/authorize", html_response(load_page("login.html")))

        result = provider.flow().authorize("key", REDIRECT_URI, AuthScope.PUBLIC)

        assert isinstance(result.error, NeedsLoginError)
        assert result.error.authenticity_token == "csrf1"

    def test_unrecognised_page(self, provider):
        provider.on("GET", "/authorize", html_response("<html><body><p>Maintenance</p></body></html>"))

        result = provider.flow().authorize("key", REDIRECT_URI, AuthScope.PUBLIC)

        assert isinstance(result.error, FlowStateError)

    def test_server_error(self, provider):
        provider.on("GET", "/authorize", html_response("boom", status=500))

        result = provider.flow().authorize("key", REDIRECT_URI, AuthScope.PUBLIC)

        assert isinstance(result.error, FlowStateError)
        assert result.error.status_code == 500
        assert result.error.message == "boom"

    def test_network_error_returned_not_raised(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        flow = CredentialFlow(httpx.Client(transport=httpx.MockTransport(fail)), oauth_base_url=OAUTH_BASE)
        result = flow.authorize("key", REDIRECT_URI, AuthScope.PUBLIC)

        assert isinstance(result.error, httpx.ConnectError)


class TestExtractAuthenticityToken:
    def test_empty_value(self):
        doc = _parse('<form><input name="authenticity_token" value="" /></form>')
        assert extract_authenticity_token(doc) == ""

    def test_absent(self):
        assert extract_authenticity_token(_parse("<p>nothing</p>")) is None


# ---------------------------------------------------------------------------
# login_form
# ---------------------------------------------------------------------------

class TestLoginForm:
    def test_submits_credentials(self, provider):
        provider.on("POST", "/login", html_response(code_page("code123")))

        result = provider.flow().login_form("csrf1", "me@mail.com", "pa$$")

        assert result.value == "code123"
        data = form_data(provider.calls("POST", "/login")[0])
        assert data == {
            "utf8": ["✓"],
            "authenticity_token": ["csrf1"],
            "user[email]": ["me@mail.com"],
            "user[password]": ["pa$$"],
        }

    def test_invalid_credentials(self, provider):
        provider.on("POST", "/login", html_response(load_page("login_invalid.html")))

        result = provider.flow().login_form("csrf1", "me@mail.com", "wrong")

        assert isinstance(result.error, InvalidCredentialsError)

    def test_needs_confirm_form(self, provider):
        provider.on("POST", "/login", html_response(load_page("confirm_authorize.html")))

        result = provider.flow().login_form("csrf1", "me@mail.com", "pa$$")

        assert isinstance(result.error, NeedsConfirmAuthorizeFormError)
        assert result.error.form == CONFIRM_FORM

    def test_incomplete_confirm_form(self, provider):
        provider.on("POST", "/login", html_response(load_page("confirm_authorize_incomplete.html")))

        result = provider.flow().login_form("csrf1", "me@mail.com", "pa$$")

        assert isinstance(result.error, FlowStateError)
        assert "redirect_uri" in str(result.error)
        assert "scope" in str(result.error)


# ---------------------------------------------------------------------------
# authorize_form
# ---------------------------------------------------------------------------

class TestAuthorizeForm:
    def test_resubmits_form_fields(self, provider):
        provider.on("POST", "/authorize", html_response(code_page("code456")))

        result = provider.flow().authorize_form(CONFIRM_FORM)

        assert result.value == "code456"
        data = form_data(provider.calls("POST", "/authorize")[0])
        assert data == {name: [value] for name, value in CONFIRM_FORM}

    def test_no_code_after_confirm(self, provider):
        provider.on("POST", "/authorize", html_response(load_page("confirm_authorize.html")))

        result = provider.flow().authorize_form(CONFIRM_FORM)

        assert isinstance(result.error, ConfirmAuthorizeError)


# ---------------------------------------------------------------------------
# token
# ---------------------------------------------------------------------------

class TestToken:
    def test_exchange(self, provider):
        provider.on("POST", "/token", json_response(TOKEN_JSON))

        result = provider.flow().token("code123", "key", SecretBuffer("secret"), REDIRECT_URI)

        assert result.ok
        token = result.value
        assert token.access_token == "09134xxx"
        assert token.scope == AuthScope.PUBLIC + AuthScope.READ_PHOTOS + AuthScope.WRITE_PHOTOS
        assert token.created_at == 1436544465
        data = form_data(provider.calls("POST", "/token")[0])
        assert data == {
            "client_id": ["key"],
            "client_secret": ["secret"],
            "redirect_uri": [REDIRECT_URI],
            "code": ["code123"],
            "grant_type": ["authorization_code"],
        }

    def test_accepts_plain_secret(self, provider):
        provider.on("POST", "/token", json_response(TOKEN_JSON))

        assert provider.flow().token("code123", "key", "secret", REDIRECT_URI).ok

    def test_server_error(self, provider):
        provider.on("POST", "/token", json_response({"error": "invalid_grant"}, status=401))

        result = provider.flow().token("code123", "key", "secret", REDIRECT_URI)

        assert isinstance(result.error, FlowStateError)
        assert result.error.status_code == 401

    def test_not_json(self, provider):
        provider.on("POST", "/token", html_response("<html></html>"))

        result = provider.flow().token("code123", "key", "secret", REDIRECT_URI)

        assert isinstance(result.error, FlowStateError)

    def test_missing_access_token(self, provider):
        provider.on("POST", "/token", json_response({"token_type": "bearer"}))

        result = provider.flow().token("code123", "key", "secret", REDIRECT_URI)

        assert isinstance(result.error, FlowStateError)

    def test_list_scope_fails_the_result(self, provider):
        provider.on("POST", "/token", json_response({"access_token": "a", "scope": ["public"]}))

        result = provider.flow().token("code123", "key", "secret", REDIRECT_URI)

        assert not result.ok
        assert isinstance(result.error, FlowStateError)


class TestLifecycle:
    def test_close_leaves_borrowed_client_open(self):
        client = httpx.Client()
        with CredentialFlow(client, oauth_base_url=OAUTH_BASE):
            pass
        assert not client.is_closed
        client.close()

    def test_close_owned_client(self):
        flow = CredentialFlow(oauth_base_url=OAUTH_BASE)
        flow.close()
        assert flow._client.is_closed

    @pytest.mark.parametrize("status", [400, 404, 503])
    def test_error_statuses(self, provider, status):
        provider.on("POST", "/authorize", html_response("", status=status))

        result = provider.flow().authorize_form(CONFIRM_FORM)

        assert isinstance(result.error, FlowStateError)
        assert result.error.message == f"HTTP {status}"
