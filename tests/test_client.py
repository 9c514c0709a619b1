"""Tests for SplashkitClient and AuthenticatedSession."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from splashkit import APIError, AuthenticatedSession, AuthenticationError, AuthScope, SignedOutError, SplashkitClient
from splashkit.auth.authorizer import Authorizer
from splashkit.auth.callback_server import CallbackListener
from splashkit.auth.login_form import LoginFormController
from splashkit.auth.secret import SecretBuffer
from splashkit.exceptions import AuthorizationTimeoutError

from conftest import TOKEN_JSON, ImmediateExecutor, MemoryStorage, code_page, html_response, json_response, load_page


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("SPLASHKIT_ACCESS_KEY", raising=False)
    monkeypatch.delenv("SPLASHKIT_SECRET_KEY", raising=False)


def ok_response(payload):
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = 200
    mock_response.content = b"{}"
    mock_response.json.return_value = payload
    return mock_response


def never_opened(url):
    raise AssertionError(f"Browser should not open: {url}")


class TestSplashkitClientInit:
    def test_init_with_access_key(self):
        client = SplashkitClient(access_key="key")
        assert client._access_key == "key"
        assert client._base_url == "https://api.unsplash.com"
        assert not client.is_signed_in
        client.close()

    def test_init_without_access_key_raises(self):
        with pytest.raises(AuthenticationError):
            SplashkitClient(access_key="")

    def test_init_with_none_access_key_raises(self):
        with pytest.raises(AuthenticationError):
            SplashkitClient(access_key=None)

    def test_init_from_env_var(self, monkeypatch):
        monkeypatch.setenv("SPLASHKIT_ACCESS_KEY", "env-key")
        client = SplashkitClient()
        assert client._access_key == "env-key"
        client.close()

    def test_init_with_custom_base_url(self):
        client = SplashkitClient(access_key="key", base_url="https://custom.api.com/")
        assert client._base_url == "https://custom.api.com"
        client.close()

    def test_signed_in_from_storage(self, auth_token):
        with SplashkitClient(access_key="key", storage=MemoryStorage(auth_token)) as client:
            assert client.is_signed_in


class TestPublicCalls:
    def test_get_uses_client_id(self):
        with patch.object(httpx.Client, "get", return_value=ok_response([{"id": "p1"}])) as mock_get:
            with SplashkitClient(access_key="key") as client:
                result = client.get("/photos", page=2, order_by=None)

        assert result == [{"id": "p1"}]
        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.unsplash.com/photos"
        assert kwargs["headers"]["Authorization"] == "Client-ID key"
        assert kwargs["headers"]["Accept-Version"] == "v1"
        assert kwargs["params"] == {"page": 2}

    def test_get_auth_error(self):
        mock_response = MagicMock(spec=httpx.Response)
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"

        with patch.object(httpx.Client, "get", return_value=mock_response):
            with SplashkitClient(access_key="bad") as client:
                with pytest.raises(AuthenticationError):
                    client.get("/photos")

    def test_get_api_error(self):
        mock_response = MagicMock(spec=httpx.Response)
        mock_response.status_code = 500
        mock_response.text = "Internal Server Error"

        with patch.object(httpx.Client, "get", return_value=mock_response):
            with SplashkitClient(access_key="key") as client:
                with pytest.raises(APIError) as exc_info:
                    client.get("/photos")
        assert exc_info.value.status_code == 500


# ---------------------------------------------------------------------------
# Sign in / sign out
# ---------------------------------------------------------------------------

class TestSignIn:
    def test_sign_in_without_secret_raises(self):
        with SplashkitClient(access_key="key") as client:
            with pytest.raises(AuthenticationError):
                client.sign_in(never_opened)

    def test_sign_in_reuses_stored_token(self, auth_token):
        client = SplashkitClient(
            access_key="key", secret_key="secret", storage=MemoryStorage(auth_token), executor=ImmediateExecutor()
        )
        with client:
            session = client.sign_in(never_opened, timeout=5)

        assert isinstance(session, AuthenticatedSession)
        assert session.token == auth_token

    def test_sign_in_with_credentials(self, provider):
        provider.on("GET", "/authorize", html_response(code_page("abc123")))
        provider.on("POST", "/token", json_response(TOKEN_JSON))
        storage = MemoryStorage()
        client = SplashkitClient(access_key="key", secret_key="secret", storage=storage)
        client._authorizer = Authorizer(
            client._cache,
            provider.flow(),
            executor=ImmediateExecutor(),
            listener_factory=lambda: CallbackListener("127.0.0.1", 0),
        )
        with client:
            session = client.sign_in_with_credentials("me@mail.com", "pa$$", AuthScope.PUBLIC, timeout=5)

        assert session.token.access_token == "09134xxx"
        assert client.is_signed_in
        assert storage.saved[0].access_token == "09134xxx"

    def test_authenticated_reports_session(self, auth_token):
        sessions = []
        client = SplashkitClient(
            access_key="key", secret_key="secret", storage=MemoryStorage(auth_token), executor=ImmediateExecutor()
        )
        with client:
            task = client.authenticated(never_opened, on_success=sessions.append)

        assert task.done()
        assert sessions[0].token == auth_token

    @pytest.mark.asyncio
    async def test_sign_in_async(self, auth_token):
        client = SplashkitClient(
            access_key="key", secret_key="secret", storage=MemoryStorage(auth_token), executor=ImmediateExecutor()
        )
        with client:
            session = await client.sign_in_async(never_opened)
        assert session.token == auth_token


class TestAuthenticatedSession:
    @pytest.fixture
    def storage(self, auth_token):
        return MemoryStorage(auth_token)

    @pytest.fixture
    def session(self, storage):
        client = SplashkitClient(access_key="key", secret_key="secret", storage=storage, executor=ImmediateExecutor())
        yield client.sign_in(never_opened, timeout=5)
        client.close()

    def test_get_uses_bearer_token(self, session):
        with patch.object(httpx.Client, "get", return_value=ok_response({"id": "u1"})) as mock_get:
            assert session.me() == {"id": "u1"}

        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.unsplash.com/me"
        assert kwargs["headers"]["Authorization"] == "Bearer token123"

    def test_sign_out_returns_client(self, session, storage):
        client = session.sign_out()

        assert isinstance(client, SplashkitClient)
        assert not client.is_signed_in
        assert storage.cleared == 1
        with pytest.raises(SignedOutError):
            session.token

    def test_calls_after_sign_out_rejected(self, session):
        session.sign_out()
        with patch.object(httpx.Client, "get") as mock_get:
            with pytest.raises(SignedOutError):
                session.get("/me")
        mock_get.assert_not_called()

    def test_session_has_no_write_access(self, session):
        assert not hasattr(session._context, "reset")


class SilentController(LoginFormController):
    """Never fills in the form, so the sign in can only time out."""

    def activate_form(self, cause):
        pass


class TestSignInTimeout:
    def test_timeout_cancels_and_stops_listener(self, provider):
        provider.on("GET", "/authorize", html_response(load_page("login.html")))
        listeners = []

        def make_listener():
            listeners.append(CallbackListener("127.0.0.1", 0))
            return listeners[-1]

        client = SplashkitClient(access_key="key", secret_key="secret")
        client._authorizer = Authorizer(
            client._cache, provider.flow(), executor=ImmediateExecutor(), listener_factory=make_listener
        )
        controller = SilentController()
        with client:
            with pytest.raises(AuthorizationTimeoutError):
                client.sign_in(controller, timeout=0.2)

            assert not listeners[0].serving
            assert not client.is_signed_in
            assert controller._submitter is None
            # The held secret survives a failed sign in.
            assert not client._secret_key.wiped


class TestSecretHandling:
    def test_secret_held_in_buffer(self):
        client = SplashkitClient(access_key="key", secret_key="s3cr3t-value")
        assert isinstance(client._secret_key, SecretBuffer)
        assert "s3cr3t-value" not in repr(vars(client))
        client.close()

    def test_secret_from_env(self, monkeypatch):
        monkeypatch.setenv("SPLASHKIT_SECRET_KEY", "env-secret")
        with SplashkitClient(access_key="key") as client:
            assert client._secret_key.reveal() == "env-secret"

    def test_each_sign_in_gets_a_copy(self):
        with SplashkitClient(access_key="key", secret_key="secret") as client:
            first = client._secret()
            first.wipe()
            assert client._secret().reveal() == "secret"

    def test_close_wipes_secret(self):
        raw = bytearray(b"secret")
        client = SplashkitClient(access_key="key", secret_key=raw)
        held = client._secret_key

        client.close()

        assert held.wiped
        assert raw == bytearray(len(raw))
        with pytest.raises(AuthenticationError):
            client._secret()
