"""HTTP client for the photo API and its signed-in session."""

from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import httpx

from ._http import build_headers, build_query_params, handle_response
from .auth.constants import DEFAULT_CALLBACK_HOST, DEFAULT_CALLBACK_PORT, ERROR_AUTH_TIMEOUT, OAUTH_BASE_URL
from .auth.context import AuthContext, CachedAuthContext
from .auth.credentials import TokenStorage, resolve_access_key, resolve_secret_key
from .auth.login_form import OneShotLoginFormController
from .auth.scope import AuthScope
from .auth.secret import SecretBuffer
from .auth.types import AuthToken
from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, sanitize_base_url
from .exceptions import AuthenticationError, AuthorizationTimeoutError

if TYPE_CHECKING:
    from .auth.authorizer import Acquirer, AuthorizationTask, Authorizer
    from .auth.flow import CredentialFlow


def _hold_secret(secret_key: Union[str, bytearray, SecretBuffer, None]) -> Optional[SecretBuffer]:
    if isinstance(secret_key, (bytearray, SecretBuffer)):
        return SecretBuffer.of(secret_key)
    resolved = resolve_secret_key(secret_key)
    return SecretBuffer(resolved) if resolved else None


class SplashkitClient:
    """Client for the photo API.

    Example:
        >>> from splashkit import SplashkitClient
        >>> from splashkit.auth import FileTokenStorage, SystemBrowserLauncher
        >>> client = SplashkitClient(access_key="...", secret_key="...", storage=FileTokenStorage())
        >>> print(client.get("/photos/random"))
        >>> session = client.sign_in(SystemBrowserLauncher())
        >>> print(session.me())
        >>> client = session.sign_out()

    Public endpoints are called with the access key. ``sign_in`` runs the
    authorization flow (or reuses the stored token) and hands back an
    AuthenticatedSession for user endpoints.
    """

    def __init__(
        self,
        access_key: str | None = None,
        secret_key: Union[str, bytearray, SecretBuffer, None] = None,
        *,
        storage: Optional[TokenStorage] = None,
        base_url: str = DEFAULT_BASE_URL,
        oauth_base_url: str = OAUTH_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        executor: Optional[Executor] = None,
        callback_host: str = DEFAULT_CALLBACK_HOST,
        callback_port: int = DEFAULT_CALLBACK_PORT,
    ) -> None:
        """Initialize the client.

        Args:
            access_key: API access key (client id). If not provided, reads
                SPLASHKIT_ACCESS_KEY.
            secret_key: API secret key, only needed to sign in. If not
                provided, reads SPLASHKIT_SECRET_KEY. Held in a SecretBuffer
                until close(); a bytearray is taken over and zeroed there.
            storage: Where the token survives between runs (default: nowhere).
            base_url: API base URL (default: https://api.unsplash.com).
            oauth_base_url: OAuth pages base URL (default: https://unsplash.com/oauth).
            timeout: Request timeout in seconds (default: 30).
            executor: Executor running the authorization flow.
            callback_host: Host of the local redirect listener (default: localhost).
            callback_port: Port of the local redirect listener (default: 3000, 0 = any).

        Raises:
            AuthenticationError: If no access key is provided or found in environment.
        """
        access_key = resolve_access_key(access_key)
        if not access_key:
            raise AuthenticationError(
                "No access key provided. Pass access_key or set the SPLASHKIT_ACCESS_KEY environment variable."
            )

        self._access_key = access_key
        self._secret_key = _hold_secret(secret_key)
        self._base_url = sanitize_base_url(base_url)
        self._oauth_base_url = sanitize_base_url(oauth_base_url)
        self._timeout = timeout
        self._client = httpx.Client(timeout=timeout)
        self._cache = CachedAuthContext(access_key, storage)
        self._executor = executor
        self._callback_host = callback_host
        self._callback_port = callback_port
        self._authorizer: Optional[Authorizer] = None
        self._flow: Optional[CredentialFlow] = None

    @property
    def is_signed_in(self) -> bool:
        return self._cache.has_token()

    def get(self, path: str, **params: Any) -> Any:
        """Call a public endpoint, e.g. ``client.get("/photos", page=2)``."""
        response = self._client.get(
            f"{self._base_url}{path}",
            headers=build_headers(self._access_key),
            params=build_query_params(**params),
        )
        return handle_response(response)

    def _get_authorizer(self) -> Authorizer:
        if self._authorizer is None:
            from .auth.authorizer import Authorizer
            from .auth.flow import CredentialFlow

            self._flow = CredentialFlow(oauth_base_url=self._oauth_base_url, timeout=self._timeout)
            self._authorizer = Authorizer(
                self._cache,
                self._flow,
                executor=self._executor,
                host=self._callback_host,
                port=self._callback_port,
            )
        return self._authorizer

    def _secret(self) -> SecretBuffer:
        # Each sign in gets its own copy; the authorizer wipes it when done.
        if self._secret_key is None or self._secret_key.wiped:
            raise AuthenticationError(
                "No secret key provided. Pass secret_key or set the SPLASHKIT_SECRET_KEY environment variable."
            )
        return self._secret_key.copy()

    def authenticated(
        self,
        acquirer: Acquirer,
        scopes: AuthScope = AuthScope.ALL,
        on_success: Optional[Callable[[AuthenticatedSession], None]] = None,
        on_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> AuthorizationTask:
        """Start signing in without blocking; callbacks report the outcome.

        ``acquirer`` is a LoginFormController (scripted login), a browser
        launcher or a callable receiving the authorize URL.
        """

        def succeeded(token: AuthToken) -> None:
            if on_success is not None:
                on_success(self._session())

        return self._get_authorizer().authorize(
            self._access_key, self._secret(), scopes, acquirer, succeeded, on_failure
        )

    def sign_in(
        self,
        acquirer: Acquirer,
        scopes: AuthScope = AuthScope.ALL,
        timeout: Optional[float] = None,
    ) -> AuthenticatedSession:
        """Sign in and wait for the outcome.

        A timeout cancels the sign in, which stops the callback server.

        Raises:
            AuthFlowError: The authorization failed (see splashkit.exceptions).
            AuthorizationTimeoutError: No outcome within ``timeout`` seconds.
        """
        task = self.authenticated(acquirer, scopes)
        try:
            task.result(timeout=timeout)
        except FuturesTimeoutError:
            if task.cancel():
                raise AuthorizationTimeoutError(ERROR_AUTH_TIMEOUT) from None
            # Finished while we were giving up.
            task.result()
        return self._session()

    def sign_in_with_credentials(
        self,
        email: str,
        password: str,
        scopes: AuthScope = AuthScope.ALL,
        timeout: Optional[float] = None,
    ) -> AuthenticatedSession:
        """Sign in by scripting the provider's login page with fixed credentials."""
        return self.sign_in(OneShotLoginFormController(email, password), scopes, timeout)

    async def sign_in_async(self, acquirer: Acquirer, scopes: AuthScope = AuthScope.ALL) -> AuthenticatedSession:
        """Sign in from asyncio code; cancelling the awaiting task cancels the sign in."""
        task = self.authenticated(acquirer, scopes)
        try:
            await asyncio.wrap_future(task.future)
        except asyncio.CancelledError:
            task.cancel()
            raise
        return self._session()

    def _session(self) -> AuthenticatedSession:
        return AuthenticatedSession(self, self._cache.as_read_only(), self._client, self._base_url)

    def _sign_out(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        """Release the underlying HTTP client and authorization resources."""
        self._client.close()
        if self._secret_key is not None:
            self._secret_key.wipe()
        if self._authorizer is not None:
            self._authorizer.close()
        if self._flow is not None:
            self._flow.close()

    def __enter__(self) -> SplashkitClient:
        return self

    def __exit__(self, exc_type: type | None, exc: BaseException | None, traceback: Any) -> None:
        self.close()


class AuthenticatedSession:
    """Signed-in view of the API.

    Holds a read-only auth context: it reads the current token for each call
    but can only drop it through ``sign_out``.
    """

    def __init__(self, parent: SplashkitClient, context: AuthContext, client: httpx.Client, base_url: str) -> None:
        self._parent = parent
        self._context = context
        self._client = client
        self._base_url = base_url

    @property
    def token(self) -> AuthToken:
        """Current token. Raises SignedOutError after sign out."""
        return self._context.get_token()

    def get(self, path: str, **params: Any) -> Any:
        """Call a user endpoint with the access token."""
        token = self._context.get_token()
        response = self._client.get(
            f"{self._base_url}{path}",
            headers=build_headers(token.access_token, auth_type="bearer"),
            params=build_query_params(**params),
        )
        return handle_response(response)

    def me(self) -> Any:
        """Profile of the signed-in user."""
        return self.get("/me")

    def sign_out(self) -> SplashkitClient:
        """Forget the token and hand back the unauthenticated client."""
        self._parent._sign_out()
        return self._parent
