"""Authorization flow orchestration.

The Authorizer turns API keys into an access token:

    cached token? -> start callback server -> acquire code -> exchange -> cache

The code is acquired by one of two strategies. BrowserCodeStrategy (primary)
opens the provider's authorize page in a browser and waits for the redirect on
the callback server. ScriptedCodeStrategy drives the provider's HTML pages
directly and asks a LoginFormController for credentials when needed.

The flow runs on an executor; ``authorize`` returns an AuthorizationTask at
once and reports through ``on_success``/``on_failure`` exactly once.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import CancelledError, Executor, Future, InvalidStateError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, List, Optional, Union

from ..exceptions import (
    AuthorizationCancelledError,
    AuthorizationTimeoutError,
    GiveUpError,
    InvalidCredentialsError,
    NeedsConfirmAuthorizeFormError,
    NeedsLoginError,
    ServerStartError,
    SignedOutError,
)
from .browser import BrowserLauncher, SystemBrowserLauncher
from .callback_server import CallbackListener
from .constants import (
    AUTH_TIMEOUT_SECONDS,
    DEFAULT_CALLBACK_HOST,
    DEFAULT_CALLBACK_PORT,
    ERROR_AUTH_CANCELLED,
    ERROR_AUTH_TIMEOUT,
    ERROR_SERVER_NOT_STARTED,
    SERVER_START_TIMEOUT_SECONDS,
)
from .context import CachedAuthContext
from .flow import CredentialFlow
from .login_form import LoginFormController
from .scope import AuthScope
from .secret import SecretBuffer
from .types import AuthToken

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[AuthToken], None]
FailureCallback = Callable[[BaseException], None]


class AuthorizationState(enum.Enum):
    IDLE = "idle"
    SERVER_STARTING = "server_starting"
    ACQUIRING = "acquiring"
    NEEDS_LOGIN = "needs_login"
    LOGIN_ACTIVE = "login_active"
    LOGIN_FAILED = "login_failed"
    NEEDS_CONFIRM = "needs_confirm"
    CONFIRM_ACTIVE = "confirm_active"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL_STATES = frozenset(
    {AuthorizationState.SUCCEEDED, AuthorizationState.FAILED, AuthorizationState.CANCELLED}
)


class AuthorizationSession:
    """State of one in-flight authorization.

    Strategies drive the session through ``transition``, ``exchange`` and
    ``fail``; the first terminal outcome wins and later ones are ignored.
    """

    def __init__(
        self,
        *,
        access_key: str,
        secret: SecretBuffer,
        scopes: AuthScope,
        flow: CredentialFlow,
        listener: CallbackListener,
        cache: CachedAuthContext,
        executor: Executor,
        on_success: Optional[SuccessCallback],
        on_failure: Optional[FailureCallback],
    ) -> None:
        self.access_key = access_key
        self.scopes = scopes
        self.flow = flow
        self.listener = listener
        self._secret = secret
        self._cache = cache
        self._executor = executor
        self._on_success = on_success
        self._on_failure = on_failure
        self._state = AuthorizationState.IDLE
        self._lock = threading.Lock()
        self._cleanups: List[Callable[[], None]] = []
        self.future: Future[AuthToken] = Future()

    @property
    def state(self) -> AuthorizationState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state in _TERMINAL_STATES

    def transition(self, state: AuthorizationState) -> None:
        with self._lock:
            if self._state in _TERMINAL_STATES:
                return
            previous, self._state = self._state, state
        logger.debug("Authorization %s -> %s", previous.value, state.value)

    def add_cleanup(self, cleanup: Callable[[], None]) -> None:
        """Register teardown run once the session reaches a terminal state."""
        self._cleanups.append(cleanup)

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        """Run a step of the flow on the executor."""
        try:
            self._executor.submit(self.run, fn, *args)
        except RuntimeError as e:
            # Executor already shut down.
            self.fail(e)

    def run(self, fn: Callable[..., None], *args: Any) -> None:
        """Run a step, turning any unexpected exception into the terminal failure."""
        try:
            fn(*args)
        except Exception as e:
            if not self.fail(e):
                logger.exception("Unhandled error after authorization finished")

    def exchange(self, code: str) -> None:
        """Exchange the authorization code and finish the session."""
        if self.finished:
            return
        self.transition(AuthorizationState.EXCHANGING)
        result = self.flow.token(code, self.access_key, self._secret, self.listener.callback_uri)
        if not result.ok:
            self.fail(result.error)
            return
        token = result.unwrap()
        self._cache.reset(token)
        self.succeed(token)

    def succeed(self, token: AuthToken) -> bool:
        if not self._finish(AuthorizationState.SUCCEEDED):
            return False
        logger.info("Authorization succeeded")
        self._resolve(token, None)
        if self._on_success is not None:
            self._on_success(token)
        return True

    def fail(self, error: BaseException) -> bool:
        state = (
            AuthorizationState.CANCELLED
            if isinstance(error, AuthorizationCancelledError)
            else AuthorizationState.FAILED
        )
        if not self._finish(state):
            return False
        logger.warning("Authorization failed: %s", error)
        self._resolve(None, error)
        if self._on_failure is not None:
            self._on_failure(error)
        return True

    def cancel(self) -> bool:
        return self.fail(AuthorizationCancelledError(ERROR_AUTH_CANCELLED))

    def _finish(self, state: AuthorizationState) -> bool:
        with self._lock:
            if self._state in _TERMINAL_STATES:
                return False
            previous, self._state = self._state, state
        logger.debug("Authorization %s -> %s", previous.value, state.value)
        try:
            self.listener.stop_serving()
            for cleanup in self._cleanups:
                cleanup()
        finally:
            self._secret.wipe()
        return True

    def _resolve(self, token: Optional[AuthToken], error: Optional[BaseException]) -> None:
        try:
            if error is None:
                self.future.set_result(token)  # type: ignore[arg-type]
            else:
                self.future.set_exception(error)
        except InvalidStateError:
            # The future was cancelled by its consumer.
            pass


class CodeStrategy(ABC):
    """Way of obtaining an authorization code for a session.

    ``acquire`` runs on the executor with the callback server already up. It
    ends by calling ``session.exchange(code)`` or ``session.fail(error)``,
    either directly or from a later step it schedules.
    """

    @abstractmethod
    def acquire(self, session: AuthorizationSession) -> None: ...


class BrowserCodeStrategy(CodeStrategy):
    """Delegates the login to a browser and waits for the redirect."""

    def __init__(
        self,
        launcher: Optional[BrowserLauncher] = None,
        timeout_seconds: float = AUTH_TIMEOUT_SECONDS,
    ) -> None:
        self._launcher = launcher or SystemBrowserLauncher()
        self._timeout_seconds = timeout_seconds

    def acquire(self, session: AuthorizationSession) -> None:
        code_future: Future[str] = Future()

        def on_code(code: str) -> None:
            try:
                code_future.set_result(code)
            except InvalidStateError:
                pass

        session.listener.on_authorize_code(on_code)
        session.add_cleanup(code_future.cancel)
        if session.finished:
            return

        url = session.flow.build_authorize_url(session.access_key, session.listener.callback_uri, session.scopes)
        self._launcher.launch(url)

        try:
            code = code_future.result(timeout=self._timeout_seconds)
        except FuturesTimeoutError:
            session.fail(AuthorizationTimeoutError(ERROR_AUTH_TIMEOUT))
            return
        except CancelledError:
            session.cancel()
            return
        session.exchange(code)


class _LoginSubmitter:
    """Submitter attached to the controller while a scripted login is pending."""

    def __init__(self, strategy: ScriptedCodeStrategy, session: AuthorizationSession, authenticity_token: str) -> None:
        self._strategy = strategy
        self._session = session
        self._authenticity_token = authenticity_token

    def submit(self, email: str, password: str) -> None:
        self._session.submit(self._strategy.login, self._session, self._authenticity_token, email, password)

    def give_up(self, cause: Optional[BaseException]) -> None:
        self._session.fail(GiveUpError(cause))


class ScriptedCodeStrategy(CodeStrategy):
    """Scripts the provider's authorize/login/confirm pages.

    A login page activates the controller's form; invalid credentials
    re-activate it with the failure so the user can retry. A confirm form is
    resubmitted without asking the user.
    """

    def __init__(self, controller: LoginFormController) -> None:
        self._controller = controller

    def acquire(self, session: AuthorizationSession) -> None:
        result = session.flow.authorize(session.access_key, session.listener.callback_uri, session.scopes)
        if result.ok:
            session.exchange(result.unwrap())
            return

        error = result.error
        if not isinstance(error, NeedsLoginError):
            session.fail(error)
            return

        session.transition(AuthorizationState.NEEDS_LOGIN)
        session.add_cleanup(self._controller.detach_form_submitter)
        self._controller.attach_form_submitter(_LoginSubmitter(self, session, error.authenticity_token))
        session.transition(AuthorizationState.LOGIN_ACTIVE)
        self._controller.activate_form(None)

    def login(self, session: AuthorizationSession, authenticity_token: str, email: str, password: str) -> None:
        if session.finished:
            return
        result = session.flow.login_form(authenticity_token, email, password)
        if result.ok:
            self._controller.on_login_success()
            session.exchange(result.unwrap())
            return

        error = result.error
        if isinstance(error, NeedsConfirmAuthorizeFormError):
            self._controller.on_login_success()
            self._confirm(session, error)
        elif isinstance(error, InvalidCredentialsError):
            session.transition(AuthorizationState.LOGIN_FAILED)
            self._controller.on_login_failure(error)
            session.transition(AuthorizationState.LOGIN_ACTIVE)
            self._controller.activate_form(error)
        else:
            self._controller.on_login_failure(error)
            session.fail(error)

    def _confirm(self, session: AuthorizationSession, needs_confirm: NeedsConfirmAuthorizeFormError) -> None:
        session.transition(AuthorizationState.NEEDS_CONFIRM)
        session.transition(AuthorizationState.CONFIRM_ACTIVE)
        result = session.flow.authorize_form(needs_confirm.form)
        if result.ok:
            session.exchange(result.unwrap())
        else:
            session.fail(result.error)


Acquirer = Union[CodeStrategy, LoginFormController, BrowserLauncher, Callable[[str], None]]


def resolve_strategy(acquirer: Acquirer) -> CodeStrategy:
    """Pick the code strategy matching what the integrator provided."""
    if isinstance(acquirer, CodeStrategy):
        return acquirer
    if isinstance(acquirer, LoginFormController):
        return ScriptedCodeStrategy(acquirer)
    if callable(getattr(acquirer, "launch", None)):
        return BrowserCodeStrategy(acquirer)  # type: ignore[arg-type]
    if callable(acquirer):
        return BrowserCodeStrategy(SystemBrowserLauncher(acquirer))
    raise TypeError(f"Unsupported authorization acquirer: {acquirer!r}")


class AuthorizationTask:
    """Handle on a running authorization."""

    def __init__(self, session: AuthorizationSession) -> None:
        self._session = session

    @property
    def state(self) -> AuthorizationState:
        return self._session.state

    @property
    def future(self) -> Future[AuthToken]:
        return self._session.future

    def done(self) -> bool:
        return self._session.finished

    def cancel(self) -> bool:
        """Stop the authorization, closing the callback server. False if already finished."""
        return self._session.cancel()

    def result(self, timeout: Optional[float] = None) -> AuthToken:
        """Block until the token is available, raising the failure otherwise."""
        return self._session.future.result(timeout=timeout)


class Authorizer:
    """Orchestrates the authorization flow around a token cache.

    Example:
        >>> cache = CachedAuthContext("access-key", FileTokenStorage())
        >>> authorizer = Authorizer(cache)
        >>> task = authorizer.authorize("access-key", SecretBuffer("secret"), AuthScope.ALL, SystemBrowserLauncher())
        >>> token = task.result(timeout=300)
    """

    def __init__(
        self,
        cache: CachedAuthContext,
        flow: Optional[CredentialFlow] = None,
        *,
        executor: Optional[Executor] = None,
        listener_factory: Optional[Callable[[], CallbackListener]] = None,
        host: str = DEFAULT_CALLBACK_HOST,
        port: int = DEFAULT_CALLBACK_PORT,
        server_start_timeout: float = SERVER_START_TIMEOUT_SECONDS,
    ) -> None:
        self._cache = cache
        self._flow = flow or CredentialFlow()
        self._owns_flow = flow is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="splashkit-auth")
        self._owns_executor = executor is None
        self._listener_factory = listener_factory or (lambda: CallbackListener(host, port))
        self._server_start_timeout = server_start_timeout

    def authorize(
        self,
        access_key: str,
        secret_key: Union[SecretBuffer, str, bytearray],
        scopes: AuthScope,
        acquirer: Acquirer,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> AuthorizationTask:
        """Start the authorization in the background and return immediately.

        The secret buffer is wiped once the authorization finishes, whatever
        the outcome, or at once if the authorization cannot be started.
        """
        secret = SecretBuffer.of(secret_key)
        try:
            strategy = resolve_strategy(acquirer)
            session = AuthorizationSession(
                access_key=access_key,
                secret=secret,
                scopes=scopes,
                flow=self._flow,
                listener=self._listener_factory(),
                cache=self._cache,
                executor=self._executor,
                on_success=on_success,
                on_failure=on_failure,
            )
        except BaseException:
            secret.wipe()
            raise
        session.submit(self._run, session, strategy)
        return AuthorizationTask(session)

    async def authorize_async(
        self,
        access_key: str,
        secret_key: Union[SecretBuffer, str, bytearray],
        scopes: AuthScope,
        acquirer: Acquirer,
    ) -> AuthToken:
        """Await the authorization; cancelling the awaiting task cancels the authorization."""
        task = self.authorize(access_key, secret_key, scopes, acquirer)
        try:
            return await asyncio.wrap_future(task.future)
        except asyncio.CancelledError:
            task.cancel()
            raise

    def _run(self, session: AuthorizationSession, strategy: CodeStrategy) -> None:
        try:
            cached = self._cache.get_token()
        except SignedOutError:
            cached = None
        if cached is not None:
            logger.debug("Using cached token")
            session.succeed(cached)
            return

        session.transition(AuthorizationState.SERVER_STARTING)
        if not session.listener.start_serving(self._server_start_timeout):
            session.fail(ServerStartError(ERROR_SERVER_NOT_STARTED))
            return

        session.transition(AuthorizationState.ACQUIRING)
        strategy.acquire(session)

    def close(self) -> None:
        """Shut down the executor and HTTP client this authorizer created."""
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        if self._owns_flow:
            self._flow.close()
