"""Bridge between the scripted authorization and the integrator's login UI."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class LoginFormListener:
    """UI side notifications. Override what the UI needs; the rest are no-ops.

    Callbacks are not made from the UI thread.
    """

    def on_success(self) -> None:
        pass

    def on_failure(self, cause: BaseException) -> None:
        pass

    def on_give_up(self, cause: Optional[BaseException]) -> None:
        pass


class LoginFormSubmitter(Protocol):
    """Authorizer side of the bridge, attached while a login is pending."""

    def submit(self, email: str, password: str) -> None: ...

    def give_up(self, cause: Optional[BaseException]) -> None: ...


class LoginFormController(ABC):
    """Controller the authorizer uses to ask for credentials.

    Subclasses implement ``activate_form`` to show the login form. The
    authorizer attaches a submitter before activating; the UI answers with
    ``submit`` or ``give_up``. The submitter is detached when the flow ends;
    giving up also detaches the listener.
    """

    def __init__(self) -> None:
        self._listener: Optional[LoginFormListener] = None
        self._submitter: Optional[LoginFormSubmitter] = None

    @abstractmethod
    def activate_form(self, cause: Optional[BaseException]) -> None:
        """Show the login form.

        Args:
            cause: None on the first activation, the failure when the form is
                re-activated after an unsuccessful login.
        """

    def attach_form_listener(self, listener: LoginFormListener) -> None:
        self._listener = listener

    def detach_form_listener(self) -> None:
        self._listener = None

    def attach_form_submitter(self, submitter: LoginFormSubmitter) -> None:
        if self._submitter is None:
            self._submitter = submitter
        else:
            logger.warning("LoginFormSubmitter already attached, ignoring the new one")

    def detach_form_submitter(self) -> None:
        self._submitter = None

    def submit(self, email: str, password: str) -> None:
        if self._submitter is None:
            raise RuntimeError("No login in progress: submitter is not attached")
        self._submitter.submit(email, password)

    def give_up(self, cause: Optional[BaseException] = None) -> None:
        """Abandon the login: notify the listener and the submitter, then detach both."""
        submitter = self._submitter
        if submitter is None:
            raise RuntimeError("No login in progress: submitter is not attached")
        if self._listener is not None:
            self._listener.on_give_up(cause)
        self.detach_all()
        submitter.give_up(cause)

    def on_login_success(self) -> None:
        if self._listener is not None:
            self._listener.on_success()

    def on_login_failure(self, cause: BaseException) -> None:
        if self._listener is not None:
            self._listener.on_failure(cause)

    def detach_all(self) -> None:
        self._listener = None
        self._submitter = None

    def is_detached(self) -> bool:
        return self._listener is None and self._submitter is None


class OneShotLoginFormController(LoginFormController):
    """Submits fixed credentials once and gives up if they are rejected."""

    def __init__(self, email: str, password: str) -> None:
        super().__init__()
        self._email = email
        self._password = password
        self._activated = False

    def activate_form(self, cause: Optional[BaseException]) -> None:
        if self._activated:
            self.give_up(cause)
            return
        self._activated = True
        self.submit(self._email, self._password)
