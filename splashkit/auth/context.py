"""Current-token state shared by authenticated API calls."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..exceptions import SignedOutError
from .credentials import NoTokenStorage, TokenStorage
from .types import AuthToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggedIn:
    token: AuthToken


@dataclass(frozen=True)
class LoggedOut:
    pass


State = Union[LoggedIn, LoggedOut]


@dataclass(frozen=True)
class AuthContext:
    """Read-only view of an auth context handed to API callers.

    It can read the current token but never change it; only the owning
    ``CachedAuthContext`` can.
    """

    access_key: str
    _get_token: Callable[[], AuthToken]

    def get_token(self) -> AuthToken:
        """Return the current token.

        Raises:
            SignedOutError: If there is no signed-in session.
        """
        return self._get_token()


class CachedAuthContext:
    """Thread-safe token cache backed by a storage capability.

    Every read and write of the state goes through a single lock, so
    ``reset``/``clear``/``get_token`` never observe a half-applied transition.
    Storage is written first; if it raises, the state is left unchanged.
    """

    def __init__(self, access_key: str, storage: Optional[TokenStorage] = None) -> None:
        self.access_key = access_key
        self._storage = storage or NoTokenStorage()
        self._lock = threading.Lock()
        stored = self._storage.load()
        self._state: State = LoggedIn(stored) if stored is not None else LoggedOut()

    def has_token(self) -> bool:
        with self._lock:
            return isinstance(self._state, LoggedIn)

    def get_token(self) -> AuthToken:
        with self._lock:
            state = self._state
        if isinstance(state, LoggedIn):
            return state.token
        raise SignedOutError()

    def reset(self, token: AuthToken) -> None:
        with self._lock:
            self._storage.save(token)
            self._state = LoggedIn(token)
        logger.debug("Auth context signed in")

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()
            self._state = LoggedOut()
        logger.debug("Auth context signed out")

    def as_read_only(self) -> AuthContext:
        return AuthContext(access_key=self.access_key, _get_token=self.get_token)
