"""Token storage and key resolution for the splashkit SDK.

The file storage keeps the token in ~/.splashkit/token.json with restrictive
permissions, the same pattern used by ~/.aws/credentials, ~/.npmrc, etc.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from ..exceptions import FlowStateError
from .constants import (
    ACCESS_KEY_ENV,
    CONFIG_DIR,
    KEYRING_SERVICE_NAME,
    KEYRING_USERNAME,
    SECRET_KEY_ENV,
    TOKEN_FILE,
)
from .types import AuthToken

logger = logging.getLogger(__name__)


class TokenStorage(Protocol):
    """Persistence capability for the current token."""

    def save(self, token: AuthToken) -> None: ...

    def load(self) -> Optional[AuthToken]: ...

    def clear(self) -> None: ...


class NoTokenStorage:
    """Keeps nothing: every process starts signed out."""

    def save(self, token: AuthToken) -> None:
        pass

    def load(self) -> Optional[AuthToken]:
        return None

    def clear(self) -> None:
        pass


def get_token_path() -> Path:
    return Path.home() / CONFIG_DIR / TOKEN_FILE


def _parse_token(raw: str) -> Optional[AuthToken]:
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        return AuthToken.from_json(data)
    except (json.JSONDecodeError, FlowStateError):
        return None


class FileTokenStorage:
    """Token storage backed by a JSON file.

    - Directory: 0700 (owner read/write/execute only)
    - File: 0600 (owner read/write only)
    - Atomic: writes to temp file in same dir, then os.replace()
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or get_token_path()

    def save(self, token: AuthToken) -> None:
        token_path = self.path
        token_dir = token_path.parent
        token_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(token_dir, 0o700)

        content = json.dumps(token.to_json(), indent=2)

        # Atomic write: temp file in same directory, then rename
        fd, tmp_path = tempfile.mkstemp(dir=token_dir, prefix=".token_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, token_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self) -> Optional[AuthToken]:
        """Returns None if the file doesn't exist, is corrupt, or has no access token."""
        token_path = self.path
        if not token_path.exists():
            return None
        try:
            raw = token_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return _parse_token(raw)

    def clear(self) -> None:
        token_path = self.path
        if token_path.exists():
            token_path.unlink()


class KeyringTokenStorage:
    """Token storage in the system keyring, falling back to a file.

    Requires the optional ``keyring`` extra. When no keyring backend is usable
    the token goes to ``fallback`` instead.
    """

    def __init__(self, fallback: Optional[TokenStorage] = None) -> None:
        self._fallback = fallback or FileTokenStorage()

    def save(self, token: AuthToken) -> None:
        import keyring
        from keyring.errors import KeyringError

        try:
            keyring.set_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME, json.dumps(token.to_json()))
        except KeyringError as e:
            logger.warning("Keyring unavailable (%s), storing token in file", e)
            self._fallback.save(token)

    def load(self) -> Optional[AuthToken]:
        import keyring
        from keyring.errors import KeyringError

        try:
            raw = keyring.get_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME)
        except KeyringError as e:
            logger.warning("Keyring unavailable (%s), reading token from file", e)
            raw = None
        if raw:
            return _parse_token(raw)
        return self._fallback.load()

    def clear(self) -> None:
        import keyring
        from keyring.errors import KeyringError, PasswordDeleteError

        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME)
        except PasswordDeleteError:
            pass
        except KeyringError as e:
            logger.warning("Keyring unavailable (%s)", e)
        self._fallback.clear()


_PLACEHOLDER_KEYS = frozenset({"YOUR_ACCESS_KEY", "YOUR_SECRET_KEY"})


def _is_real_key(key: str | None) -> bool:
    return bool(key and key.strip() and key.strip() not in _PLACEHOLDER_KEYS)


def _resolve(explicit: str | None, env_var: str) -> str | None:
    if _is_real_key(explicit):
        return explicit
    env_key = os.environ.get(env_var)
    if _is_real_key(env_key):
        return env_key
    return None


def resolve_access_key(access_key: str | None = None) -> str | None:
    """Resolve the access key (client id): explicit parameter > SPLASHKIT_ACCESS_KEY.

    Placeholder values like ``"YOUR_ACCESS_KEY"`` are treated as missing.
    Returns None if no key is found (caller decides error behavior).
    """
    return _resolve(access_key, ACCESS_KEY_ENV)


def resolve_secret_key(secret_key: str | None = None) -> str | None:
    """Resolve the secret key: explicit parameter > SPLASHKIT_SECRET_KEY."""
    return _resolve(secret_key, SECRET_KEY_ENV)
