"""Wipeable storage for the API secret key."""

from __future__ import annotations

from typing import Any, Union


class SecretBuffer:
    """Mutable holder for a secret that can be zeroed in place.

    The secret lives in a ``bytearray`` so it can be overwritten once the
    token exchange is over. A ``bytearray`` passed in is used as is, so the
    caller's own buffer is the one that gets zeroed. Use it as a context
    manager to guarantee the wipe:

        >>> with SecretBuffer("s3cret") as secret:
        ...     secret.reveal()
        's3cret'

    ``reveal()`` necessarily produces a transient ``str`` for the HTTP form;
    only the buffer itself is wiped.
    """

    __slots__ = ("_data", "_wiped")

    def __init__(self, secret: Union[str, bytes, bytearray]) -> None:
        if isinstance(secret, bytearray):
            # Owned, not copied: wiping zeroes the caller's buffer too.
            self._data = secret
        elif isinstance(secret, str):
            self._data = bytearray(secret.encode("utf-8"))
        else:
            self._data = bytearray(secret)
        self._wiped = False

    @classmethod
    def of(cls, secret: Union[SecretBuffer, str, bytes, bytearray]) -> SecretBuffer:
        """Wrap raw secrets, pass buffers through untouched."""
        return secret if isinstance(secret, SecretBuffer) else cls(secret)

    def copy(self) -> SecretBuffer:
        """Independent buffer holding the same secret, wiped separately."""
        if self._wiped:
            raise ValueError("Secret has been wiped")
        return SecretBuffer(bytearray(self._data))

    def reveal(self) -> str:
        if self._wiped:
            raise ValueError("Secret has been wiped")
        return self._data.decode("utf-8")

    def wipe(self) -> None:
        """Overwrite the secret with zeros. Safe to call more than once."""
        for i in range(len(self._data)):
            self._data[i] = 0
        self._wiped = True

    @property
    def wiped(self) -> bool:
        return self._wiped

    def __len__(self) -> int:
        return len(self._data)

    def __enter__(self) -> SecretBuffer:
        return self

    def __exit__(self, exc_type: type | None, exc: BaseException | None, traceback: Any) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return "SecretBuffer(wiped)" if self._wiped else "SecretBuffer(***)"
