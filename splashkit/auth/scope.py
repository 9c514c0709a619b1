"""Permission scopes requested during authorization."""

from __future__ import annotations

import re
from typing import ClassVar, Iterable, Iterator


class AuthScope:
    """Immutable set of permission flags.

    Scopes compose with ``+`` (union) and ``-`` (difference) and encode to a
    deterministic ``+``-joined string, e.g. ``"public+read_user"``:

        >>> (AuthScope.PUBLIC + AuthScope.READ_USER).value
        'public+read_user'

    Subtracting every flag is rejected; use ``AuthScope.NONE`` when no scope is
    meant explicitly.
    """

    PUBLIC: ClassVar[AuthScope]
    READ_USER: ClassVar[AuthScope]
    WRITE_USER: ClassVar[AuthScope]
    READ_PHOTOS: ClassVar[AuthScope]
    WRITE_PHOTOS: ClassVar[AuthScope]
    WRITE_LIKES: ClassVar[AuthScope]
    WRITE_FOLLOWERS: ClassVar[AuthScope]
    READ_COLLECTIONS: ClassVar[AuthScope]
    WRITE_COLLECTIONS: ClassVar[AuthScope]
    ALL: ClassVar[AuthScope]
    NONE: ClassVar[AuthScope]

    __slots__ = ("_flags",)

    def __init__(self, flags: Iterable[str] = ()) -> None:
        ordered: list[str] = []
        for flag in flags:
            if flag and flag not in ordered:
                ordered.append(flag)
        self._flags = tuple(ordered)

    @classmethod
    def decode(cls, text: str | None) -> AuthScope:
        """Parse a ``+``- or space-separated scope string."""
        if not text:
            return cls.NONE
        return cls(re.split(r"[+\s]+", text.strip()))

    @property
    def value(self) -> str:
        return "+".join(self._flags)

    @property
    def flags(self) -> tuple[str, ...]:
        return self._flags

    def __add__(self, other: AuthScope) -> AuthScope:
        if not isinstance(other, AuthScope):
            return NotImplemented
        return AuthScope(self._flags + other._flags)

    def __sub__(self, other: AuthScope) -> AuthScope:
        if not isinstance(other, AuthScope):
            return NotImplemented
        remaining = [flag for flag in self._flags if flag not in other._flags]
        if not remaining:
            raise ValueError("It should be at least one scope after subtracting")
        return AuthScope(remaining)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, AuthScope):
            return all(flag in self._flags for flag in item._flags)
        return item in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthScope):
            return NotImplemented
        return frozenset(self._flags) == frozenset(other._flags)

    def __hash__(self) -> int:
        return hash(frozenset(self._flags))

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"AuthScope({self.value!r})"


AuthScope.PUBLIC = AuthScope(["public"])
AuthScope.READ_USER = AuthScope(["read_user"])
AuthScope.WRITE_USER = AuthScope(["write_user"])
AuthScope.READ_PHOTOS = AuthScope(["read_photos"])
AuthScope.WRITE_PHOTOS = AuthScope(["write_photos"])
AuthScope.WRITE_LIKES = AuthScope(["write_likes"])
AuthScope.WRITE_FOLLOWERS = AuthScope(["write_followers"])
AuthScope.READ_COLLECTIONS = AuthScope(["read_collections"])
AuthScope.WRITE_COLLECTIONS = AuthScope(["write_collections"])
AuthScope.ALL = (
    AuthScope.PUBLIC
    + AuthScope.READ_USER
    + AuthScope.WRITE_USER
    + AuthScope.READ_PHOTOS
    + AuthScope.WRITE_PHOTOS
    + AuthScope.WRITE_LIKES
    + AuthScope.WRITE_FOLLOWERS
    + AuthScope.READ_COLLECTIONS
    + AuthScope.WRITE_COLLECTIONS
)
AuthScope.NONE = AuthScope()
