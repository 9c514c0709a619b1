"""Typed values exchanged by authentication operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, Tuple, TypeVar

from ..exceptions import FlowStateError
from .scope import AuthScope

T = TypeVar("T")

# Ordered (name, value) pairs of the confirm-authorization form.
AuthorizeForm = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class AuthToken:
    """Access token issued by the token endpoint."""

    access_token: str
    token_type: str
    refresh_token: str
    scope: AuthScope = field(default_factory=lambda: AuthScope.NONE)
    created_at: int = 0

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> AuthToken:
        """Build a token from the token endpoint payload.

        Raises:
            FlowStateError: If ``access_token`` is missing, the payload is not an
                object, or a field has the wrong type.
        """
        if not isinstance(data, Mapping) or not data.get("access_token"):
            raise FlowStateError("Token response has no access_token")
        for name in ("access_token", "token_type", "refresh_token", "scope"):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise FlowStateError(f"Invalid {name}: {type(value).__name__}")
        created_at = data.get("created_at") or 0
        if isinstance(created_at, bool):
            raise FlowStateError(f"Invalid created_at: {created_at!r}")
        try:
            created_at = int(created_at)
        except (TypeError, ValueError):
            raise FlowStateError(f"Invalid created_at: {created_at!r}") from None
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "bearer",
            refresh_token=data.get("refresh_token") or "",
            scope=AuthScope.decode(data.get("scope")),
            created_at=created_at,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "scope": " ".join(self.scope),
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return (
            f"AuthToken(access_token={mask_secret(self.access_token)!r}, token_type={self.token_type!r}, "
            f"scope={self.scope.value!r}, created_at={self.created_at})"
        )


@dataclass
class FlowResult(Generic[T]):
    """Outcome of a single authorization step: a value or an error, never both."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> FlowResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> FlowResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def mask_secret(value: str) -> str:
    if len(value) >= 16:
        return value[:4] + "..." + value[-4:]
    if len(value) >= 8:
        return value[:4] + "..."
    return "***"
