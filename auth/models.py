"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these types only own shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class User:
    """A credential record as persisted by UserStore.

    email is always stored lowercase. hashed_password stays inside the auth
    layer -- anything that leaves it goes through to_principal() first.
    """

    email: str
    username: str
    hashed_password: str
    id: int | None = None
    name: str | None = None
    avatar: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_principal(self) -> Principal:
        return Principal(
            id=self.id,
            email=self.email,
            username=self.username,
            name=self.name,
            avatar=self.avatar,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class Principal:
    """The authenticated user attached to a request. No password material."""

    id: int | None
    email: str
    username: str
    name: str | None = None
    avatar: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class FieldError:
    """One itemized entry of an error envelope."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified token payload.

    subject is passed through exactly as it was issued (it may be None).
    claims holds the full raw payload for callers that need extra fields.
    """

    subject: Any
    issued_at: datetime | None
    expires_at: datetime
    token_id: str | None = None
    claims: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful register or login."""

    principal: Principal
    token: str
