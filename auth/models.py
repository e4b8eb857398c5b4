"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
the domain shape; the store and the service do the work.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    REPRESENTATIVE = "REPRESENTATIVE"
    ADMIN = "ADMIN"


@dataclass
class User:
    """A full user record as stored in the users table.

    hashed_password is None for OAuth-only accounts (they have no local
    password). oauth_provider / oauth_subject hold the provider name and the
    provider's stable user ID once the account has logged in via OAuth.

    last_activity is only stamped for representatives; it backs the
    "last seen" indicator on the representatives list.
    """

    email: str
    name: str
    role: str = Role.USER.value
    id: str | None = None
    hashed_password: str | None = None  # None = OAuth-only user
    phone: str | None = None
    district: str | None = None
    verified: bool = False
    is_representative: bool = False
    position: str | None = None
    party: str | None = None
    rating: float | None = None
    balance: int = 0
    last_activity: str | None = None
    oauth_provider: str | None = None
    oauth_subject: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_public(self) -> PublicUser:
        """Return the sanitized projection (everything except the password hash)."""
        return PublicUser(**{f.name: getattr(self, f.name) for f in fields(PublicUser)})


@dataclass(frozen=True)
class PublicUser:
    """A user with the password hash removed.

    This is the only user shape that leaves UserService and the only shape
    stored in the cache. Frozen so a cached instance cannot be mutated in
    place by one request and observed by another.
    """

    id: str
    email: str
    name: str
    role: str
    phone: str | None = None
    district: str | None = None
    verified: bool = False
    is_representative: bool = False
    position: str | None = None
    party: str | None = None
    rating: float | None = None
    balance: int = 0
    last_activity: str | None = None
    oauth_provider: str | None = None
    oauth_subject: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register / login / OAuth login."""

    user: PublicUser
    token: str
