"""
auth/tokens.py -- Password hashing, credential checks, and JWT issuance.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (sub), email, role, iat and exp. TokenService.verify()
       raises InvalidTokenError on any failure -- the API layer turns that
       into a 401. Tokens are stateless: there is no server-side denylist,
       so a token stays valid until it expires even after a password change.

  Passwords: bcrypt used directly (no passlib wrapper). The cost factor comes
       from Settings.bcrypt_rounds (12 in production). The dummy hash enables
       timing equalization in authenticate_user() so response time does not
       reveal whether an email is registered.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.errors import InvalidTokenError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("monitorium.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password fields at 128 characters; multi-byte input can still
    cross 72 bytes, which only means the tail is ignored.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash is a verification failure, not a crash.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Same cost as real hashes so the unknown-email path takes as long as
    # the wrong-password path.
    return hash_password("monitorium_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email or OAuth-only account: bcrypt runs against the dummy hash
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _dummy_hash())
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed, time-limited identity tokens.

    Holds only the signing key and TTL, so one instance is safe to share
    across threads.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(user.id, user.email, user.role)
        claims = tokens.verify(token)   # raises InvalidTokenError
    """

    def __init__(self, secret_key: str, expire_seconds: int = 7 * 24 * 60 * 60, algorithm: str = _ALGORITHM) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._algorithm = algorithm

    def issue(
        self,
        user_id: str,
        email: str | None = None,
        role: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Encode a signed JWT for user_id, expiring expire_seconds after now."""
        issued_at = now or datetime.now(timezone.utc)
        payload: dict = {
            "sub": user_id,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(seconds=self.expire_seconds)).timestamp()),
        }
        if email is not None:
            payload["email"] = email
        if role is not None:
            payload["role"] = role
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict:
        """Decode and verify a JWT. Returns the claims dict.

        Raises InvalidTokenError on bad signature, malformed structure,
        expiry, or a missing subject claim.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_nbf": False},
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise InvalidTokenError() from exc
        if not payload.get("sub"):
            raise InvalidTokenError()
        return payload
