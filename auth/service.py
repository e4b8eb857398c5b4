"""
auth/service.py -- Registration, login, and user management rules.

UserService is the only component with business rules. It holds its
collaborators (store, cache, token service) as constructor arguments, so
tests can hand it an in-memory store and a cache with a fake clock.

Cache contract:
  user:<id> holds the PublicUser projection for up to user_cache_ttl
  seconds. Every method that writes a user overwrites or evicts that key
  before returning, so a read after a completed write never sees stale data.
  A miss always falls back to the store.

Account enumeration:
  login() reports unknown email, OAuth-only account, and wrong password with
  the same message, and authenticate_user() equalizes bcrypt work across all
  three. request_password_reset() behaves the same whether or not the
  account exists.

Layer rule: no imports from api/. cache/ is referenced for type hints only;
the instance arrives through the constructor.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from auth.models import AuthResult, PublicUser, Role, User
from auth.tokens import TokenService, authenticate_user, hash_password, verify_password
from core.errors import (
    BadRequestError,
    ConflictError,
    FeatureNotImplementedError,
    NotFoundError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from auth.store import UserStore
    from cache.store import TTLCache

logger = logging.getLogger("monitorium.auth")

_INVALID_CREDENTIALS = "Invalid credentials"

PROFILE_FIELDS = frozenset({"name", "phone", "district", "position", "party"})
ADMIN_FIELDS = frozenset({"email", "role", "verified", "rating", "balance"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _cache_key(user_id: str) -> str:
    return f"user:{user_id}"


class UserService:
    def __init__(
        self,
        store: UserStore,
        cache: TTLCache,
        tokens: TokenService,
        user_cache_ttl: int = 300,
        starting_balance: int = 10,
    ) -> None:
        self.store = store
        self.cache = cache
        self.tokens = tokens
        self.user_cache_ttl = user_cache_ttl
        self.starting_balance = starting_balance

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        name: str,
        phone: str | None = None,
        district: str | None = None,
        is_representative: bool = False,
        position: str | None = None,
        party: str | None = None,
    ) -> AuthResult:
        """Create a password account and return it with a fresh token.

        Representatives start with a zero balance; everyone else gets
        starting_balance credits.
        """
        email = _normalize_email(email)
        if self.store.get_by_email(email) is not None:
            raise ConflictError("User already exists")
        if phone and self.store.get_by_phone(phone) is not None:
            raise ConflictError("Phone number is already in use")

        user = User(
            email=email,
            name=name,
            hashed_password=hash_password(password),
            phone=phone or None,
            district=district,
            is_representative=is_representative,
            role=Role.REPRESENTATIVE.value if is_representative else Role.USER.value,
            position=position,
            party=party,
            balance=0 if is_representative else self.starting_balance,
        )
        created = self._create(user)
        logger.info("User registered: id=%s representative=%s", created.id, is_representative)
        return self._auth_result(created)

    def login(self, email: str, password: str) -> AuthResult:
        user = authenticate_user(self.store, _normalize_email(email), password)
        if user is None:
            raise UnauthorizedError(_INVALID_CREDENTIALS)
        if user.is_representative:
            user = self._touch_activity(user)
        logger.info("User logged in: id=%s", user.id)
        return self._auth_result(user.to_public())

    def oauth_login(
        self,
        provider: str,
        provider_id: str,
        email: str,
        name: str,
        phone: str | None = None,
        verified: bool = True,
    ) -> AuthResult:
        """Log in with an identity the client already obtained from a provider.

        An existing account with the same email is reused (and linked to the
        provider if it has no OAuth identity yet). Otherwise a new
        passwordless account is created.
        """
        email = _normalize_email(email)
        user = self.store.get_by_email(email)
        if user is not None:
            if user.oauth_subject is None:
                self.store.link_oauth(user.id, provider, provider_id)
                user.oauth_provider, user.oauth_subject = provider, provider_id
                self.cache.delete(_cache_key(user.id))
            if user.is_representative:
                user = self._touch_activity(user)
            logger.info("OAuth login: id=%s provider=%s", user.id, provider)
            return self._auth_result(user.to_public())

        if phone and self.store.get_by_phone(phone) is not None:
            raise ConflictError("Phone number is already in use")
        created = self._create(
            User(
                email=email,
                name=name,
                phone=phone or None,
                verified=verified,
                balance=self.starting_balance,
                oauth_provider=provider,
                oauth_subject=provider_id,
            )
        )
        logger.info("OAuth account created: id=%s provider=%s", created.id, provider)
        return self._auth_result(created)

    def get_user_from_token(self, token: str) -> PublicUser:
        """Resolve a bearer token to its user.

        InvalidTokenError (401) for a bad token; NotFoundError (404) when the
        account was deleted after the token was issued.
        """
        claims = self.tokens.verify(token)
        user = self.find_user_by_id(claims["sub"])
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_user_by_id(self, user_id: str) -> PublicUser | None:
        """Read-through lookup: cache first, then the store (populating the cache)."""
        cached = self.cache.get(_cache_key(user_id))
        if cached is not None:
            return cached
        user = self.store.get_by_id(user_id)
        if user is None:
            return None
        public = user.to_public()
        self.cache.set(_cache_key(user_id), public, ttl=self.user_cache_ttl)
        return public

    def list_users(self) -> list[PublicUser]:
        return [u.to_public() for u in self.store.list_users()]

    def get_representatives(self) -> list[PublicUser]:
        return [u.to_public() for u in self.store.list_representatives()]

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_profile(self, user_id: str, **fields: Any) -> PublicUser:
        """Apply self-service profile changes (name, phone, district, position, party)."""
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise BadRequestError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        return self.update_user(user_id, **fields)

    def update_user(self, user_id: str, **fields: Any) -> PublicUser:
        """Apply profile and administrative changes to any user.

        Role gating (self vs. ADMIN) happens at the access-control boundary;
        this method only enforces uniqueness of email and phone.
        """
        unknown = set(fields) - PROFILE_FIELDS - ADMIN_FIELDS
        if unknown:
            raise BadRequestError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if not fields:
            raise BadRequestError("No fields to update")
        if "email" in fields:
            fields["email"] = _normalize_email(fields["email"])
            other = self.store.get_by_email(fields["email"])
            if other is not None and other.id != user_id:
                raise ConflictError("Email is already in use")
        if "phone" in fields:
            # A blank phone is stored as NULL so it never collides under UNIQUE.
            fields["phone"] = fields["phone"] or None
        if fields.get("phone"):
            other = self.store.get_by_phone(fields["phone"])
            if other is not None and other.id != user_id:
                raise ConflictError("Phone number is already in use")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
            fields["is_representative"] = fields["role"] == Role.REPRESENTATIVE.value

        try:
            updated = self.store.update_user(user_id, **fields)
        except IntegrityError as exc:
            raise ConflictError("Email or phone number is already in use") from exc
        if not updated:
            raise NotFoundError("User not found")
        return self._refresh(user_id)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace the password after checking the current one.

        Reads the full record from the store: cached entries carry no hash.
        Outstanding tokens are neither reissued nor invalidated.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.hashed_password is None or not verify_password(current_password, user.hashed_password):
            raise BadRequestError("Current password is incorrect")
        self.store.update_user(user_id, hashed_password=hash_password(new_password))
        self.cache.delete(_cache_key(user_id))
        logger.info("Password changed: id=%s", user_id)

    def verify_user(self, user_id: str) -> PublicUser:
        if not self.store.update_user(user_id, verified=True):
            raise NotFoundError("User not found")
        logger.info("User verified: id=%s", user_id)
        return self._refresh(user_id)

    def delete_user(self, actor_id: str, user_id: str) -> None:
        if actor_id == user_id:
            raise BadRequestError("You cannot delete your own account")
        if not self.store.delete_user(user_id):
            raise NotFoundError("User not found")
        self.cache.delete(_cache_key(user_id))
        logger.info("User deleted: id=%s by=%s", user_id, actor_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> None:
        """Record a reset request. No email is sent and no reset token exists yet."""
        email = _normalize_email(email)
        exists = self.store.get_by_email(email) is not None
        logger.info("Password reset requested for %s (account_exists=%s)", email, exists)

    def reset_password(self, token: str, new_password: str) -> None:
        raise FeatureNotImplementedError("Password reset is not implemented yet")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create(self, user: User) -> PublicUser:
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same email/phone.
            raise ConflictError("User already exists") from exc
        return self._refresh(user_id)

    def _refresh(self, user_id: str) -> PublicUser:
        """Re-read a user from the store and overwrite its cache entry."""
        user = self.store.get_by_id(user_id)
        if user is None:
            self.cache.delete(_cache_key(user_id))
            raise NotFoundError("User not found")
        public = user.to_public()
        self.cache.set(_cache_key(user_id), public, ttl=self.user_cache_ttl)
        return public

    def _touch_activity(self, user: User) -> User:
        self.store.update_user(user.id, last_activity=_now_iso())
        self.cache.delete(_cache_key(user.id))
        return self.store.get_by_id(user.id) or user

    def _auth_result(self, user: PublicUser) -> AuthResult:
        token = self.tokens.issue(user.id, user.email, user.role)
        return AuthResult(user=user, token=token)
