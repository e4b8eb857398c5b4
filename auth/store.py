"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  email and phone carry UNIQUE constraints. SQLite (like PostgreSQL) treats
  NULLs as distinct, so any number of accounts may leave phone empty while
  two accounts can never share a non-NULL phone. Violations surface as
  sqlalchemy.exc.IntegrityError; UserService turns that into a 409.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Role, User

logger = logging.getLogger("monitorium.store")

_DEFAULT_DB_URL = "sqlite:///./monitorium.db"

# Columns a caller may change through update_user(). id and created_at are
# fixed at insert; updated_at is stamped by the store itself.
_UPDATABLE = frozenset(
    {
        "email",
        "name",
        "hashed_password",
        "phone",
        "district",
        "verified",
        "is_representative",
        "role",
        "position",
        "party",
        "rating",
        "balance",
        "last_activity",
        "oauth_provider",
        "oauth_subject",
    }
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles_sql = ", ".join(f"'{r.value}'" for r in Role)

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("name", String(255), nullable=False),
    Column("phone", String(32), unique=True),
    Column("district", String(255)),
    Column("verified", Boolean, nullable=False, server_default="0"),
    Column("is_representative", Boolean, nullable=False, server_default="0"),
    Column("role", String(20), nullable=False, server_default=Role.USER.value),
    Column("position", String(255)),
    Column("party", String(255)),
    Column("rating", Float),
    Column("balance", Integer, nullable=False, server_default="0"),
    Column("last_activity", String(32)),
    Column("oauth_provider", String(30)),
    Column("oauth_subject", Text),  # provider's stable user ID
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint(f"role IN ({_roles_sql})", name="ck_users_role"),
    CheckConstraint("balance >= 0", name="ck_users_balance"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///./monitorium.db")
        user_id = store.create_user(User(email="a@x.com", name="A", hashed_password=hash_password("secret1")))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email or phone is already
        taken. Callers treat that as a signal that a concurrent request won
        the race for the same unique key.
        """
        user_id = user.id or str(uuid.uuid4())
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    name=user.name,
                    phone=user.phone,
                    district=user.district,
                    verified=user.verified,
                    is_representative=user.is_representative,
                    role=user.role,
                    position=user.position,
                    party=user.party,
                    rating=user.rating,
                    balance=user.balance,
                    last_activity=user.last_activity,
                    oauth_provider=user.oauth_provider,
                    oauth_subject=user.oauth_subject,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        logger.debug("User row inserted: id=%s", user_id)
        return user_id

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user and stamp updated_at.

        Unknown field names raise ValueError rather than being silently
        ignored. Raises IntegrityError on an email/phone collision.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def link_oauth(self, user_id: str, provider: str, subject: str) -> bool:
        """Associate an OAuth identity with an existing user record."""
        return self.update_user(user_id, oauth_provider=provider, oauth_subject=subject)

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Callers normalize case first."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_phone(self, phone: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.phone == phone)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users, oldest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_representatives(self) -> list[User]:
        """Return representative accounts by rating, highest first, unrated last."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select()
                .where(_users.c.is_representative.is_(True))
                .order_by(_users.c.rating.desc().nulls_last(), _users.c.name)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        phone=row.phone,
        district=row.district,
        verified=bool(row.verified),
        is_representative=bool(row.is_representative),
        role=row.role,
        position=row.position,
        party=row.party,
        rating=row.rating,
        balance=row.balance,
        last_activity=row.last_activity,
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
