"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Services and route
code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  password_hash is projected out of every read unless the caller asks for it
  with with_password=True. Only login and the reset flow need it.

  Emails are normalized (strip + lowercase) here as well as at the API
  layer, so the UNIQUE(email) constraint holds regardless of caller.

Consistency:
  The store holds no locks. Every write is a single UPDATE/INSERT statement,
  so a change to one user record is atomic. There is no multi-record
  transaction anywhere in the auth core.

DB path: DATABASE_URL, default sqlite:///foundex_auth.db in the working directory.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import User, normalize_email

_DEFAULT_DB_URL = "sqlite:///foundex_auth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex, opaque to callers
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False, server_default=""),
    Column("password_hash", Text),
    Column("role", String(20), nullable=False),  # "founder" | "investor"
    Column("linkedin_url", String(2048)),
    Column("profile_image_url", String(2048)),
    Column("reset_code", String(32)),
    Column("reset_code_expires", String(32)),  # ISO 8601 UTC, paired with reset_code
    Column("created_at", String(32), nullable=False),
)

# Every column except password_hash -- the default read projection.
_public_columns = [c for c in _users.c if c.name != "password_hash"]

_PROFILE_FIELDS = frozenset({"full_name", "linkedin_url", "profile_image_url"})


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


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create_user(User(email="a@x.com", role="founder", password_hash=hash_password("secret")))
        same = store.get_by_email("A@X.com ")
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
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str, *, with_password: bool = False) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        cols = list(_users.c) if with_password else _public_columns
        with self.engine.connect() as conn:
            row = conn.execute(select(*cols).where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str, *, with_password: bool = False) -> User | None:
        """Look up a user by id. Returns None if not found."""
        cols = list(_users.c) if with_password else _public_columns
        with self.engine.connect() as conn:
            row = conn.execute(select(*cols).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email, without password hashes."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(*_public_columns).order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers (POST /auth/register) turn that into a 409 -- it is also the
        signal that a concurrent registration won the race.
        """
        user_id = uuid.uuid4().hex
        created_at = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=normalize_email(user.email),
                    full_name=user.full_name,
                    password_hash=user.password_hash,
                    role=user.role,
                    created_at=created_at,
                )
            )
            conn.commit()
        created = self.get_by_id(user_id)
        assert created is not None
        return created

    def save(self, user: User) -> None:
        """Persist the mutable fields of an existing user in one UPDATE.

        Writes full_name, password_hash and the reset_code pair. The pair is
        always written together, so a save can never leave one without the other.
        password_hash is only written when the instance carries one, so saving
        a record loaded without the hash does not wipe it.
        """
        values: dict = {
            "full_name": user.full_name,
            "reset_code": user.reset_code,
            "reset_code_expires": _to_iso(user.reset_code_expires) if user.reset_code is not None else None,
        }
        if user.password_hash is not None:
            values["password_hash"] = user.password_hash
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
            conn.commit()

    def set_reset_code(self, email: str, code: str, expires: datetime) -> User | None:
        """Set (or overwrite) the reset code pair for an email in one UPDATE.

        Returns the updated user, or None if no user has that email. Two
        concurrent calls for the same email race benignly: last write wins.
        """
        normalized = normalize_email(email)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.email == normalized)
                .values(reset_code=code, reset_code_expires=_to_iso(expires))
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_by_email(normalized)

    def update_profile(self, user_id: str, **changes) -> User | None:
        """Apply profile edits in one UPDATE. Returns the updated user or None if not found.

        Only full_name, linkedin_url and profile_image_url are editable here.
        With no changes the current record is returned as is.
        """
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)}")
        if not changes:
            return self.get_by_id(user_id)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**changes))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_by_id(user_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # password_hash is absent from the default projection.
    password_hash = getattr(row, "password_hash", None)
    expires = datetime.fromisoformat(row.reset_code_expires) if row.reset_code_expires else None
    reset_code = row.reset_code if expires is not None else None
    return User(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        role=row.role,
        linkedin_url=row.linkedin_url,
        profile_image_url=row.profile_image_url,
        password_hash=password_hash,
        reset_code=reset_code,
        reset_code_expires=expires if reset_code is not None else None,
        created_at=row.created_at,
    )
