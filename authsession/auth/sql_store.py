"""
SQL-backed credential store.

Durable implementation of the ``CredentialStore`` contract on SQLModel /
SQLAlchemy. Works with SQLite (default) and any SQLAlchemy-supported server
database; switching is a ``DATABASE_URL`` change.

Atomicity comes from the database: the unique index on ``principals.email``
rejects a concurrent duplicate registration, and deletes report the number of
rows they actually removed.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy import delete, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..models import Principal, RenewalCredentialRecord, Role, utcnow
from .errors import DuplicateEmailError

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Tables
# ──────────────────────────────────────────────────────────────────────────────

class PrincipalRow(SQLModel, table=True):
    __tablename__ = "principals"

    id: str = Field(primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = Field(default=Role.USER.value)
    created_at: datetime
    updated_at: datetime


class RenewalCredentialRow(SQLModel, table=True):
    """Outstanding refresh tokens. A row's absence means the token is revoked."""

    __tablename__ = "renewal_credentials"

    id: str = Field(primary_key=True)
    principal_id: str = Field(index=True, foreign_key="principals.id")
    token: str = Field(index=True, unique=True)
    expires_at: datetime = Field(index=True)
    created_at: datetime


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_principal(row: PrincipalRow) -> Principal:
    return Principal(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_record(row: RenewalCredentialRow) -> RenewalCredentialRecord:
    return RenewalCredentialRecord(
        id=row.id,
        principal_id=row.principal_id,
        token=row.token,
        expires_at=_aware(row.expires_at),
        created_at=_aware(row.created_at),
    )


def _to_record_row(record: RenewalCredentialRecord) -> RenewalCredentialRow:
    return RenewalCredentialRow(
        id=record.id,
        principal_id=record.principal_id,
        token=record.token,
        expires_at=record.expires_at.astimezone(timezone.utc),
        created_at=record.created_at.astimezone(timezone.utc),
    )


def _prepare_sqlite_path(url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    if not url.startswith("sqlite:///"):
        return
    path = url[len("sqlite:///"):]
    if not path or path == ":memory:":
        return
    Path(os.path.abspath(path)).parent.mkdir(parents=True, exist_ok=True)


def create_store_engine(url: str) -> Engine:
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        _prepare_sqlite_path(url)
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}

    engine = create_engine(
        url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, _connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    return engine


class SQLCredentialStore:
    """Credential store persisted through SQLModel."""

    def __init__(self, url: str, engine: Optional[Engine] = None):
        self._engine = engine or create_store_engine(url)
        SQLModel.metadata.create_all(
            self._engine,
            tables=[PrincipalRow.__table__, RenewalCredentialRow.__table__],
        )

    def dispose(self) -> None:
        self._engine.dispose()

    # -- principals ----------------------------------------------------------

    def insert_principal(self, principal: Principal) -> Principal:
        row = PrincipalRow(
            id=principal.id,
            name=principal.name,
            email=principal.email,
            password_hash=principal.password_hash,
            role=principal.role.value,
            created_at=principal.created_at.astimezone(timezone.utc),
            updated_at=principal.updated_at.astimezone(timezone.utc),
        )
        with Session(self._engine) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.info("Rejected principal insert on unique constraint")
                raise DuplicateEmailError() from e
        return principal.model_copy()

    def find_principal_by_id(self, principal_id: str) -> Optional[Principal]:
        with Session(self._engine) as session:
            row = session.get(PrincipalRow, principal_id)
            return _to_principal(row) if row else None

    def find_principal_by_email(self, email: str) -> Optional[Principal]:
        with Session(self._engine) as session:
            row = session.exec(
                select(PrincipalRow).where(PrincipalRow.email == email)
            ).first()
            # Guard against case-insensitive collations on some servers
            if row is None or row.email != email:
                return None
            return _to_principal(row)

    def list_principals(self) -> List[Principal]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(PrincipalRow).order_by(PrincipalRow.created_at)
            ).all()
            return [_to_principal(row) for row in rows]

    def delete_principal(self, principal_id: str) -> bool:
        with self._engine.begin() as conn:
            conn.execute(
                delete(RenewalCredentialRow).where(RenewalCredentialRow.principal_id == principal_id)
            )
            result = conn.execute(delete(PrincipalRow).where(PrincipalRow.id == principal_id))
            return result.rowcount > 0

    # -- refresh records -----------------------------------------------------

    def insert_renewal_record(self, record: RenewalCredentialRecord) -> RenewalCredentialRecord:
        with Session(self._engine) as session:
            session.add(_to_record_row(record))
            session.commit()
        return record.model_copy()

    def find_renewal_record_by_token(self, token: str) -> Optional[RenewalCredentialRecord]:
        with Session(self._engine) as session:
            row = session.exec(
                select(RenewalCredentialRow).where(RenewalCredentialRow.token == token)
            ).first()
            return _to_record(row) if row else None

    def delete_renewal_record(self, token: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(RenewalCredentialRow).where(RenewalCredentialRow.token == token)
            )
            return result.rowcount > 0

    def delete_all_renewal_records_for_principal(self, principal_id: str) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(RenewalCredentialRow).where(RenewalCredentialRow.principal_id == principal_id)
            )
            return result.rowcount

    def replace_renewal_record(self, old_token: str, record: RenewalCredentialRecord) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(RenewalCredentialRow).where(RenewalCredentialRow.token == old_token)
            )
            if result.rowcount == 0:
                return False
            row = _to_record_row(record)
            conn.execute(
                RenewalCredentialRow.__table__.insert().values(
                    id=row.id,
                    principal_id=row.principal_id,
                    token=row.token,
                    expires_at=row.expires_at,
                    created_at=row.created_at,
                )
            )
            return True

    def purge_expired_renewal_records(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or utcnow()).astimezone(timezone.utc)
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(RenewalCredentialRow).where(RenewalCredentialRow.expires_at <= cutoff)
            )
            return result.rowcount


__all__ = ["SQLCredentialStore", "create_store_engine"]
