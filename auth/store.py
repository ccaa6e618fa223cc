"""
auth/store.py -- SQLAlchemy Core persistence layer for issued tokens.

Pattern: Repository + Data Mapper. TokenStore is the repository;
_row_to_record is the mapper. Service and route code never touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Token values are compared with hmac.compare_digest inside redeem().

Concurrency:
  Every multi-statement operation runs inside one transaction. On SQLite the
  transaction is opened with BEGIN IMMEDIATE, which takes the database write
  lock before the first SELECT -- a read-check-delete sequence can not
  interleave with another writer, and two connections never deadlock trying
  to upgrade a shared lock. Server databases get SELECT ... FOR UPDATE
  instead (the SQLite dialect renders no FOR UPDATE clause).

  resource_id is UNIQUE, so even a writer that bypasses replace() cannot
  leave two live tokens for one resource.

DB path: auth/tokengate_tokens.db unless TOKEN_DB_URL says otherwise.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine, delete, event, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import SingletonThreadPool

from auth.errors import TokenStoreError
from auth.models import RedeemStatus, TokenRecord
from core.config import get_settings

logger = logging.getLogger("tokengate.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_tokens = Table(
    "token",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("resource_id", Text, nullable=False, unique=True),
    Column("value", Text, nullable=False),
    # ISO 8601 UTC with microseconds -- fixed width, so string order is time order.
    Column("expiration", Text, nullable=False),
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite_connection(dbapi_conn, connection_record) -> None:
    """Apply per-connection PRAGMAs and hand transaction control to SQLAlchemy.

    temp_store / journal_mode MEMORY keep the rollback journal and temp tables
    off disk, which avoids lock files lingering on shared or virtual
    filesystems. isolation_level=None stops pysqlite from emitting its own
    BEGIN so the "begin" listener below decides the transaction mode.
    """
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA temp_store=MEMORY")
    dbapi_conn.execute("PRAGMA journal_mode=MEMORY")


def _begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_memory_url(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for TokenRecord entities.

    Usage:
        store = TokenStore("sqlite:///:memory:")
        store.replace(TokenRecord(resource_id="42", value=v, expiration=exp))
        status = store.redeem("42", v, datetime.now(timezone.utc))
        store.close()

    Every method raises TokenStoreError if the database fails.
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().token_db_url
        connect_args: dict = {}
        is_sqlite = db_url.startswith("sqlite")
        if is_sqlite:
            # Route handlers run in a thread pool; connections move between threads.
            connect_args["check_same_thread"] = False
        engine_args: dict = {}
        if is_sqlite and _is_memory_url(db_url):
            # One connection per thread; a shared-cache memory DB lives as long as one stays open.
            engine_args["poolclass"] = SingletonThreadPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if is_sqlite:
            event.listen(self.engine, "connect", _configure_sqlite_connection)
            event.listen(self.engine, "begin", _begin_immediate)
        # CREATE TABLE IF NOT EXISTS -- safe when several processes start at once.
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise TokenStoreError("Could not initialize the token table") from exc

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction; commit on exit, roll back on error."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Token store operation failed: %s", exc)
            raise TokenStoreError("Database error occurred") from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, resource_id: str) -> TokenRecord | None:
        """Return the stored record for resource_id, expired or not."""
        with self._transaction() as conn:
            row = conn.execute(select(_tokens).where(_tokens.c.resource_id == resource_id)).first()
        return _row_to_record(row) if row is not None else None

    def count(self) -> int:
        with self._transaction() as conn:
            return conn.execute(select(func.count()).select_from(_tokens)).scalar() or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace(self, record: TokenRecord) -> None:
        """Store record as the only token for its resource.

        The delete of the previous token and the insert share one transaction,
        so a concurrent replace() for the same resource either fully precedes
        or fully follows this one.
        """
        with self._transaction() as conn:
            conn.execute(delete(_tokens).where(_tokens.c.resource_id == record.resource_id))
            conn.execute(
                _tokens.insert().values(
                    resource_id=record.resource_id,
                    value=record.value,
                    expiration=_to_iso(record.expiration),
                )
            )

    def redeem(self, resource_id: str, value: str, now: datetime) -> RedeemStatus:
        """Atomically check the token for resource_id and delete it if it is usable.

        EXPIRED and REDEEMED delete the record; MISMATCH leaves it in place so
        a guessed value cannot be used to revoke someone else's token.
        """
        with self._transaction() as conn:
            row = conn.execute(
                select(_tokens).where(_tokens.c.resource_id == resource_id).with_for_update()
            ).first()
            if row is None:
                return RedeemStatus.MISSING
            record = _row_to_record(row)
            if record.expiration <= now:
                conn.execute(delete(_tokens).where(_tokens.c.id == record.id))
                return RedeemStatus.EXPIRED
            if not hmac.compare_digest(record.value.encode("utf-8"), value.encode("utf-8")):
                return RedeemStatus.MISMATCH
            conn.execute(delete(_tokens).where(_tokens.c.id == record.id))
            return RedeemStatus.REDEEMED

    def delete(self, resource_id: str) -> bool:
        """Remove the token for resource_id. Returns True if one existed."""
        with self._transaction() as conn:
            result = conn.execute(delete(_tokens).where(_tokens.c.resource_id == resource_id))
        return result.rowcount > 0

    def purge_expired(self, now: datetime) -> int:
        """Delete every record whose expiration is at or before now. Returns rows removed."""
        with self._transaction() as conn:
            result = conn.execute(delete(_tokens).where(_tokens.c.expiration <= _to_iso(now)))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_record(row) -> TokenRecord:
    return TokenRecord(
        id=row.id,
        resource_id=row.resource_id,
        value=row.value,
        expiration=_from_iso(row.expiration),
    )
