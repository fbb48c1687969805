"""
core/db.py -- Shared SQLAlchemy Core helpers for the stores.

Row versions: every versioned table has an INTEGER row_version column that
starts at 1 and is incremented by the same UPDATE that writes the row. The
domain sees it as 8 big-endian bytes, the shape of a relational rowversion,
so core/etag.py never depends on how the store counts.

update_versioned() / delete_versioned() take the expected version as a
compare-and-swap guard. With expected=None the write is unconditional.

Layer rule: core/ only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Table, create_engine, event, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StoreError

_VERSION_BYTES = 8


def version_bytes(counter: int) -> bytes:
    return int(counter).to_bytes(_VERSION_BYTES, "big")


def version_counter(raw_version: bytes) -> int:
    return int.from_bytes(raw_version, "big")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs store calls in a thread pool.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


@contextmanager
def store_errors(logger: logging.Logger, action: str) -> Iterator[None]:
    """Log a persistence failure where it happens and re-raise it as StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Store failure while %s: %s", action, exc)
        raise StoreError() from exc


# ---------------------------------------------------------------------------
# Versioned writes
# ---------------------------------------------------------------------------


def update_versioned(
    conn: Connection,
    table: Table,
    row_id: int,
    values: dict[str, Any],
    expected: Optional[bytes],
) -> Optional[bytes]:
    """Write values and advance row_version. Returns the new version, or None.

    None means no row matched: either row_id does not exist or, when
    expected is given, another writer advanced the version first.
    Must run inside a transaction (engine.begin()).
    """
    stmt = table.update().where(table.c.id == row_id)
    if expected is not None:
        stmt = stmt.where(table.c.row_version == version_counter(expected))
    result = conn.execute(stmt.values(**values, row_version=table.c.row_version + 1))
    if result.rowcount == 0:
        return None
    counter = conn.execute(select(table.c.row_version).where(table.c.id == row_id)).scalar_one()
    return version_bytes(counter)


def delete_versioned(conn: Connection, table: Table, row_id: int, expected: Optional[bytes]) -> bool:
    stmt = table.delete().where(table.c.id == row_id)
    if expected is not None:
        stmt = stmt.where(table.c.row_version == version_counter(expected))
    return conn.execute(stmt).rowcount > 0
