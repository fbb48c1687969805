"""
records/store.py -- SQLAlchemy-backed persistence layer for aquarium records.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in records/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. RecordStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Versioning: each table carries row_version (see core/db.py). update_* and
delete_* accept the expected version and return None / False when the
compare-and-swap loses, leaving the row untouched.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RecordStore()                               # SQLite default
    store = RecordStore("postgresql://user:pw@host/db") # PostgreSQL
    aquarium_id = store.create_aquarium(aquarium)
    aquarium = store.get_aquarium(aquarium_id, user_id=7)
    new_version = store.update_aquarium(aquarium, expected=aquarium.row_version)
    store.close()
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.db import delete_versioned, make_engine, now_iso, store_errors, update_versioned, version_bytes
from records.models import Aquarium, Measurement, WaterChange

logger = logging.getLogger("aquarium.records")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_aquariums = Table(
    "aquariums",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("type", String(30), nullable=False),
    Column("volume", Float, nullable=False),
    Column("volume_unit", String(20), nullable=False),
    Column("length", Float),
    Column("width", Float),
    Column("height", Float),
    Column("dimension_unit", String(20)),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
    Column("row_version", Integer, nullable=False, server_default="1"),
)

_measurements = Table(
    "measurements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("aquarium_id", Integer, nullable=False, index=True),
    Column("measurement_type", String(30), nullable=False),
    Column("value", Float, nullable=False),
    Column("unit", String(20), nullable=False),
    Column("taken_at", String(32), nullable=False),
    Column("row_version", Integer, nullable=False, server_default="1"),
)

_water_changes = Table(
    "water_changes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("aquarium_id", Integer, nullable=False, index=True),
    Column("changed_at", String(32), nullable=False),
    Column("percentage", Float, nullable=False),
    Column("notes", Text),
    Column("row_version", Integer, nullable=False, server_default="1"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Cheap liveness probe for the health endpoint."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Aquariums
    # ------------------------------------------------------------------

    def create_aquarium(self, aquarium: Aquarium) -> int:
        """Insert a new aquarium and return its assigned database ID."""
        with store_errors(logger, "creating aquarium"), self.engine.begin() as conn:
            result = conn.execute(
                _aquariums.insert().values(
                    user_id=aquarium.user_id,
                    created_at=now_iso(),
                    row_version=1,
                    **_aquarium_values(aquarium),
                )
            )
            return result.inserted_primary_key[0]

    def get_aquarium(self, aquarium_id: int, user_id: Optional[int] = None) -> Optional[Aquarium]:
        """Fetch one aquarium. With user_id, aquariums owned by others are invisible."""
        stmt = _aquariums.select().where(_aquariums.c.id == aquarium_id)
        if user_id is not None:
            stmt = stmt.where(_aquariums.c.user_id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_aquarium(row) if row is not None else None

    def list_aquariums(self, user_id: int) -> list[Aquarium]:
        """Return a user's aquariums ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _aquariums.select().where(_aquariums.c.user_id == user_id).order_by(_aquariums.c.name)
            ).fetchall()
        return [_row_to_aquarium(r) for r in rows]

    def update_aquarium(self, aquarium: Aquarium, expected: Optional[bytes] = None) -> Optional[bytes]:
        """Persist mutable fields. Returns the new row version, or None if the guard failed."""
        with store_errors(logger, "updating aquarium"), self.engine.begin() as conn:
            return update_versioned(conn, _aquariums, aquarium.id, _aquarium_values(aquarium), expected)

    def delete_aquarium(self, aquarium_id: int, expected: Optional[bytes] = None) -> bool:
        """Delete an aquarium together with its measurements and water changes."""
        with store_errors(logger, "deleting aquarium"), self.engine.begin() as conn:
            if not delete_versioned(conn, _aquariums, aquarium_id, expected):
                return False
            conn.execute(_measurements.delete().where(_measurements.c.aquarium_id == aquarium_id))
            conn.execute(_water_changes.delete().where(_water_changes.c.aquarium_id == aquarium_id))
            return True

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def create_measurement(self, measurement: Measurement) -> int:
        with store_errors(logger, "creating measurement"), self.engine.begin() as conn:
            result = conn.execute(
                _measurements.insert().values(
                    user_id=measurement.user_id,
                    aquarium_id=measurement.aquarium_id,
                    row_version=1,
                    **_measurement_values(measurement),
                )
            )
            return result.inserted_primary_key[0]

    def get_measurement(self, measurement_id: int) -> Optional[Measurement]:
        with self.engine.connect() as conn:
            row = conn.execute(_measurements.select().where(_measurements.c.id == measurement_id)).fetchone()
        return _row_to_measurement(row) if row is not None else None

    def list_measurements(self, user_id: int, aquarium_id: int) -> list[Measurement]:
        """Return an aquarium's readings, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _measurements.select()
                .where((_measurements.c.user_id == user_id) & (_measurements.c.aquarium_id == aquarium_id))
                .order_by(_measurements.c.taken_at.desc(), _measurements.c.id.desc())
            ).fetchall()
        return [_row_to_measurement(r) for r in rows]

    def update_measurement(self, measurement: Measurement, expected: Optional[bytes] = None) -> Optional[bytes]:
        with store_errors(logger, "updating measurement"), self.engine.begin() as conn:
            return update_versioned(
                conn, _measurements, measurement.id, _measurement_values(measurement), expected
            )

    def delete_measurement(self, measurement_id: int, expected: Optional[bytes] = None) -> bool:
        with store_errors(logger, "deleting measurement"), self.engine.begin() as conn:
            return delete_versioned(conn, _measurements, measurement_id, expected)

    # ------------------------------------------------------------------
    # Water changes
    # ------------------------------------------------------------------

    def create_water_change(self, water_change: WaterChange) -> int:
        with store_errors(logger, "creating water change"), self.engine.begin() as conn:
            result = conn.execute(
                _water_changes.insert().values(
                    user_id=water_change.user_id,
                    aquarium_id=water_change.aquarium_id,
                    row_version=1,
                    **_water_change_values(water_change),
                )
            )
            return result.inserted_primary_key[0]

    def get_water_change(self, water_change_id: int) -> Optional[WaterChange]:
        with self.engine.connect() as conn:
            row = conn.execute(_water_changes.select().where(_water_changes.c.id == water_change_id)).fetchone()
        return _row_to_water_change(row) if row is not None else None

    def list_water_changes(self, user_id: int, aquarium_id: int) -> list[WaterChange]:
        """Return an aquarium's water changes, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _water_changes.select()
                .where((_water_changes.c.user_id == user_id) & (_water_changes.c.aquarium_id == aquarium_id))
                .order_by(_water_changes.c.changed_at.desc(), _water_changes.c.id.desc())
            ).fetchall()
        return [_row_to_water_change(r) for r in rows]

    def update_water_change(self, water_change: WaterChange, expected: Optional[bytes] = None) -> Optional[bytes]:
        with store_errors(logger, "updating water change"), self.engine.begin() as conn:
            return update_versioned(
                conn, _water_changes, water_change.id, _water_change_values(water_change), expected
            )

    def delete_water_change(self, water_change_id: int, expected: Optional[bytes] = None) -> bool:
        with store_errors(logger, "deleting water change"), self.engine.begin() as conn:
            return delete_versioned(conn, _water_changes, water_change_id, expected)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Column values for mutable fields (ownership and ids are never rewritten)
# ---------------------------------------------------------------------------


def _aquarium_values(a: Aquarium) -> dict:
    return {
        "name": a.name,
        "type": a.type,
        "volume": a.volume,
        "volume_unit": a.volume_unit,
        "length": a.length,
        "width": a.width,
        "height": a.height,
        "dimension_unit": a.dimension_unit,
        "notes": a.notes,
    }


def _measurement_values(m: Measurement) -> dict:
    return {
        "measurement_type": m.measurement_type,
        "value": m.value,
        "unit": m.unit,
        "taken_at": m.taken_at,
    }


def _water_change_values(w: WaterChange) -> dict:
    return {
        "changed_at": w.changed_at,
        "percentage": w.percentage,
        "notes": w.notes,
    }


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_aquarium(row) -> Aquarium:
    return Aquarium(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        type=row.type,
        volume=row.volume,
        volume_unit=row.volume_unit,
        length=row.length,
        width=row.width,
        height=row.height,
        dimension_unit=row.dimension_unit,
        notes=row.notes,
        created_at=row.created_at,
        row_version=version_bytes(row.row_version),
    )


def _row_to_measurement(row) -> Measurement:
    return Measurement(
        id=row.id,
        user_id=row.user_id,
        aquarium_id=row.aquarium_id,
        measurement_type=row.measurement_type,
        value=row.value,
        unit=row.unit,
        taken_at=row.taken_at,
        row_version=version_bytes(row.row_version),
    )


def _row_to_water_change(row) -> WaterChange:
    return WaterChange(
        id=row.id,
        user_id=row.user_id,
        aquarium_id=row.aquarium_id,
        changed_at=row.changed_at,
        percentage=row.percentage,
        notes=row.notes,
        row_version=version_bytes(row.row_version),
    )
