"""
records/models.py -- Domain dataclasses for aquarium records.

Pure data containers. Validation rules live in records/rules.py, persistence
in records/store.py. Every entity carries row_version, the opaque version the
store advances on each write (see core/etag.py for the transport form).

id and row_version are None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Aquarium:
    """A tank owned by one user."""

    user_id: int
    name: str
    type: str  # "freshwater" | "marine" | "brackish" | "pond"
    volume: float
    volume_unit: str = "litres"  # "litres" | "gallons"
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    dimension_unit: Optional[str] = None  # "cm" | "mm" | "inches"
    notes: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None
    row_version: Optional[bytes] = None


@dataclass
class Measurement:
    """A single water parameter reading for an aquarium."""

    user_id: int
    aquarium_id: int
    measurement_type: str  # "ph" | "ammonia" | "nitrite" | "nitrate" | ...
    value: float
    unit: str
    taken_at: str  # ISO 8601
    id: Optional[int] = None
    row_version: Optional[bytes] = None


@dataclass
class WaterChange:
    """A partial water change performed on an aquarium."""

    user_id: int
    aquarium_id: int
    changed_at: str  # ISO 8601
    percentage: float
    notes: Optional[str] = None
    id: Optional[int] = None
    row_version: Optional[bytes] = None
