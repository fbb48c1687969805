"""
API request and response models for Aquarium Monitor REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in records/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Shape checks (types, lengths) happen here. Business rules (allowed aquarium
types, pH range, future timestamps) live in the entity rule registry so the
same checks apply however an entity is built.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PasswordHistoryEntry, User
from auth.passwords import MAX_PASSWORD_BYTES, password_fits
from records.models import Aquarium, Measurement, WaterChange


def _within_bcrypt_limit(value: Optional[str]) -> Optional[str]:
    if value is not None and not password_fits(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
    return value


def to_utc_iso(value: datetime) -> str:
    """Normalize a request timestamp to an aware UTC ISO 8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class FieldFailure(BaseModel):
    """One validation failure: which field, and what is wrong with it."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    failures: Optional[list[FieldFailure]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/token."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    # Not stripped: whitespace is significant in a password.
    password: str = Field(min_length=1, max_length=72, json_schema_extra={"format": "password"})

    password_size = field_validator("password")(_within_bcrypt_limit)


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    expiration: datetime


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    roles: list[str]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users (registration)."""

    username: str = Field(min_length=1, max_length=50)
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)
    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=100)

    password_size = field_validator("password")(_within_bcrypt_limit)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{user_id}. Only profile fields are mutable."""

    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=100)


class PasswordChange(BaseModel):
    """Request body for POST /api/v1/users/{user_id}/changepassword."""

    old_password: str = Field(min_length=1, max_length=72)
    new_password: str = Field(min_length=8, max_length=72)

    password_size = field_validator("old_password", "new_password")(_within_bcrypt_limit)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    name: Optional[str]
    roles: list[str]
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            roles=list(user.roles),
            created_at=user.created_at or "",
            last_login=user.last_login,
        )


class PasswordHistoryRow(BaseModel):
    """One password validity window. The hash itself is never returned."""

    model_config = ConfigDict(frozen=True)

    created_at: datetime
    expired_at: Optional[datetime]
    is_current: bool

    @classmethod
    def from_entry(cls, entry: PasswordHistoryEntry) -> "PasswordHistoryRow":
        return cls(created_at=entry.created_at, expired_at=entry.expired_at, is_current=entry.expired_at is None)


# ---------------------------------------------------------------------------
# Aquariums
# ---------------------------------------------------------------------------


class AquariumBody(BaseModel):
    """Request body for POST and PUT /api/v1/aquariums."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(max_length=255)
    type: str = Field(max_length=30)
    volume: float
    volume_unit: str = Field(default="litres", max_length=20)
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    dimension_unit: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=2000)

    def apply_to(self, aquarium: Aquarium) -> Aquarium:
        for name, value in self.model_dump().items():
            setattr(aquarium, name, value)
        return aquarium


class AquariumResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: str
    volume: float
    volume_unit: str
    length: Optional[float]
    width: Optional[float]
    height: Optional[float]
    dimension_unit: Optional[str]
    notes: Optional[str]
    created_at: str

    @classmethod
    def from_aquarium(cls, a: Aquarium) -> "AquariumResponse":
        return cls(
            id=a.id,
            name=a.name,
            type=a.type,
            volume=a.volume,
            volume_unit=a.volume_unit,
            length=a.length,
            width=a.width,
            height=a.height,
            dimension_unit=a.dimension_unit,
            notes=a.notes,
            created_at=a.created_at,
        )


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


class MeasurementBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    measurement_type: str = Field(max_length=30)
    value: float
    unit: str = Field(max_length=20)
    taken_at: datetime

    def apply_to(self, measurement: Measurement) -> Measurement:
        measurement.measurement_type = self.measurement_type.lower()
        measurement.value = self.value
        measurement.unit = self.unit
        measurement.taken_at = to_utc_iso(self.taken_at)
        return measurement


class MeasurementResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    aquarium_id: int
    measurement_type: str
    value: float
    unit: str
    taken_at: str

    @classmethod
    def from_measurement(cls, m: Measurement) -> "MeasurementResponse":
        return cls(
            id=m.id,
            aquarium_id=m.aquarium_id,
            measurement_type=m.measurement_type,
            value=m.value,
            unit=m.unit,
            taken_at=m.taken_at,
        )


# ---------------------------------------------------------------------------
# Water changes
# ---------------------------------------------------------------------------


class WaterChangeBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    changed_at: datetime
    percentage: float
    notes: Optional[str] = Field(default=None, max_length=2000)

    def apply_to(self, water_change: WaterChange) -> WaterChange:
        water_change.changed_at = to_utc_iso(self.changed_at)
        water_change.percentage = self.percentage
        water_change.notes = self.notes
        return water_change


class WaterChangeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    aquarium_id: int
    changed_at: str
    percentage: float
    notes: Optional[str]

    @classmethod
    def from_water_change(cls, w: WaterChange) -> "WaterChangeResponse":
        return cls(
            id=w.id,
            aquarium_id=w.aquarium_id,
            changed_at=w.changed_at,
            percentage=w.percentage,
            notes=w.notes,
        )
