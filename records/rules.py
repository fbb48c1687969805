"""
records/rules.py -- Validation rules for aquarium records.

Each function is registered against its entity class with
core.validation.register and yields zero or more ValidationFailure values.
Rules are pure: they read the entity and nothing else.

Importing this module is what registers the rules; api/main.py does so at
startup.
"""

import math
from datetime import datetime, timedelta, timezone

from core.errors import ValidationFailure
from core.validation import register
from records.models import Aquarium, Measurement, WaterChange

AQUARIUM_TYPES = ("freshwater", "marine", "brackish", "pond")
VOLUME_UNITS = ("litres", "gallons")
DIMENSION_UNITS = ("cm", "mm", "inches")
MEASUREMENT_TYPES = ("ph", "ammonia", "nitrite", "nitrate", "temperature", "gh", "kh", "phosphate", "salinity")

# Readings stamped slightly ahead of the server clock are tolerated.
_CLOCK_SKEW = timedelta(minutes=5)


def _parse_instant(value: str):
    try:
        dt = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _check_instant(field: str, value: str):
    dt = _parse_instant(value)
    if dt is None:
        yield ValidationFailure(field, "Must be an ISO 8601 timestamp.")
    elif dt > datetime.now(timezone.utc) + _CLOCK_SKEW:
        yield ValidationFailure(field, "Cannot be in the future.")


# ---------------------------------------------------------------------------
# Aquarium
# ---------------------------------------------------------------------------


@register(Aquarium)
def _aquarium_name(aquarium: Aquarium):
    name = (aquarium.name or "").strip()
    if not name:
        yield ValidationFailure("name", "Name is required.")
    elif len(name) > 100:
        yield ValidationFailure("name", "Name must be 100 characters or fewer.")


@register(Aquarium)
def _aquarium_type(aquarium: Aquarium):
    if aquarium.type not in AQUARIUM_TYPES:
        yield ValidationFailure("type", f"Type must be one of: {', '.join(AQUARIUM_TYPES)}.")


@register(Aquarium)
def _aquarium_volume(aquarium: Aquarium):
    if aquarium.volume is None or not math.isfinite(aquarium.volume) or aquarium.volume <= 0:
        yield ValidationFailure("volume", "Volume must be greater than zero.")
    if aquarium.volume_unit not in VOLUME_UNITS:
        yield ValidationFailure("volume_unit", f"Volume unit must be one of: {', '.join(VOLUME_UNITS)}.")


@register(Aquarium)
def _aquarium_dimensions(aquarium: Aquarium):
    dimensions = {"length": aquarium.length, "width": aquarium.width, "height": aquarium.height}
    for field, value in dimensions.items():
        if value is not None and (not math.isfinite(value) or value <= 0):
            yield ValidationFailure(field, f"{field.capitalize()} must be greater than zero.")
    given = any(v is not None for v in dimensions.values())
    if given and aquarium.dimension_unit not in DIMENSION_UNITS:
        yield ValidationFailure(
            "dimension_unit", f"Dimension unit must be one of: {', '.join(DIMENSION_UNITS)}."
        )


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


@register(Measurement)
def _measurement_type(measurement: Measurement):
    if measurement.measurement_type not in MEASUREMENT_TYPES:
        yield ValidationFailure(
            "measurement_type", f"Measurement type must be one of: {', '.join(MEASUREMENT_TYPES)}."
        )


@register(Measurement)
def _measurement_value(measurement: Measurement):
    if measurement.value is None:
        yield ValidationFailure("value", "Value is required.")
        return
    if not math.isfinite(measurement.value):
        yield ValidationFailure("value", "Value must be a finite number.")
        return
    if measurement.measurement_type != "temperature" and measurement.value < 0:
        yield ValidationFailure("value", "Value cannot be negative.")
    if measurement.measurement_type == "ph" and not 0 <= measurement.value <= 14:
        yield ValidationFailure("value", "pH must be between 0 and 14.")


@register(Measurement)
def _measurement_unit(measurement: Measurement):
    if not (measurement.unit or "").strip():
        yield ValidationFailure("unit", "Unit is required.")


@register(Measurement)
def _measurement_taken_at(measurement: Measurement):
    yield from _check_instant("taken_at", measurement.taken_at)


# ---------------------------------------------------------------------------
# Water change
# ---------------------------------------------------------------------------


@register(WaterChange)
def _water_change_percentage(water_change: WaterChange):
    if water_change.percentage is None or not 0 < water_change.percentage <= 100:  # false for NaN
        yield ValidationFailure("percentage", "Percentage must be greater than 0 and at most 100.")


@register(WaterChange)
def _water_change_changed_at(water_change: WaterChange):
    yield from _check_instant("changed_at", water_change.changed_at)


@register(WaterChange)
def _water_change_notes(water_change: WaterChange):
    if water_change.notes is not None and len(water_change.notes) > 1000:
        yield ValidationFailure("notes", "Notes must be 1000 characters or fewer.")
