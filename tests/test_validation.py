"""
tests/test_validation.py -- Rule registry and the entity rules registered on it.

Covers:
  - validate() reports every failure, not just the first
  - ensure_valid() raises UnprocessableEntity carrying all failures
  - rules are looked up by exact entity type
  - aquarium / measurement / water change / user rule behavior
  - infinities and NaN never satisfy a numeric bound
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

import auth.rules  # noqa: F401
import records.rules  # noqa: F401
from auth.models import User
from core.errors import UnprocessableEntity, ValidationFailure
from core.validation import ensure_valid, register, rules_for, validate
from records.models import Aquarium, Measurement, WaterChange

NOW = datetime.now(timezone.utc).isoformat()


def _fields(failures: list[ValidationFailure]) -> set[str]:
    return {f.field for f in failures}


def _aquarium(**overrides) -> Aquarium:
    values = {"user_id": 1, "name": "Reef", "type": "marine", "volume": 200.0}
    values.update(overrides)
    return Aquarium(**values)


class TestRegistry:
    def test_unregistered_type_is_valid(self) -> None:
        @dataclass
        class Unruled:
            x: int = 0

        assert validate(Unruled()) == []
        assert rules_for(Unruled) == []

    def test_all_rules_run(self) -> None:
        @dataclass
        class Probe:
            a: int = 0
            b: int = 0

        @register(Probe)
        def _a(p):
            if p.a < 0:
                yield ValidationFailure("a", "negative")

        @register(Probe)
        def _b(p):
            if p.b < 0:
                yield ValidationFailure("b", "negative")

        assert [f.field for f in validate(Probe(a=-1, b=-1))] == ["a", "b"]
        assert validate(Probe()) == []

    def test_ensure_valid_raises_with_every_failure(self) -> None:
        with pytest.raises(UnprocessableEntity) as exc_info:
            ensure_valid(_aquarium(name="", type="lake", volume=0))
        assert _fields(exc_info.value.failures) == {"name", "type", "volume"}
        assert exc_info.value.status_code == 422

    def test_ensure_valid_passes_valid_entity(self) -> None:
        ensure_valid(_aquarium())


class TestAquariumRules:
    def test_valid(self) -> None:
        assert validate(_aquarium(length=120, width=50, height=60, dimension_unit="cm")) == []

    def test_name_too_long(self) -> None:
        assert _fields(validate(_aquarium(name="x" * 101))) == {"name"}

    def test_unknown_volume_unit(self) -> None:
        assert _fields(validate(_aquarium(volume_unit="pints"))) == {"volume_unit"}

    def test_dimensions_require_unit(self) -> None:
        assert _fields(validate(_aquarium(length=100))) == {"dimension_unit"}

    def test_dimensions_must_be_positive(self) -> None:
        assert _fields(validate(_aquarium(width=-1, dimension_unit="cm"))) == {"width"}

    @pytest.mark.parametrize("value", [math.inf, math.nan])
    def test_non_finite_sizes_rejected(self, value: float) -> None:
        assert _fields(validate(_aquarium(volume=value))) == {"volume"}
        assert _fields(validate(_aquarium(height=value, dimension_unit="cm"))) == {"height"}


class TestMeasurementRules:
    def _m(self, **overrides) -> Measurement:
        values = {"user_id": 1, "aquarium_id": 1, "measurement_type": "ph", "value": 7.2, "unit": "pH", "taken_at": NOW}
        values.update(overrides)
        return Measurement(**values)

    def test_valid(self) -> None:
        assert validate(self._m()) == []

    def test_ph_out_of_range(self) -> None:
        assert _fields(validate(self._m(value=15))) == {"value"}

    def test_negative_allowed_only_for_temperature(self) -> None:
        assert validate(self._m(measurement_type="temperature", value=-1.5, unit="C")) == []
        assert _fields(validate(self._m(measurement_type="nitrate", value=-1, unit="ppm"))) == {"value"}

    def test_unknown_type_and_missing_unit(self) -> None:
        assert _fields(validate(self._m(measurement_type="oxygen", unit=" "))) == {"measurement_type", "unit"}

    def test_future_timestamp_rejected(self) -> None:
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        assert _fields(validate(self._m(taken_at=future))) == {"taken_at"}

    def test_unparseable_timestamp_rejected(self) -> None:
        assert _fields(validate(self._m(taken_at="yesterday"))) == {"taken_at"}

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_value_rejected(self, value: float) -> None:
        failures = validate(self._m(measurement_type="temperature", value=value, unit="C"))
        assert [f.message for f in failures] == ["Value must be a finite number."]


class TestWaterChangeRules:
    def _w(self, **overrides) -> WaterChange:
        values = {"user_id": 1, "aquarium_id": 1, "changed_at": NOW, "percentage": 25.0}
        values.update(overrides)
        return WaterChange(**values)

    def test_valid(self) -> None:
        assert validate(self._w()) == []

    @pytest.mark.parametrize("pct", [0, -10, 100.5, math.inf, math.nan])
    def test_percentage_bounds(self, pct: float) -> None:
        assert _fields(validate(self._w(percentage=pct))) == {"percentage"}

    def test_full_change_allowed(self) -> None:
        assert validate(self._w(percentage=100)) == []

    def test_notes_length(self) -> None:
        assert _fields(validate(self._w(notes="n" * 1001))) == {"notes"}


class TestUserRules:
    def test_valid(self) -> None:
        assert validate(User(username="alice_01", email="a@example.com", name="Alice")) == []

    @pytest.mark.parametrize("username", ["ab", "has space", "x" * 51, "", "alice\n"])
    def test_bad_usernames(self, username: str) -> None:
        assert _fields(validate(User(username=username))) == {"username"}

    def test_bad_email(self) -> None:
        assert _fields(validate(User(username="alice", email="not-an-email"))) == {"email"}
        assert _fields(validate(User(username="alice", email="a@example.com\n"))) == {"email"}
