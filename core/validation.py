"""
core/validation.py -- Entity validator backed by an explicit rule registry.

Rules are plain functions registered against an entity class:

    @register(Aquarium)
    def _volume_positive(aquarium):
        if aquarium.volume <= 0:
            yield ValidationFailure("volume", "Volume must be greater than zero.")

validate(entity) runs every rule for type(entity) and returns every failure
it finds. Rules never short-circuit each other; only the enumeration order of
the result depends on registration order.

Rule modules (records/rules.py, auth/rules.py) register on import.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from core.errors import UnprocessableEntity, ValidationFailure

Rule = Callable[[Any], Iterable[ValidationFailure]]

_F = TypeVar("_F", bound=Rule)

_registry: dict[type, list[Rule]] = {}


def register(entity_type: type) -> Callable[[_F], _F]:
    """Decorator: attach a rule function to entity_type."""

    def decorator(rule: _F) -> _F:
        _registry.setdefault(entity_type, []).append(rule)
        return rule

    return decorator


def rules_for(entity_type: type) -> list[Rule]:
    return list(_registry.get(entity_type, []))


def validate(entity: object) -> list[ValidationFailure]:
    """Run all rules registered for the entity's type. Empty list means valid."""
    failures: list[ValidationFailure] = []
    for rule in _registry.get(type(entity), []):
        failures.extend(rule(entity) or ())
    return failures


def ensure_valid(entity: object) -> None:
    """Raise UnprocessableEntity carrying every failure, if there are any."""
    failures = validate(entity)
    if failures:
        raise UnprocessableEntity(failures)
