"""
core/errors.py -- Error taxonomy shared by every layer.

Components raise these; api/main.py turns them into the JSON error envelope.
Each class carries its HTTP status and a machine-readable code so the route
layer never has to translate by hand.

  NotFound             404  entity missing (or not visible to the caller)
  PreconditionFailed   412  stale If-Match version tag
  UnprocessableEntity  422  validation failures (always reported in full)
  BadRequest           400  conflicting association or rejected input
  Unauthorized         401  bad credentials, deliberately vague
  Forbidden            403  authenticated but not allowed
  StoreError           400  persistence failure, detail never exposed
  BreachCheckError     400  breach-check collaborator failed (fail closed)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationFailure:
    """One (field, message) pair produced by a validation rule."""

    field: str
    message: str


class RecordsError(Exception):
    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Bad request."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(RecordsError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class PreconditionFailed(RecordsError):
    status_code = 412
    code = "precondition_failed"
    default_message = "The resource has been modified. Fetch it again and retry."


class UnprocessableEntity(RecordsError):
    status_code = 422
    code = "validation_error"
    default_message = "Entity validation failed."

    def __init__(self, failures: list[ValidationFailure], message: str | None = None) -> None:
        self.failures = list(failures)
        super().__init__(message)


class BadRequest(RecordsError):
    pass


class Unauthorized(RecordsError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(RecordsError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have access to this resource."


class StoreError(RecordsError):
    code = "store_error"
    default_message = "The request could not be completed."


class BreachCheckError(RecordsError):
    code = "breach_check_failed"
    default_message = "Could not verify the password against known breaches."
