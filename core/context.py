"""
core/context.py -- Per-request context passed explicitly through each layer.

Route handlers build one RequestContext per request (see
auth/dependencies.get_request_context) and hand it to the concurrency
controller and any helper that needs the caller identity or the If-Match
precondition. Nothing reads per-request globals.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    username: str
    roles: tuple[str, ...] = ()
    if_match: str | None = None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    def can_access_user(self, user_id: int) -> bool:
        """Users may act on their own account; admins on any account."""
        return self.is_admin or self.user_id == user_id
