"""
auth/rules.py -- Validation rules for identities.

Registered with core.validation on import, like records/rules.py.
"""

import re

from auth.models import User
from core.errors import ValidationFailure
from core.validation import register

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_.-]{3,50}")
_EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


@register(User)
def _username(user: User):
    if not USERNAME_PATTERN.fullmatch(user.username or ""):
        yield ValidationFailure(
            "username", "Username must be 3-50 characters of letters, digits, '.', '_' or '-'."
        )


@register(User)
def _email(user: User):
    if user.email is None:
        return
    if len(user.email) > 255 or not _EMAIL_PATTERN.fullmatch(user.email):
        yield ValidationFailure("email", "Email address is not valid.")


@register(User)
def _name(user: User):
    if user.name is not None and len(user.name) > 100:
        yield ValidationFailure("name", "Name must be 100 characters or fewer.")
