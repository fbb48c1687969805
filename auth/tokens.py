"""
auth/tokens.py -- Bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. The payload is exactly the supplied claims
       plus "exp". There is no revocation list: expiry is the only
       invalidation, and rotating SECRET_KEY invalidates every token issued
       under the old key because their signatures stop verifying.

  Claims: rebuilt from the identity's current attributes on every issuance
       and never persisted.

  Expiry: TOKEN_DURATION_MINUTES from core.config (15 when absent or
       malformed). JWT "exp" is whole seconds, so expires_at is truncated to
       the second before signing; the returned expires_at is exactly the
       instant encoded in the token.

Layer rule: no imports from api/ or records/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt

from auth.models import SignedToken
from core.config import DEFAULT_TOKEN_DURATION_MINUTES

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("aquarium.auth.tokens")

ALGORITHM = "HS256"

_REQUIRED_CLAIMS = ("sub", "user_id")


def build_claims(user: User) -> dict[str, Any]:
    """Assemble the claims set for an authenticated identity."""
    return {
        "sub": user.username,
        "user_id": user.id,
        "username": user.username,
        "roles": list(user.roles),
    }


def issue_token(
    claims: dict[str, Any],
    validity_minutes: int,
    signing_key: str,
    now: datetime | None = None,
) -> SignedToken:
    """Sign claims into a JWT that expires validity_minutes after now.

    Args:
        claims:           Claims to embed verbatim. "exp" is added here.
        validity_minutes: Token lifetime. Non-positive values fall back to
                          the 15 minute default.
        signing_key:      HMAC key. Use Settings.secret_key.
        now:              Issue instant; defaults to the current UTC time.
    """
    if validity_minutes <= 0:
        validity_minutes = DEFAULT_TOKEN_DURATION_MINUTES
    issued = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued + timedelta(minutes=validity_minutes)
    payload = {**claims, "exp": expires_at}
    token = jwt.encode(payload, signing_key, algorithm=ALGORITHM)
    return SignedToken(token=token, expires_at=expires_at)


def decode_access_token(token: str, signing_key: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated.
    """
    try:
        payload = jwt.decode(token, signing_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    return payload
