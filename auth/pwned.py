"""
auth/pwned.py -- Breach check against the Pwned Passwords range API.

Callers hand over the plaintext; this module derives the SHA-1 digest and
sends only its first five hex characters (k-anonymity). The service answers
with every known suffix for that prefix as "SUFFIX:COUNT" lines. With
Add-Padding enabled it also returns decoy lines whose COUNT is 0, which are
ignored.

Fail closed: any transport error, non-2xx status or unparseable body raises
BreachCheckError. A password change must never proceed on an unknown answer.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional, Protocol

import httpx

from core.errors import BreachCheckError

logger = logging.getLogger("aquarium.auth.pwned")


class BreachChecker(Protocol):
    async def is_password_pwned(self, plaintext: str) -> bool: ...


class PwnedPasswordsClient:
    """Async client for https://api.pwnedpasswords.com/range/{prefix}.

    Usage:
        client = PwnedPasswordsClient()
        if await client.is_password_pwned("hunter2"): ...
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str = "https://api.pwnedpasswords.com",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Add-Padding": "true", "User-Agent": "aquarium-monitor"},
            transport=transport,
        )

    async def is_password_pwned(self, plaintext: str) -> bool:
        digest = hashlib.sha1(plaintext.encode("utf-8")).hexdigest().upper()  # noqa: S324 -- protocol-mandated
        prefix, suffix = digest[:5], digest[5:]
        try:
            resp = await self._client.get(f"/range/{prefix}")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Breach check request failed: %s", exc)
            raise BreachCheckError() from exc
        return _suffix_in_range(resp.text, suffix)

    async def aclose(self) -> None:
        await self._client.aclose()


def _suffix_in_range(body: str, suffix: str) -> bool:
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        candidate, sep, count = line.partition(":")
        if not sep:
            logger.error("Breach check returned an unparseable line")
            raise BreachCheckError()
        try:
            occurrences = int(count)
        except ValueError as exc:
            logger.error("Breach check returned a non-numeric count")
            raise BreachCheckError() from exc
        if candidate.upper() == suffix and occurrences > 0:
            return True
    return False
