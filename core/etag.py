"""
core/etag.py -- Version tag codec for optimistic concurrency.

The store hands every mutable row an opaque row version (bytes). Callers see
it as a base64 string in the ETag response header and send it back in
If-Match. Comparison is exact string equality against a fresh encoding of the
current row version; there is no partial or weak matching.

Layer rule: no imports outside the standard library.
"""

from __future__ import annotations

import base64
import binascii


def encode(raw_version: bytes) -> str:
    """Return the transport-safe tag for a raw row version."""
    return base64.b64encode(raw_version).decode("ascii")


def _normalize(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    if len(tag) >= 2 and tag[0] == '"' and tag[-1] == '"':
        tag = tag[1:-1]
    return tag


def matches(tag: object, raw_version: bytes) -> bool:
    """Return True if a caller-supplied tag identifies raw_version.

    Malformed tags (wrong type, not valid base64, empty) never match and
    never raise.
    """
    if not isinstance(tag, str) or raw_version is None:
        return False
    candidate = _normalize(tag)
    if not candidate:
        return False
    try:
        base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError):
        return False
    return candidate == encode(raw_version)


def parse_if_match(header: str | None) -> str | None:
    """Return the If-Match value, or None when the header is absent or blank."""
    if header is None or not header.strip():
        return None
    return header.strip()


def format_etag(raw_version: bytes) -> str:
    """Quoted tag for the ETag response header."""
    return f'"{encode(raw_version)}"'
