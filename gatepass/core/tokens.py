"""
Access token codec.

Tokens are opaque: a sha256 digest over the requester id, the request id, a
nanosecond timestamp and a random nonce, rendered as dash separated hex segments.
"""

import hashlib
import secrets
import time

from . import config

SEGMENT_SEPARATOR = "-"
DIGEST_HEX_LENGTH = 64


def mint_token(requester_id: str, request_id: str) -> str:
    """Create a new access token bound to a leave request."""
    material = f"{requester_id}:{request_id}:{time.time_ns()}:{secrets.token_hex(16)}"
    digest = hashlib.sha256(material.encode()).hexdigest()
    return SEGMENT_SEPARATOR.join(_split(digest, config.TOKEN_SEGMENTS))


def is_well_formed(token) -> bool:
    """Cheap structural check used before any store lookup. Not an authenticity check."""
    if not isinstance(token, str) or not token:
        return False
    parts = token.split(SEGMENT_SEPARATOR)
    return len(parts) == config.TOKEN_SEGMENTS and all(parts)


def _split(digest: str, segments: int):
    if segments < 1 or DIGEST_HEX_LENGTH % segments:
        raise ValueError(f"TOKEN_SEGMENTS must divide {DIGEST_HEX_LENGTH}, got {segments}")
    width = DIGEST_HEX_LENGTH // segments
    return [digest[i:i + width] for i in range(0, DIGEST_HEX_LENGTH, width)]
