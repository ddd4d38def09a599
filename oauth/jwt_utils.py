"""Encoding of opaque payloads carried outside the proxy.

The state parameter and the downstream authorization code are both small
JSON documents the proxy hands out and later reads back. By default they are
plain base64url JSON: reversible by anyone, trusted only because they travel
through redirects the proxy issued itself. When a signing secret is
configured they are sealed as HS256 JWTs with PyJWT instead, and anything
that fails signature verification is rejected.
"""

import base64
import binascii
import json
import logging
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class PayloadDecodeError(ValueError):
    """The string is not a payload this proxy produced."""


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def encode_payload(payload: dict, secret: Optional[str] = None) -> str:
    """Serialize ``payload`` into a URL-safe string.

    Args:
        payload: JSON-serializable mapping
        secret: HS256 key; when empty the result is unsigned base64url JSON

    Returns:
        A string made only of URL-safe characters (plus ``.`` when signed)
    """
    if secret:
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    return _b64encode(raw.encode("utf-8"))


def decode_payload(token: str, secret: Optional[str] = None) -> dict:
    """Inverse of :func:`encode_payload`.

    Raises:
        PayloadDecodeError: if the string is not a valid encoding of a JSON object
    """
    if not token:
        raise PayloadDecodeError("empty payload")

    if secret:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": []},
            )
        except jwt.InvalidTokenError as e:
            logger.debug(f"[JWT] Rejected sealed payload: {e}")
            raise PayloadDecodeError(str(e)) from e
    else:
        try:
            payload = json.loads(_b64decode(token).decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise PayloadDecodeError(str(e)) from e

    if not isinstance(payload, dict):
        raise PayloadDecodeError("payload is not an object")
    return payload
