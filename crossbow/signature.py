"""Webhook signature verification.

GitHub signs every delivery with HMAC-SHA256 over the exact request body and
sends the digest as ``X-Hub-Signature-256: sha256=<hex>``. Verification must
run over the unparsed bytes: re-serialising decoded JSON changes whitespace
and key order and therefore the digest.

Example:
>>> header = sign("s3cret", b'{"zen": "Keep it logically awesome."}')
>>> verify("s3cret", b'{"zen": "Keep it logically awesome."}', header)
True

"""

from __future__ import annotations

import binascii
import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="
_LOWER_HEX = frozenset("0123456789abcdef")


def _as_key(secret: str | bytes) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def _digest(secret: str | bytes, raw_body: bytes) -> bytes:
    return hmac.new(_as_key(secret), raw_body, hashlib.sha256).digest()


def sign(secret: str | bytes, raw_body: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` header value for ``raw_body``."""
    return SIGNATURE_PREFIX + _digest(secret, raw_body).hex()


def verify(
    secret: str | bytes, raw_body: bytes, signature_header: str | None
) -> bool:
    """Return True when ``signature_header`` authenticates ``raw_body``.

    Parameters
    ----------
    secret
        Shared webhook secret.
    raw_body
        Request body exactly as received on the wire.
    signature_header
        Value of ``X-Hub-Signature-256``; ``None`` when the header is absent.

    Returns
    -------
    bool
        ``False`` for absent, malformed or mismatching signatures. Never
        raises on bad header encoding.

    """
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    encoded = signature_header[len(SIGNATURE_PREFIX) :]
    # GitHub emits lowercase hex; anything else is a malformed header.
    if not set(encoded) <= _LOWER_HEX:
        return False
    try:
        received = bytes.fromhex(encoded)
    except (ValueError, binascii.Error):
        return False

    # compare_digest runs in time independent of the first mismatching byte.
    return hmac.compare_digest(_digest(secret, raw_body), received)


__all__ = ["SIGNATURE_PREFIX", "sign", "verify"]
