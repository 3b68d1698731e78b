"""Meta webhook signature verification (HMAC-SHA256).

Meta signs every POST with the App Secret and sends the digest in the
``X-Hub-Signature-256`` header as ``sha256=<hex_signature>``.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping, Sequence

from wadispatch.errors import (
    InvalidSignatureFormatError,
    MissingSignatureError,
    SignatureMismatchError,
)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="

HeaderValue = str | Sequence[str]


def sign(payload_bytes: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``payload_bytes`` keyed with ``secret``."""
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()


def extract_signature(headers: Mapping[str, HeaderValue]) -> str:
    """Extract the hex signature from request headers.

    Header names are matched case-insensitively. Values may be plain
    strings (Starlette) or lists of strings, in which case the first one
    is used.

    Returns:
        The hex digest without the ``sha256=`` prefix.

    Raises:
        MissingSignatureError: If the header is absent or empty.
        InvalidSignatureFormatError: If the value lacks the ``sha256=`` prefix.
    """
    raw = _lookup(headers, SIGNATURE_HEADER)
    if not raw:
        raise MissingSignatureError("missing signature header")

    if not raw.startswith(SIGNATURE_PREFIX):
        raise InvalidSignatureFormatError("invalid signature format")

    signature = raw[len(SIGNATURE_PREFIX) :]
    if not signature:
        raise InvalidSignatureFormatError("empty signature")
    return signature


def verify_signature(payload_bytes: bytes, signature: str, secret: str) -> None:
    """Compare ``signature`` with the HMAC of ``payload_bytes`` in constant time.

    Raises:
        SignatureMismatchError: If the signature does not match.
    """
    expected = sign(payload_bytes, secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        raise SignatureMismatchError("signature mismatch")


def verify_request(payload_bytes: bytes, headers: Mapping[str, HeaderValue], secret: str) -> None:
    """Extract the signature header and verify it against the body."""
    verify_signature(payload_bytes, extract_signature(headers), secret)


def _lookup(headers: Mapping[str, HeaderValue], name: str) -> str:
    value = headers.get(name)
    if value is None:
        wanted = name.lower()
        for key, candidate in headers.items():
            if key.lower() == wanted:
                value = candidate
                break
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value[0].strip() if value else ""
