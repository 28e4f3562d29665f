"""RFC 4648 Base32 handling for user-supplied TOTP secrets.

Authenticator apps hand out secrets in many shapes: lowercase, grouped in
blocks of four, with or without ``=`` padding. :func:`decode` accepts all of
those and rejects anything that cannot map to a whole number of key bytes.
Error messages never echo the secret text back.
"""

from __future__ import annotations

import base64

from ..errors import DecodeError

BASE32_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
PAD_CHAR: str = "="

# Unpadded length mod 8 -> number of padding characters. Remainders 1, 3 and 6
# leave too many dangling bits to be a whole byte and are rejected.
_PADDING_FOR_REMAINDER = {0: 0, 2: 6, 4: 4, 5: 3, 7: 1}
_ALPHABET_SET = frozenset(BASE32_ALPHABET)


def decode(text: str) -> bytes:
    """Decode Base32 ``text`` into raw key bytes."""

    if not isinstance(text, str):
        raise DecodeError("Secret must be provided as text.")

    compact = "".join(text.split())
    # Some non-ASCII letters uppercase into the alphabet, e.g. "\u0131" -> "I".
    if not compact.isascii():
        raise DecodeError("Secret contains characters outside the Base32 alphabet.")
    compact = compact.upper()
    body = compact.rstrip(PAD_CHAR)
    padding = len(compact) - len(body)
    if not body:
        raise DecodeError("Secret must not be empty.")
    if any(char not in _ALPHABET_SET for char in body):
        raise DecodeError("Secret contains characters outside the Base32 alphabet.")

    remainder = len(body) % 8
    if remainder not in _PADDING_FOR_REMAINDER:
        raise DecodeError("Secret length does not correspond to a whole number of bytes.")
    expected_padding = _PADDING_FOR_REMAINDER[remainder]
    if padding and padding != expected_padding:
        raise DecodeError("Secret has incorrect Base32 padding.")

    return base64.b32decode(body + PAD_CHAR * expected_padding)


def encode(data: bytes) -> str:
    """Encode ``data`` as uppercase, padded Base32."""

    return base64.b32encode(bytes(data)).decode("ascii")


def normalize(text: str) -> str:
    """Return the canonical uppercase padded form of a Base32 secret."""

    return encode(decode(text))
