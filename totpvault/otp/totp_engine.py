"""HOTP/TOTP code derivation (RFC 4226 / RFC 6238).

Codes are computed with the HMAC primitive from ``cryptography``. Everything
here is a pure function of its arguments; callers own the clock.
"""

from __future__ import annotations

from typing import Dict, Type

from cryptography.hazmat.primitives import hashes, hmac

from ..config import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD
from ..errors import InvalidKeyError, InvalidParameterError

MIN_DIGITS: int = 1
MAX_DIGITS: int = 10
COUNTER_BYTES: int = 8
# Dynamic truncation keeps 31 bits so the result is never read as negative.
TRUNCATION_MASK: int = 0x7FFFFFFF

HASH_ALGORITHMS: Dict[str, Type[hashes.HashAlgorithm]] = {
    "SHA1": hashes.SHA1,
    "SHA256": hashes.SHA256,
    "SHA512": hashes.SHA512,
}


def _resolve_algorithm(algorithm: str) -> hashes.HashAlgorithm:
    if not isinstance(algorithm, str):
        raise InvalidParameterError("Hash algorithm must be named by a string.")
    try:
        return HASH_ALGORITHMS[algorithm.upper()]()
    except KeyError:
        supported = ", ".join(sorted(HASH_ALGORITHMS))
        raise InvalidParameterError(f"Unsupported hash algorithm {algorithm!r}. Choose one of {supported}.") from None


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidKeyError("Secret key must be bytes.")
    if not key:
        raise InvalidKeyError("Secret key must not be empty.")


def validate_parameters(period: int = DEFAULT_PERIOD, digits: int = DEFAULT_DIGITS, algorithm: str = DEFAULT_ALGORITHM) -> None:
    """Raise :class:`InvalidParameterError` unless the parameters are usable."""

    if isinstance(digits, bool) or not isinstance(digits, int) or not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise InvalidParameterError(f"Digits must be an integer between {MIN_DIGITS} and {MAX_DIGITS}.")
    if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
        raise InvalidParameterError("Period must be a positive number of seconds.")
    _resolve_algorithm(algorithm)


def time_counter(unix_time: float, period: int = DEFAULT_PERIOD) -> int:
    """Return ``floor(unix_time / period)``, the HOTP counter for a moment in time."""

    if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
        raise InvalidParameterError("Period must be a positive number of seconds.")
    if unix_time < 0:
        raise InvalidParameterError("Timestamp must not precede the Unix epoch.")
    return int(unix_time // period)


def seconds_remaining(unix_time: float, period: int = DEFAULT_PERIOD) -> int:
    """Seconds left in the current window, always within ``[1, period]``.

    An exact multiple of ``period`` starts a fresh window and yields ``period``.
    """

    if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
        raise InvalidParameterError("Period must be a positive number of seconds.")
    return period - (int(unix_time) % period)


def hotp(key: bytes, counter: int, digits: int = DEFAULT_DIGITS, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Compute the RFC 4226 HOTP value for ``counter``."""

    _check_key(key)
    if isinstance(digits, bool) or not isinstance(digits, int) or not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise InvalidParameterError(f"Digits must be an integer between {MIN_DIGITS} and {MAX_DIGITS}.")
    if counter < 0 or counter >= 1 << (8 * COUNTER_BYTES):
        raise InvalidParameterError("Counter must fit in an unsigned 64-bit integer.")

    mac = hmac.HMAC(bytes(key), _resolve_algorithm(algorithm))
    mac.update(counter.to_bytes(COUNTER_BYTES, "big"))
    digest = mac.finalize()

    offset = digest[-1] & 0x0F
    truncated = int.from_bytes(digest[offset : offset + 4], "big") & TRUNCATION_MASK
    return str(truncated % (10**digits)).zfill(digits)


def generate(
    key: bytes,
    unix_time: float,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Return the TOTP code for ``unix_time``.

    The same arguments always produce the same code. Raises
    :class:`InvalidKeyError` for an empty key and :class:`InvalidParameterError`
    for a bad period, digit count, algorithm or a pre-epoch timestamp.
    """

    _check_key(key)
    validate_parameters(period, digits, algorithm)
    return hotp(key, time_counter(unix_time, period), digits=digits, algorithm=algorithm)
