import hashlib

import pyotp
import pytest

from totpvault.errors import InvalidKeyError, InvalidParameterError
from totpvault.otp import totp_engine

SHA1_KEY = b"12345678901234567890"
SHA256_KEY = b"12345678901234567890123456789012"
SHA512_KEY = b"1234567890123456789012345678901234567890123456789012345678901234"

# RFC 6238 appendix B.
RFC6238_VECTORS = [
    (59, "94287082", "46119246", "90693936"),
    (1111111109, "07081804", "68084774", "25091201"),
    (1111111111, "14050471", "67062674", "99943326"),
    (1234567890, "89005924", "91819424", "93441116"),
    (2000000000, "69279037", "90698825", "38618901"),
    (20000000000, "65353130", "77737706", "47863826"),
]

# RFC 4226 appendix D.
RFC4226_HOTP = ["755224", "287082", "359152", "969429", "338314", "254676", "287922", "162583", "399871", "520489"]


@pytest.mark.parametrize("timestamp, sha1, sha256, sha512", RFC6238_VECTORS)
def test_generate_matches_rfc6238(timestamp, sha1, sha256, sha512):
    assert totp_engine.generate(SHA1_KEY, timestamp, digits=8) == sha1
    assert totp_engine.generate(SHA256_KEY, timestamp, digits=8, algorithm="SHA256") == sha256
    assert totp_engine.generate(SHA512_KEY, timestamp, digits=8, algorithm="sha512") == sha512


def test_six_digit_codes_are_trailing_digits_of_eight_digit_codes():
    assert totp_engine.generate(SHA1_KEY, 59) == "287082"
    assert totp_engine.generate(SHA1_KEY, 1111111109) == "081804"


@pytest.mark.parametrize("counter, expected", list(enumerate(RFC4226_HOTP)))
def test_hotp_matches_rfc4226(counter, expected):
    assert totp_engine.hotp(SHA1_KEY, counter) == expected


def test_generate_agrees_with_pyotp():
    secret = pyotp.random_base32()
    key = pyotp.TOTP(secret).byte_secret()
    for timestamp in (0, 29, 30, 1700000000, 1700000029):
        assert totp_engine.generate(key, timestamp) == pyotp.TOTP(secret).at(timestamp)
    sha256 = pyotp.TOTP(secret, digits=8, interval=60, digest=hashlib.sha256)
    assert totp_engine.generate(key, 1700000000, period=60, digits=8, algorithm="SHA256") == sha256.at(1700000000)


def test_generate_is_deterministic():
    first = totp_engine.generate(SHA1_KEY, 1234567890.75)
    second = totp_engine.generate(SHA1_KEY, 1234567890.75)
    assert first == second
    assert len(first) == 6 and first.isdigit()


def test_codes_change_only_at_window_boundaries():
    assert totp_engine.generate(SHA1_KEY, 60) == totp_engine.generate(SHA1_KEY, 89)
    assert totp_engine.generate(SHA1_KEY, 89) != totp_engine.generate(SHA1_KEY, 90)


def test_seconds_remaining_boundaries():
    assert totp_engine.seconds_remaining(0) == 30
    assert totp_engine.seconds_remaining(30) == 30
    assert totp_engine.seconds_remaining(29) == 1
    assert totp_engine.seconds_remaining(31.9) == 29
    assert totp_engine.seconds_remaining(119, period=60) == 1


def test_time_counter_floors():
    assert totp_engine.time_counter(59) == 1
    assert totp_engine.time_counter(60) == 2
    assert totp_engine.time_counter(89.99) == 2


def test_generate_rejects_empty_key():
    with pytest.raises(InvalidKeyError):
        totp_engine.generate(b"", 59)


def test_generate_rejects_text_key():
    with pytest.raises(InvalidKeyError):
        totp_engine.generate("GEZDGNBV", 59)


@pytest.mark.parametrize("digits", [0, 11, -1])
def test_generate_rejects_digits_out_of_range(digits):
    with pytest.raises(InvalidParameterError):
        totp_engine.generate(SHA1_KEY, 59, digits=digits)


@pytest.mark.parametrize("period", [0, -30])
def test_generate_rejects_non_positive_period(period):
    with pytest.raises(InvalidParameterError):
        totp_engine.generate(SHA1_KEY, 59, period=period)


def test_generate_rejects_unknown_algorithm():
    with pytest.raises(InvalidParameterError):
        totp_engine.generate(SHA1_KEY, 59, algorithm="MD5")


def test_generate_rejects_negative_timestamp():
    with pytest.raises(InvalidParameterError):
        totp_engine.generate(SHA1_KEY, -1)


def test_ten_digit_codes_are_zero_padded():
    code = totp_engine.generate(SHA1_KEY, 59, digits=10)
    assert len(code) == 10
    assert code.endswith("94287082")
