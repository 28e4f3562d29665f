"""Exception hierarchy shared across TOTPVault components."""

from __future__ import annotations


class TotpVaultError(Exception):
    """Base class for every error raised by TOTPVault."""


class DecodeError(TotpVaultError, ValueError):
    """Raised when secret text is not valid Base32."""


class InvalidKeyError(TotpVaultError, ValueError):
    """Raised when the engine is handed empty or non-bytes key material."""


class InvalidParameterError(TotpVaultError, ValueError):
    """Raised for unsupported digit counts, periods, algorithms or timestamps."""


class ValidationError(TotpVaultError, ValueError):
    """Raised when an account is missing its name or secret."""


class DuplicateIdError(TotpVaultError, ValueError):
    """Raised when an account id is already present in the store."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f"Account id {account_id} already exists.")


class StoreError(TotpVaultError):
    """Raised when the persistence backend fails to read or write."""
