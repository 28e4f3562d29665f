"""Account records and the store that persists them.

The store is the only owner of secret key material. It talks to a pluggable
backend exposing ``list()``, ``put(account)`` and ``delete(account_id)``; each
of those may return a plain value or an awaitable.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Protocol

from ..config import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD
from ..errors import DuplicateIdError, StoreError, ValidationError
from ..otp import base32_codec

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    """One enrolled credential. ``secret`` holds decoded key bytes."""

    id: str
    name: str
    secret: bytes = field(repr=False)
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "secret": base32_codec.encode(self.secret),
            "algorithm": self.algorithm,
            "digits": self.digits,
            "period": self.period,
        }

    @classmethod
    def from_record(cls, data: dict) -> "Account":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            secret=base32_codec.decode(data["secret"]),
            algorithm=str(data.get("algorithm", DEFAULT_ALGORITHM)),
            digits=int(data.get("digits", DEFAULT_DIGITS)),
            period=int(data.get("period", DEFAULT_PERIOD)),
        )


@dataclass(frozen=True)
class AccountInfo:
    """Secret-free view of an :class:`Account` for callers outside the store."""

    id: str
    name: str
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD

    @classmethod
    def from_account(cls, account: Account) -> "AccountInfo":
        return cls(
            id=account.id,
            name=account.name,
            algorithm=account.algorithm,
            digits=account.digits,
            period=account.period,
        )


class Backend(Protocol):
    def list(self) -> Any: ...

    def put(self, account: Account) -> Any: ...

    def delete(self, account_id: str) -> Any: ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class SecretStore:
    """Ordered ``id -> Account`` mapping over a persistence backend."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    async def get_all(self) -> List[Account]:
        """Return every account in insertion order."""

        try:
            accounts: Iterable[Account] = await _resolve(self._backend.list())
            return list(accounts)
        except StoreError:
            raise
        except Exception as exc:  # backends may raise anything, e.g. sqlite3 errors
            raise StoreError(f"Failed to read accounts: {exc}") from exc

    async def get(self, account_id: str) -> Optional[Account]:
        for account in await self.get_all():
            if account.id == account_id:
                return account
        return None

    async def add(self, account: Account) -> Account:
        """Validate and persist ``account``.

        Nothing is written unless validation and the duplicate check pass.
        """

        if not isinstance(account.name, str) or not account.name.strip():
            raise ValidationError("Account name must not be empty.")
        if not isinstance(account.secret, (bytes, bytearray)) or not account.secret:
            raise ValidationError("Account secret must decode to at least one byte.")
        if not account.id:
            raise ValidationError("Account id must not be empty.")
        if await self.get(account.id) is not None:
            raise DuplicateIdError(account.id)

        try:
            await _resolve(self._backend.put(account))
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to save account {account.id}: {exc}") from exc
        log.debug("Stored account %s", account.id)
        return account

    async def remove(self, account_id: str) -> bool:
        """Delete ``account_id`` if present. Absent ids are not an error."""

        if await self.get(account_id) is None:
            log.debug("Account %s already absent", account_id)
            return False
        try:
            await _resolve(self._backend.delete(account_id))
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to remove account {account_id}: {exc}") from exc
        log.debug("Removed account %s", account_id)
        return True
