"""Composition root tying the secret store to the refresh scheduler."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, List, Optional

from .config import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD, TICK_INTERVAL
from .otp import base32_codec, totp_engine
from .scheduler.refresh_scheduler import CodeSnapshot, RefreshScheduler, SnapshotListener
from .store.secret_store import Account, AccountInfo, Backend, SecretStore

log = logging.getLogger(__name__)


def _new_account_id() -> str:
    return uuid.uuid4().hex


class CredentialManager:
    """Owns the account store and the scheduler that keeps codes fresh.

    All mutations go through the manager. They complete before returning, and
    the next scheduler tick reads the store afresh, so a new account shows up
    (and a removed one disappears) no later than the following snapshot.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        period: int = DEFAULT_PERIOD,
        interval: float = TICK_INTERVAL,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _new_account_id,
    ) -> None:
        self._store = SecretStore(backend)
        self._scheduler = RefreshScheduler(self._store, period=period, interval=interval, clock=clock)
        self._id_factory = id_factory

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def start(self) -> CodeSnapshot:
        """Load persisted accounts into a first snapshot, then start ticking."""

        snapshot = await self._scheduler.refresh()
        self._scheduler.start()
        log.info("Credential manager started with %d account(s)", len(snapshot.codes))
        return snapshot

    async def stop(self) -> None:
        self._scheduler.stop()
        await self._scheduler.wait_stopped()

    async def __aenter__(self) -> "CredentialManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def add_account(
        self,
        name: str,
        secret_text: str,
        *,
        algorithm: str = DEFAULT_ALGORITHM,
        digits: int = DEFAULT_DIGITS,
        period: int = DEFAULT_PERIOD,
    ) -> AccountInfo:
        """Decode ``secret_text`` and enroll a new account under a fresh id."""

        secret = base32_codec.decode(secret_text)
        totp_engine.validate_parameters(period, digits, algorithm)
        account = Account(
            id=self._id_factory(),
            name=(name or "").strip(),
            secret=secret,
            algorithm=algorithm.upper(),
            digits=digits,
            period=period,
        )
        await self._store.add(account)
        log.info("Added account %s", account.id)
        return AccountInfo.from_account(account)

    async def remove_account(self, account_id: str) -> bool:
        removed = await self._store.remove(account_id)
        if removed:
            log.info("Removed account %s", account_id)
        return removed

    async def list_accounts(self) -> List[AccountInfo]:
        return [AccountInfo.from_account(account) for account in await self._store.get_all()]

    async def get_account(self, account_id: str) -> Optional[AccountInfo]:
        account = await self._store.get(account_id)
        return AccountInfo.from_account(account) if account is not None else None

    async def refresh(self) -> CodeSnapshot:
        """Compute a snapshot immediately instead of waiting for the next tick."""

        return await self._scheduler.refresh()

    def current_snapshot(self) -> CodeSnapshot:
        return self._scheduler.snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Push every new snapshot to ``listener``; returns an unsubscribe callable."""

        self._scheduler.add_listener(listener)

        def unsubscribe() -> None:
            self._scheduler.remove_listener(listener)

        return unsubscribe
