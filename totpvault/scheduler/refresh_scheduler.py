"""Periodic regeneration of TOTP codes.

One asyncio task ticks once per wall-clock second. Each tick reads every
account from the store, derives its current code and publishes an immutable
:class:`CodeSnapshot`. The sleep before each tick is recomputed from the clock,
so scheduling jitter never accumulates into drift.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

from ..config import DEFAULT_PERIOD, TICK_INTERVAL
from ..errors import DecodeError, InvalidKeyError, InvalidParameterError, StoreError
from ..otp import totp_engine
from ..store.secret_store import SecretStore

log = logging.getLogger(__name__)


class CodeErrorKind(enum.Enum):
    INVALID_KEY = "invalid_key"
    INVALID_PARAMETER = "invalid_parameter"
    DECODE_ERROR = "decode_error"
    UNKNOWN = "unknown"


_ERROR_KINDS = (
    (InvalidKeyError, CodeErrorKind.INVALID_KEY),
    (InvalidParameterError, CodeErrorKind.INVALID_PARAMETER),
    (DecodeError, CodeErrorKind.DECODE_ERROR),
)


def _error_kind(exc: Exception) -> CodeErrorKind:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return CodeErrorKind.UNKNOWN


@dataclass(frozen=True)
class CodeResult:
    """Either a code or the kind of error that prevented computing one."""

    code: Optional[str] = None
    error: Optional[CodeErrorKind] = None
    # Countdown for the account's own window; unset when its period is unusable.
    seconds_remaining: Optional[int] = None
    period: Optional[int] = None

    @classmethod
    def success(cls, code: str, seconds_remaining: int, period: int) -> "CodeResult":
        return cls(code=code, seconds_remaining=seconds_remaining, period=period)

    @classmethod
    def failure(cls, kind: CodeErrorKind) -> "CodeResult":
        return cls(error=kind)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CodeSnapshot:
    """Codes for every account at one instant plus the window countdown.

    ``seconds_remaining`` follows the scheduler's period; accounts with their
    own period carry their countdown in :class:`CodeResult`.
    """

    codes: Mapping[str, CodeResult] = field(default_factory=lambda: MappingProxyType({}))
    seconds_remaining: int = DEFAULT_PERIOD
    period: int = DEFAULT_PERIOD
    timestamp: int = 0

    @classmethod
    def build(cls, codes: Dict[str, CodeResult], unix_time: float, period: int) -> "CodeSnapshot":
        return cls(
            codes=MappingProxyType(dict(codes)),
            seconds_remaining=totp_engine.seconds_remaining(unix_time, period),
            period=period,
            timestamp=int(unix_time),
        )


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


SnapshotListener = Callable[[CodeSnapshot], None]


class RefreshScheduler:
    """Drives code regeneration for every account in a :class:`SecretStore`."""

    def __init__(
        self,
        store: SecretStore,
        *,
        period: int = DEFAULT_PERIOD,
        interval: float = TICK_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
            raise InvalidParameterError("Period must be a positive number of seconds.")
        if interval <= 0:
            raise InvalidParameterError("Tick interval must be positive.")
        self._store = store
        self._period = period
        self._interval = interval
        self._clock = clock
        self._listeners: List[SnapshotListener] = []
        self._state = SchedulerState.IDLE
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._snapshot = CodeSnapshot.build({}, self._clock(), period)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def snapshot(self) -> CodeSnapshot:
        return self._snapshot

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        """Begin ticking. Must be called from inside a running event loop."""

        if self.running:
            return
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._task = asyncio.get_running_loop().create_task(self._run(stop_event))
        self._state = SchedulerState.RUNNING
        log.debug("Refresh scheduler started")

    def stop(self) -> None:
        """Stop ticking. A tick already in progress is allowed to finish."""

        if not self.running:
            return
        self._state = SchedulerState.IDLE
        if self._stop_event is not None:
            self._stop_event.set()
        log.debug("Refresh scheduler stopped")

    async def wait_stopped(self) -> None:
        task = self._task
        if task is not None:
            await task
            if self._task is task:
                self._task = None

    def _delay_until_next_tick(self) -> float:
        return self._interval - (self._clock() % self._interval)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._delay_until_next_tick())
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            try:
                await self.refresh()
            except Exception:
                log.exception("Refresh failed, retrying on the next tick")

    async def refresh(self) -> CodeSnapshot:
        """Run one tick now and return the resulting snapshot.

        When the store cannot be read the previous snapshot is kept.
        """

        now = self._clock()
        try:
            accounts = await self._store.get_all()
        except StoreError as exc:
            log.error("Skipping refresh, account store unavailable: %s", exc)
            return self._snapshot

        codes: Dict[str, CodeResult] = {}
        for account in accounts:
            try:
                code = totp_engine.generate(
                    account.secret,
                    now,
                    period=account.period,
                    digits=account.digits,
                    algorithm=account.algorithm,
                )
            except (ValueError, TypeError) as exc:
                kind = _error_kind(exc)
                log.warning("Could not generate code for account %s (%s)", account.id, kind.value)
                codes[account.id] = CodeResult.failure(kind)
            else:
                codes[account.id] = CodeResult.success(
                    code,
                    seconds_remaining=totp_engine.seconds_remaining(now, account.period),
                    period=account.period,
                )

        snapshot = CodeSnapshot.build(codes, now, self._period)
        self._snapshot = snapshot
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: CodeSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                log.exception("Snapshot listener %r failed", listener)
