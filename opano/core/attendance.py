"""
Opano — Attendance session state machine.

idle → working ⇄ on-break → clocked-out, with clocked-out able to start a
fresh session. Worked time accrues on each tick by the real time elapsed
since the previous accrual, so late or bunched ticks never cause drift.

No I/O: the tick source lives in opano.core.ticker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from opano.data.models import Clock, utcnow

logger = logging.getLogger(__name__)

WORK_TARGET_SECONDS = 8 * 60 * 60


class AttendanceStatus(Enum):
    IDLE = "not-clocked-in"
    WORKING = "working"
    ON_BREAK = "on-break"
    CLOCKED_OUT = "clocked-out"


class InvalidTransition(ValueError):
    """Raised when an action is not allowed from the current status."""


@dataclass
class CompletedSession:
    clock_in: datetime
    clock_out: datetime
    worked_seconds: int
    break_seconds: int


def format_duration(seconds: int | float) -> str:
    """Render a duration as HH:MM:SS (negative input shows as zero)."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class AttendanceSession:
    """Tracks one user's clock-in / break / clock-out cycle."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self.status = AttendanceStatus.IDLE
        self.clock_in_time: datetime | None = None
        self.clock_out_time: datetime | None = None
        self.break_started_at: datetime | None = None
        self._worked = 0.0
        self._break = 0.0
        self._last_accrual: datetime | None = None

    @property
    def worked_seconds(self) -> int:
        return int(self._worked)

    @property
    def break_seconds(self) -> int:
        return int(self._break)

    @property
    def is_ticking(self) -> bool:
        return self.status is AttendanceStatus.WORKING

    def progress_percent(self, target_seconds: int = WORK_TARGET_SECONDS) -> float:
        return min(100.0, self._worked / target_seconds * 100)

    def _require(self, *allowed: AttendanceStatus, action: str) -> None:
        if self.status not in allowed:
            raise InvalidTransition(f"Cannot {action} while {self.status.value}")

    def _accrue(self, now: datetime) -> None:
        if self._last_accrual is not None:
            self._worked += max(0.0, (now - self._last_accrual).total_seconds())
        self._last_accrual = now

    def clock_in(self) -> datetime:
        self._require(AttendanceStatus.IDLE, AttendanceStatus.CLOCKED_OUT, action="clock in")
        now = self._clock()
        self.status = AttendanceStatus.WORKING
        self.clock_in_time = now
        self.clock_out_time = None
        self.break_started_at = None
        self._worked = 0.0
        self._break = 0.0
        self._last_accrual = now
        logger.info("Clocked in at %s", now.isoformat())
        return now

    def tick(self) -> int:
        """Accrue worked time up to now. Ignored unless working."""
        if self.status is AttendanceStatus.WORKING:
            self._accrue(self._clock())
        return self.worked_seconds

    def start_break(self) -> datetime:
        self._require(AttendanceStatus.WORKING, action="start a break")
        now = self._clock()
        self._accrue(now)
        self.break_started_at = now
        self.status = AttendanceStatus.ON_BREAK
        logger.info("Break started at %s", now.isoformat())
        return now

    def end_break(self) -> datetime:
        self._require(AttendanceStatus.ON_BREAK, action="end a break")
        now = self._clock()
        self._close_break(now)
        self._last_accrual = now
        self.status = AttendanceStatus.WORKING
        logger.info("Break ended at %s", now.isoformat())
        return now

    def _close_break(self, now: datetime) -> None:
        if self.break_started_at is not None:
            self._break += max(0.0, (now - self.break_started_at).total_seconds())
        self.break_started_at = None

    def clock_out(self) -> CompletedSession:
        self._require(AttendanceStatus.WORKING, AttendanceStatus.ON_BREAK, action="clock out")
        now = self._clock()
        if self.status is AttendanceStatus.ON_BREAK:
            self._close_break(now)
        else:
            self._accrue(now)
        self.status = AttendanceStatus.CLOCKED_OUT
        self.clock_out_time = now
        self._last_accrual = None

        completed = CompletedSession(
            clock_in=self.clock_in_time,
            clock_out=now,
            worked_seconds=self.worked_seconds,
            break_seconds=self.break_seconds,
        )
        logger.info(
            "Clocked out at %s after %s worked",
            now.isoformat(), format_duration(completed.worked_seconds),
        )
        return completed
