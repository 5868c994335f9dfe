"""
Opano — Attendance Log.

Completed work sessions plus the date-range report shown on the
attendance page (totals, average per logged day, hours per day).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta

from opano.data.models import AttendanceLogEntry, Outcome, StoreResult

logger = logging.getLogger(__name__)


@dataclass
class DailyHours:
    day: date
    hours: float


@dataclass
class AttendanceReport:
    entries: list[AttendanceLogEntry] = field(default_factory=list)   # newest first
    total_worked_seconds: int = 0
    total_break_seconds: int = 0
    logged_days: int = 0
    average_daily_seconds: float = 0.0
    daily_hours: list[DailyHours] = field(default_factory=list)


class AttendanceLog:
    """In-memory store of completed sessions, kept newest first."""

    def __init__(self) -> None:
        self._entries: dict[str, AttendanceLogEntry] = {}

    def _sorted(self) -> list[AttendanceLogEntry]:
        return sorted(self._entries.values(), key=lambda e: e.clock_in, reverse=True)

    def record(
        self,
        clock_in: datetime,
        clock_out: datetime,
        worked_seconds: int,
        break_seconds: int = 0,
        activity_percent: int | None = None,
    ) -> StoreResult:
        if clock_out < clock_in:
            return StoreResult(Outcome.INVALID, reason="Clock-out is before clock-in")
        entry = AttendanceLogEntry(
            id=f"log-{uuid.uuid4().hex[:12]}",
            clock_in=clock_in,
            clock_out=clock_out,
            worked_seconds=max(0, worked_seconds),
            break_seconds=max(0, break_seconds),
            activity_percent=activity_percent,
        )
        self._entries[entry.id] = entry
        logger.info("Attendance entry %s recorded (%ds worked)", entry.id, entry.worked_seconds)
        return StoreResult(Outcome.APPLIED, entry)

    def get(self, entry_id: str) -> AttendanceLogEntry | None:
        return self._entries.get(entry_id)

    def list_all(self) -> list[AttendanceLogEntry]:
        return self._sorted()

    def edit(
        self,
        entry_id: str,
        clock_in: datetime,
        clock_out: datetime,
        break_seconds: int | None = None,
    ) -> StoreResult:
        """Correct an entry's times; worked seconds are recomputed from them."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown log entry")
        if clock_out < clock_in:
            return StoreResult(Outcome.INVALID, reason="Clock-out is before clock-in")

        elapsed = int((clock_out - clock_in).total_seconds())
        breaks = entry.break_seconds if break_seconds is None else max(0, break_seconds)
        if breaks > elapsed:
            return StoreResult(Outcome.INVALID, reason="Breaks are longer than the session")
        updated = replace(
            entry,
            clock_in=clock_in,
            clock_out=clock_out,
            break_seconds=breaks,
            worked_seconds=elapsed - breaks,
        )
        self._entries[entry_id] = updated
        logger.info("Attendance entry %s updated", entry_id)
        return StoreResult(Outcome.APPLIED, updated)

    def delete(self, entry_id: str) -> bool:
        deleted = self._entries.pop(entry_id, None) is not None
        if deleted:
            logger.info("Attendance entry %s deleted", entry_id)
        return deleted

    def report(self, start: date, end: date | None = None) -> AttendanceReport:
        """Summarize entries whose clock-in date falls in [start, end]."""
        end = end or start
        if end < start:
            start, end = end, start

        entries = [e for e in self._sorted() if start <= e.clock_in.date() <= end]
        per_day: dict[date, int] = {}
        total_break = 0
        for entry in entries:
            day = entry.clock_in.date()
            per_day[day] = per_day.get(day, 0) + entry.worked_seconds
            total_break += entry.break_seconds

        total_worked = sum(per_day.values())
        daily_hours = []
        day = start
        while day <= end:
            daily_hours.append(DailyHours(day=day, hours=per_day.get(day, 0) / 3600))
            day += timedelta(days=1)

        return AttendanceReport(
            entries=entries,
            total_worked_seconds=total_worked,
            total_break_seconds=total_break,
            logged_days=len(per_day),
            average_daily_seconds=total_worked / len(per_day) if per_day else 0.0,
            daily_hours=daily_hours,
        )
