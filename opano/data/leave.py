"""
Opano — Leave Requests.

A request starts pending and is decided exactly once, by an admin.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date

from opano.data.models import (
    Clock,
    LeaveRequest,
    LeaveStatus,
    Outcome,
    StoreResult,
    utcnow,
)

logger = logging.getLogger(__name__)


class LeaveRequestDB:
    """In-memory leave request store."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._requests: dict[str, LeaveRequest] = {}

    def submit(self, user_id: str, start_date: date, end_date: date, reason: str) -> StoreResult:
        if end_date < start_date:
            return StoreResult(Outcome.INVALID, reason="End date is before start date")
        if not reason.strip():
            return StoreResult(Outcome.INVALID, reason="A reason is required")

        request = LeaveRequest(
            id=f"lr-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            requested_at=self._clock(),
            start_date=start_date,
            end_date=end_date,
            reason=reason.strip(),
        )
        self._requests[request.id] = request
        logger.info(
            "Leave request %s submitted by %s (%s → %s)",
            request.id, user_id, start_date.isoformat(), end_date.isoformat(),
        )
        return StoreResult(Outcome.APPLIED, request)

    def get(self, request_id: str) -> LeaveRequest | None:
        return self._requests.get(request_id)

    def list_requests(self, user_id: str | None = None) -> list[LeaveRequest]:
        """Newest first, optionally for a single user."""
        requests = [
            r for r in self._requests.values()
            if user_id is None or r.user_id == user_id
        ]
        return sorted(requests, key=lambda r: r.requested_at, reverse=True)

    def decide(
        self,
        request_id: str,
        status: LeaveStatus,
        decided_by: str,
        decision_reason: str | None = None,
    ) -> StoreResult:
        """Move a pending request to approved or rejected.

        Authorization is the caller's job; this only enforces the
        pending → decided transition.
        """
        if status is LeaveStatus.PENDING:
            raise ValueError("A decision must be approved or rejected")
        request = self._requests.get(request_id)
        if request is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown leave request")
        if request.status is not LeaveStatus.PENDING:
            return StoreResult(
                Outcome.ALREADY_DECIDED,
                request,
                reason=f"This leave request has already been {request.status.value}",
            )

        updated = replace(
            request,
            status=status,
            decided_by=decided_by,
            decision_reason=decision_reason,
        )
        self._requests[request_id] = updated
        logger.info("Leave request %s %s by %s", request_id, status.value, decided_by)
        return StoreResult(Outcome.APPLIED, updated)
