from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..audit.model import AuditEvent
from ..audit.sink import AuditSink, emit
from ..common.datetime_utils import as_report_date, now_local
from ..common.validators import require_positive_id
from ..core.constants import DEFAULT_APPROVE_MAX_ATTEMPTS, DEFAULT_ARCHIVE_LIMIT
from ..core.enums import AuditAction, ConsolidationState
from ..core.exceptions import (
    ConflictError,
    DuplicatesPresentError,
    NothingToApproveError,
    UnauthorizedError,
    ValidationError,
)
from ..ledger.model import DayConsolidation
from ..ledger.repository import LedgerRepository
from ..users.service import ApprovalPolicy
from .detector import group_duplicates

logger = logging.getLogger(__name__)


class ConsolidationGate:
    """OPEN/LOCKED state machine per date.

    Every transition runs inside the date's transaction, so the duplicate check
    and the LOCKED write cannot be separated by a concurrent submission.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        approval_policy: ApprovalPolicy,
        *,
        audit: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = now_local,
        max_attempts: int = DEFAULT_APPROVE_MAX_ATTEMPTS,
    ):
        self._ledger = ledger
        self._approval_policy = approval_policy
        self._audit = audit
        self._clock = clock
        self._max_attempts = max(1, int(max_attempts))

    def _require_capability(self, actor_id: int) -> int:
        actor_id = require_positive_id(actor_id, "User")
        if not self._approval_policy.has_approval_capability(actor_id):
            raise UnauthorizedError("You are not allowed to approve or reopen a day")
        return actor_id

    def approve(self, *, report_date, actor_id: int) -> DayConsolidation:
        d = as_report_date(report_date)
        actor_id = self._require_capability(actor_id)

        attempt = 1
        while True:
            try:
                return self._approve_once(d, actor_id)
            except ConflictError:
                if attempt >= self._max_attempts:
                    raise
                logger.warning("Approve %s lost a lock race (attempt %s/%s), retrying", d, attempt, self._max_attempts)
                attempt += 1

    def _approve_once(self, d: date, actor_id: int) -> DayConsolidation:
        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            current = day.consolidation()
            if current.is_locked:
                return current

            # A submitted report whose entries were all cancelled still counts:
            # "nobody absent that day" is a legitimate ledger to finalize.
            if day.count_submitted_reports() == 0:
                raise NothingToApproveError(f"No submitted absence reports for {d.isoformat()}")

            duplicates = group_duplicates(day.recorded_rows())
            if duplicates:
                raise DuplicatesPresentError(duplicates)

            day.set_state(state=ConsolidationState.LOCKED, actor_id=actor_id, at=now)
            result = day.consolidation()

        logger.info("Consolidation for %s approved by user %s", d, actor_id)
        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.CONSOLIDATION_APPROVE,
                entity="DailyConsolidation",
                entity_id=d.isoformat(),
                actor_id=actor_id,
                timestamp=now,
            ),
        )
        return result

    def unapprove(self, *, report_date, actor_id: int) -> DayConsolidation:
        d = as_report_date(report_date)
        actor_id = self._require_capability(actor_id)

        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            current = day.consolidation()
            if not current.is_locked:
                return current
            day.set_state(state=ConsolidationState.OPEN, actor_id=actor_id, at=now)
            result = day.consolidation()

        logger.info("Consolidation for %s reopened by user %s", d, actor_id)
        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.CONSOLIDATION_UNAPPROVE,
                entity="DailyConsolidation",
                entity_id=d.isoformat(),
                actor_id=actor_id,
                timestamp=now,
                details={"previously_approved_by": current.approved_by},
            ),
        )
        return result

    def is_locked(self, report_date) -> bool:
        return self._ledger.get_consolidation(as_report_date(report_date)).is_locked

    def state(self, report_date) -> DayConsolidation:
        return self._ledger.get_consolidation(as_report_date(report_date))

    def list_locked_days(
        self,
        *,
        start_date=None,
        end_date=None,
        limit: int = DEFAULT_ARCHIVE_LIMIT,
    ) -> Sequence[DayConsolidation]:
        start = as_report_date(start_date) if start_date else None
        end = as_report_date(end_date) if end_date else None
        if start and end and end < start:
            raise ValidationError("End date must be on or after start date")
        return list(self._ledger.list_locked_days(start_date=start, end_date=end, limit=int(limit)))
