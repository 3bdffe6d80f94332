from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..audit.model import AuditEvent
from ..audit.sink import AuditSink, emit
from ..common.datetime_utils import as_report_date, now_local
from ..common.validators import require_positive_id
from ..core.enums import AuditAction
from ..core.exceptions import ConflictError, NotFoundError
from ..ledger.repository import LedgerRepository
from ..ledger.service import guard_open

logger = logging.getLogger(__name__)


class DuplicateResolver:
    """Collapse one employee's duplicate entries for a date into a single RECORDED entry.

    Policy: keep the earliest-created entry (lowest id on equal timestamps) and
    cancel the others. Remediation is always human-triggered, one employee at a time.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        *,
        audit: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._ledger = ledger
        self._audit = audit
        self._clock = clock

    def resolve_duplicate(self, *, report_date, employee_id: int, actor_id: int) -> dict:
        d = as_report_date(report_date)
        employee_id = require_positive_id(employee_id, "Employee")
        actor_id = require_positive_id(actor_id, "User")

        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            guard_open(day)
            rows = day.recorded_rows(employee_id=employee_id)
            if not rows:
                raise NotFoundError(f"No recorded absence for employee #{employee_id} on {d.isoformat()}")
            if len(rows) < 2:
                return {"removed": 0, "kept_absence_id": rows[0].absence_id}

            keep, *extra = sorted(rows, key=lambda r: (r.created_at, r.absence_id))
            removed = day.cancel_absences([r.absence_id for r in extra], cancelled_by=actor_id, at=now)
            if removed != len(extra):
                # Raising here rolls back the partial cancellation.
                raise ConflictError("Duplicate entries changed while resolving, please retry")

        logger.info("Resolved duplicate for employee %s on %s: kept #%s, cancelled %s", employee_id, d, keep.absence_id, removed)
        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.DUPLICATE_RESOLVE,
                entity="Absence",
                entity_id=str(keep.absence_id),
                actor_id=actor_id,
                timestamp=now,
                details={
                    "employee_id": employee_id,
                    "date": d,
                    "cancelled_absence_ids": [r.absence_id for r in extra],
                },
            ),
        )
        return {"removed": removed, "kept_absence_id": keep.absence_id}
