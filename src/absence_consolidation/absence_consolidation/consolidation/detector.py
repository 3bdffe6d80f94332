from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from ..common.datetime_utils import as_report_date
from ..ledger.model import AbsenceRow
from ..ledger.repository import LedgerRepository
from .model import DuplicateGroup, DuplicateMember


def group_duplicates(rows: Iterable[AbsenceRow]) -> list[DuplicateGroup]:
    """Group RECORDED rows of one date by employee; keep groups spanning 2+ reports.

    Pure function: callers decide which snapshot of the ledger ``rows`` comes from.
    """
    by_employee: "OrderedDict[int, list[AbsenceRow]]" = OrderedDict()
    for row in rows:
        by_employee.setdefault(row.employee_id, []).append(row)

    groups: list[DuplicateGroup] = []
    for employee_id, members in by_employee.items():
        if len({m.report_id for m in members}) < 2:
            continue
        first = members[0]
        groups.append(
            DuplicateGroup(
                report_date=first.absence_date,
                employee_id=employee_id,
                employee_name=first.employee_name,
                members=tuple(
                    DuplicateMember(
                        absence_id=m.absence_id,
                        report_id=m.report_id,
                        officer_id=m.officer_id,
                        officer_name=m.officer_name,
                        created_at=m.created_at,
                    )
                    for m in members
                ),
            )
        )
    return groups


class DuplicateDetector:
    def __init__(self, ledger: LedgerRepository):
        self._ledger = ledger

    def find_duplicates(self, report_date) -> list[DuplicateGroup]:
        return group_duplicates(self._ledger.list_recorded_rows(as_report_date(report_date)))
