from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from fakes import InMemoryLedger, InMemoryUsers, RecordingAuditSink, TickingClock, make_user
from src.absence_consolidation.absence_consolidation.consolidation.daily_view import DailyViewBuilder
from src.absence_consolidation.absence_consolidation.consolidation.detector import DuplicateDetector
from src.absence_consolidation.absence_consolidation.consolidation.gate import ConsolidationGate
from src.absence_consolidation.absence_consolidation.consolidation.resolver import DuplicateResolver
from src.absence_consolidation.absence_consolidation.core.enums import Role, WorkType
from src.absence_consolidation.absence_consolidation.ledger.service import AbsenceLedgerService
from src.absence_consolidation.absence_consolidation.reports.service import OfficialReportService
from src.absence_consolidation.absence_consolidation.users.service import RoleApprovalPolicy

DAY = date(2024, 5, 1)

IT, HR, MAINTENANCE = 1, 2, 3

MANAGER, OFFICER_X, OFFICER_Y, ADMIN, OFFICER_NO_DEPTS = 1, 2, 3, 4, 5

# E1 sits in Maintenance, which both officers cover.
E1, E_IT, E_HR, E_INACTIVE, E_MAINT_2 = 101, 102, 103, 104, 105


def build_world(*, lock_timeout=None, max_attempts: int = 3) -> SimpleNamespace:
    users = InMemoryUsers()
    users.add(make_user(MANAGER, "Mona Manager", Role.MANAGER, username="manager"))
    users.add(make_user(OFFICER_X, "Xavier Officer", Role.OFFICER, username="officer_x"), [IT, MAINTENANCE])
    users.add(make_user(OFFICER_Y, "Yara Officer", Role.OFFICER, username="officer_y"), [HR, MAINTENANCE])
    users.add(make_user(ADMIN, "Ada Admin", Role.ADMIN, username="admin"))
    users.add(make_user(OFFICER_NO_DEPTS, "Nadia Nodept", Role.OFFICER, username="officer_none"))

    ledger = InMemoryLedger(lock_timeout=lock_timeout)
    ledger.user_names = {u.user_id: u.full_name for u in users.users.values()}
    ledger.add_employee(E1, "Eli One", MAINTENANCE, "Maintenance", job_title="Electrician")
    ledger.add_employee(E_IT, "Ivy Tech", IT, "IT")
    ledger.add_employee(E_HR, "Hank Human", HR, "HR", work_type=WorkType.SHIFTS)
    ledger.add_employee(E_INACTIVE, "Old Timer", IT, "IT", is_active=False)
    ledger.add_employee(E_MAINT_2, "Mo Wrench", MAINTENANCE, "Maintenance", work_type=WorkType.SHIFTS, job_title="Plumber")

    audit = RecordingAuditSink()
    clock = TickingClock()
    policy = RoleApprovalPolicy(users)

    return SimpleNamespace(
        users=users,
        ledger=ledger,
        audit=audit,
        clock=clock,
        policy=policy,
        service=AbsenceLedgerService(ledger, users, approval_policy=policy, audit=audit, clock=clock),
        detector=DuplicateDetector(ledger),
        resolver=DuplicateResolver(ledger, audit=audit, clock=clock),
        gate=ConsolidationGate(ledger, policy, audit=audit, clock=clock, max_attempts=max_attempts),
        daily_view=DailyViewBuilder(ledger),
        official=OfficialReportService(ledger),
    )


@pytest.fixture
def world():
    return build_world()
