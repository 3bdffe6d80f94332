from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .audit.mysql_audit_sink import MySQLAuditSink
from .audit.sink import AuditSink
from .consolidation.daily_view import DailyViewBuilder
from .consolidation.detector import DuplicateDetector
from .consolidation.gate import ConsolidationGate
from .consolidation.resolver import DuplicateResolver
from .core.constants import DEFAULT_APPROVE_MAX_ATTEMPTS, DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .ledger.mysql_ledger_repository import MySQLLedgerRepository
from .ledger.repository import LedgerRepository
from .ledger.service import AbsenceLedgerService
from .reports.service import OfficialReportService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import ApprovalPolicy, AuthService, RoleApprovalPolicy


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    ledger_repo: LedgerRepository
    audit_sink: Optional[AuditSink]
    approval_policy: ApprovalPolicy

    auth_service: AuthService
    ledger_service: AbsenceLedgerService
    detector: DuplicateDetector
    resolver: DuplicateResolver
    gate: ConsolidationGate
    daily_view: DailyViewBuilder
    official_report_service: OfficialReportService


def wire_container(
    *,
    users_repo: UserRepository,
    ledger_repo: LedgerRepository,
    audit_sink: Optional[AuditSink] = None,
    approval_policy: Optional[ApprovalPolicy] = None,
    conn: Optional[DatabaseConnection] = None,
    approve_max_attempts: int = DEFAULT_APPROVE_MAX_ATTEMPTS,
) -> Container:
    """Build services on top of the given repositories (MySQL in production, fakes in tests)."""
    approval_policy = approval_policy or RoleApprovalPolicy(users_repo)

    return Container(
        conn=conn,
        users_repo=users_repo,
        ledger_repo=ledger_repo,
        audit_sink=audit_sink,
        approval_policy=approval_policy,
        auth_service=AuthService(users_repo, approval_policy),
        ledger_service=AbsenceLedgerService(
            ledger_repo,
            users_repo,
            approval_policy=approval_policy,
            audit=audit_sink,
        ),
        detector=DuplicateDetector(ledger_repo),
        resolver=DuplicateResolver(ledger_repo, audit=audit_sink),
        gate=ConsolidationGate(
            ledger_repo,
            approval_policy,
            audit=audit_sink,
            max_attempts=approve_max_attempts,
        ),
        daily_view=DailyViewBuilder(ledger_repo),
        official_report_service=OfficialReportService(ledger_repo),
    )


def build_container(
    *,
    db_config: dict,
    approve_max_attempts: int = DEFAULT_APPROVE_MAX_ATTEMPTS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        lock_wait_timeout=int(db_config.get("lock_wait_timeout", DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS)),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire_container(
        users_repo=MySQLUserRepository(conn),
        ledger_repo=MySQLLedgerRepository(conn),
        audit_sink=MySQLAuditSink(conn),
        conn=conn,
        approve_max_attempts=approve_max_attempts,
    )
