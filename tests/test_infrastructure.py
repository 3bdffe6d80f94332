from __future__ import annotations

from datetime import date, datetime

import mysql.connector
import pytest
from werkzeug.security import generate_password_hash

from fakes import InMemoryUsers, RecordingAuditSink, make_user
from src.absence_consolidation.absence_consolidation.audit.model import AuditEvent
from src.absence_consolidation.absence_consolidation.audit.sink import emit
from src.absence_consolidation.absence_consolidation.core.enums import AuditAction, Role
from src.absence_consolidation.absence_consolidation.core.exceptions import (
    AuthenticationError,
    ConflictError,
    DateLockedError,
)
from src.absence_consolidation.absence_consolidation.database.bootstrap import iter_sql_statements
from src.absence_consolidation.absence_consolidation.database.mysql_base import db_cursor
from src.absence_consolidation.absence_consolidation.ledger.mysql_ledger_repository import MySQLLedgerRepository, _like
from src.absence_consolidation.absence_consolidation.ledger.service import guard_open
from src.absence_consolidation.absence_consolidation.users.service import AuthService, RoleApprovalPolicy


class RecordingCursor:
    def __init__(self, rows=None):
        self.statements = []
        self.rows = list(rows or [])
        self.lastrowid = None
        self.rowcount = 0
        self.closed = False

    def execute(self, sql, params=None):
        self.statements.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def close(self):
        self.closed = True


class RecordingConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class SingleConnectionFactory:
    def __init__(self, conn):
        self.conn = conn
        self.connects = 0

    def connect(self):
        self.connects += 1
        return self.conn


def _factory(rows=None):
    cur = RecordingCursor(rows)
    conn = RecordingConnection(cur)
    return SingleConnectionFactory(conn), conn, cur


def test_db_cursor_commits_on_success():
    factory, conn, cur = _factory()
    with db_cursor(factory) as (_, c):
        c.execute("SELECT 1")

    assert conn.committed and conn.closed and cur.closed
    assert not conn.rolled_back


@pytest.mark.parametrize("errno", [1205, 1213])
def test_db_cursor_translates_lock_errors(errno):
    factory, conn, _ = _factory()
    with pytest.raises(ConflictError):
        with db_cursor(factory):
            raise mysql.connector.errors.DatabaseError(msg="lock trouble", errno=errno)

    assert conn.rolled_back and conn.closed
    assert not conn.committed


def test_db_cursor_propagates_other_driver_errors():
    factory, conn, _ = _factory()
    with pytest.raises(mysql.connector.Error):
        with db_cursor(factory):
            raise mysql.connector.errors.IntegrityError(msg="duplicate key", errno=1062)
    assert conn.rolled_back


def test_day_transaction_locks_the_date_row_first():
    day = date(2024, 5, 1)
    factory, conn, cur = _factory(rows=[{"report_date": day, "state": "OPEN", "approved_by": None, "approved_at": None}])

    with MySQLLedgerRepository(factory).day_transaction(day) as tx:
        assert tx.consolidation().is_locked is False

    assert cur.statements[0][0].startswith("INSERT INTO daily_consolidations")
    assert "ON DUPLICATE KEY UPDATE" in cur.statements[0][0]
    assert cur.statements[1][0].endswith("FOR UPDATE")
    assert conn.committed


def test_day_transaction_rolls_back_when_date_is_locked():
    day = date(2024, 5, 1)
    locked = {"report_date": day, "state": "LOCKED", "approved_by": 1, "approved_at": datetime(2024, 5, 1, 18)}
    factory, conn, cur = _factory(rows=[locked])

    with pytest.raises(DateLockedError):
        with MySQLLedgerRepository(factory).day_transaction(day) as tx:
            guard_open(tx)
            tx.create_report(created_by=2, created_at=datetime(2024, 5, 1, 9))

    assert conn.rolled_back and not conn.committed
    assert len(cur.statements) == 2


def test_day_snapshot_reads_state_and_reports_in_one_transaction():
    day = date(2024, 5, 1)
    factory, conn, cur = _factory()

    snapshot = MySQLLedgerRepository(factory).get_day_snapshot(day)

    assert snapshot.consolidation.is_locked is False
    assert snapshot.reports == ()
    assert factory.connects == 1
    sql = [s for s, _ in cur.statements]
    assert sql[0] == "SET TRANSACTION ISOLATION LEVEL REPEATABLE READ"
    assert "FROM absence_reports" in sql[1]
    assert "FROM daily_consolidations" in sql[-1]
    assert conn.committed


def test_list_employees_escapes_search_and_skips_empty_departments():
    factory, _, cur = _factory()
    repo = MySQLLedgerRepository(factory)

    assert repo.list_employees(dept_ids=[], search="x") == []
    assert factory.connects == 0

    repo.list_employees(dept_ids=[1, 3], search="50%_off", limit=5)
    sql, params = cur.statements[0]
    assert "e.dept_id IN (%s,%s)" in sql
    assert params == (1, 3, "%50\\%\\_off%", "%50\\%\\_off%", "%50\\%\\_off%", 5)
    assert _like("a\\b") == "%a\\\\b%"


def test_iter_sql_statements_respects_quotes():
    sql = "INSERT INTO t VALUES ('a;b');\nSELECT \"x;y\";\n\nSELECT 1"
    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO t VALUES ('a;b')",
        'SELECT "x;y"',
        "SELECT 1",
    ]


@pytest.fixture
def users():
    repo = InMemoryUsers()
    hashed = generate_password_hash("pw")
    repo.add(make_user(1, "Mona Manager", Role.MANAGER, username="manager", password_hash=hashed))
    repo.add(make_user(2, "Xavier Officer", Role.OFFICER, username="officer", password_hash=hashed), [1, 3])
    repo.add(make_user(3, "Gone Manager", Role.MANAGER, username="gone", password_hash=hashed, is_active=False))
    repo.add(make_user(4, "Seed Account", Role.ADMIN, username="seed", password_hash="CHANGE_ME"))
    return repo


def test_authenticate_officer_and_manager(users):
    auth = AuthService(users)

    officer = auth.authenticate("officer", "pw")
    assert officer.role == Role.OFFICER
    assert officer.department_ids == (1, 3)
    assert officer.can_approve is False

    manager = auth.authenticate(" manager ", "pw")
    assert manager.can_approve is True
    assert manager.department_ids == ()


@pytest.mark.parametrize(
    "username, password",
    [
        ("officer", "wrong"),
        ("officer", None),
        ("officer", 42),
        ("nobody", "pw"),
        ("gone", "pw"),
        ("seed", "CHANGE_ME"),
    ],
)
def test_authenticate_rejects(users, username, password):
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(username, password)


def test_role_policy_ignores_inactive_and_officers(users):
    policy = RoleApprovalPolicy(users)
    assert policy.has_approval_capability(1) is True
    assert policy.has_approval_capability(2) is False
    assert policy.has_approval_capability(3) is False
    assert policy.has_approval_capability(99) is False


def test_emit_swallows_sink_failures(caplog):
    event = AuditEvent(
        action=AuditAction.CONSOLIDATION_APPROVE,
        entity="DailyConsolidation",
        entity_id="2024-05-01",
        actor_id=1,
        timestamp=datetime(2024, 5, 1, 18),
    )
    emit(RecordingAuditSink(fail=True), event)
    emit(None, event)

    assert "Audit sink failed" in caplog.text
