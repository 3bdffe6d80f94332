from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import mysql.connector
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


@dataclass(frozen=True)
class DemoAccount:
    full_name: str
    username: str
    password: str
    role: str
    departments: Sequence[str] = ()


DEMO_ACCOUNTS = (
    DemoAccount("Admin Demo", "admin", "admin123", "admin"),
    DemoAccount("Manager Demo", "manager", "manager123", "manager"),
    DemoAccount("Officer IT", "officer_it", "officer123", "officer", ("IT", "Maintenance")),
    DemoAccount("Officer HR", "officer_hr", "officer123", "officer", ("HR", "Maintenance")),
)


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "absence_db")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside of quoted strings."""
    buf: list[str] = []
    quote: str | None = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: str | Path) -> int:
    target = _as_target(db_config)
    sql = _strip_create_db_and_use(_strip_line_comments(Path(path).read_text(encoding="utf-8")))

    conn = _connect(target)
    try:
        cur = conn.cursor()
        count = 0
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
        conn.commit()
        return count
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _run_script(db_config, schema_path)
    logger.info("Applied %s schema statements from %s", count, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _run_script(db_config, seed_path)
    logger.info("Applied %s seed statements from %s", count, seed_path)


def ensure_demo_users(db_config: dict, accounts: Sequence[DemoAccount] = DEMO_ACCOUNTS) -> None:
    """Create or refresh demo accounts and their officer department assignments."""
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor(dictionary=True)

        def dept_id(name: str) -> int:
            cur.execute("SELECT dept_id FROM departments WHERE dept_name=%s", (name,))
            row = cur.fetchone()
            if not row:
                raise RuntimeError(f"Missing departments row for dept_name={name}")
            return int(row["dept_id"])

        for account in accounts:
            password_hash = generate_password_hash(account.password)
            cur.execute("SELECT user_id FROM users WHERE username=%s", (account.username,))
            existing = cur.fetchone()
            if existing:
                user_id = int(existing["user_id"])
                cur.execute(
                    "UPDATE users SET full_name=%s, password_hash=%s, role=%s, is_active=1 WHERE user_id=%s",
                    (account.full_name, password_hash, account.role, user_id),
                )
            else:
                cur.execute(
                    "INSERT INTO users (full_name, username, password_hash, role) VALUES (%s, %s, %s, %s)",
                    (account.full_name, account.username, password_hash, account.role),
                )
                user_id = int(cur.lastrowid)

            for name in account.departments:
                cur.execute(
                    "INSERT IGNORE INTO officer_departments (user_id, dept_id) VALUES (%s, %s)",
                    (user_id, dept_id(name)),
                )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
