from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector

from ..core.exceptions import ConflictError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK
LOCK_CONFLICT_ERRNOS = frozenset({1205, 1213})


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One connection, one transaction: commit on success, rollback on any error.

    Lock-wait timeouts and deadlocks are re-raised as ConflictError; every other
    driver error propagates unchanged.
    """
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        if getattr(exc, "errno", None) in LOCK_CONFLICT_ERRNOS:
            logger.warning("Transaction lost a lock race (errno=%s)", exc.errno)
            raise ConflictError("The record is being changed by someone else, please retry") from exc
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
