from __future__ import annotations

import json
from datetime import date, datetime

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor
from .model import AuditEvent
from .sink import AuditSink


def _json_default(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Unsupported audit detail type: {type(value)!r}")


class MySQLAuditSink(AuditSink):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def record(self, event: AuditEvent) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(action, entity, entity_id, actor_id, details, created_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    event.action.value,
                    event.entity,
                    str(event.entity_id),
                    event.actor_id,
                    json.dumps(event.details, default=_json_default),
                    event.timestamp,
                ),
            )
