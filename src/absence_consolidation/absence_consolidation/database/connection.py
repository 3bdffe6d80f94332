from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import mysql.connector

from ..core.constants import DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    lock_wait_timeout: int = DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: We create short-lived connections per unit of work. Each connection runs
    with autocommit off so a unit of work is exactly one transaction.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        conn = mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            autocommit=False,
        )
        cur = conn.cursor()
        try:
            # Bounded wait on date row locks; a timeout surfaces as ConflictError.
            cur.execute("SET SESSION innodb_lock_wait_timeout = %s", (int(self._config.lock_wait_timeout),))
        finally:
            cur.close()
        return conn
