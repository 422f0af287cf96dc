"""
Helmsman Database Connection Abstraction

Provides a unified interface for SQLite and PostgreSQL.
Detects the backend from the connection URL:
- ``postgresql://`` or ``postgres://`` → psycopg (PostgreSQL)
- anything else (file path, ``:memory:``) → sqlite3

Usage::

    from helmsman.storage.db import connect

    conn = connect(os.environ.get("HELMSMAN_DB_URL", "helmsman.db"))
    conn.execute("UPDATE actions SET status = ? WHERE id = ?", ("denied", "abc"))
    conn.commit()

The ``?`` placeholder is automatically converted to ``%s`` for PostgreSQL.
"""

from __future__ import annotations

import re
import sqlite3
import threading
from typing import Any


class DbConnection:
    """Unified database connection wrapper.

    Calls are serialized with a lock: the repository is shared between the
    request handlers and the push channel, and a statement plus its fetch
    must not interleave with another caller's.
    """

    def __init__(self, conn: Any, *, is_postgres: bool = False) -> None:
        self._conn = conn
        self._cursor: Any = None
        self._lock = threading.RLock()
        self.is_postgres = is_postgres

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _convert_sql(self, sql: str) -> str:
        """Convert SQLite-style ``?`` placeholders to ``%s`` for PostgreSQL."""
        if not self.is_postgres:
            return sql
        return sql.replace("?", "%s")

    def _convert_ddl(self, sql: str) -> str:
        """Convert SQLite DDL to PostgreSQL DDL."""
        if not self.is_postgres:
            return sql
        return re.sub(
            r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
            "SERIAL PRIMARY KEY",
            sql,
            flags=re.IGNORECASE,
        )

    def execute(self, sql: str, params: tuple = ()) -> DbConnection:
        """Execute a single SQL statement. Returns self for chaining."""
        sql = self._convert_ddl(self._convert_sql(sql))
        with self._lock:
            if self.is_postgres:
                self._cursor = self._conn.cursor()
                self._cursor.execute(sql, params or None)
            else:
                self._cursor = self._conn.execute(sql, params)
        return self

    def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements separated by semicolons."""
        with self._lock:
            if self.is_postgres:
                sql = self._convert_ddl(sql)
                cur = self._conn.cursor()
                for stmt in sql.split(";"):
                    stmt = stmt.strip()
                    if stmt:
                        cur.execute(stmt)
                self._conn.commit()
            else:
                self._conn.executescript(sql)

    @property
    def rowcount(self) -> int:
        """Rows affected by the last ``execute`` (-1 if unknown)."""
        if self._cursor is None:
            return -1
        return self._cursor.rowcount

    def fetchone(self) -> dict[str, Any] | None:
        """Fetch one row as a dict."""
        if self._cursor is None:
            return None
        row = self._cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetchall(self) -> list[dict[str, Any]]:
        """Fetch all rows as list of dicts."""
        if self._cursor is None:
            return []
        return [dict(r) for r in self._cursor.fetchall()]

    def commit(self) -> None:
        with self._lock:
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def connect(db_url: str) -> DbConnection:
    """Create a database connection from a URL or path.

    Args:
        db_url: PostgreSQL URL (``postgresql://...`` or ``postgres://...``)
                or SQLite path (file path or ``:memory:``).
    """
    if db_url.startswith(("postgresql://", "postgres://")):
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError:
            raise ImportError(
                "PostgreSQL support requires psycopg. Install with: pip install 'helmsman[postgres]'"
            ) from None

        conn = psycopg.connect(db_url, row_factory=dict_row, autocommit=False)
        return DbConnection(conn, is_postgres=True)

    conn = sqlite3.connect(db_url, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return DbConnection(conn, is_postgres=False)
