"""
Helmsman Action Persistence

Stores actions, the tool detection cache and the tool operation log.
Supports SQLite and PostgreSQL via the ``helmsman.storage.db``
connection wrapper.

Schema:
- actions: one authoritative row per action, append-only history
- tools: last detection result per tool, for fast startup
- tool_operations_log: one row per intent dispatched through the registry
"""

import json
from datetime import datetime

from helmsman.core.models import (
    Action,
    ActionStatus,
    ToolInfo,
    ToolOperationLogEntry,
)
from helmsman.storage.db import connect

ACTION_COLUMNS = (
    "id",
    "conversation_id",
    "tier",
    "description",
    "command",
    "module",
    "status",
    "result",
    "error",
    "created_at",
    "resolved_at",
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class ActionRepository:
    """Database-backed storage for actions and tool state."""

    def __init__(self, db_url: str = "helmsman.db"):
        """Initialize repository.

        Args:
            db_url: Database URL. Use ``postgresql://...`` for PostgreSQL
                    or a file path / ``:memory:`` for SQLite.
        """
        self._db_url = db_url
        self._conn = connect(db_url)
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS actions (
                id TEXT PRIMARY KEY,
                conversation_id TEXT,
                tier TEXT NOT NULL CHECK (tier IN ('green', 'yellow', 'red')),
                description TEXT NOT NULL,
                command TEXT NOT NULL,
                module TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'denied', 'executed', 'failed')),
                result TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                resolved_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_actions_status ON actions(status);
            CREATE INDEX IF NOT EXISTS idx_actions_conversation ON actions(conversation_id);

            CREATE TABLE IF NOT EXISTS tools (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                domain TEXT NOT NULL,
                installed INTEGER DEFAULT 0,
                version TEXT,
                path TEXT,
                install_method TEXT,
                install_command TEXT,
                last_checked TEXT,
                capabilities TEXT DEFAULT '[]'
            );

            CREATE TABLE IF NOT EXISTS tool_operations_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                action_id TEXT,
                tool_id TEXT NOT NULL,
                domain TEXT NOT NULL,
                operation_id TEXT NOT NULL,
                params TEXT DEFAULT '{}',
                success INTEGER NOT NULL,
                output TEXT,
                error TEXT,
                duration_ms INTEGER NOT NULL,
                executed_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tool_ops_log_tool ON tool_operations_log(tool_id);
            CREATE INDEX IF NOT EXISTS idx_tool_ops_log_domain ON tool_operations_log(domain)
        """)
        self._conn.commit()

    # ─── Actions ─────────────────────────────────────────────

    def insert(self, action: Action) -> Action:
        """Insert a new action row. Returns the action unchanged."""
        placeholders = ", ".join(["?"] * len(ACTION_COLUMNS))
        self._conn.execute(
            f"INSERT INTO actions ({', '.join(ACTION_COLUMNS)}) VALUES ({placeholders})",
            (
                action.id,
                action.conversation_id,
                action.tier.value,
                action.description,
                action.command,
                action.module,
                action.status.value,
                action.result,
                action.error,
                _iso(action.created_at),
                _iso(action.resolved_at),
            ),
        )
        self._conn.commit()
        return action

    def get(self, action_id: str) -> Action | None:
        with self._conn.lock:
            row = self._conn.execute(
                "SELECT * FROM actions WHERE id = ?", (action_id,)
            ).fetchone()
        return self._row_to_action(row) if row else None

    def update_status(
        self,
        action_id: str,
        status: ActionStatus,
        result: str | None = None,
        error: str | None = None,
        resolved_at: datetime | None = None,
        expected_status: ActionStatus | None = None,
    ) -> bool:
        """Move an action to ``status``.

        When ``expected_status`` is given the update only applies if the row
        is still in that status, which makes the transition a compare-and-set.
        Returns True if a row was updated.
        """
        sql = (
            "UPDATE actions SET status = ?, result = ?, error = ?, resolved_at = ? "
            "WHERE id = ?"
        )
        params: tuple = (status.value, result, error, _iso(resolved_at), action_id)
        if expected_status is not None:
            sql += " AND status = ?"
            params += (expected_status.value,)

        with self._conn.lock:
            updated = self._conn.execute(sql, params).rowcount
            self._conn.commit()
        return updated > 0

    def list_by_status(self, status: ActionStatus | None = None, limit: int = 50) -> list[Action]:
        """List actions, newest first, optionally filtered by status."""
        query = "SELECT * FROM actions"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params += (status.value,)
        query += " ORDER BY created_at DESC LIMIT ?"
        params += (limit,)

        with self._conn.lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_action(row) for row in rows]

    def list_pending(self) -> list[Action]:
        with self._conn.lock:
            rows = self._conn.execute(
                "SELECT * FROM actions WHERE status = ? ORDER BY created_at DESC",
                (ActionStatus.PENDING.value,),
            ).fetchall()
        return [self._row_to_action(row) for row in rows]

    def list_by_conversation(self, conversation_id: str) -> list[Action]:
        """Full action history of a conversation, oldest first."""
        with self._conn.lock:
            rows = self._conn.execute(
                "SELECT * FROM actions WHERE conversation_id = ? ORDER BY created_at",
                (conversation_id,),
            ).fetchall()
        return [self._row_to_action(row) for row in rows]

    def count_by_status(self) -> dict[str, int]:
        with self._conn.lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM actions GROUP BY status"
            ).fetchall()
        return {row["status"]: row["n"] for row in rows}

    @staticmethod
    def _row_to_action(row: dict) -> Action:
        return Action(
            id=row["id"],
            conversation_id=row["conversation_id"],
            tier=row["tier"],
            description=row["description"],
            command=row["command"],
            module=row["module"],
            status=row["status"],
            result=row["result"],
            error=row["error"],
            created_at=_parse_dt(row["created_at"]),
            resolved_at=_parse_dt(row["resolved_at"]),
        )

    # ─── Tool cache ──────────────────────────────────────────

    def upsert_tool(self, info: ToolInfo) -> None:
        """Insert or refresh a tool's detection record."""
        self._conn.execute(
            """INSERT INTO tools (id, name, description, domain, installed, version, path,
                                  install_method, install_command, last_checked, capabilities)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (id) DO UPDATE SET
                   installed = excluded.installed,
                   version = excluded.version,
                   path = excluded.path,
                   last_checked = excluded.last_checked,
                   capabilities = excluded.capabilities""",
            (
                info.id,
                info.name,
                info.description,
                info.domain.value,
                1 if info.installed else 0,
                info.version,
                info.path,
                info.install_method,
                info.install_command,
                _iso(info.last_checked),
                json.dumps(info.capabilities),
            ),
        )
        self._conn.commit()

    def load_tools(self) -> list[ToolInfo]:
        with self._conn.lock:
            rows = self._conn.execute("SELECT * FROM tools ORDER BY domain, id").fetchall()
        return [
            ToolInfo(
                id=row["id"],
                name=row["name"],
                description=row["description"] or "",
                domain=row["domain"],
                installed=bool(row["installed"]),
                version=row["version"],
                path=row["path"],
                install_method=row["install_method"],
                install_command=row["install_command"],
                last_checked=_parse_dt(row["last_checked"]),
                capabilities=json.loads(row["capabilities"] or "[]"),
            )
            for row in rows
        ]

    # ─── Tool operation log ──────────────────────────────────

    def log_tool_operation(self, entry: ToolOperationLogEntry) -> None:
        self._conn.execute(
            """INSERT INTO tool_operations_log
                   (action_id, tool_id, domain, operation_id, params, success,
                    output, error, duration_ms, executed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.action_id,
                entry.tool_id,
                entry.domain,
                entry.operation_id,
                json.dumps(entry.params),
                1 if entry.success else 0,
                entry.output,
                entry.error,
                entry.duration_ms,
                _iso(entry.executed_at),
            ),
        )
        self._conn.commit()

    def list_tool_operations(self, limit: int = 50) -> list[ToolOperationLogEntry]:
        with self._conn.lock:
            rows = self._conn.execute(
                "SELECT * FROM tool_operations_log ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [
            ToolOperationLogEntry(
                action_id=row["action_id"],
                tool_id=row["tool_id"],
                domain=row["domain"],
                operation_id=row["operation_id"],
                params=json.loads(row["params"] or "{}"),
                success=bool(row["success"]),
                output=row["output"],
                error=row["error"],
                duration_ms=row["duration_ms"],
                executed_at=_parse_dt(row["executed_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        self._conn.close()
