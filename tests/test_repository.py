"""Tests for action and tool persistence.

Uses in-memory SQLite; a file-backed round trip checks reopening.
"""

from datetime import datetime, timezone

from helmsman.core.models import (
    Action,
    ActionStatus,
    Tier,
    ToolDomain,
    ToolInfo,
    ToolOperationLogEntry,
)
from helmsman.storage.repository import ActionRepository


def _action(**overrides) -> Action:
    fields = {
        "tier": Tier.YELLOW,
        "description": "Install git",
        "command": "winget install Git.Git",
        "module": "powershell",
    }
    fields.update(overrides)
    return Action(**fields)


class TestActions:
    def test_insert_and_get(self, repo):
        action = repo.insert(_action(conversation_id="c1"))
        loaded = repo.get(action.id)
        assert loaded == action

    def test_get_missing(self, repo):
        assert repo.get("missing") is None

    def test_update_status(self, repo):
        action = repo.insert(_action())
        now = datetime.now(timezone.utc)
        assert repo.update_status(action.id, ActionStatus.EXECUTED, result="done", resolved_at=now)
        loaded = repo.get(action.id)
        assert loaded.status == ActionStatus.EXECUTED
        assert loaded.result == "done"
        assert loaded.resolved_at == now

    def test_compare_and_set(self, repo):
        action = repo.insert(_action())
        assert repo.update_status(
            action.id, ActionStatus.APPROVED, expected_status=ActionStatus.PENDING
        )
        assert not repo.update_status(
            action.id, ActionStatus.DENIED, expected_status=ActionStatus.PENDING
        )
        assert repo.get(action.id).status == ActionStatus.APPROVED

    def test_update_unknown_returns_false(self, repo):
        assert repo.update_status("missing", ActionStatus.DENIED) is False

    def test_list_pending_and_filter(self, repo):
        pending = repo.insert(_action())
        repo.insert(_action(tier=Tier.GREEN, status=ActionStatus.APPROVED, command="Get-Date"))

        assert [a.id for a in repo.list_pending()] == [pending.id]
        assert len(repo.list_by_status()) == 2
        assert [a.command for a in repo.list_by_status(ActionStatus.APPROVED)] == ["Get-Date"]

    def test_list_limit(self, repo):
        for i in range(5):
            repo.insert(_action(command=f"cmd {i}"))
        assert len(repo.list_by_status(limit=3)) == 3

    def test_list_by_conversation_oldest_first(self, repo):
        first = repo.insert(_action(conversation_id="c1", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)))
        second = repo.insert(_action(conversation_id="c1", created_at=datetime(2024, 1, 2, tzinfo=timezone.utc)))
        repo.insert(_action(conversation_id="c2"))
        assert [a.id for a in repo.list_by_conversation("c1")] == [first.id, second.id]

    def test_count_by_status(self, repo):
        repo.insert(_action())
        repo.insert(_action())
        repo.insert(_action(status=ActionStatus.DENIED))
        assert repo.count_by_status() == {"pending": 2, "denied": 1}

    def test_unknown_module_is_stored(self, repo):
        action = repo.insert(_action(module="python"))
        assert repo.get(action.id).module == "python"

    def test_reopen_file_database(self, tmp_path):
        db = str(tmp_path / "helmsman.db")
        first = ActionRepository(db)
        action = first.insert(_action())
        first.close()

        second = ActionRepository(db)
        try:
            assert second.get(action.id).command == action.command
        finally:
            second.close()


class TestToolCache:
    def _info(self, installed: bool = True, version: str | None = "1.2") -> ToolInfo:
        return ToolInfo(
            id="winget",
            name="Windows Package Manager",
            domain=ToolDomain.PACKAGES,
            installed=installed,
            version=version,
            install_method="builtin",
            last_checked=datetime.now(timezone.utc),
            capabilities=["Search packages", "Install package"],
        )

    def test_upsert_and_load(self, repo):
        repo.upsert_tool(self._info())
        (loaded,) = repo.load_tools()
        assert loaded.id == "winget"
        assert loaded.installed is True
        assert loaded.capabilities == ["Search packages", "Install package"]

    def test_upsert_replaces(self, repo):
        repo.upsert_tool(self._info())
        repo.upsert_tool(self._info(installed=False, version=None))
        (loaded,) = repo.load_tools()
        assert loaded.installed is False
        assert loaded.version is None


class TestToolOperationLog:
    def test_log_and_list_newest_first(self, repo):
        for intent in ("search", "install"):
            repo.log_tool_operation(
                ToolOperationLogEntry(
                    tool_id="winget",
                    domain="packages",
                    operation_id=intent,
                    params={"package": "git"},
                    success=True,
                    output="ok",
                    duration_ms=12,
                )
            )
        entries = repo.list_tool_operations()
        assert [e.operation_id for e in entries] == ["install", "search"]
        assert entries[0].params == {"package": "git"}
        assert entries[0].duration_ms == 12
        assert repo.list_tool_operations(limit=1)[0].operation_id == "install"
