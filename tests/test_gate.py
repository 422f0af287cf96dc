"""Tests for the approval gate and action lifecycle."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from helmsman.core.models import ActionStatus, Tier
from helmsman.engine.executor import ActionExecutor
from helmsman.engine.gate import ACTION_RESPONSE, ApprovalGate
from helmsman.exceptions import ActionNotFoundError, InvalidTransitionError, ProcessExecutionError


@pytest.fixture
def gate(repo, registry, runner):
    return ApprovalGate(repo, ActionExecutor(registry, runner))


class TestCreateAction:
    def test_yellow_is_pending(self, gate, repo):
        action = gate.create_action("winget install git", "powershell", Tier.YELLOW)
        assert action.status == ActionStatus.PENDING
        assert repo.get(action.id).status == ActionStatus.PENDING

    def test_green_is_created_approved(self, gate):
        action = gate.create_action("Get-Date", "powershell", Tier.GREEN)
        assert action.status == ActionStatus.APPROVED

    def test_default_description(self, gate):
        action = gate.create_action("ver", "cmd", Tier.YELLOW)
        assert action.description == "Execute cmd command"


class TestResolve:
    async def test_approve_executes(self, gate, runner):
        action = gate.create_action("Restart-Service spooler", "powershell", Tier.YELLOW)
        resolved = await gate.resolve(action.id, approved=True)

        assert resolved.status == ActionStatus.EXECUTED
        assert resolved.result == "ok"
        assert resolved.error is None
        assert resolved.resolved_at is not None
        runner.powershell.assert_awaited_once_with("Restart-Service spooler")

    async def test_deny_never_executes(self, gate, runner):
        action = gate.create_action("Remove-Item C:\\x", "powershell", Tier.RED)
        resolved = await gate.resolve(action.id, approved=False)

        assert resolved.status == ActionStatus.DENIED
        assert resolved.result is None
        assert resolved.error is None
        assert resolved.resolved_at is not None
        runner.powershell.assert_not_awaited()
        runner.run.assert_not_awaited()

    async def test_failure_recorded(self, gate, runner):
        runner.run.side_effect = ProcessExecutionError("cmd /c bad", "not recognized")
        action = gate.create_action("bad", "cmd", Tier.YELLOW)
        resolved = await gate.resolve(action.id, approved=True)

        assert resolved.status == ActionStatus.FAILED
        assert resolved.error == "not recognized"
        assert resolved.result is None

    async def test_unknown_id(self, gate):
        with pytest.raises(ActionNotFoundError):
            await gate.resolve("does-not-exist", approved=True)

    async def test_second_resolve_rejected(self, gate, runner):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        await gate.resolve(action.id, approved=False)

        with pytest.raises(InvalidTransitionError, match="Action already denied"):
            await gate.resolve(action.id, approved=True)
        runner.powershell.assert_not_awaited()

    async def test_cannot_resolve_green(self, gate):
        action = gate.create_action("Get-Date", "powershell", Tier.GREEN)
        with pytest.raises(InvalidTransitionError, match="approved"):
            await gate.resolve(action.id, approved=True)

    async def test_concurrent_resolves_execute_once(self, gate, runner, repo):
        async def slow(command, timeout=None):
            await asyncio.sleep(0.01)
            return "done"

        runner.powershell.side_effect = slow
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)

        results = await asyncio.gather(
            gate.resolve(action.id, approved=True),
            gate.resolve(action.id, approved=True),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidTransitionError)
        assert runner.powershell.await_count == 1
        assert repo.get(action.id).status == ActionStatus.EXECUTED

    async def test_approve_and_deny_race(self, gate, runner, repo):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        results = await asyncio.gather(
            gate.resolve(action.id, approved=False),
            gate.resolve(action.id, approved=True),
            return_exceptions=True,
        )
        assert results[0].status == ActionStatus.DENIED
        assert isinstance(results[1], InvalidTransitionError)
        runner.powershell.assert_not_awaited()

    async def test_executor_crash_still_terminal(self, repo, runner):
        executor = AsyncMock(spec=ActionExecutor)
        executor.execute_action.side_effect = RuntimeError("boom")
        gate = ApprovalGate(repo, executor)
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)

        resolved = await gate.resolve(action.id, approved=True)

        assert resolved.status == ActionStatus.FAILED
        assert resolved.error == "RuntimeError: boom"
        assert resolved.resolved_at is not None
        with pytest.raises(InvalidTransitionError, match="failed"):
            await gate.resolve(action.id, approved=True)

    async def test_waiters_share_one_lock(self, gate, runner):
        release = asyncio.Event()

        async def blocked(command, timeout=None):
            await release.wait()
            return "done"

        runner.powershell.side_effect = blocked
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)

        tasks = [asyncio.create_task(gate.resolve(action.id, approved=True)) for _ in range(3)]
        await asyncio.sleep(0.01)
        lock, users = gate._locks[action.id]
        assert users == 3
        assert lock.locked()

        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert sum(isinstance(r, InvalidTransitionError) for r in results) == 2
        assert runner.powershell.await_count == 1
        assert gate._locks == {}


class TestRunApproved:
    async def test_runs_green_action(self, gate, runner):
        action = gate.create_action("Get-Date", "powershell", Tier.GREEN)
        done = await gate.run_approved(action.id)
        assert done.status == ActionStatus.EXECUTED
        assert done.result == "ok"

    async def test_rejects_pending(self, gate):
        action = gate.create_action("winget install x", "powershell", Tier.YELLOW)
        with pytest.raises(InvalidTransitionError):
            await gate.run_approved(action.id)

    async def test_rejects_rerun(self, gate):
        action = gate.create_action("Get-Date", "powershell", Tier.GREEN)
        await gate.run_approved(action.id)
        with pytest.raises(InvalidTransitionError, match="executed"):
            await gate.run_approved(action.id)

    async def test_unknown_id(self, gate):
        with pytest.raises(ActionNotFoundError):
            await gate.run_approved("nope")


class TestHandleMessage:
    async def test_action_response_resolves(self, gate):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        resolved = await gate.handle_message(
            {"type": ACTION_RESPONSE, "sessionId": "s1", "payload": {"actionId": action.id, "approved": True}}
        )
        assert resolved.status == ActionStatus.EXECUTED

    async def test_deny_via_message(self, gate):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        resolved = await gate.handle_message(
            {"type": ACTION_RESPONSE, "payload": {"actionId": action.id, "approved": False}}
        )
        assert resolved.status == ActionStatus.DENIED

    async def test_other_types_ignored(self, gate, runner):
        assert await gate.handle_message({"type": "chat:message", "payload": {}}) is None
        runner.powershell.assert_not_awaited()

    async def test_missing_action_id_ignored(self, gate):
        assert await gate.handle_message({"type": ACTION_RESPONSE, "payload": {}}) is None

    async def test_errors_swallowed(self, gate):
        result = await gate.handle_message(
            {"type": ACTION_RESPONSE, "payload": {"actionId": "unknown", "approved": True}}
        )
        assert result is None

    async def test_already_resolved_swallowed(self, gate, repo):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        await gate.resolve(action.id, approved=False)
        msg = {"type": ACTION_RESPONSE, "payload": {"actionId": action.id, "approved": True}}
        assert await gate.handle_message(msg) is None
        assert repo.get(action.id).status == ActionStatus.DENIED

    async def test_string_approved_ignored(self, gate, runner, repo):
        action = gate.create_action("Remove-Item C:\\x", "powershell", Tier.RED)
        msg = {"type": ACTION_RESPONSE, "payload": {"actionId": action.id, "approved": "false"}}

        assert await gate.handle_message(msg) is None
        assert repo.get(action.id).status == ActionStatus.PENDING
        runner.powershell.assert_not_awaited()

    async def test_missing_approved_ignored(self, gate, repo):
        action = gate.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        assert await gate.handle_message({"type": ACTION_RESPONSE, "payload": {"actionId": action.id}}) is None
        assert repo.get(action.id).status == ActionStatus.PENDING

    @pytest.mark.parametrize("payload", [["x"], "x", 42, None])
    async def test_malformed_payload_ignored(self, gate, payload):
        assert await gate.handle_message({"type": ACTION_RESPONSE, "payload": payload}) is None
