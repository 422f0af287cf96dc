"""Tests for the Helmsman API Server.

Covers REST endpoints and the push channel.
Uses httpx + ASGITransport against an app built around an injected service.
"""

import json

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from helmsman import Helmsman, __version__
from helmsman.api.server import create_app
from helmsman.config import Settings
from helmsman.core.models import ActionStatus, Tier
from helmsman.exceptions import ProcessExecutionError
from helmsman.storage.repository import ActionRepository


@pytest.fixture
def service(registry, runner):
    svc = Helmsman(
        Settings(db_url=":memory:", scan_on_startup=False),
        registry=registry,
        repository=ActionRepository(":memory:"),
        runner=runner,
    )
    yield svc
    svc.close()


@pytest.fixture
async def client(service):
    app = create_app(service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ─── Status Endpoint ─────────────────────────────────────────


class TestStatusEndpoint:
    async def test_get_status(self, client, service):
        service.create_action("winget install git", "powershell", Tier.YELLOW)
        response = await client.get("/api/status")
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == __version__
        assert data["pending_actions"] == 1
        assert data["actions"] == {"pending": 1}
        assert data["domains"] == ["packages"]

    def test_app_state_holds_service(self, service):
        app = create_app(service)
        assert app.state.helmsman is service


# ─── Actions ─────────────────────────────────────────────────


class TestActionEndpoints:
    async def test_pending_empty(self, client):
        response = await client.get("/api/actions/pending")
        assert response.status_code == 200
        assert response.json() == {"actions": []}

    async def test_create_classifies_literal_command(self, client):
        response = await client.post(
            "/api/actions", json={"command": "Remove-Item C:\\x", "module": "powershell"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "red"
        assert data["status"] == "pending"

    async def test_create_green_is_approved(self, client):
        response = await client.post("/api/actions", json={"command": "Get-Date"})
        assert response.json()["status"] == "approved"

    async def test_create_with_explicit_tier(self, client):
        response = await client.post(
            "/api/actions", json={"command": "Get-Date", "tier": "red", "description": "Date"}
        )
        data = response.json()
        assert data["tier"] == "red"
        assert data["description"] == "Date"

    async def test_extract(self, client):
        text = "```powershell\nGet-Process\n```\n```cmd\ndel x.txt\n```"
        response = await client.post(
            "/api/actions/extract", json={"text": text, "conversation_id": "c1"}
        )
        data = response.json()
        assert data["total"] == 2
        assert [a["tier"] for a in data["actions"]] == ["green", "red"]

        pending = (await client.get("/api/actions/pending")).json()["actions"]
        assert [a["command"] for a in pending] == ["del x.txt"]

    async def test_list_by_status(self, client, service):
        service.create_action("Get-Date", "powershell", Tier.GREEN)
        service.create_action("winget install x", "powershell", Tier.YELLOW)
        response = await client.get("/api/actions", params={"status": "approved"})
        actions = response.json()["actions"]
        assert [a["command"] for a in actions] == ["Get-Date"]

        everything = (await client.get("/api/actions")).json()["actions"]
        assert len(everything) == 2

    async def test_get_action(self, client, service):
        action = service.create_action("hostname", "cmd", Tier.GREEN)
        response = await client.get(f"/api/actions/{action.id}")
        assert response.status_code == 200
        assert response.json()["id"] == action.id

        missing = await client.get("/api/actions/nope")
        assert missing.status_code == 404


class TestResolveEndpoint:
    async def test_approve_executes(self, client, service, runner):
        action = service.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        response = await client.post(
            f"/api/actions/{action.id}/resolve", json={"approved": True}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "executed"
        assert data["result"] == "ok"
        runner.powershell.assert_awaited_once()

    async def test_deny(self, client, service, runner):
        action = service.create_action("Remove-Item x", "powershell", Tier.RED)
        response = await client.post(
            f"/api/actions/{action.id}/resolve", json={"approved": False}
        )
        assert response.json()["status"] == "denied"
        runner.powershell.assert_not_awaited()

    async def test_failed_execution(self, client, service, runner):
        runner.run.side_effect = ProcessExecutionError("cmd /c x", "boom")
        action = service.create_action("x", "cmd", Tier.YELLOW)
        response = await client.post(
            f"/api/actions/{action.id}/resolve", json={"approved": True}
        )
        data = response.json()
        assert data["status"] == "failed"
        assert data["error"] == "boom"

    async def test_unknown_action_404(self, client):
        response = await client.post("/api/actions/nope/resolve", json={"approved": True})
        assert response.status_code == 404
        assert response.json() == {"error": "Action not found"}

    async def test_already_resolved_400(self, client, service):
        action = service.create_action("Remove-Item x", "powershell", Tier.RED)
        await client.post(f"/api/actions/{action.id}/resolve", json={"approved": False})
        response = await client.post(
            f"/api/actions/{action.id}/resolve", json={"approved": True}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Action already denied"}
        assert service.repository.get(action.id).status == ActionStatus.DENIED

    async def test_missing_body_rejected(self, client, service):
        action = service.create_action("x", "cmd", Tier.YELLOW)
        response = await client.post(f"/api/actions/{action.id}/resolve", json={})
        assert response.status_code == 422


class TestRunEndpoint:
    async def test_runs_green_action(self, client, service):
        action = service.create_action("Get-Date", "powershell", Tier.GREEN)
        response = await client.post(f"/api/actions/{action.id}/run")
        assert response.status_code == 200
        assert response.json()["status"] == "executed"

    async def test_pending_action_rejected(self, client, service):
        action = service.create_action("winget install x", "powershell", Tier.YELLOW)
        response = await client.post(f"/api/actions/{action.id}/run")
        assert response.status_code == 400


# ─── Tools ───────────────────────────────────────────────────


class TestToolEndpoints:
    async def test_scan_then_list(self, client):
        scan = (await client.post("/api/tools/scan")).json()
        assert scan["total"] == 2
        assert scan["installed"] == 2

        tools = (await client.get("/api/tools")).json()
        assert {t["id"] for t in tools["tools"]} == {"alpha", "beta"}
        installed = (await client.get("/api/tools/installed")).json()
        assert installed["total"] == 2

    async def test_operations_require_scan(self, client):
        assert (await client.get("/api/tools/operations")).json()["total"] == 0
        await client.post("/api/tools/scan")
        ops = (await client.get("/api/tools/operations")).json()["operations"]
        assert {op["id"] for op in ops} == {
            "alpha-install",
            "alpha-search",
            "beta-install",
            "beta-search",
        }

    async def test_execute_dispatches_without_action(self, client, service):
        await client.post("/api/tools/scan")
        response = await client.post(
            "/api/tools/execute",
            json={"domain": "packages", "intent": "search", "params": {"query": "git"}},
        )
        data = response.json()
        assert data["success"] is True
        assert data["tool_id"] == "alpha"
        assert service.repository.list_by_status() == []

        log = (await client.get("/api/tools/log")).json()
        assert log["total"] == 1
        assert log["entries"][0]["operation_id"] == "search"

    async def test_execute_unknown_domain_400(self, client):
        response = await client.post(
            "/api/tools/execute", json={"domain": "gardening", "intent": "prune"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown domain: gardening"}

    async def test_execute_unknown_intent_is_failure_result(self, client):
        response = await client.post(
            "/api/tools/execute", json={"domain": "packages", "intent": "defrag"}
        )
        assert response.status_code == 200
        assert response.json()["success"] is False

    async def test_summary(self, client):
        assert (await client.get("/api/tools/summary")).json() == {"summary": ""}
        await client.post("/api/tools/scan")
        summary = (await client.get("/api/tools/summary")).json()["summary"]
        assert "- intent: `install`" in summary


# ─── Tool actions end to end ─────────────────────────────────


class TestToolActionFlow:
    async def test_extracted_tool_action_executes_on_approval(self, client, service):
        await client.post("/api/tools/scan")
        text = (
            "```helmsman-action\n"
            + json.dumps({"domain": "packages", "intent": "install", "params": {"package": "git"}})
            + "\n```"
        )
        (action,) = (await client.post("/api/actions/extract", json={"text": text})).json()["actions"]
        assert action["module"] == "tool-operation"
        assert action["status"] == "pending"

        resolved = (
            await client.post(f"/api/actions/{action['id']}/resolve", json={"approved": True})
        ).json()
        assert resolved["status"] == "executed"
        assert resolved["result"] == "alpha-install:package=git"

        (entry,) = service.repository.list_tool_operations()
        assert entry.action_id == action["id"]


# ─── Push channel ────────────────────────────────────────────


class TestPushChannel:
    async def test_action_response_message(self, service):
        action = service.create_action("Restart-Service x", "powershell", Tier.YELLOW)
        resolved = await service.gate.handle_message(
            {"type": "action:response", "payload": {"actionId": action.id, "approved": True}}
        )
        assert resolved.status == ActionStatus.EXECUTED

    def test_websocket_route_registered(self, service):
        app = create_app(service)
        assert "/ws" in {route.path for route in app.routes}

    async def test_malformed_responses_ignored(self, service, runner):
        action = service.create_action("Remove-Item C:\\x", "powershell", Tier.RED)
        for payload in (["x"], {"actionId": action.id, "approved": "false"}, {"actionId": action.id}):
            assert await service.gate.handle_message({"type": "action:response", "payload": payload}) is None

        assert service.repository.get(action.id).status == ActionStatus.PENDING
        runner.powershell.assert_not_awaited()

    def test_socket_survives_bad_messages(self, service, runner):
        action = service.create_action("Remove-Item C:\\x", "powershell", Tier.RED)
        client = TestClient(create_app(service))
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            ws.send_json(["x"])
            ws.send_json({"type": "action:response", "payload": ["x"]})
            ws.send_json({"type": "action:response", "payload": {"actionId": action.id, "approved": "false"}})
            ws.send_json({"type": "action:response", "payload": {"actionId": action.id, "approved": False}})

        assert service.repository.get(action.id).status == ActionStatus.DENIED
        runner.powershell.assert_not_awaited()
