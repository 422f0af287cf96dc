"""
Helmsman API Server

FastAPI backend for the chat client. REST endpoints list and resolve
actions and expose the tool registry; the WebSocket carries approval
responses pushed by the client.

Usage:
    uvicorn helmsman.api.server:create_app --factory --reload
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from helmsman import Helmsman, __version__
from helmsman.config import Settings
from helmsman.core.models import Action, ActionModule, ActionStatus, Tier
from helmsman.exceptions import (
    ActionNotFoundError,
    HelmsmanAPIError,
    InvalidTransitionError,
)
from helmsman.logging import configure_logging

logger = logging.getLogger(__name__)


# ─── Request/Response Models ────────────────────────────────

class CreateActionRequest(BaseModel):
    command: str
    module: str = ActionModule.POWERSHELL.value
    tier: Tier | None = None
    description: str = ""
    conversation_id: str | None = None


class ExtractRequest(BaseModel):
    text: str
    conversation_id: str | None = None


class ResolveRequest(BaseModel):
    approved: bool


class ExecuteToolRequest(BaseModel):
    domain: str
    intent: str
    params: dict[str, str] = Field(default_factory=dict)


class StatusResponse(BaseModel):
    version: str = __version__
    actions: dict[str, int] = Field(default_factory=dict)
    pending_actions: int = 0
    tools_known: int = 0
    tools_installed: int = 0
    domains: list[str] = Field(default_factory=list)


def _dump(actions: list[Action]) -> list[dict]:
    return [a.model_dump(mode="json") for a in actions]


# ─── App ─────────────────────────────────────────────────────

def create_app(service: Helmsman | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the API around a Helmsman service.

    With no service, one is constructed from ``settings`` (or the
    environment) and logging is configured to match.
    """
    if service is None:
        settings = settings or Settings.from_env()
        configure_logging(settings.log_level, settings.log_json)
        service = Helmsman(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        yield
        service.close()

    app = FastAPI(
        title="Helmsman API",
        description="Approval-gated IT automation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.helmsman = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HelmsmanAPIError)
    async def api_error_handler(request: Request, exc: HelmsmanAPIError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    # ─── Status ──────────────────────────────────────────────

    @app.get("/api/status")
    async def get_status() -> StatusResponse:
        return StatusResponse(**service.status())

    # ─── Actions ─────────────────────────────────────────────

    @app.get("/api/actions/pending")
    async def list_pending() -> dict:
        return {"actions": _dump(service.repository.list_pending())}

    @app.get("/api/actions")
    async def list_actions(status: ActionStatus | None = None, limit: int = 50) -> dict:
        return {"actions": _dump(service.repository.list_by_status(status, limit=limit))}

    @app.post("/api/actions")
    async def create_action(body: CreateActionRequest) -> dict:
        """Record one action. Literal commands are classified if no tier is given."""
        action = service.create_action(
            body.command,
            body.module,
            tier=body.tier,
            description=body.description,
            conversation_id=body.conversation_id,
        )
        return action.model_dump(mode="json")

    @app.post("/api/actions/extract")
    async def extract_actions(body: ExtractRequest) -> dict:
        """Classify and record every action proposed in one AI turn."""
        actions = service.extract_actions(body.text, body.conversation_id)
        return {"actions": _dump(actions), "total": len(actions)}

    @app.get("/api/actions/{action_id}")
    async def get_action(action_id: str) -> dict:
        action = service.repository.get(action_id)
        if action is None:
            raise HelmsmanAPIError("Action not found", status_code=404)
        return action.model_dump(mode="json")

    @app.post("/api/actions/{action_id}/resolve")
    async def resolve_action(action_id: str, body: ResolveRequest) -> dict:
        """Approve (and execute) or deny a pending action."""
        try:
            action = await service.resolve(action_id, body.approved)
        except ActionNotFoundError as e:
            raise HelmsmanAPIError(str(e), status_code=404) from e
        except InvalidTransitionError as e:
            raise HelmsmanAPIError(str(e), status_code=400) from e
        return action.model_dump(mode="json")

    @app.post("/api/actions/{action_id}/run")
    async def run_action(action_id: str) -> dict:
        """Execute an action that was recorded already approved (green tier)."""
        try:
            action = await service.run_approved(action_id)
        except ActionNotFoundError as e:
            raise HelmsmanAPIError(str(e), status_code=404) from e
        except InvalidTransitionError as e:
            raise HelmsmanAPIError(str(e), status_code=400) from e
        return action.model_dump(mode="json")

    # ─── Tools ───────────────────────────────────────────────

    @app.get("/api/tools")
    async def list_tools() -> dict:
        tools = service.registry.get_all_tools()
        return {"tools": [t.model_dump(mode="json") for t in tools], "total": len(tools)}

    @app.get("/api/tools/installed")
    async def list_installed_tools() -> dict:
        tools = service.registry.get_installed_tools()
        return {"tools": [t.model_dump(mode="json") for t in tools], "total": len(tools)}

    @app.post("/api/tools/scan")
    async def scan_tools() -> dict:
        tools = await service.scan_tools()
        return {
            "tools": [t.model_dump(mode="json") for t in tools],
            "installed": sum(1 for t in tools if t.installed),
            "total": len(tools),
        }

    @app.get("/api/tools/operations")
    async def list_operations() -> dict:
        ops = service.registry.get_operations()
        return {"operations": [op.model_dump(mode="json") for op in ops], "total": len(ops)}

    @app.post("/api/tools/execute")
    async def execute_tool(body: ExecuteToolRequest) -> dict:
        """Dispatch an intent directly. No action is recorded."""
        if service.registry.get_orchestrator(body.domain) is None:
            raise HelmsmanAPIError(f"Unknown domain: {body.domain}", status_code=400)
        result = await service.execute_tool(body.domain, body.intent, body.params)
        return result.model_dump(mode="json")

    @app.get("/api/tools/summary")
    async def capabilities_summary() -> dict:
        return {"summary": service.capabilities_summary()}

    @app.get("/api/tools/log")
    async def tool_operation_log(limit: int = 50) -> dict:
        entries = service.repository.list_tool_operations(limit=limit)
        return {"entries": [e.model_dump(mode="json") for e in entries], "total": len(entries)}

    # ─── WebSocket ───────────────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON socket message")
                    continue
                if isinstance(msg, dict):
                    await service.gate.handle_message(msg)
        except WebSocketDisconnect:
            pass

    return app
