"""
Helmsman Core Data Models

All shared types used across the framework. This module is the foundation
that every other component imports from, so it must have zero internal
dependencies beyond pydantic.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


# ─── Enums ───────────────────────────────────────────────────

class Tier(str, Enum):
    """Risk classification controlling whether an action needs approval."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class ActionStatus(str, Enum):
    """Lifecycle state of an action.

    pending -> approved | denied
    approved -> executed | failed
    """
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXECUTED = "executed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ActionStatus.DENIED, ActionStatus.EXECUTED, ActionStatus.FAILED})


class ActionModule(str, Enum):
    """Execution path discriminator for an action."""
    POWERSHELL = "powershell"
    CMD = "cmd"
    SHELL = "shell"
    TOOL_OPERATION = "tool-operation"


class ToolDomain(str, Enum):
    """Functional grouping of tools."""
    PACKAGES = "packages"
    DRIVERS = "drivers"
    DEBLOAT = "debloat"
    FILE_OPS = "file-ops"
    SYSTEM_TOOLS = "system-tools"


def initial_status(tier: Tier) -> ActionStatus:
    """Green actions are created already approved, everything else waits."""
    return ActionStatus.APPROVED if tier == Tier.GREEN else ActionStatus.PENDING


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Action ──────────────────────────────────────────────────

class Action(BaseModel):
    """A proposed or executed system-changing operation and its audit record.

    ``module`` is kept as a plain string: unknown values are accepted when the
    action is recorded and rejected by the executor.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str | None = None
    tier: Tier
    description: str
    command: str
    module: str
    status: ActionStatus = ActionStatus.PENDING
    result: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ExecutionOutcome(BaseModel):
    """Uniform result of executing an action, whatever the path."""
    success: bool
    output: str | None = None
    error: str | None = None


# ─── Tool Operations ─────────────────────────────────────────

class ToolStatus(BaseModel):
    """Result of a tool's detection probe. Never persisted on its own."""
    installed: bool = False
    version: str | None = None
    path: str | None = None


class ToolParamDef(BaseModel):
    name: str
    description: str = ""
    required: bool = False
    default: str | None = None


class OperationResult(BaseModel):
    """Outcome of a single tool operation or orchestrator dispatch."""
    success: bool
    tool_id: str
    output: str | None = None
    error: str | None = None
    duration_ms: int = 0


class ToolOperationRequest(BaseModel):
    """Structured tool-operation payload carried in an action's command."""
    domain: str
    intent: str
    params: dict[str, str] = Field(default_factory=dict)
    tier: Tier = Tier.YELLOW
    description: str = ""


class ToolInfo(BaseModel):
    """Cached detection record for one tool, as shown to discovery UIs."""
    id: str
    name: str
    description: str = ""
    domain: ToolDomain
    installed: bool = False
    version: str | None = None
    path: str | None = None
    install_method: str | None = None
    install_command: str | None = None
    last_checked: datetime | None = None
    capabilities: list[str] = Field(default_factory=list)


class ToolOperationInfo(BaseModel):
    """Flattened view of an operation offered by an installed tool."""
    id: str
    tool_id: str
    domain: ToolDomain
    name: str
    description: str = ""
    tier: Tier
    params: list[ToolParamDef] = Field(default_factory=list)


class ToolOperationLogEntry(BaseModel):
    """Audit row written for every intent dispatched through the registry."""
    action_id: str | None = None
    tool_id: str
    domain: str
    operation_id: str
    params: dict[str, str] = Field(default_factory=dict)
    success: bool
    output: str | None = None
    error: str | None = None
    duration_ms: int = 0
    executed_at: datetime = Field(default_factory=utcnow)
