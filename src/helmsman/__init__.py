"""
Helmsman — Approval-Gated IT Automation for Windows Workstations

Usage:
    from helmsman import Helmsman

    service = Helmsman()
    await service.start()                      # warm tool cache, detect tools

    actions = service.extract_actions(ai_reply, conversation_id="c1")
    for action in actions:
        if action.status == ActionStatus.PENDING:
            await service.resolve(action.id, approved=True)
"""

from helmsman.config import Settings
from helmsman.core.models import (
    Action,
    ActionModule,
    ActionStatus,
    OperationResult,
    Tier,
    ToolDomain,
    ToolInfo,
)
from helmsman.engine.classifier import classify_and_extract_actions, classify_tier
from helmsman.engine.executor import ActionExecutor
from helmsman.engine.gate import ApprovalGate
from helmsman.exceptions import (
    ActionNotFoundError,
    HelmsmanError,
    InvalidTransitionError,
    ProcessExecutionError,
    ProcessTimeoutError,
)
from helmsman.logging import configure_logging
from helmsman.storage.repository import ActionRepository
from helmsman.tools.builtin import build_default_registry
from helmsman.tools.process import ProcessRunner
from helmsman.tools.registry import ToolRegistry

__version__ = "0.1.0"

__all__ = [
    # Main API
    "Helmsman",
    "__version__",
    # Models
    "Action",
    "ActionModule",
    "ActionStatus",
    "OperationResult",
    "Tier",
    "ToolDomain",
    "ToolInfo",
    # Engine
    "ActionExecutor",
    "ApprovalGate",
    "classify_and_extract_actions",
    "classify_tier",
    # Tools
    "ProcessRunner",
    "ToolRegistry",
    "build_default_registry",
    # Storage
    "ActionRepository",
    # Config
    "Settings",
    "configure_logging",
    # Errors
    "ActionNotFoundError",
    "HelmsmanError",
    "InvalidTransitionError",
    "ProcessExecutionError",
    "ProcessTimeoutError",
]


class Helmsman:
    """Main Helmsman service: the public API.

    Wiring:
    1. One ProcessRunner shared by the executor and every built-in tool
    2. ToolRegistry holding the built-in domains and the detection cache
    3. ActionRepository for actions, the tool cache and the operation log
    4. ActionExecutor + ApprovalGate driving the action lifecycle

    Any component can be injected, which is how the tests substitute a fake
    process runner or an in-memory repository.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: ToolRegistry | None = None,
        repository: ActionRepository | None = None,
        runner: ProcessRunner | None = None,
    ):
        self.settings = settings or Settings.from_env()
        self.runner = runner or ProcessRunner(default_timeout=self.settings.command_timeout)
        self.registry = registry or build_default_registry(
            self.runner, detect_timeout=self.settings.detect_timeout
        )
        self.repository = repository or ActionRepository(self.settings.db_url)
        self.executor = ActionExecutor(self.registry, self.runner)
        self.gate = ApprovalGate(self.repository, self.executor)

    async def start(self) -> None:
        """Warm the tool cache from the last scan, then rescan if configured."""
        self.registry.load_from_repository(self.repository)
        if self.settings.scan_on_startup:
            await self.scan_tools()

    async def scan_tools(self) -> list[ToolInfo]:
        return await self.registry.scan_tools(self.repository)

    def extract_actions(self, ai_response: str, conversation_id: str | None = None) -> list[Action]:
        """Classify and persist every action proposed in one AI turn."""
        return classify_and_extract_actions(ai_response, conversation_id, self.repository)

    def create_action(
        self,
        command: str,
        module: str,
        tier: Tier | None = None,
        description: str = "",
        conversation_id: str | None = None,
    ) -> Action:
        """Record a single action. Literal commands are classified when no tier is given."""
        if tier is None:
            tier = Tier.YELLOW if module == ActionModule.TOOL_OPERATION.value else classify_tier(command)
        return self.gate.create_action(command, module, tier, description, conversation_id)

    async def resolve(self, action_id: str, approved: bool) -> Action:
        return await self.gate.resolve(action_id, approved)

    async def run_approved(self, action_id: str) -> Action:
        return await self.gate.run_approved(action_id)

    async def execute_tool(
        self, domain: str, intent: str, params: dict[str, str] | None = None
    ) -> OperationResult:
        """Dispatch an intent directly, without recording an action."""
        return await self.registry.execute_intent(domain, intent, params or {}, self.repository)

    def capabilities_summary(self) -> str:
        return self.registry.build_capabilities_summary()

    def status(self) -> dict:
        counts = self.repository.count_by_status()
        return {
            "version": __version__,
            "actions": counts,
            "pending_actions": counts.get(ActionStatus.PENDING.value, 0),
            "tools_known": len(self.registry.get_all_tools()),
            "tools_installed": len(self.registry.get_installed_tools()),
            "domains": [orch.domain.value for orch in self.registry.get_domains()],
        }

    def close(self) -> None:
        self.repository.close()

