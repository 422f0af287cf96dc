"""
Helmsman Action Executor

Runs a persisted action and returns a uniform ExecutionOutcome. Two paths:

- tool-operation: the command is a structured payload; the intent is
  dispatched through the ToolRegistry and its domain orchestrator.
- powershell / cmd / shell: the command is a literal string handed to the
  process primitive (cmd is wrapped with ``cmd /c``).

Nothing escapes this boundary: spawn errors, non-zero exits and timeouts
all come back as ``ExecutionOutcome(success=False, error=...)``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from helmsman.core.models import Action, ActionModule, ExecutionOutcome
from helmsman.engine.classifier import parse_tool_action
from helmsman.tools.process import ProcessRunner
from helmsman.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from helmsman.storage.repository import ActionRepository

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Dispatches actions to the process primitive or the tool registry."""

    def __init__(self, registry: ToolRegistry, runner: ProcessRunner | None = None):
        self._registry = registry
        self._runner = runner or ProcessRunner()

    async def execute_action(
        self,
        action: Action,
        repository: ActionRepository | None = None,
    ) -> ExecutionOutcome:
        try:
            return await self._dispatch(action, repository)
        except Exception as e:
            logger.warning(
                "Action execution failed: %s",
                e,
                extra={"action_id": action.id, "action_module": action.module},
            )
            return ExecutionOutcome(success=False, error=str(e) or type(e).__name__)

    async def _dispatch(
        self,
        action: Action,
        repository: ActionRepository | None,
    ) -> ExecutionOutcome:
        module = action.module

        if module == ActionModule.TOOL_OPERATION.value:
            return await self._execute_tool_operation(action, repository)

        if module == ActionModule.POWERSHELL.value:
            output = await self._runner.powershell(action.command)
        elif module == ActionModule.CMD.value:
            output = await self._runner.run(f"cmd /c {action.command}")
        elif module == ActionModule.SHELL.value:
            output = await self._runner.run(action.command)
        else:
            return ExecutionOutcome(success=False, error=f"Unknown module: {module}")

        return ExecutionOutcome(success=True, output=output)

    async def _execute_tool_operation(
        self,
        action: Action,
        repository: ActionRepository | None,
    ) -> ExecutionOutcome:
        if repository is None:
            return ExecutionOutcome(
                success=False, error="Tool operations require a database handle"
            )

        request = parse_tool_action(action.command)
        if request is None:
            return ExecutionOutcome(success=False, error="Invalid tool operation payload")

        result = await self._registry.execute_intent(
            request.domain,
            request.intent,
            request.params,
            repository,
            action_id=action.id,
        )
        return ExecutionOutcome(success=result.success, output=result.output, error=result.error)
