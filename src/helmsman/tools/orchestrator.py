"""
Helmsman Domain Orchestrator

Resolves an abstract intent ("install", "list-drivers", ...) to a concrete
tool operation. Each domain carries two tables of plain data:

- ``intent_map``: intent -> tool ids in preference order
- ``operation_table``: intent -> tool id -> operation id

Dispatch walks the preference list and runs the first installed tool that
has an operation for the intent. That tool's result is final: a failure is
returned as-is and the next tool is never tried, since replaying a failed
destructive change through a different tool is not safe.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping

from helmsman.core.models import OperationResult, ToolDomain
from helmsman.tools.models import ToolDescriptor, ToolOperation

logger = logging.getLogger(__name__)

# A fixed operation id, or a function choosing one from the request params
OperationRef = str | Callable[[Mapping[str, str]], str]
ParamNormalizer = Callable[[str, dict[str, str], str], dict[str, str]]


class DomainOrchestrator:
    """Per-domain intent resolution over a fixed set of tools."""

    def __init__(
        self,
        domain: ToolDomain,
        name: str,
        description: str,
        tools: Iterable[ToolDescriptor],
        intent_map: Mapping[str, list[str]],
        operation_table: Mapping[str, Mapping[str, OperationRef]],
        normalize: ParamNormalizer | None = None,
        remediation: str = "",
    ):
        self.domain = domain
        self.name = name
        self.description = description
        self.intent_map = {intent: list(order) for intent, order in intent_map.items()}
        self._tools: dict[str, ToolDescriptor] = {t.id: t for t in tools}
        self._operation_table = {k: dict(v) for k, v in operation_table.items()}
        self._normalize = normalize
        self._remediation = remediation
        self.validate()

    def get_tools(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def get_tool(self, tool_id: str) -> ToolDescriptor | None:
        return self._tools.get(tool_id)

    @property
    def intents(self) -> list[str]:
        return list(self.intent_map)

    def validate(self) -> list[tuple[str, str]]:
        """Report (intent, tool_id) pairs that dispatch would silently skip.

        Gaps are logged, never raised. Dynamic operation refs are not
        resolved here since they depend on request params.
        """
        gaps: list[tuple[str, str]] = []
        for intent, order in self.intent_map.items():
            ops = self._operation_table.get(intent, {})
            for tool_id in order:
                ref = ops.get(tool_id)
                tool = self._tools.get(tool_id)
                if ref is None or tool is None:
                    gaps.append((intent, tool_id))
                elif isinstance(ref, str) and tool.get_operation(ref) is None:
                    gaps.append((intent, tool_id))

        for intent, tool_id in gaps:
            logger.warning(
                "No operation mapped for %s/%s on tool %s",
                self.domain.value,
                intent,
                tool_id,
                extra={"domain": self.domain.value, "intent": intent, "tool_id": tool_id},
            )
        return gaps

    def resolve_operation(
        self, intent: str, tool_id: str, params: Mapping[str, str]
    ) -> ToolOperation | None:
        """Look up the operation realizing ``intent`` on ``tool_id``, if any."""
        tool = self._tools.get(tool_id)
        if tool is None:
            return None
        ref = self._operation_table.get(intent, {}).get(tool_id)
        if ref is None:
            return None
        op_id = ref(params) if callable(ref) else ref
        return tool.get_operation(op_id)

    def normalize_params(self, intent: str, params: dict[str, str], tool_id: str) -> dict[str, str]:
        if self._normalize is None:
            return dict(params)
        return self._normalize(intent, params, tool_id)

    async def execute(
        self,
        intent: str,
        params: dict[str, str],
        installed_tool_ids: set[str],
    ) -> OperationResult:
        """Run the first eligible installed tool for ``intent``."""
        order = self.intent_map.get(intent)
        if order is None:
            return OperationResult(
                success=False,
                tool_id="unknown",
                error=f"Unknown intent for {self.domain.value} domain: {intent}",
            )

        for tool_id in order:
            if tool_id not in installed_tool_ids:
                continue

            operation = self.resolve_operation(intent, tool_id, params)
            if operation is None:
                continue

            normalized = self.normalize_params(intent, params, tool_id)
            logger.info(
                "Dispatching %s/%s to %s",
                self.domain.value,
                intent,
                operation.id,
                extra={"domain": self.domain.value, "intent": intent, "tool_id": tool_id},
            )
            start = time.monotonic()
            try:
                return await operation.execute(normalized)
            except Exception as e:
                logger.exception("Operation %s raised", operation.id, extra={"tool_id": tool_id})
                return OperationResult(
                    success=False,
                    tool_id=tool_id,
                    error=f"{type(e).__name__}: {e}",
                    duration_ms=int((time.monotonic() - start) * 1000),
                )

        hint = f" {self._remediation}" if self._remediation else ""
        return OperationResult(
            success=False,
            tool_id="none",
            error=f"No installed {self.domain.value} tool available for intent: {intent}.{hint}",
        )
