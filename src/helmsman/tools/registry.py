"""
Helmsman Tool Registry

Holds every known tool grouped by domain, runs detection, and is the
single entry point the executor uses to dispatch an intent.

The registry is constructed explicitly and passed to whatever needs it
(API app, CLI command); its lifecycle is "construct once per process,
rescan on demand". Detection results live in a side table keyed by tool
id, so descriptors stay immutable and rescans are idempotent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from helmsman.core.models import (
    OperationResult,
    ToolInfo,
    ToolOperationInfo,
    ToolOperationLogEntry,
    ToolStatus,
    utcnow,
)
from helmsman.tools.models import ToolDescriptor
from helmsman.tools.orchestrator import DomainOrchestrator

if TYPE_CHECKING:
    from helmsman.storage.repository import ActionRepository

logger = logging.getLogger(__name__)

DEFAULT_DETECT_TIMEOUT = 15.0

ACTION_BLOCK_TAG = "helmsman-action"


class ToolRegistry:
    """Registry of domain orchestrators and the detection cache."""

    def __init__(self, detect_timeout: float = DEFAULT_DETECT_TIMEOUT) -> None:
        self._orchestrators: dict[str, DomainOrchestrator] = {}
        self._cache: dict[str, ToolInfo] = {}
        self._detect_timeout = detect_timeout

    def register_domain(self, orchestrator: DomainOrchestrator) -> None:
        """Register an orchestrator. Re-registering a domain replaces it."""
        self._orchestrators[orchestrator.domain.value] = orchestrator

    def get_domains(self) -> list[DomainOrchestrator]:
        return list(self._orchestrators.values())

    def get_orchestrator(self, domain: str) -> DomainOrchestrator | None:
        return self._orchestrators.get(domain)

    def iter_tools(self) -> list[ToolDescriptor]:
        return [tool for orch in self._orchestrators.values() for tool in orch.get_tools()]

    # ─── Detection ───────────────────────────────────────────

    async def _probe(self, tool: ToolDescriptor) -> ToolStatus:
        """Run one tool's detection with its own timeout.

        A probe that hangs, raises, or returns garbage counts as not
        installed; it never affects sibling probes.
        """
        try:
            status = await asyncio.wait_for(tool.detect(), timeout=self._detect_timeout)
        except TimeoutError:
            logger.warning(
                "Detection timed out after %ss", self._detect_timeout, extra={"tool_id": tool.id}
            )
            return ToolStatus(installed=False)
        except Exception:
            logger.exception("Detection raised", extra={"tool_id": tool.id})
            return ToolStatus(installed=False)

        if not isinstance(status, ToolStatus):
            return ToolStatus(installed=False)
        return status

    async def scan_tools(self, repository: ActionRepository | None = None) -> list[ToolInfo]:
        """Detect every tool concurrently and refresh the cache.

        When a repository is given, each result is also persisted so the
        next process can start from it via ``load_from_repository``.
        """
        tools = self.iter_tools()
        statuses = await asyncio.gather(
            *(self._probe(tool) for tool in tools), return_exceptions=True
        )

        results: list[ToolInfo] = []
        checked_at = utcnow()
        for tool, status in zip(tools, statuses, strict=True):
            if isinstance(status, BaseException):
                status = ToolStatus(installed=False)
            info = ToolInfo(
                id=tool.id,
                name=tool.name,
                description=tool.description,
                domain=tool.domain,
                installed=status.installed,
                version=status.version,
                path=status.path,
                install_method=tool.install_method,
                install_command=tool.install_command,
                last_checked=checked_at,
                capabilities=tool.capabilities,
            )
            self._cache[tool.id] = info
            if repository is not None:
                repository.upsert_tool(info)
            results.append(info)

        installed = sum(1 for r in results if r.installed)
        logger.info("Tool scan complete: %d/%d installed", installed, len(results))
        return results

    def load_from_repository(self, repository: ActionRepository) -> int:
        """Warm the cache from the last persisted scan. Returns rows loaded."""
        known = {tool.id for tool in self.iter_tools()}
        loaded = 0
        for info in repository.load_tools():
            if info.id in known:
                self._cache[info.id] = info
                loaded += 1
        return loaded

    def get_all_tools(self) -> list[ToolInfo]:
        return list(self._cache.values())

    def get_installed_tools(self) -> list[ToolInfo]:
        return [info for info in self._cache.values() if info.installed]

    def get_installed_tool_ids(self) -> set[str]:
        return {info.id for info in self.get_installed_tools()}

    def get_operations(self) -> list[ToolOperationInfo]:
        """Operations currently available, i.e. declared by installed tools."""
        installed = self.get_installed_tool_ids()
        return [
            op.info(tool.id, tool.domain)
            for tool in self.iter_tools()
            if tool.id in installed
            for op in tool.operations
        ]

    # ─── Dispatch ────────────────────────────────────────────

    async def execute_intent(
        self,
        domain: str,
        intent: str,
        params: dict[str, str],
        repository: ActionRepository | None,
        action_id: str | None = None,
    ) -> OperationResult:
        """Resolve and run an intent, logging the outcome.

        Never raises for an unknown domain or intent; those come back as
        failed results.
        """
        orchestrator = self._orchestrators.get(domain)
        if orchestrator is None:
            return OperationResult(
                success=False, tool_id="unknown", error=f"Unknown domain: {domain}"
            )

        start = time.monotonic()
        result = await orchestrator.execute(intent, params, self.get_installed_tool_ids())
        duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "Intent %s/%s -> %s (%s)",
            domain,
            intent,
            result.tool_id,
            "ok" if result.success else "failed",
            extra={
                "action_id": action_id,
                "tool_id": result.tool_id,
                "domain": domain,
                "intent": intent,
                "duration_ms": duration_ms,
            },
        )

        if repository is not None:
            repository.log_tool_operation(
                ToolOperationLogEntry(
                    action_id=action_id,
                    tool_id=result.tool_id,
                    domain=domain,
                    operation_id=intent,
                    params=params,
                    success=result.success,
                    output=result.output,
                    error=result.error,
                    duration_ms=duration_ms,
                )
            )

        return result

    def build_capabilities_summary(self) -> str:
        """Describe available intents for the AI system prompt.

        Returns an empty string when nothing is installed. Only intents with
        at least one installed tool are listed.
        """
        installed = self.get_installed_tool_ids()
        if not installed:
            return ""

        lines = [
            "",
            "",
            "## Available Tools",
            f"You can use these tools by emitting a `{ACTION_BLOCK_TAG}` code block. Format:",
            f"```{ACTION_BLOCK_TAG}\n"
            '{"domain":"<domain>","intent":"<intent>","params":{},'
            '"tier":"<green|yellow|red>","description":"<what this does>"}\n```',
            "",
        ]

        for orch in self._orchestrators.values():
            available = [
                intent
                for intent, order in orch.intent_map.items()
                if any(tool_id in installed for tool_id in order)
            ]
            if not available:
                continue
            lines.append(f"### {orch.name} (`{orch.domain.value}`)")
            lines.extend(f"- intent: `{intent}`" for intent in available)
            lines.append("")

        return "\n".join(lines)
