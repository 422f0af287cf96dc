"""
Helmsman Capability Model

Value-typed descriptors for external tools and the operations they
declare. Descriptors are immutable: detection results live in the
registry's cache, never on the descriptor itself, so running ``detect``
twice has no side effects.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from helmsman.core.models import (
    OperationResult,
    Tier,
    ToolDomain,
    ToolOperationInfo,
    ToolParamDef,
    ToolStatus,
)

OperationHandler = Callable[[dict[str, str]], Awaitable[OperationResult]]
DetectFunction = Callable[[], Awaitable[ToolStatus]]


@dataclass(frozen=True)
class ToolOperation:
    """A single operation a tool can perform.

    ``tier`` is the declared default risk of the operation. It is shown to
    discovery UIs and the AI prompt; the tier actually enforced is the one
    assigned to the action that triggers it.
    """

    id: str
    name: str
    description: str
    tier: Tier
    handler: OperationHandler
    params: tuple[ToolParamDef, ...] = ()

    async def execute(self, params: dict[str, str]) -> OperationResult:
        return await self.handler(params)

    def info(self, tool_id: str, domain: ToolDomain) -> ToolOperationInfo:
        return ToolOperationInfo(
            id=self.id,
            tool_id=tool_id,
            domain=domain,
            name=self.name,
            description=self.description,
            tier=self.tier,
            params=list(self.params),
        )


@dataclass(frozen=True)
class ToolDescriptor:
    """An external program or script that can perform operations in a domain.

    ``detect`` must never raise; probes return ``ToolStatus(installed=False)``
    on any failure. ``operations`` is static and can be listed before
    detection has run.
    """

    id: str
    name: str
    description: str
    domain: ToolDomain
    detect: DetectFunction
    operations: tuple[ToolOperation, ...] = ()
    install_method: str | None = None
    install_command: str | None = None
    _by_id: dict[str, ToolOperation] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {op.id: op for op in self.operations})

    def get_operation(self, operation_id: str) -> ToolOperation | None:
        return self._by_id.get(operation_id)

    @property
    def capabilities(self) -> list[str]:
        """Operation names, as advertised in the tool listing."""
        return [op.name for op in self.operations]
