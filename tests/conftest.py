"""Shared test fixtures for the Helmsman test suite."""

from unittest.mock import AsyncMock

import pytest

from helmsman.core.models import OperationResult, Tier, ToolDomain, ToolStatus
from helmsman.storage.repository import ActionRepository
from helmsman.tools.models import ToolDescriptor, ToolOperation
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner
from helmsman.tools.registry import ToolRegistry


@pytest.fixture
def repo():
    repository = ActionRepository(":memory:")
    yield repository
    repository.close()


@pytest.fixture
def runner():
    """A ProcessRunner whose commands all succeed with output "ok"."""
    fake = AsyncMock(spec=ProcessRunner)
    fake.run.return_value = "ok"
    fake.powershell.return_value = "ok"
    return fake


def installed(version: str | None = "1.0"):
    async def detect() -> ToolStatus:
        return ToolStatus(installed=True, version=version)

    return detect


def missing():
    async def detect() -> ToolStatus:
        return ToolStatus(installed=False)

    return detect


def echo_operation(op_id: str, tool_id: str, tier: Tier = Tier.GREEN, success: bool = True):
    """Operation that reports which tool ran and with which params."""

    async def handler(params: dict[str, str]) -> OperationResult:
        rendered = ",".join(f"{k}={v}" for k, v in sorted(params.items()))
        if success:
            return OperationResult(success=True, tool_id=tool_id, output=f"{op_id}:{rendered}")
        return OperationResult(success=False, tool_id=tool_id, error=f"{op_id} failed")

    return ToolOperation(id=op_id, name=op_id, description=f"Test op {op_id}", tier=tier, handler=handler)


@pytest.fixture
def fake_domain():
    """Package-like domain with a preferred (alpha) and a fallback (beta) tool."""
    alpha = ToolDescriptor(
        id="alpha",
        name="Alpha",
        description="Preferred tool",
        domain=ToolDomain.PACKAGES,
        detect=installed("2.1"),
        operations=(
            echo_operation("alpha-install", "alpha", Tier.YELLOW),
            echo_operation("alpha-search", "alpha"),
        ),
    )
    beta = ToolDescriptor(
        id="beta",
        name="Beta",
        description="Fallback tool",
        domain=ToolDomain.PACKAGES,
        detect=installed("0.9"),
        operations=(
            echo_operation("beta-install", "beta", Tier.YELLOW),
            echo_operation("beta-search", "beta"),
        ),
    )
    return DomainOrchestrator(
        domain=ToolDomain.PACKAGES,
        name="Fake Packages",
        description="Test package domain",
        tools=[alpha, beta],
        intent_map={"install": ["alpha", "beta"], "search": ["alpha", "beta"]},
        operation_table={
            "install": {"alpha": "alpha-install", "beta": "beta-install"},
            "search": {"alpha": "alpha-search", "beta": "beta-search"},
        },
        remediation="Install alpha or beta.",
    )


@pytest.fixture
def registry(fake_domain):
    reg = ToolRegistry(detect_timeout=1.0)
    reg.register_domain(fake_domain)
    return reg
