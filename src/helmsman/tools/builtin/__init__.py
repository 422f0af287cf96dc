"""
Helmsman Built-in Tool Catalog

The five domains shipped with Helmsman. ``build_default_registry`` wires
them to one shared ProcessRunner; detection still has to run (``scan_tools``)
before any intent can dispatch.
"""

from helmsman.tools.builtin import debloat, drivers, file_ops, packages, system_tools
from helmsman.tools.process import ProcessRunner
from helmsman.tools.registry import DEFAULT_DETECT_TIMEOUT, ToolRegistry

ALL_DOMAINS = [packages, drivers, debloat, file_ops, system_tools]


def register_all_builtins(registry: ToolRegistry, runner: ProcessRunner) -> None:
    """Register every built-in domain with the given registry."""
    for domain in ALL_DOMAINS:
        registry.register_domain(domain.build(runner))


def build_default_registry(
    runner: ProcessRunner | None = None,
    detect_timeout: float = DEFAULT_DETECT_TIMEOUT,
) -> ToolRegistry:
    registry = ToolRegistry(detect_timeout=detect_timeout)
    register_all_builtins(registry, runner or ProcessRunner())
    return registry
