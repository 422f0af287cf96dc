"""
Helmsman Tool Layer

Capability-driven dispatch of abstract intents to external tools:

    Action (tool-operation) → ToolRegistry → DomainOrchestrator → ToolOperation → ProcessRunner

Components:
- ToolDescriptor / ToolOperation: immutable capability model
- DomainOrchestrator: intent → tool preference → operation resolution
- ToolRegistry: domain registration, detection cache, dispatch
- ProcessRunner: the single process-execution primitive
- Built-in catalog: packages, drivers, debloat, file-ops, system-tools
"""

from helmsman.tools.models import ToolDescriptor, ToolOperation
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner
from helmsman.tools.registry import ACTION_BLOCK_TAG, ToolRegistry

__all__ = [
    "ACTION_BLOCK_TAG",
    "DomainOrchestrator",
    "ProcessRunner",
    "ToolDescriptor",
    "ToolOperation",
    "ToolRegistry",
]
