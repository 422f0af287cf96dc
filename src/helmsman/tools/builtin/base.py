"""
Helmsman Built-in Tool Helpers

Building blocks shared by the built-in catalog:

- ``command_operation``: an operation backed by a command-line template
- ``native_operation``: an operation backed by a Python function
- detection probes: version output, package-manager listing, well-known path

Templates reference declared parameters as ``{name}``. Only declared names
are substituted, so PowerShell script blocks (``{ $_.Name }``) pass through
untouched. Substituted values have shell metacharacters stripped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from helmsman.core.models import OperationResult, Tier, ToolParamDef, ToolStatus
from helmsman.exceptions import ProcessExecutionError
from helmsman.tools.models import DetectFunction, ToolOperation
from helmsman.tools.process import ProcessRunner

logger = logging.getLogger(__name__)

CommandTemplate = str | Callable[[Mapping[str, str]], str]

_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_UNSAFE_CHARS = re.compile(r"[\"'`$;&|<>\r\n]")


def param(
    name: str,
    description: str = "",
    required: bool = False,
    default: str | None = None,
) -> ToolParamDef:
    return ToolParamDef(name=name, description=description, required=required, default=default)


def sanitize(value: str) -> str:
    """Strip characters that could break out of a quoted argument."""
    return _UNSAFE_CHARS.sub("", value).strip()


def render(template: CommandTemplate, values: Mapping[str, str], names: set[str]) -> str:
    """Fill ``{name}`` placeholders for declared parameter names."""
    if callable(template):
        return template(values)

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in names:
            return match.group(0)
        return values.get(key, "")

    return _PLACEHOLDER.sub(_sub, template)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _resolve_params(
    params: tuple[ToolParamDef, ...], values: Mapping[str, str]
) -> tuple[dict[str, str], list[str]]:
    """Merge defaults and report missing required parameters."""
    merged = {p.name: p.default for p in params if p.default is not None}
    merged.update({k: v for k, v in values.items() if v != ""})
    missing = [p.name for p in params if p.required and not merged.get(p.name)]
    return merged, missing


def command_operation(
    runner: ProcessRunner,
    tool_id: str,
    op_id: str,
    name: str,
    description: str,
    tier: Tier,
    command: CommandTemplate,
    *,
    params: tuple[ToolParamDef, ...] = (),
    timeout: float = 30.0,
    powershell: bool = False,
    message: str | None = None,
) -> ToolOperation:
    """Declare an operation that runs one command line.

    ``message`` replaces empty command output (launchers, silent tweaks)
    and may reference parameters too. Process failures come back as a
    failed OperationResult carrying the error text.
    """
    names = {p.name for p in params}

    async def handler(values: dict[str, str]) -> OperationResult:
        start = time.monotonic()
        merged, missing = _resolve_params(params, values)
        if missing:
            return OperationResult(
                success=False,
                tool_id=tool_id,
                error=f"Missing required parameter: {', '.join(missing)}",
                duration_ms=_elapsed_ms(start),
            )

        safe = {k: sanitize(v) for k, v in merged.items()}
        line = render(command, safe, names)
        logger.debug("Running %s: %s", op_id, line[:120], extra={"tool_id": tool_id})
        try:
            if powershell:
                output = await runner.powershell(line, timeout)
            else:
                output = await runner.run(line, timeout)
        except ProcessExecutionError as e:
            return OperationResult(
                success=False, tool_id=tool_id, error=str(e), duration_ms=_elapsed_ms(start)
            )

        if not output and message:
            output = render(message, safe, names)
        return OperationResult(
            success=True, tool_id=tool_id, output=output, duration_ms=_elapsed_ms(start)
        )

    return ToolOperation(
        id=op_id,
        name=name,
        description=description,
        tier=tier,
        handler=handler,
        params=params,
    )


def native_operation(
    tool_id: str,
    op_id: str,
    name: str,
    description: str,
    tier: Tier,
    func: Callable[[dict[str, str]], str],
    *,
    params: tuple[ToolParamDef, ...] = (),
) -> ToolOperation:
    """Declare an operation implemented in Python.

    ``func`` is blocking and runs in a worker thread; ``OSError`` and
    ``ValueError`` become failed results.
    """

    async def handler(values: dict[str, str]) -> OperationResult:
        start = time.monotonic()
        merged, missing = _resolve_params(params, values)
        if missing:
            return OperationResult(
                success=False,
                tool_id=tool_id,
                error=f"Missing required parameter: {', '.join(missing)}",
                duration_ms=_elapsed_ms(start),
            )
        try:
            output = await asyncio.to_thread(func, merged)
        except (OSError, ValueError) as e:
            return OperationResult(
                success=False, tool_id=tool_id, error=str(e), duration_ms=_elapsed_ms(start)
            )
        return OperationResult(
            success=True, tool_id=tool_id, output=output, duration_ms=_elapsed_ms(start)
        )

    return ToolOperation(
        id=op_id,
        name=name,
        description=description,
        tier=tier,
        handler=handler,
        params=params,
    )


def sequence_operation(
    tool_id: str,
    op_id: str,
    name: str,
    description: str,
    tier: Tier,
    steps: tuple[tuple[str, ToolOperation], ...],
) -> ToolOperation:
    """Run several operations in order and merge their output.

    Every step runs even if an earlier one failed; the result succeeds
    only if all steps did.
    """

    async def handler(values: dict[str, str]) -> OperationResult:
        start = time.monotonic()
        sections: list[str] = []
        success = True
        for title, step in steps:
            result = await step.execute(values)
            success = success and result.success
            sections.append(f"=== {title} ===")
            sections.append(result.output or result.error or "")
        return OperationResult(
            success=success,
            tool_id=tool_id,
            output="\n".join(sections),
            duration_ms=_elapsed_ms(start),
        )

    return ToolOperation(
        id=op_id, name=name, description=description, tier=tier, handler=handler
    )


# ─── Detection ───────────────────────────────────────────────


def version_probe(
    runner: ProcessRunner,
    command: str,
    *,
    timeout: float = 10.0,
    path: str | None = None,
    powershell: bool = False,
    require_output: bool = False,
    report_version: bool = True,
) -> DetectFunction:
    """Installed if ``command`` exits zero; first output line is the version.

    With ``require_output`` an empty stdout also counts as not installed,
    for probes that succeed whether or not the tool is present.
    """

    async def detect() -> ToolStatus:
        try:
            if powershell:
                output = await runner.powershell(command, timeout)
            else:
                output = await runner.run(command, timeout)
        except ProcessExecutionError:
            return ToolStatus(installed=False)
        lines = output.splitlines()
        if require_output and not lines:
            return ToolStatus(installed=False)
        version = lines[0].strip() if lines and report_version else None
        return ToolStatus(installed=True, version=version or None, path=path)

    return detect


def listing_probe(runner: ProcessRunner, package_id: str, *, timeout: float = 15.0) -> DetectFunction:
    """Installed if winget lists ``package_id``."""

    async def detect() -> ToolStatus:
        try:
            output = await runner.run(
                f"winget list --id {package_id} --accept-source-agreements", timeout
            )
        except ProcessExecutionError:
            return ToolStatus(installed=False)
        if package_id.lower() in output.lower():
            return ToolStatus(installed=True, path=f"winget:{package_id}")
        return ToolStatus(installed=False)

    return detect


def path_probe(*candidates: str) -> DetectFunction:
    """Installed if any candidate path exists. Environment variables expand."""

    async def detect() -> ToolStatus:
        for candidate in candidates:
            expanded = os.path.expandvars(candidate)
            if Path(expanded).exists():
                return ToolStatus(installed=True, path=expanded)
        return ToolStatus(installed=False)

    return detect


def first_of(*probes: DetectFunction) -> DetectFunction:
    """Try probes in order; the first that reports installed wins."""

    async def detect() -> ToolStatus:
        for probe in probes:
            status = await probe()
            if status.installed:
                return status
        return ToolStatus(installed=False)

    return detect


def always_installed(path: str = "built-in") -> DetectFunction:
    async def detect() -> ToolStatus:
        return ToolStatus(installed=True, version="built-in", path=path)

    return detect
