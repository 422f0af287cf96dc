"""
System tools domain: PowerToys, System Informer, chezmoi, komorebi.

Every intent here maps to exactly one tool, so the operation table is the
only thing that varies per intent.
"""

from __future__ import annotations

from collections.abc import Mapping

from helmsman.core.models import Tier, ToolDomain
from helmsman.tools.builtin.base import (
    command_operation,
    first_of,
    listing_probe,
    param,
    path_probe,
    version_probe,
)
from helmsman.tools.models import ToolDescriptor
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner

WINGET_AGREEMENTS = "--accept-package-agreements --accept-source-agreements"
MEM_MB = "@{N='MemMB';E={[math]::Round($_.WorkingSet64/1MB,1)}}"


def powertoys(runner: ProcessRunner) -> ToolDescriptor:
    tool = "powertoys"
    return ToolDescriptor(
        id=tool,
        name="PowerToys",
        description="Microsoft utilities: FancyZones, PowerRename, Color Picker, Run and more.",
        domain=ToolDomain.SYSTEM_TOOLS,
        detect=first_of(
            listing_probe(runner, "Microsoft.PowerToys"),
            path_probe(r"%LOCALAPPDATA%\PowerToys\PowerToys.exe"),
        ),
        install_method="winget",
        install_command="winget install Microsoft.PowerToys",
        operations=(
            command_operation(
                runner, tool, "powertoys-launch", "Launch PowerToys",
                "Open the PowerToys settings window", Tier.GREEN,
                'start "" "PowerToys.exe"',
                timeout=5.0, message="PowerToys settings launched.",
            ),
            command_operation(
                runner, tool, "powertoys-status", "PowerToys status",
                "List running PowerToys processes", Tier.GREEN,
                "Get-Process -Name 'PowerToys*' -ErrorAction SilentlyContinue | "
                "Select-Object Name, Id, CPU, WorkingSet64 | Format-Table -AutoSize | Out-String",
                powershell=True, timeout=10.0, message="No PowerToys processes running.",
            ),
            command_operation(
                runner, tool, "powertoys-install", "Install PowerToys",
                "Install PowerToys through winget", Tier.YELLOW,
                f"winget install Microsoft.PowerToys {WINGET_AGREEMENTS}",
                timeout=300.0,
            ),
            command_operation(
                runner, tool, "powertoys-update", "Update PowerToys",
                "Upgrade PowerToys through winget", Tier.YELLOW,
                f"winget upgrade Microsoft.PowerToys {WINGET_AGREEMENTS}",
                timeout=300.0,
            ),
        ),
    )


def _top_processes(values: Mapping[str, str]) -> str:
    prop = "WorkingSet64" if values.get("sort") == "memory" else "CPU"
    return (
        f"Get-Process | Sort-Object -Property {prop} -Descending | "
        f"Select-Object -First 20 Name, Id, CPU, {MEM_MB} | Format-Table -AutoSize | Out-String -Width 120"
    )


def _kill_process(values: Mapping[str, str]) -> str:
    target = values["target"]
    selector = f"-Id {target}" if target.isdigit() else f"-Name '{target}'"
    return f"Stop-Process {selector} -Force -ErrorAction Stop; Write-Output 'Process {target} terminated.'"


def system_informer(runner: ProcessRunner) -> ToolDescriptor:
    tool = "system-informer"
    return ToolDescriptor(
        id=tool,
        name="System Informer",
        description="Advanced process, service and network monitor (formerly Process Hacker).",
        domain=ToolDomain.SYSTEM_TOOLS,
        detect=first_of(
            listing_probe(runner, "winsiderss.SystemInformer"),
            path_probe(r"C:\Program Files\SystemInformer\SystemInformer.exe"),
        ),
        install_method="winget",
        install_command="winget install winsiderss.SystemInformer",
        operations=(
            command_operation(
                runner, tool, "si-launch", "Launch System Informer",
                "Open the System Informer window", Tier.GREEN,
                'start "" "SystemInformer.exe"',
                timeout=5.0, message="System Informer launched.",
            ),
            command_operation(
                runner, tool, "si-top-processes", "Top processes",
                "Top 20 processes by CPU or memory", Tier.GREEN,
                _top_processes,
                params=(param("sort", "Sort by: cpu or memory", default="cpu"),),
                powershell=True, timeout=15.0,
            ),
            command_operation(
                runner, tool, "si-find-process", "Find process",
                "Find processes whose name matches", Tier.GREEN,
                f"Get-Process -Name '*{{name}}*' -ErrorAction SilentlyContinue | "
                f"Select-Object Name, Id, CPU, {MEM_MB}, Path | Format-Table -AutoSize | Out-String -Width 200",
                params=(param("name", "Process name to search for", required=True),),
                powershell=True, timeout=15.0,
                message='No processes matching "{name}" found.',
            ),
            command_operation(
                runner, tool, "si-kill-process", "Kill process",
                "Force-stop a process by name or PID", Tier.RED,
                _kill_process,
                params=(param("target", "Process name or PID to kill", required=True),),
                powershell=True, timeout=15.0,
            ),
            command_operation(
                runner, tool, "si-services", "List services",
                "List running services", Tier.GREEN,
                "Get-Service | Where-Object { $_.Status -eq 'Running' } | Sort-Object DisplayName | "
                "Select-Object Status, Name, DisplayName | Format-Table -AutoSize | Out-String -Width 200",
                powershell=True, timeout=15.0,
            ),
            command_operation(
                runner, tool, "si-network-connections", "Network connections",
                "Established and listening TCP connections with owning process", Tier.GREEN,
                "Get-NetTCPConnection | Where-Object { $_.State -eq 'Established' -or $_.State -eq 'Listen' } | "
                "Select-Object LocalAddress, LocalPort, RemoteAddress, RemotePort, State, "
                "@{N='Process';E={(Get-Process -Id $_.OwningProcess -ErrorAction SilentlyContinue).Name}} | "
                "Format-Table -AutoSize | Out-String -Width 200",
                powershell=True, timeout=15.0,
            ),
        ),
    )


def chezmoi(runner: ProcessRunner) -> ToolDescriptor:
    tool = "chezmoi"
    return ToolDescriptor(
        id=tool,
        name="chezmoi",
        description="Dotfile manager: keeps configuration files in sync across machines via git.",
        domain=ToolDomain.SYSTEM_TOOLS,
        detect=version_probe(runner, "chezmoi --version"),
        install_method="winget",
        install_command="winget install twpayne.chezmoi",
        operations=(
            command_operation(
                runner, tool, "chezmoi-status", "Dotfile status",
                "Show which managed files differ from the source state", Tier.GREEN,
                "chezmoi status",
                timeout=15.0, message="All managed files are up to date.",
            ),
            command_operation(
                runner, tool, "chezmoi-managed", "List managed files",
                "List files under chezmoi management", Tier.GREEN,
                "chezmoi managed",
                timeout=15.0, message="No files managed by chezmoi yet.",
            ),
            command_operation(
                runner, tool, "chezmoi-diff", "Show dotfile diff",
                "Diff between the source state and the home directory", Tier.GREEN,
                "chezmoi diff",
                timeout=15.0, message="No differences. Dotfiles are in sync.",
            ),
            command_operation(
                runner, tool, "chezmoi-apply", "Apply dotfiles",
                "Write the source state to the home directory", Tier.YELLOW,
                "chezmoi apply --force",
                message="Dotfiles applied successfully.",
            ),
            command_operation(
                runner, tool, "chezmoi-add", "Add file to dotfiles",
                "Start managing a file with chezmoi", Tier.YELLOW,
                'chezmoi add "{path}"',
                params=(param("path", "File path to add (e.g. ~/.gitconfig)", required=True),),
                timeout=15.0, message="Added {path} to chezmoi management.",
            ),
            command_operation(
                runner, tool, "chezmoi-update", "Pull and apply dotfiles",
                "Pull the dotfile repo and apply it", Tier.YELLOW,
                "chezmoi update --force",
                timeout=60.0, message="Dotfiles pulled and applied.",
            ),
            command_operation(
                runner, tool, "chezmoi-init", "Initialize chezmoi",
                "Clone a dotfile repo as the chezmoi source", Tier.YELLOW,
                'chezmoi init "{repo}"',
                params=(param("repo", "Git repo URL (e.g. github.com/user/dotfiles)", required=True),),
                timeout=60.0,
                message="chezmoi initialized with {repo}. Run 'chezmoi apply' to apply dotfiles.",
            ),
        ),
    )


def komorebi(runner: ProcessRunner) -> ToolDescriptor:
    tool = "komorebi"
    return ToolDescriptor(
        id=tool,
        name="komorebi",
        description="Tiling window manager for Windows.",
        domain=ToolDomain.SYSTEM_TOOLS,
        detect=version_probe(runner, "komorebic --version"),
        install_method="winget",
        install_command="winget install LGUG2Z.komorebi",
        operations=(
            command_operation(
                runner, tool, "komorebi-start", "Start komorebi",
                "Start the tiling manager with the whkd hotkey daemon", Tier.YELLOW,
                "komorebic start --whkd",
                timeout=15.0, message="komorebi started with whkd hotkey daemon.",
            ),
            command_operation(
                runner, tool, "komorebi-stop", "Stop komorebi",
                "Stop tiling and restore normal window behavior", Tier.YELLOW,
                "komorebic stop",
                timeout=10.0, message="komorebi stopped. Normal window behavior restored.",
            ),
            command_operation(
                runner, tool, "komorebi-status", "Komorebi status",
                "Dump the current window manager state", Tier.GREEN,
                "komorebic state",
                timeout=15.0, message="komorebi is not running. Start it with 'komorebic start'.",
            ),
            command_operation(
                runner, tool, "komorebi-retile", "Retile windows",
                "Force a retile of every workspace", Tier.GREEN,
                "komorebic retile",
                timeout=5.0, message="Windows retiled.",
            ),
            command_operation(
                runner, tool, "komorebi-toggle-float", "Toggle float",
                "Toggle floating for the focused window", Tier.GREEN,
                "komorebic toggle-float",
                timeout=5.0, message="Float toggled for focused window.",
            ),
            command_operation(
                runner, tool, "komorebi-change-layout", "Change layout",
                "Switch the focused workspace layout", Tier.GREEN,
                "komorebic change-layout {layout}",
                params=(
                    param(
                        "layout",
                        "Layout: bsp, columns, rows, vertical-stack, horizontal-stack",
                        required=True,
                    ),
                ),
                timeout=5.0, message="Layout changed to {layout}.",
            ),
        ),
    )


OPERATION_TABLE: dict[str, dict[str, str]] = {
    "launch-powertoys": {"powertoys": "powertoys-launch"},
    "powertoys-status": {"powertoys": "powertoys-status"},
    "install-powertoys": {"powertoys": "powertoys-install"},
    "update-powertoys": {"powertoys": "powertoys-update"},
    "top-processes": {"system-informer": "si-top-processes"},
    "find-process": {"system-informer": "si-find-process"},
    "kill-process": {"system-informer": "si-kill-process"},
    "list-services": {"system-informer": "si-services"},
    "network-connections": {"system-informer": "si-network-connections"},
    "launch-process-manager": {"system-informer": "si-launch"},
    "dotfile-status": {"chezmoi": "chezmoi-status"},
    "dotfile-list": {"chezmoi": "chezmoi-managed"},
    "dotfile-diff": {"chezmoi": "chezmoi-diff"},
    "dotfile-apply": {"chezmoi": "chezmoi-apply"},
    "dotfile-add": {"chezmoi": "chezmoi-add"},
    "dotfile-update": {"chezmoi": "chezmoi-update"},
    "dotfile-init": {"chezmoi": "chezmoi-init"},
    "start-tiling": {"komorebi": "komorebi-start"},
    "stop-tiling": {"komorebi": "komorebi-stop"},
    "tiling-status": {"komorebi": "komorebi-status"},
    "retile": {"komorebi": "komorebi-retile"},
    "toggle-float": {"komorebi": "komorebi-toggle-float"},
    "change-layout": {"komorebi": "komorebi-change-layout"},
}

INTENT_MAP: dict[str, list[str]] = {intent: list(ops) for intent, ops in OPERATION_TABLE.items()}


def build(runner: ProcessRunner) -> DomainOrchestrator:
    return DomainOrchestrator(
        domain=ToolDomain.SYSTEM_TOOLS,
        name="System Tools",
        description="Power-user utilities: PowerToys, process monitoring, dotfiles and tiling.",
        tools=[powertoys(runner), system_informer(runner), chezmoi(runner), komorebi(runner)],
        intent_map=INTENT_MAP,
        operation_table=OPERATION_TABLE,
    )
