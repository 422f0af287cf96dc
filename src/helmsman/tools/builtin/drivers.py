"""
Driver management domain.

pnputil ships with Windows and backs most read-only intents. The GUI tools
(DDU, RAPR, SDIO) only get launched; their operations return instructions
for the user instead of driving the GUI.
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
from helmsman.tools.orchestrator import DomainOrchestrator, OperationRef
from helmsman.tools.process import ProcessRunner

INF = param("inf", "Published driver INF name (e.g. oem12.inf)", required=True)


def pnputil(runner: ProcessRunner) -> ToolDescriptor:
    tool = "pnputil"
    return ToolDescriptor(
        id=tool,
        name="pnputil",
        description="Built-in Windows driver store utility. Enumerate, export and delete driver packages.",
        domain=ToolDomain.DRIVERS,
        detect=version_probe(
            runner, "pnputil /?", path=r"C:\Windows\System32\pnputil.exe", report_version=False
        ),
        install_method="built-in",
        operations=(
            command_operation(
                runner, tool, "pnputil-list-drivers", "List drivers",
                "List third-party driver packages in the driver store", Tier.GREEN,
                "pnputil /enum-drivers",
            ),
            command_operation(
                runner, tool, "pnputil-list-devices", "List devices",
                "List connected devices and their drivers", Tier.GREEN,
                "pnputil /enum-devices /connected",
            ),
            command_operation(
                runner, tool, "pnputil-driver-info", "Driver info",
                "Show details for one driver package", Tier.GREEN,
                "pnputil /enum-drivers /inf {inf}",
                params=(INF,), timeout=15.0,
            ),
            command_operation(
                runner, tool, "pnputil-export-driver", "Export driver",
                "Export a driver package to a folder for backup", Tier.YELLOW,
                'pnputil /export-driver {inf} "{destination}"',
                params=(INF, param("destination", "Folder to export to", required=True)),
            ),
            command_operation(
                runner, tool, "pnputil-delete-driver", "Delete driver",
                "Force-delete a driver package from the store", Tier.RED,
                "pnputil /delete-driver {inf} /force",
                params=(INF,),
            ),
        ),
    )


def pswindowsupdate(runner: ProcessRunner) -> ToolDescriptor:
    tool = "pswindowsupdate"
    return ToolDescriptor(
        id=tool,
        name="PSWindowsUpdate",
        description="PowerShell module for Windows Update. Check and install driver and system updates.",
        domain=ToolDomain.DRIVERS,
        detect=version_probe(
            runner,
            "Get-Module -ListAvailable PSWindowsUpdate | "
            "Select-Object -ExpandProperty Version | Select-Object -First 1",
            powershell=True,
            timeout=15.0,
            require_output=True,
        ),
        install_method="powershell-module",
        install_command="Install-Module PSWindowsUpdate -Force -Scope CurrentUser",
        operations=(
            command_operation(
                runner, tool, "pswu-check-drivers", "Check driver updates",
                "List pending driver updates from Windows Update", Tier.GREEN,
                "Import-Module PSWindowsUpdate; Get-WindowsUpdate -Category Drivers -Verbose 4>&1 | Out-String",
                powershell=True, timeout=120.0, message="No driver updates available.",
            ),
            command_operation(
                runner, tool, "pswu-check-all", "Check all updates",
                "List every pending Windows update", Tier.GREEN,
                "Import-Module PSWindowsUpdate; Get-WindowsUpdate | Out-String",
                powershell=True, timeout=120.0, message="No updates available.",
            ),
            command_operation(
                runner, tool, "pswu-install-drivers", "Install driver updates",
                "Install pending driver updates without rebooting", Tier.YELLOW,
                "Import-Module PSWindowsUpdate; "
                "Install-WindowsUpdate -Category Drivers -AcceptAll -AutoReboot:$false | Out-String",
                powershell=True, timeout=600.0,
            ),
            command_operation(
                runner, tool, "pswu-install-all", "Install all updates",
                "Install every pending update without rebooting", Tier.YELLOW,
                "Import-Module PSWindowsUpdate; Install-WindowsUpdate -AcceptAll -AutoReboot:$false | Out-String",
                powershell=True, timeout=600.0,
            ),
            command_operation(
                runner, tool, "pswu-history", "Update history",
                "Show recent Windows Update history", Tier.GREEN,
                "Import-Module PSWindowsUpdate; Get-WUHistory -MaxDate (Get-Date) -Last {count} | "
                "Format-Table -AutoSize | Out-String -Width 200",
                params=(param("count", "Number of entries to show", default="20"),),
                powershell=True,
            ),
        ),
    )


def nvidia(runner: ProcessRunner) -> ToolDescriptor:
    tool = "nvidia-downloader"
    return ToolDescriptor(
        id=tool,
        name="NVIDIA Driver Tools",
        description="nvidia-smi queries plus GeForce driver updates through winget.",
        domain=ToolDomain.DRIVERS,
        detect=version_probe(
            runner, "nvidia-smi --query-gpu=driver_version --format=csv,noheader", path="nvidia-smi"
        ),
        install_method="bundled-with-driver",
        operations=(
            command_operation(
                runner, tool, "nvidia-gpu-info", "GPU info",
                "GPU model, memory, temperature and utilization", Tier.GREEN,
                "nvidia-smi --query-gpu=name,driver_version,memory.total,memory.used,memory.free,"
                "temperature.gpu,utilization.gpu,utilization.memory --format=csv",
                timeout=15.0,
            ),
            command_operation(
                runner, tool, "nvidia-driver-version", "Driver version",
                "Installed NVIDIA driver version", Tier.GREEN,
                "nvidia-smi --query-gpu=driver_version,name --format=csv,noheader",
                timeout=10.0,
            ),
            command_operation(
                runner, tool, "nvidia-check-update", "Check for driver update",
                "Ask winget whether a newer NVIDIA package is available", Tier.GREEN,
                'winget upgrade --query "NVIDIA" --accept-source-agreements',
                message="No NVIDIA updates found.",
            ),
            command_operation(
                runner, tool, "nvidia-install-update", "Install driver update",
                "Upgrade the NVIDIA package through winget", Tier.YELLOW,
                "winget upgrade --id Nvidia.GeForceExperience "
                "--accept-package-agreements --accept-source-agreements",
                timeout=300.0,
            ),
        ),
    )


def sdio(runner: ProcessRunner) -> ToolDescriptor:
    tool = "sdio"
    return ToolDescriptor(
        id=tool,
        name="Snappy Driver Installer Origin",
        description="Offline driver installer. Finds drivers for devices Windows Update missed.",
        domain=ToolDomain.DRIVERS,
        detect=first_of(
            path_probe(
                r"C:\tools\SDIO\SDIO_x64_R764.exe",
                r"C:\tools\sdio\SDIO.exe",
                r"%USERPROFILE%\scoop\apps\snappy-driver-installer-origin\current\SDIO.exe",
            ),
            listing_probe(runner, "GlennDelahoy.SnappyDriverInstallerOrigin"),
        ),
        install_method="portable",
        install_command="winget install GlennDelahoy.SnappyDriverInstallerOrigin",
        operations=(
            command_operation(
                runner, tool, "sdio-scan", "Scan for missing drivers",
                "Check devices for missing or outdated drivers", Tier.GREEN,
                "SDIO.exe -checkupdates",
                timeout=120.0,
            ),
            command_operation(
                runner, tool, "sdio-install", "Install drivers",
                "Launch SDIO to install drivers interactively", Tier.YELLOW,
                "start SDIO.exe",
                timeout=5.0,
                message="Snappy Driver Installer Origin launched. Follow the GUI to install drivers.",
            ),
        ),
    )


def _ddu_clean(gpu: str) -> str:
    return (
        f'DDU launched. Select "{gpu.upper()}" in the dropdown and click "Clean and restart" '
        "for a full driver removal. For best results, run DDU in Safe Mode."
    )


def ddu(runner: ProcessRunner) -> ToolDescriptor:
    tool = "ddu"
    launch = 'start "" "Display Driver Uninstaller.exe"'
    return ToolDescriptor(
        id=tool,
        name="Display Driver Uninstaller",
        description="Removes every trace of a GPU driver before a clean reinstall.",
        domain=ToolDomain.DRIVERS,
        detect=first_of(
            path_probe(r"C:\tools\DDU\Display Driver Uninstaller.exe", r"C:\tools\ddu\DDU.exe"),
            listing_probe(runner, "Wagnardsoft.DisplayDriverUninstaller"),
        ),
        install_method="portable",
        install_command="winget install Wagnardsoft.DisplayDriverUninstaller",
        operations=(
            *(
                command_operation(
                    runner, tool, f"ddu-clean-{gpu}", f"Clean uninstall {gpu.upper()}",
                    f"Fully remove the {gpu.upper()} display driver", Tier.RED,
                    launch,
                    timeout=5.0, message=_ddu_clean(gpu),
                )
                for gpu in ("nvidia", "amd", "intel")
            ),
            command_operation(
                runner, tool, "ddu-launch", "Launch DDU",
                "Open Display Driver Uninstaller", Tier.YELLOW,
                launch,
                timeout=5.0, message="Display Driver Uninstaller launched.",
            ),
        ),
    )


def rapr(runner: ProcessRunner) -> ToolDescriptor:
    tool = "rapr"
    launch = 'start "" "Rapr.exe"'
    return ToolDescriptor(
        id=tool,
        name="Driver Store Explorer (RAPR)",
        description="Inspect and prune old driver packages from the Windows driver store.",
        domain=ToolDomain.DRIVERS,
        detect=first_of(
            listing_probe(runner, "lostindark.DriverStoreExplorer"),
            path_probe(r"C:\tools\rapr\Rapr.exe", r"C:\tools\DriverStoreExplorer\Rapr.exe"),
        ),
        install_method="portable",
        install_command="winget install lostindark.DriverStoreExplorer",
        operations=(
            command_operation(
                runner, tool, "rapr-list-old", "List driver packages",
                "Enumerate driver store packages to spot old versions", Tier.GREEN,
                "pnputil /enum-drivers | Out-String",
                powershell=True,
            ),
            command_operation(
                runner, tool, "rapr-launch", "Launch RAPR",
                "Open Driver Store Explorer", Tier.YELLOW,
                launch,
                timeout=5.0,
                message="Driver Store Explorer launched. Use the GUI to review and clean old driver packages.",
            ),
            command_operation(
                runner, tool, "rapr-cleanup", "Clean driver store",
                "Remove old driver packages from the store", Tier.RED,
                launch,
                timeout=5.0,
                message="Driver Store Explorer launched. Select old driver packages and click "
                "'Delete Package' to clean them. Check 'Force Deletion' only if standard removal fails.",
            ),
        ),
    )


def ddu_operation(params: Mapping[str, str]) -> str:
    """Pick the DDU clean operation from the ``gpu`` parameter (default nvidia)."""
    gpu = params.get("gpu", "").lower()
    if gpu == "amd":
        return "ddu-clean-amd"
    if gpu == "intel":
        return "ddu-clean-intel"
    return "ddu-clean-nvidia"


INTENT_MAP: dict[str, list[str]] = {
    "list-drivers": ["pnputil", "rapr"],
    "list-devices": ["pnputil"],
    "check-updates": ["pswindowsupdate", "nvidia-downloader", "pnputil"],
    "install-updates": ["pswindowsupdate", "nvidia-downloader"],
    "gpu-info": ["nvidia-downloader"],
    "gpu-update": ["nvidia-downloader"],
    "scan-missing": ["sdio", "pnputil"],
    "clean-uninstall-gpu": ["ddu"],
    "driver-store-cleanup": ["rapr", "pnputil"],
    "export-driver": ["pnputil"],
    "delete-driver": ["pnputil"],
    "update-history": ["pswindowsupdate"],
}

OPERATION_TABLE: dict[str, dict[str, OperationRef]] = {
    "list-drivers": {"pnputil": "pnputil-list-drivers", "rapr": "rapr-list-old"},
    "list-devices": {"pnputil": "pnputil-list-devices"},
    "check-updates": {
        "pswindowsupdate": "pswu-check-drivers",
        "nvidia-downloader": "nvidia-check-update",
        "pnputil": "pnputil-list-drivers",
    },
    "install-updates": {
        "pswindowsupdate": "pswu-install-drivers",
        "nvidia-downloader": "nvidia-install-update",
    },
    "gpu-info": {"nvidia-downloader": "nvidia-gpu-info"},
    "gpu-update": {"nvidia-downloader": "nvidia-install-update"},
    "scan-missing": {"sdio": "sdio-scan", "pnputil": "pnputil-list-devices"},
    "clean-uninstall-gpu": {"ddu": ddu_operation},
    "driver-store-cleanup": {"rapr": "rapr-cleanup", "pnputil": "pnputil-list-drivers"},
    "export-driver": {"pnputil": "pnputil-export-driver"},
    "delete-driver": {"pnputil": "pnputil-delete-driver"},
    "update-history": {"pswindowsupdate": "pswu-history"},
}


def build(runner: ProcessRunner) -> DomainOrchestrator:
    return DomainOrchestrator(
        domain=ToolDomain.DRIVERS,
        name="Driver Management",
        description="Inspect, update, back up and clean hardware drivers.",
        tools=[
            pnputil(runner),
            pswindowsupdate(runner),
            nvidia(runner),
            sdio(runner),
            ddu(runner),
            rapr(runner),
        ],
        intent_map=INTENT_MAP,
        operation_table=OPERATION_TABLE,
        remediation="Consider installing PSWindowsUpdate or Snappy Driver Installer Origin.",
    )
