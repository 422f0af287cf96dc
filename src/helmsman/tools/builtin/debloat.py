"""
Debloat domain: Win11Debloat, Remove Windows AI, Sophia Script, WinUtil,
Bulk Crap Uninstaller.

Most operations here change registry policy or remove system packages, so
the declared tiers lean red. Remove Windows AI and the WinUtil essential
tweaks are plain PowerShell and only need PowerShell itself to be present.
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
    sequence_operation,
    version_probe,
)
from helmsman.tools.models import ToolDescriptor
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner

WIN11DEBLOAT_SCRIPT = r"C:\tools\Win11Debloat\Win11Debloat.ps1"
SOPHIA_DIR = r"C:\tools\Sophia\Sophia Script for Windows 11"

COPILOT_POLICY = r"Software\Policies\Microsoft\Windows\WindowsCopilot"
WINDOWS_AI_POLICY = r"Software\Policies\Microsoft\Windows\WindowsAI"
CONTENT_DELIVERY = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\ContentDeliveryManager"


def _ps(*statements: str) -> str:
    return "; ".join(statements)


def _set_policy(key: str, name: str) -> list[str]:
    """Set a DWORD policy to 1 under both HKCU and HKLM."""
    return [
        f"New-Item -Path 'HKCU:\\{key}' -Force | Out-Null",
        f"Set-ItemProperty -Path 'HKCU:\\{key}' -Name '{name}' -Value 1 -Type DWord -Force",
        f"New-Item -Path 'HKLM:\\{key.replace('Software', 'SOFTWARE', 1)}' -Force "
        "-ErrorAction SilentlyContinue | Out-Null",
        f"Set-ItemProperty -Path 'HKLM:\\{key.replace('Software', 'SOFTWARE', 1)}' -Name '{name}' "
        "-Value 1 -Type DWord -Force -ErrorAction SilentlyContinue",
    ]


def win11debloat(runner: ProcessRunner) -> ToolDescriptor:
    tool = "win11debloat"

    def run_script(op_id: str, name: str, description: str, tier: Tier, flags: str, timeout: float):
        return command_operation(
            runner, tool, op_id, name, description, tier,
            f"& '{WIN11DEBLOAT_SCRIPT}' -Silent {flags}",
            powershell=True, timeout=timeout, message=f"{name} complete.",
        )

    return ToolDescriptor(
        id=tool,
        name="Win11Debloat",
        description="Focused PowerShell debloater for Windows 11. Removes bloatware apps, "
        "disables telemetry, and cleans up the Start menu.",
        domain=ToolDomain.DEBLOAT,
        detect=path_probe(WIN11DEBLOAT_SCRIPT, r"%USERPROFILE%\Win11Debloat\Win11Debloat.ps1"),
        install_method="git-clone",
        install_command=r"git clone https://github.com/Raphire/Win11Debloat.git C:\tools\Win11Debloat",
        operations=(
            run_script(
                "win11debloat-default", "Default debloat",
                "Remove bloatware, disable telemetry, Bing and suggestions, restore the classic context menu",
                Tier.RED,
                "-RemoveApps -DisableTelemetry -DisableBing -DisableSuggestions "
                "-DisableLockscreenTips -RevertContextMenu",
                300.0,
            ),
            run_script(
                "win11debloat-apps-only", "Remove bloatware apps",
                "Remove preinstalled bloatware apps only", Tier.RED, "-RemoveApps", 300.0,
            ),
            run_script(
                "win11debloat-disable-telemetry", "Disable telemetry",
                "Disable telemetry and diagnostic data", Tier.RED, "-DisableTelemetry", 120.0,
            ),
            run_script(
                "win11debloat-disable-bing", "Disable Bing search",
                "Remove Bing web results from Start search", Tier.YELLOW, "-DisableBing", 60.0,
            ),
            run_script(
                "win11debloat-restore-taskbar", "Clean taskbar",
                "Hide widgets, chat and task view buttons", Tier.YELLOW,
                "-HideWidgets -HideChat -HideTaskview", 60.0,
            ),
        ),
    )


def remove_windows_ai(runner: ProcessRunner) -> ToolDescriptor:
    tool = "remove-windows-ai"

    disable_copilot = command_operation(
        runner, tool, "rwai-disable-copilot", "Disable Copilot",
        "Turn off Windows Copilot via policy", Tier.RED,
        _ps(
            *_set_policy(COPILOT_POLICY, "TurnOffWindowsCopilot"),
            "Write-Output 'Windows Copilot disabled via policy. "
            "Changes take effect after restart or Explorer refresh.'",
        ),
        powershell=True,
    )
    remove_copilot = command_operation(
        runner, tool, "rwai-remove-copilot", "Remove Copilot",
        "Uninstall and deprovision Copilot app packages", Tier.RED,
        _ps(
            "$pkgs = Get-AppxPackage -AllUsers -Name '*Copilot*' 2>$null",
            "if ($pkgs) { $pkgs | ForEach-Object { Remove-AppxPackage -Package $_.PackageFullName "
            "-AllUsers -ErrorAction SilentlyContinue; Write-Output \"Removed: $($_.Name)\" } } "
            "else { Write-Output 'No Copilot packages found.' }",
            "$prov = Get-AppxProvisionedPackage -Online 2>$null | "
            "Where-Object { $_.DisplayName -like '*Copilot*' }",
            "if ($prov) { $prov | ForEach-Object { Remove-AppxProvisionedPackage -Online "
            "-PackageName $_.PackageName -ErrorAction SilentlyContinue; "
            "Write-Output \"Deprovisioned: $($_.DisplayName)\" } }",
        ),
        powershell=True, timeout=60.0,
    )
    disable_recall = command_operation(
        runner, tool, "rwai-disable-recall", "Disable Recall",
        "Turn off Windows Recall snapshots via policy", Tier.RED,
        _ps(
            *_set_policy(WINDOWS_AI_POLICY, "DisableAIDataAnalysis"),
            "Write-Output 'Windows Recall disabled via policy.'",
        ),
        powershell=True,
    )

    return ToolDescriptor(
        id=tool,
        name="Remove Windows AI",
        description="Strip Copilot, Recall, and other Windows AI features via PowerShell. "
        "No external tool needed.",
        domain=ToolDomain.DEBLOAT,
        detect=version_probe(
            runner, "$PSVersionTable.PSVersion.Major", powershell=True, timeout=5.0,
            report_version=False,
        ),
        install_method="built-in",
        operations=(
            command_operation(
                runner, tool, "rwai-check-copilot", "Check Copilot",
                "Report the Copilot package and policy state", Tier.GREEN,
                _ps(
                    "$pkg = Get-AppxPackage -Name '*Copilot*' 2>$null",
                    "if ($pkg) { $pkg | Select-Object Name, Version, Status | Format-List | Out-String } "
                    "else { 'Copilot package not found.' }",
                    f"$reg = Get-ItemProperty -Path 'HKCU:\\{COPILOT_POLICY}' "
                    "-Name 'TurnOffWindowsCopilot' -ErrorAction SilentlyContinue",
                    "if ($reg) { \"Policy: TurnOffWindowsCopilot = $($reg.TurnOffWindowsCopilot)\" } "
                    "else { 'No Copilot policy set.' }",
                ),
                powershell=True, timeout=15.0,
            ),
            disable_copilot,
            remove_copilot,
            disable_recall,
            command_operation(
                runner, tool, "rwai-check-ai-features", "Check AI features",
                "List AI app packages and AI policy keys", Tier.GREEN,
                _ps(
                    "Write-Output '=== AI App Packages ==='",
                    "Get-AppxPackage -AllUsers 2>$null | "
                    "Where-Object { $_.Name -match 'Copilot|CoPilot|AI|Recall|cognitiveservices' } | "
                    "Select-Object Name, Version | Format-Table -AutoSize | Out-String",
                    "Write-Output '=== AI Policy Keys ==='",
                    f"Get-ItemProperty -Path 'HKCU:\\{COPILOT_POLICY}' -ErrorAction SilentlyContinue | Out-String",
                    f"Get-ItemProperty -Path 'HKCU:\\{WINDOWS_AI_POLICY}' -ErrorAction SilentlyContinue | Out-String",
                ),
                powershell=True, timeout=15.0,
            ),
            sequence_operation(
                tool, "rwai-remove-all-ai", "Remove all AI features",
                "Disable Copilot and Recall, then remove Copilot packages", Tier.RED,
                (
                    ("Disable Copilot", disable_copilot),
                    ("Disable Recall", disable_recall),
                    ("Remove Copilot Packages", remove_copilot),
                ),
            ),
        ),
    )


def sophia(runner: ProcessRunner) -> ToolDescriptor:
    tool = "sophia"

    def tweak(op_id: str, name: str, description: str, tier: Tier, functions: str, done: str, **kw):
        return command_operation(
            runner, tool, op_id, name, description, tier,
            f"Set-Location '{SOPHIA_DIR}'; Import-Module '.\\Sophia.psd1' -Force; {functions}",
            powershell=True, timeout=120.0, message=done, **kw,
        )

    return ToolDescriptor(
        id=tool,
        name="Sophia Script",
        description="150+ granular Windows tweaks and debloat toggles. Fine-grained control over "
        "telemetry, privacy, UI, and scheduled tasks.",
        domain=ToolDomain.DEBLOAT,
        detect=path_probe(
            SOPHIA_DIR + r"\Sophia.ps1",
            r"C:\tools\Sophia-Script-for-Windows\Sophia Script for Windows 11\Sophia.ps1",
            r"C:\tools\sophia\Sophia.ps1",
        ),
        install_method="git-clone",
        install_command=r"git clone https://github.com/farag2/Sophia-Script-for-Windows.git C:\tools\Sophia",
        operations=(
            tweak(
                "sophia-disable-telemetry", "Disable telemetry",
                "Set diagnostic data to the minimum level", Tier.RED,
                "DiagnosticDataLevel -Minimal", "Telemetry set to minimal",
            ),
            tweak(
                "sophia-disable-suggestions", "Disable suggestions",
                "Turn off suggested content and silent app installs", Tier.YELLOW,
                "WindowsSuggestedContent -Disable; AppsSilentInstalling -Disable; TailoredExperiences -Disable",
                "Suggestions disabled",
            ),
            tweak(
                "sophia-privacy-tweaks", "Privacy tweaks",
                "Disable advertising id, activity history and feedback prompts", Tier.RED,
                "AdvertisingID -Disable; ActivityHistory -Disable; FeedbackFrequency -Never",
                "Privacy tweaks applied",
            ),
            tweak(
                "sophia-disable-scheduled-tasks", "Disable telemetry tasks",
                "Disable diagnostic scheduled tasks", Tier.RED,
                "ScheduledTasks -Disable", "Scheduled tasks disabled",
            ),
            tweak(
                "sophia-ui-tweaks", "UI tweaks",
                "Restore classic context menu, hide widgets, clean taskbar", Tier.YELLOW,
                "Windows11ContextMenu -Enable; Widgets -Disable; TaskViewButton -Hide",
                "UI tweaks applied",
            ),
            tweak(
                "sophia-custom", "Run custom Sophia function",
                "Run a specific Sophia Script function by name", Tier.RED,
                "{function}", "Executed: {function}",
                params=(
                    param("function", "Sophia function call (e.g. 'OneDrive -Uninstall')", required=True),
                ),
            ),
        ),
    )


def winutil(runner: ProcessRunner) -> ToolDescriptor:
    tool = "winutil"
    hklm_policies = r"HKLM:\SOFTWARE\Policies\Microsoft\Windows"
    quiet = "-Type DWord -Force -ErrorAction SilentlyContinue"
    return ToolDescriptor(
        id=tool,
        name="Chris Titus WinUtil",
        description="All-in-one Windows utility: debloat, tweaks, app installs and repair tools.",
        domain=ToolDomain.DEBLOAT,
        detect=version_probe(
            runner, "$PSVersionTable.PSVersion.Major", powershell=True, timeout=5.0,
            report_version=False,
        ),
        install_method="remote-script",
        install_command="irm christitus.com/win | iex",
        operations=(
            command_operation(
                runner, tool, "winutil-launch", "Launch WinUtil",
                "Open WinUtil in a new elevated window", Tier.YELLOW,
                "Start-Process powershell -ArgumentList '-Command irm christitus.com/win | iex' -Verb RunAs",
                powershell=True, timeout=15.0,
                message="WinUtil launched in a new elevated window. Use the GUI to select tweaks and apps.",
            ),
            command_operation(
                runner, tool, "winutil-tweaks-essential", "Essential tweaks",
                "Apply WinUtil's essential tweaks directly", Tier.RED,
                _ps(
                    f"Set-ItemProperty -Path '{hklm_policies}\\DataCollection' -Name 'AllowTelemetry' -Value 0 {quiet}",
                    r"New-Item -Path 'HKCU:\Software\Policies\Microsoft\Windows\Explorer' -Force "
                    "-ErrorAction SilentlyContinue | Out-Null",
                    r"Set-ItemProperty -Path 'HKCU:\Software\Policies\Microsoft\Windows\Explorer' "
                    "-Name 'DisableSearchBoxSuggestions' -Value 1 -Type DWord -Force",
                    f"Set-ItemProperty -Path '{CONTENT_DELIVERY}' -Name 'SubscribedContent-338389Enabled' -Value 0 {quiet}",
                    f"Set-ItemProperty -Path '{CONTENT_DELIVERY}' -Name 'SubscribedContent-310093Enabled' -Value 0 {quiet}",
                    f"Set-ItemProperty -Path '{CONTENT_DELIVERY}' -Name 'SilentInstalledAppsEnabled' -Value 0 {quiet}",
                    r"Set-ItemProperty -Path 'HKLM:\SOFTWARE\Microsoft\WcmSvc\wifinetworkmanager\config' "
                    f"-Name 'AutoConnectAllowedOEM' -Value 0 {quiet}",
                    f"Set-ItemProperty -Path '{hklm_policies}\\System' -Name 'EnableActivityFeed' -Value 0 {quiet}",
                    f"Set-ItemProperty -Path '{hklm_policies}\\System' -Name 'PublishUserActivities' -Value 0 {quiet}",
                    "Write-Output 'Essential tweaks applied: telemetry off, Bing search off, tips off, "
                    "WiFi Sense off, activity history off.'",
                ),
                powershell=True, timeout=60.0,
            ),
        ),
    )


def _bcu_batch(values: Mapping[str, str]) -> str:
    names = " ".join(f'"{n.strip()}"' for n in values["names"].split(",") if n.strip())
    return f"BCUninstaller.exe /uninstall {names} /quiet"


def bcuninstaller(runner: ProcessRunner) -> ToolDescriptor:
    tool = "bcuninstaller"
    return ToolDescriptor(
        id=tool,
        name="Bulk Crap Uninstaller",
        description="Bulk program uninstaller that also finds leftovers and orphaned apps.",
        domain=ToolDomain.DEBLOAT,
        detect=first_of(
            listing_probe(runner, "Klocman.BulkCrapUninstaller"),
            path_probe(
                r"C:\Program Files\BCUninstaller\BCUninstaller.exe",
                r"%LOCALAPPDATA%\Programs\BCUninstaller\BCUninstaller.exe",
            ),
        ),
        install_method="winget",
        install_command="winget install Klocman.BulkCrapUninstaller",
        operations=(
            command_operation(
                runner, tool, "bcu-list", "List all programs",
                "List installed programs from the uninstall registry", Tier.GREEN,
                r"Get-ItemProperty HKLM:\Software\Microsoft\Windows\CurrentVersion\Uninstall\* | "
                "Where-Object { $_.DisplayName } | Select-Object DisplayName, DisplayVersion, Publisher | "
                "Sort-Object DisplayName | Format-Table -AutoSize | Out-String -Width 200",
                powershell=True,
            ),
            command_operation(
                runner, tool, "bcu-launch", "Launch BCUninstaller",
                "Open Bulk Crap Uninstaller", Tier.YELLOW,
                'start "" "BCUninstaller.exe"',
                timeout=5.0,
                message="Bulk Crap Uninstaller launched. Select programs to remove and use batch uninstall.",
            ),
            command_operation(
                runner, tool, "bcu-uninstall", "Uninstall program",
                "Uninstall one program by name", Tier.RED,
                'BCUninstaller.exe /uninstall "{name}"',
                params=(param("name", "Program name (or partial match)", required=True),),
                timeout=120.0,
            ),
            command_operation(
                runner, tool, "bcu-uninstall-quiet", "Batch uninstall",
                "Silently uninstall several programs", Tier.RED,
                _bcu_batch,
                params=(param("names", "Comma-separated program names to uninstall", required=True),),
                timeout=300.0,
            ),
        ),
    )


INTENT_MAP: dict[str, list[str]] = {
    "remove-bloatware": ["win11debloat", "winutil"],
    "disable-telemetry": ["sophia", "win11debloat", "winutil"],
    "disable-bing-search": ["win11debloat", "sophia"],
    "disable-suggestions": ["sophia", "win11debloat"],
    "clean-taskbar": ["win11debloat", "sophia"],
    "privacy-tweaks": ["sophia", "winutil"],
    "check-copilot": ["remove-windows-ai"],
    "disable-copilot": ["remove-windows-ai"],
    "remove-copilot": ["remove-windows-ai"],
    "disable-recall": ["remove-windows-ai"],
    "check-ai-features": ["remove-windows-ai"],
    "remove-all-ai": ["remove-windows-ai"],
    "essential-tweaks": ["winutil", "win11debloat"],
    "launch-debloat-gui": ["winutil", "bcuninstaller"],
    "list-programs": ["bcuninstaller"],
    "uninstall-program": ["bcuninstaller"],
    "batch-uninstall": ["bcuninstaller"],
    "custom-sophia-tweak": ["sophia"],
}

OPERATION_TABLE: dict[str, dict[str, str]] = {
    "remove-bloatware": {"win11debloat": "win11debloat-apps-only", "winutil": "winutil-launch"},
    "disable-telemetry": {
        "sophia": "sophia-disable-telemetry",
        "win11debloat": "win11debloat-disable-telemetry",
        "winutil": "winutil-tweaks-essential",
    },
    "disable-bing-search": {"win11debloat": "win11debloat-disable-bing", "sophia": "sophia-ui-tweaks"},
    "disable-suggestions": {"sophia": "sophia-disable-suggestions", "win11debloat": "win11debloat-default"},
    "clean-taskbar": {"win11debloat": "win11debloat-restore-taskbar", "sophia": "sophia-ui-tweaks"},
    "privacy-tweaks": {"sophia": "sophia-privacy-tweaks", "winutil": "winutil-tweaks-essential"},
    "check-copilot": {"remove-windows-ai": "rwai-check-copilot"},
    "disable-copilot": {"remove-windows-ai": "rwai-disable-copilot"},
    "remove-copilot": {"remove-windows-ai": "rwai-remove-copilot"},
    "disable-recall": {"remove-windows-ai": "rwai-disable-recall"},
    "check-ai-features": {"remove-windows-ai": "rwai-check-ai-features"},
    "remove-all-ai": {"remove-windows-ai": "rwai-remove-all-ai"},
    "essential-tweaks": {"winutil": "winutil-tweaks-essential", "win11debloat": "win11debloat-default"},
    "launch-debloat-gui": {"winutil": "winutil-launch", "bcuninstaller": "bcu-launch"},
    "list-programs": {"bcuninstaller": "bcu-list"},
    "uninstall-program": {"bcuninstaller": "bcu-uninstall"},
    "batch-uninstall": {"bcuninstaller": "bcu-uninstall-quiet"},
    "custom-sophia-tweak": {"sophia": "sophia-custom"},
}


def build(runner: ProcessRunner) -> DomainOrchestrator:
    return DomainOrchestrator(
        domain=ToolDomain.DEBLOAT,
        name="Windows Debloat",
        description="Remove bloatware, disable telemetry and strip Windows AI features.",
        tools=[
            win11debloat(runner),
            remove_windows_ai(runner),
            sophia(runner),
            winutil(runner),
            bcuninstaller(runner),
        ],
        intent_map=INTENT_MAP,
        operation_table=OPERATION_TABLE,
        remediation="Try installing Win11Debloat (git clone) or launching WinUtil "
        "(irm christitus.com/win | iex).",
    )
