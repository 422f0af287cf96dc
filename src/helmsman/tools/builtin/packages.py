"""
Package management domain: winget, scoop, chocolatey.

All three managers serve the same intents in that preference order. The
caller passes a neutral ``package`` parameter; it is mapped onto each
manager's own parameter names before dispatch.
"""

from __future__ import annotations

from collections.abc import Mapping

from helmsman.core.models import Tier, ToolDomain
from helmsman.tools.builtin.base import command_operation, param, version_probe
from helmsman.tools.models import ToolDescriptor
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner

WINGET_AGREEMENTS = "--accept-package-agreements --accept-source-agreements"


def _winget_upgrade(values: Mapping[str, str]) -> str:
    if values.get("id") == "all":
        return f"winget upgrade --all {WINGET_AGREEMENTS}"
    return f'winget upgrade "{values["id"]}" {WINGET_AGREEMENTS}'


def winget(runner: ProcessRunner) -> ToolDescriptor:
    tool = "winget"
    query = (param("query", "Search term", required=True),)
    package_id = (param("id", "Package identifier", required=True),)
    return ToolDescriptor(
        id=tool,
        name="Windows Package Manager",
        description="Microsoft's official package manager. Search, install, upgrade and remove software.",
        domain=ToolDomain.PACKAGES,
        detect=version_probe(runner, "winget --version"),
        install_method="builtin",
        operations=(
            command_operation(
                runner, tool, "winget-search", "Search packages",
                "Search the winget repository", Tier.GREEN,
                'winget search "{query}" --accept-source-agreements',
                params=query,
            ),
            command_operation(
                runner, tool, "winget-list", "List installed",
                "List packages installed on this machine", Tier.GREEN,
                "winget list --accept-source-agreements",
                timeout=60.0,
            ),
            command_operation(
                runner, tool, "winget-install", "Install package",
                "Install a package by id", Tier.YELLOW,
                f'winget install "{{id}}" {WINGET_AGREEMENTS}',
                params=package_id, timeout=300.0,
            ),
            command_operation(
                runner, tool, "winget-upgrade", "Upgrade package",
                "Upgrade a package by id, or every package with id=all", Tier.YELLOW,
                _winget_upgrade,
                params=package_id, timeout=600.0,
            ),
            command_operation(
                runner, tool, "winget-uninstall", "Uninstall package",
                "Remove a package by id", Tier.RED,
                'winget uninstall "{id}"',
                params=package_id, timeout=120.0,
            ),
        ),
    )


def scoop(runner: ProcessRunner) -> ToolDescriptor:
    tool = "scoop"
    query = (param("query", "Search term", required=True),)
    name = (param("name", "Package name", required=True),)
    return ToolDescriptor(
        id=tool,
        name="Scoop",
        description="Command-line installer for portable apps, installed per user without UAC prompts.",
        domain=ToolDomain.PACKAGES,
        detect=version_probe(runner, "scoop --version"),
        install_method="powershell",
        install_command="irm get.scoop.sh | iex",
        operations=(
            command_operation(
                runner, tool, "scoop-search", "Search packages",
                "Search the configured buckets", Tier.GREEN,
                "scoop search {query}",
                params=query,
            ),
            command_operation(
                runner, tool, "scoop-list", "List installed",
                "List apps installed through scoop", Tier.GREEN,
                "scoop list",
                timeout=15.0,
            ),
            command_operation(
                runner, tool, "scoop-install", "Install package",
                "Install an app", Tier.YELLOW,
                "scoop install {name}",
                params=name, timeout=300.0,
            ),
            command_operation(
                runner, tool, "scoop-update", "Update package",
                "Update an app, or every app with name=*", Tier.YELLOW,
                "scoop update {name}",
                params=name, timeout=600.0,
            ),
            command_operation(
                runner, tool, "scoop-uninstall", "Uninstall package",
                "Remove an app", Tier.RED,
                "scoop uninstall {name}",
                params=name, timeout=120.0,
            ),
            command_operation(
                runner, tool, "scoop-bucket-add", "Add bucket",
                "Add a bucket (extras, games, nerd-fonts, ...)", Tier.YELLOW,
                "scoop bucket add {bucket}",
                params=(param("bucket", "Bucket name", required=True),), timeout=60.0,
            ),
        ),
    )


def chocolatey(runner: ProcessRunner) -> ToolDescriptor:
    tool = "chocolatey"
    query = (param("query", "Search term", required=True),)
    name = (param("name", "Package name", required=True),)
    return ToolDescriptor(
        id=tool,
        name="Chocolatey",
        description="Community package manager with a large catalog of Windows software.",
        domain=ToolDomain.PACKAGES,
        detect=version_probe(runner, "choco --version"),
        install_method="powershell",
        install_command="Set-ExecutionPolicy Bypass -Scope Process -Force; "
        "iex ((New-Object System.Net.WebClient).DownloadString('https://community.chocolatey.org/install.ps1'))",
        operations=(
            command_operation(
                runner, tool, "choco-search", "Search packages",
                "Search the community repository", Tier.GREEN,
                "choco search {query}",
                params=query,
            ),
            command_operation(
                runner, tool, "choco-list", "List installed",
                "List packages installed through chocolatey", Tier.GREEN,
                "choco list",
                timeout=15.0,
            ),
            command_operation(
                runner, tool, "choco-install", "Install package",
                "Install a package", Tier.YELLOW,
                "choco install {name} -y",
                params=name, timeout=300.0,
            ),
            command_operation(
                runner, tool, "choco-upgrade", "Upgrade package",
                "Upgrade a package, or every package with name=all", Tier.YELLOW,
                "choco upgrade {name} -y",
                params=name, timeout=600.0,
            ),
            command_operation(
                runner, tool, "choco-uninstall", "Uninstall package",
                "Remove a package", Tier.RED,
                "choco uninstall {name} -y",
                params=name, timeout=120.0,
            ),
        ),
    )


MANAGERS = ["winget", "scoop", "chocolatey"]

INTENT_MAP: dict[str, list[str]] = {
    "search": MANAGERS,
    "list-installed": MANAGERS,
    "install": MANAGERS,
    "upgrade": MANAGERS,
    "upgrade-all": MANAGERS,
    "uninstall": MANAGERS,
    "add-bucket": ["scoop"],
}

OPERATION_TABLE: dict[str, dict[str, str]] = {
    "search": {"winget": "winget-search", "scoop": "scoop-search", "chocolatey": "choco-search"},
    "list-installed": {"winget": "winget-list", "scoop": "scoop-list", "chocolatey": "choco-list"},
    "install": {"winget": "winget-install", "scoop": "scoop-install", "chocolatey": "choco-install"},
    "upgrade": {"winget": "winget-upgrade", "scoop": "scoop-update", "chocolatey": "choco-upgrade"},
    "upgrade-all": {"winget": "winget-upgrade", "scoop": "scoop-update", "chocolatey": "choco-upgrade"},
    "uninstall": {
        "winget": "winget-uninstall",
        "scoop": "scoop-uninstall",
        "chocolatey": "choco-uninstall",
    },
    "add-bucket": {"scoop": "scoop-bucket-add"},
}

UPGRADE_ALL = {"winget": ("id", "all"), "scoop": ("name", "*"), "chocolatey": ("name", "all")}


def normalize_params(intent: str, params: dict[str, str], tool_id: str) -> dict[str, str]:
    """Map the neutral ``package`` parameter onto the chosen manager's names."""
    normalized = dict(params)

    package = params.get("package")
    if package:
        key = "id" if tool_id == "winget" else "name"
        normalized[key] = package
        normalized["query"] = package

    if intent == "upgrade-all" and tool_id in UPGRADE_ALL:
        key, value = UPGRADE_ALL[tool_id]
        normalized[key] = value

    return normalized


def build(runner: ProcessRunner) -> DomainOrchestrator:
    return DomainOrchestrator(
        domain=ToolDomain.PACKAGES,
        name="Package Management",
        description="Install, update, search and remove software packages.",
        tools=[winget(runner), scoop(runner), chocolatey(runner)],
        intent_map=INTENT_MAP,
        operation_table=OPERATION_TABLE,
        normalize=normalize_params,
        remediation="Install winget, scoop, or chocolatey.",
    )
