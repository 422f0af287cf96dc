"""
File operations domain: the built-in organizer, aifiles, watchexec and
TagSpaces.

``organize-tool`` runs in-process and is always installed, so the organize
intents never come back with "no tool available".
"""

from __future__ import annotations

from collections.abc import Mapping

from helmsman.core.models import Tier, ToolDomain
from helmsman.tools.builtin.base import (
    always_installed,
    command_operation,
    first_of,
    listing_probe,
    native_operation,
    param,
    path_probe,
    version_probe,
)
from helmsman.tools.builtin.organizer import format_report, organize_directory
from helmsman.tools.models import ToolDescriptor
from helmsman.tools.orchestrator import DomainOrchestrator
from helmsman.tools.process import ProcessRunner

PATH = param("path", "Directory to organize", required=True)


def _organize(dry_run: bool):
    def run(values: dict[str, str]) -> str:
        path = values["path"]
        return format_report(path, organize_directory(path, dry_run=dry_run), dry_run)

    return run


def organize_tool() -> ToolDescriptor:
    tool = "organize-tool"
    return ToolDescriptor(
        id=tool,
        name="Built-in File Organizer",
        description="Built-in extension-based file organizer. Sorts files into category folders "
        "(Documents, Images, Videos, etc.).",
        domain=ToolDomain.FILE_OPS,
        detect=always_installed(),
        install_method="built-in",
        operations=(
            native_operation(
                tool, "organize-preview", "Preview organization",
                "Show which files would move without touching anything", Tier.GREEN,
                _organize(dry_run=True),
                params=(PATH,),
            ),
            native_operation(
                tool, "organize-execute", "Organize files",
                "Move files into category folders by extension", Tier.YELLOW,
                _organize(dry_run=False),
                params=(PATH,),
            ),
        ),
    )


def _aifiles_organize(values: Mapping[str, str]) -> str:
    dest = f' --dest "{values["destination"]}"' if values.get("destination") else ""
    return f'aifiles organize "{values["path"]}"{dest}'


def aifiles(runner: ProcessRunner) -> ToolDescriptor:
    tool = "aifiles"
    return ToolDescriptor(
        id=tool,
        name="AI Files",
        description="Content-aware file organizer that classifies files with a language model.",
        domain=ToolDomain.FILE_OPS,
        detect=first_of(
            version_probe(runner, "aifiles --version"),
            version_probe(runner, "pip show aifiles", require_output=True, report_version=False),
        ),
        install_method="pip",
        install_command="pip install aifiles",
        operations=(
            command_operation(
                runner, tool, "aifiles-organize", "AI organize files",
                "Organize files into folders chosen from their content", Tier.YELLOW,
                _aifiles_organize,
                params=(
                    PATH,
                    param("destination", "Destination directory (defaults to same as source)"),
                ),
                timeout=300.0,
            ),
            command_operation(
                runner, tool, "aifiles-preview", "AI organize preview",
                "Show the content-based plan without moving files", Tier.GREEN,
                'aifiles organize "{path}" --dry-run',
                params=(param("path", "Directory to preview", required=True),),
                timeout=120.0,
            ),
        ),
    )


def _watch(values: Mapping[str, str]) -> str:
    filter_arg = f' -e "{values["filter"]}"' if values.get("filter") else ""
    return f'start "watchexec" watchexec -w "{values["path"]}"{filter_arg} -- {values["command"]}'


def watchexec(runner: ProcessRunner) -> ToolDescriptor:
    tool = "watchexec"
    return ToolDescriptor(
        id=tool,
        name="watchexec",
        description="Runs a command whenever files in a directory change.",
        domain=ToolDomain.FILE_OPS,
        detect=version_probe(runner, "watchexec --version"),
        install_method="winget",
        install_command="winget install watchexec.watchexec",
        operations=(
            command_operation(
                runner, tool, "watchexec-watch", "Watch directory",
                "Start a background watcher that runs a command on change", Tier.YELLOW,
                _watch,
                params=(
                    param("path", "Directory to watch", required=True),
                    param("command", "Command to run on change", required=True),
                    param("filter", "File extension filter (e.g. 'ts')"),
                ),
                timeout=5.0,
                message='Watcher started on {path}. Command "{command}" will run on file changes.',
            ),
            command_operation(
                runner, tool, "watchexec-watch-organize", "Auto-organize on change",
                "Sort new files into category folders as they arrive", Tier.YELLOW,
                'start "watchexec-organize" watchexec -w "{path}" --debounce 5s -- helmsman organize "{path}"',
                params=(param("path", "Directory to watch and organize", required=True),),
                timeout=5.0,
                message="Auto-organize watcher started on {path}. "
                "New files will be sorted into category folders.",
            ),
        ),
    )


def _tagspaces_launch(values: Mapping[str, str]) -> str:
    path_arg = f' "{values["path"]}"' if values.get("path") else ""
    return f'start "" "TagSpaces.exe"{path_arg}'


def tagspaces(runner: ProcessRunner) -> ToolDescriptor:
    tool = "tagspaces"
    return ToolDescriptor(
        id=tool,
        name="TagSpaces",
        description="Offline file tagging and browsing app using sidecar metadata files.",
        domain=ToolDomain.FILE_OPS,
        detect=first_of(
            path_probe(
                r"%LOCALAPPDATA%\Programs\TagSpaces\TagSpaces.exe",
                r"C:\Program Files\TagSpaces\TagSpaces.exe",
            ),
            listing_probe(runner, "TagSpaces.TagSpaces"),
        ),
        install_method="winget",
        install_command="winget install TagSpaces.TagSpaces",
        operations=(
            command_operation(
                runner, tool, "tagspaces-launch", "Launch TagSpaces",
                "Open TagSpaces, optionally at a directory", Tier.GREEN,
                _tagspaces_launch,
                params=(param("path", "Directory to open in TagSpaces"),),
                timeout=5.0, message="TagSpaces launched.",
            ),
            command_operation(
                runner, tool, "tagspaces-tag-files", "Tag files",
                "Write a TagSpaces sidecar tag for every file in a directory", Tier.YELLOW,
                "Get-ChildItem -Path '{path}' -File | ForEach-Object { "
                "$sidecar = Join-Path $_.DirectoryName ('.ts' + $_.Name + '.json'); "
                "if (-not (Test-Path $sidecar)) { @{tags=@('{tag}')} | ConvertTo-Json | "
                "Set-Content -Path $sidecar -Encoding UTF8; Write-Output ('Tagged: ' + $_.Name) } "
                "else { Write-Output ('Already tagged: ' + $_.Name) } }",
                params=(
                    param("path", "Directory containing files to tag", required=True),
                    param("tag", "Tag to apply", required=True),
                ),
                powershell=True,
            ),
        ),
    )


INTENT_MAP: dict[str, list[str]] = {
    "organize": ["organize-tool", "aifiles"],
    "organize-preview": ["organize-tool", "aifiles"],
    "ai-organize": ["aifiles", "organize-tool"],
    "ai-organize-preview": ["aifiles", "organize-tool"],
    "watch": ["watchexec"],
    "auto-organize": ["watchexec"],
    "tag-files": ["tagspaces"],
    "launch-tagger": ["tagspaces"],
}

OPERATION_TABLE: dict[str, dict[str, str]] = {
    "organize": {"organize-tool": "organize-execute", "aifiles": "aifiles-organize"},
    "organize-preview": {"organize-tool": "organize-preview", "aifiles": "aifiles-preview"},
    "ai-organize": {"aifiles": "aifiles-organize", "organize-tool": "organize-execute"},
    "ai-organize-preview": {"aifiles": "aifiles-preview", "organize-tool": "organize-preview"},
    "watch": {"watchexec": "watchexec-watch"},
    "auto-organize": {"watchexec": "watchexec-watch-organize"},
    "tag-files": {"tagspaces": "tagspaces-tag-files"},
    "launch-tagger": {"tagspaces": "tagspaces-launch"},
}


def build(runner: ProcessRunner) -> DomainOrchestrator:
    return DomainOrchestrator(
        domain=ToolDomain.FILE_OPS,
        name="File Operations",
        description="Organize, watch and tag files.",
        tools=[organize_tool(), aifiles(runner), watchexec(runner), tagspaces(runner)],
        intent_map=INTENT_MAP,
        operation_table=OPERATION_TABLE,
        remediation="The built-in organizer should always be available.",
    )
