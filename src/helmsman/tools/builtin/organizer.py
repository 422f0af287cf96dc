"""
Extension-based file organizer.

Moves the regular files directly inside a directory into category
sub-folders (``Documents``, ``Images``, ...). Subdirectories and files with
an unknown extension are left where they are. A dry run reports the same
plan without touching the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

CATEGORY_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "Documents": (
        ".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt",
        ".xls", ".xlsx", ".csv", ".ppt", ".pptx",
    ),
    "Images": (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".webp", ".ico"),
    "Videos": (".mp4", ".mkv", ".avi", ".mov", ".wmv", ".webm"),
    "Audio": (".mp3", ".wav", ".flac", ".ogg", ".m4a"),
    "Archives": (".zip", ".rar", ".7z", ".tar", ".gz"),
    "Code": (
        ".ts", ".js", ".py", ".java", ".cpp", ".c", ".h", ".cs", ".go", ".rs",
        ".html", ".css", ".json", ".xml", ".yaml", ".yml",
    ),
    "Installers": (".exe", ".msi", ".dmg", ".deb", ".rpm"),
}

CATEGORY_MAP: dict[str, str] = {
    ext: category for category, exts in CATEGORY_EXTENSIONS.items() for ext in exts
}


@dataclass
class OrganizeResult:
    moved: int = 0
    skipped: int = 0
    details: list[tuple[Path, Path]] = field(default_factory=list)


def category_for(path: Path) -> str | None:
    return CATEGORY_MAP.get(path.suffix.lower())


def organize_directory(source: str | Path, dry_run: bool = True) -> OrganizeResult:
    """Sort files in ``source`` into category folders.

    Raises:
        FileNotFoundError / NotADirectoryError: ``source`` is not a directory.
    """
    root = Path(source)
    if not root.is_dir():
        if root.exists():
            raise NotADirectoryError(f"Not a directory: {root}")
        raise FileNotFoundError(f"Directory not found: {root}")

    result = OrganizeResult()
    for entry in sorted(root.iterdir()):
        if not entry.is_file():
            continue

        category = category_for(entry)
        if category is None:
            result.skipped += 1
            continue

        dest = root / category / entry.name
        result.details.append((entry, dest))
        if not dry_run:
            dest.parent.mkdir(parents=True, exist_ok=True)
            entry.rename(dest)
        result.moved += 1

    return result


def format_report(path: str, result: OrganizeResult, dry_run: bool) -> str:
    if dry_run:
        header = [
            f"Preview for: {path}",
            f"Would move: {result.moved} files",
            f"Would skip: {result.skipped} files (unknown extension)",
        ]
    else:
        header = [
            f"Organized: {path}",
            f"Moved: {result.moved} files",
            f"Skipped: {result.skipped} files",
        ]
    lines = header + [""] + [f"  {src} -> {dest}" for src, dest in result.details]
    return "\n".join(lines)
