# plugins/files.py
from __future__ import annotations

import asyncio
from pathlib import Path

from ..model import FileEntry
from ..transform import Transform
from ..ui.console import Console


def _write_if_changed(target: Path, contents: bytes) -> bool:
    if target.is_file() and target.read_bytes() == contents:
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(contents)
    return True


def dest(directory: str | Path, *, cwd: str | Path = ".") -> Transform:
    """
    Terminal writer: store each entry at `directory / entry.relative`.

    Unchanged files are not rewritten, so a watcher on the same tree does
    not see spurious events.
    """
    root = Path(cwd) / directory

    async def _dest(entry: FileEntry) -> FileEntry:
        out_root = root.resolve()
        target = out_root / entry.relative
        written = await asyncio.to_thread(_write_if_changed, target, entry.contents)
        return entry.with_path(target).with_metadata(base=str(out_root), written="1" if written else "0")

    _dest.plugin_name = "dest"  # type: ignore[attr-defined]
    return _dest


def filesize(console: Console, title: str = "Size") -> Transform:
    """Pass-through reporter of each entry's size."""
    def _filesize(entry: FileEntry) -> FileEntry:
        console.print_filesize(title, str(entry.relative), len(entry.contents))
        return entry

    _filesize.plugin_name = "filesize"  # type: ignore[attr-defined]
    return _filesize


def rename_ext(suffix: str) -> Transform:
    """Change each entry's extension, e.g. rename_ext(".min.js")."""
    if not suffix.startswith("."):
        raise ValueError(f"suffix must start with '.': {suffix!r}")

    def _rename_ext(entry: FileEntry) -> FileEntry:
        return entry.with_path(entry.path.with_name(entry.path.stem + suffix))

    _rename_ext.plugin_name = "rename_ext"  # type: ignore[attr-defined]
    return _rename_ext
