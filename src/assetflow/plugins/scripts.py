# plugins/scripts.py
from __future__ import annotations

import re
from typing import Sequence

from ..errors import TransformError
from ..model import FileEntry
from ..transform import GatherStep, Transform
from . import sourcemaps, tools

# "Parse error at 0:3,5" (file:line,col)
_UGLIFY_POS = re.compile(r"at\s+\S*?:?(\d+),(\d+)")


class Concat(GatherStep):
    """Bundle every entry of the stream into one file, in stream order."""
    plugin_name = "concat"

    def __init__(self, filename: str, newline: str = ";\r\n"):
        if not filename:
            raise ValueError("concat() needs an output filename")
        self.filename = filename
        self.newline = newline

    def gather(self, entries: Sequence[FileEntry]) -> FileEntry | None:
        if not entries:
            return None
        first = entries[0]
        joined = self.newline.encode("utf-8").join(e.contents for e in entries)
        out = FileEntry(
            path=first.base / self.filename,
            contents=joined,
            metadata={"base": str(first.base), "source": str(first.base / self.filename)},
        )
        sm = sourcemaps.merge_maps(entries, self.newline)
        if sm is not None:
            out = sourcemaps.with_map(out, sm)
        return out


def concat(filename: str, newline: str = ";\r\n") -> Concat:
    return Concat(filename, newline=newline)


def uglify(*, compress: bool = True, mangle: bool = True) -> Transform:
    """Minify JavaScript with UglifyJS (`uglifyjs` on PATH)."""
    args = ["uglifyjs"]
    if compress:
        args.append("--compress")
    if mangle:
        args.append("--mangle")

    async def _uglify(entry: FileEntry) -> FileEntry:
        res = await tools.run_tool(args, entry.contents)
        if res.returncode != 0:
            text = res.error_text
            m = _UGLIFY_POS.search(text)
            raise TransformError(
                source_path=entry.source,
                message=text.splitlines()[0] if text else "uglifyjs failed",
                line=int(m.group(1)) if m else None,
                column=int(m.group(2)) if m else None,
                plugin="uglify",
            )
        return entry.with_contents(res.stdout.rstrip(b"\n"))

    _uglify.plugin_name = "uglify"  # type: ignore[attr-defined]
    return _uglify
