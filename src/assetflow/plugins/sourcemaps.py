# plugins/sourcemaps.py
# Line-level inline source maps (v3).
#
# init() records where every line of an entry came from in
# metadata["sourcemap"]; concat() merges those records; write() renders
# them into an inline base64 map comment at the end of the file.

from __future__ import annotations

import base64
import json
from typing import List, Optional, Sequence

from ..model import FileEntry
from ..transform import Transform

SOURCEMAP_KEY = "sourcemap"
_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def _vlq(value: int) -> str:
    v = ((-value) << 1) | 1 if value < 0 else value << 1
    out = ""
    while True:
        digit = v & 31
        v >>= 5
        if v:
            digit |= 32
        out += _B64[digit]
        if not v:
            return out


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def line_count(text: str) -> int:
    return text.count("\n") + 1


def read_map(entry: FileEntry) -> Optional[dict]:
    raw = entry.metadata.get(SOURCEMAP_KEY)
    return json.loads(raw) if raw else None


def with_map(entry: FileEntry, sm: dict) -> FileEntry:
    return entry.with_metadata(**{SOURCEMAP_KEY: json.dumps(sm, separators=(",", ":"))})


def init() -> Transform:
    def _init(entry: FileEntry) -> FileEntry:
        text = _text(entry.contents)
        sm = {
            "sources": [entry.relative.as_posix()],
            "sourcesContent": [text],
            "lines": [[0, i] for i in range(line_count(text))],
        }
        return with_map(entry, sm)

    _init.plugin_name = "sourcemaps.init"  # type: ignore[attr-defined]
    return _init


def merge_maps(pieces: Sequence[FileEntry], separator: str) -> Optional[dict]:
    """Source map of `separator.join(pieces)`; None if no piece carries one."""
    maps = [read_map(p) for p in pieces]
    if not any(maps):
        return None

    sources: List[str] = []
    contents: List[str] = []
    lines: List[Optional[list]] = []
    sep_lines = separator.count("\n")

    for i, (entry, sm) in enumerate(zip(pieces, maps)):
        n = line_count(_text(entry.contents))
        if sm is None:
            lines.extend([None] * n)
        else:
            offset = len(sources)
            sources.extend(sm["sources"])
            contents.extend(sm["sourcesContent"])
            own = sm["lines"]
            for j in range(n):
                m = own[min(j, len(own) - 1)] if own else None
                lines.append([m[0] + offset, m[1]] if m else None)
        if i < len(pieces) - 1 and sep_lines:
            # the piece's last line continues with the separator; the
            # separator's own newlines open the next piece's first line
            lines.extend([None] * (sep_lines - 1))
    return {"sources": sources, "sourcesContent": contents, "lines": lines}


def encode_mappings(lines: Sequence[Optional[list]]) -> str:
    segments: List[str] = []
    prev_src = prev_line = 0
    for m in lines:
        if m is None:
            segments.append("")
            continue
        src, src_line = m
        segments.append(_vlq(0) + _vlq(src - prev_src) + _vlq(src_line - prev_line) + _vlq(0))
        prev_src, prev_line = src, src_line
    return ";".join(segments)


def render(entry: FileEntry, sm: dict) -> dict:
    text = _text(entry.contents)
    own = sm["lines"]
    n = line_count(text)
    lines = [own[min(i, len(own) - 1)] if own else None for i in range(n)]
    return {
        "version": 3,
        "file": entry.path.name,
        "sources": sm["sources"],
        "sourcesContent": sm["sourcesContent"],
        "names": [],
        "mappings": encode_mappings(lines),
    }


def write() -> Transform:
    """Append an inline source map comment (entries without a map pass through)."""
    def _write(entry: FileEntry) -> FileEntry:
        sm = read_map(entry)
        if sm is None:
            return entry
        entry = entry.with_contents(entry.contents.rstrip(b"\n"))
        payload = json.dumps(render(entry, sm), separators=(",", ":")).encode("utf-8")
        url = "data:application/json;charset=utf8;base64," + base64.b64encode(payload).decode("ascii")
        if entry.path.suffix == ".css":
            comment = f"\n/*# sourceMappingURL={url} */\n"
        else:
            comment = f"\n//# sourceMappingURL={url}\n"
        return entry.with_contents(entry.contents + comment.encode("utf-8"))

    _write.plugin_name = "sourcemaps.write"  # type: ignore[attr-defined]
    return _write
