# plugins/styles.py
from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from ..errors import TransformError
from ..model import FileEntry
from ..transform import Transform
from . import tools

# dart-sass:  "  - 3:5  root stylesheet"  /  "stdin 3:5  root stylesheet"
_SASS_POS = re.compile(r"(\d+):(\d+)\s+root stylesheet")
# postcss:    "CssSyntaxError: <css input>:3:5: Unknown word"
_POSTCSS_POS = re.compile(r":(\d+):(\d+):\s*(.+)")


def parse_sass_error(text: str) -> Tuple[str, Optional[int], Optional[int]]:
    first = text.strip().splitlines()[0] if text.strip() else "sass failed"
    message = first[len("Error: "):] if first.startswith("Error: ") else first
    m = _SASS_POS.search(text)
    if m:
        return message, int(m.group(1)), int(m.group(2))
    return message, None, None


def sass(output_style: str = "expanded", *, source_map: bool = False, load_paths: Iterable[str] = ()) -> Transform:
    """
    Compile SCSS with Dart Sass (`sass` on PATH).

    With `source_map`, Sass embeds its own map (sources included) as an
    inline comment, so CSS lines point at the right SCSS lines.

    Partials (`_name.scss`) are dropped from the stream; they are only
    reachable through @use/@import of other files.
    """
    if output_style not in ("expanded", "compressed"):
        raise ValueError(f"Unknown sass output style: {output_style!r}")
    extra = [f"--load-path={p}" for p in load_paths]
    map_args = ["--embed-source-map", "--embed-sources"] if source_map else ["--no-source-map"]

    async def _sass(entry: FileEntry) -> Optional[FileEntry]:
        if entry.path.name.startswith("_"):
            return None
        args = [
            "sass",
            "--stdin",
            f"--style={output_style}",
            *map_args,
            f"--load-path={entry.path.parent}",
            *extra,
        ]
        res = await tools.run_tool(args, entry.contents)
        if res.returncode != 0:
            message, line, column = parse_sass_error(res.error_text)
            raise TransformError(entry.source, message, line=line, column=column, plugin="sass")
        return entry.with_contents(res.stdout).with_suffix(".css")

    _sass.plugin_name = "sass"  # type: ignore[attr-defined]
    return _sass


def autoprefixer(browsers: str = "last 2 versions", *, source_map: bool = False) -> Transform:
    """
    Add vendor prefixes with postcss-cli + autoprefixer.

    With `source_map`, postcss reads the inline map left by the previous
    step and writes an updated inline map.
    """
    args = ["postcss", "--use", "autoprefixer"]
    if not source_map:
        args.append("--no-map")
    env = {"BROWSERSLIST": browsers}

    async def _autoprefixer(entry: FileEntry) -> FileEntry:
        res = await tools.run_tool(args, entry.contents, env=env)
        if res.returncode != 0:
            text = res.error_text
            m = _POSTCSS_POS.search(text)
            raise TransformError(
                source_path=entry.source,
                message=m.group(3) if m else (text.splitlines()[0] if text else "postcss failed"),
                line=int(m.group(1)) if m else None,
                column=int(m.group(2)) if m else None,
                plugin="autoprefixer",
            )
        return entry.with_contents(res.stdout)

    _autoprefixer.plugin_name = "autoprefixer"  # type: ignore[attr-defined]
    return _autoprefixer
