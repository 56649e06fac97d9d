# plugins/tools.py
# Single entry point for running the external compressors / compilers / linters.

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import ToolUnavailable

TOOL_HINTS = {
    "sass": "Install Dart Sass (e.g., npm install -g sass).",
    "postcss": "Install postcss-cli and autoprefixer (npm install -g postcss-cli autoprefixer).",
    "uglifyjs": "Install UglifyJS (npm install -g uglify-js).",
    "jshint": "Install JSHint (npm install -g jshint).",
    "gifsicle": "Install gifsicle (brew/apt install gifsicle).",
    "optipng": "Install OptiPNG (brew/apt install optipng).",
    "pngquant": "Install pngquant (brew/apt install pngquant).",
    "cjpeg": "Install mozjpeg and put its cjpeg on PATH.",
    "svgo": "Install SVGO (npm install -g svgo).",
}


@dataclass(frozen=True)
class ToolResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def error_text(self) -> str:
        text = self.stderr.decode("utf-8", errors="replace").strip()
        if not text:
            text = self.stdout.decode("utf-8", errors="replace").strip()
        return text


async def run_tool(
    args: List[str],
    stdin: Optional[bytes] = None,
    *,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
) -> ToolResult:
    """
    Run an external tool without blocking the event loop.

    Raises ToolUnavailable if the executable cannot be found.
    """
    tool = args[0]
    full_env = os.environ.copy()
    full_env.update(env or {})
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=full_env,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise ToolUnavailable(tool, TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")) from e

    stdout, stderr = await proc.communicate(stdin)
    return ToolResult(returncode=proc.returncode or 0, stdout=stdout, stderr=stderr)
