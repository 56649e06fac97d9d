# plugins/lint.py
from __future__ import annotations

import json
import re
from typing import List

from ..errors import TransformError
from ..model import FileEntry
from ..transform import Transform
from ..ui.console import Console
from . import tools

LINT_KEY = "jshint"

# unix reporter: "<file>:<line>:<character>: <reason>"
_UNIX_LINE = re.compile(r"^.*?:(\d+):(\d+):\s*(.*)$")


def parse_unix_report(text: str) -> List[dict]:
    out: List[dict] = []
    for raw in text.splitlines():
        m = _UNIX_LINE.match(raw.strip())
        if m:
            out.append({"line": int(m.group(1)), "character": int(m.group(2)), "reason": m.group(3)})
    return out


def jshint() -> Transform:
    """
    Lint one script with JSHint. Findings are attached to the entry
    (metadata["jshint"]), never raised; only a broken tool raises.
    """
    async def _jshint(entry: FileEntry) -> FileEntry:
        args = ["jshint", "--reporter=unix", f"--filename={entry.source}", "-"]
        res = await tools.run_tool(args, entry.contents)
        # exit 2 = lint findings
        if res.returncode not in (0, 2):
            raise TransformError(entry.source, res.error_text or "jshint failed", plugin="jshint")
        diagnostics = parse_unix_report(res.stdout.decode("utf-8", errors="replace"))
        return entry.with_metadata(**{LINT_KEY: json.dumps(diagnostics)})

    _jshint.plugin_name = "jshint"  # type: ignore[attr-defined]
    return _jshint


def lint_reporter(console: Console) -> Transform:
    """Print every file's lint findings, nicely formatted."""
    def _report(entry: FileEntry) -> FileEntry:
        diagnostics = json.loads(entry.metadata.get(LINT_KEY, "[]"))
        if diagnostics:
            console.print_lint_errors(entry.source, diagnostics)
        return entry

    _report.plugin_name = "lint_reporter"  # type: ignore[attr-defined]
    return _report
