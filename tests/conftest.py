# tests/conftest.py
"""
Shared fixtures.

The real plugins shell out to sass / postcss / uglifyjs / jshint; tests swap
`assetflow.plugins.tools.run_tool` for a small in-process fake so the whole
engine can run without any node tooling installed.
"""

from __future__ import annotations

import base64
import json
import re
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from assetflow.config import BuildConfig
from assetflow.errors import ToolUnavailable
from assetflow import watcher
from assetflow.plugins import tools
from assetflow.task import BuildContext
from assetflow.ui.console import Console, set_console

SASS_ERROR = (
    'Error: expected ";".\n'
    "  ╷\n"
    "3 │   color: red !!\n"
    "  ╵\n"
    "  - 3:18  root stylesheet\n"
)


def embedded_map(mappings: str, source: bytes) -> bytes:
    sm = {"version": 3, "sources": ["stdin"], "sourcesContent": [source.decode("utf-8")], "names": [], "mappings": mappings}
    payload = base64.b64encode(json.dumps(sm).encode("utf-8")).decode("ascii")
    return f"\n\n/*# sourceMappingURL=data:application/json;charset=utf-8;base64,{payload} */\n".encode("utf-8")


def _sass(args: List[str], stdin: bytes) -> tools.ToolResult:
    if b"!!" in stdin:
        return tools.ToolResult(65, b"", SASS_ERROR.encode("utf-8"))
    if "--style=compressed" in args:
        return tools.ToolResult(0, re.sub(rb"\s+", b"", stdin), b"")
    if "--embed-source-map" in args:
        lines = ";".join("AACA" if i else "AAAA" for i in range(stdin.count(b"\n")))
        return tools.ToolResult(0, stdin + embedded_map(lines, stdin), b"")
    return tools.ToolResult(0, stdin, b"")


def _postcss(args: List[str], stdin: bytes) -> tools.ToolResult:
    return tools.ToolResult(0, stdin, b"")


def _uglifyjs(args: List[str], stdin: bytes) -> tools.ToolResult:
    if b"SYNTAX" in stdin:
        return tools.ToolResult(1, b"", b"Parse error at 0:1,7\nUnexpected token")
    return tools.ToolResult(0, re.sub(rb"\s*\n\s*", b"", stdin), b"")


def _jshint(args: List[str], stdin: bytes) -> tools.ToolResult:
    filename = next((a.split("=", 1)[1] for a in args if a.startswith("--filename=")), "stdin")
    if b"debugger" in stdin:
        report = f"{filename}:1:1: Forgotten 'debugger' statement?\n".encode("utf-8")
        return tools.ToolResult(2, report, b"")
    return tools.ToolResult(0, b"", b"")


FAKE_TOOLS: Dict[str, Callable[[List[str], bytes], tools.ToolResult]] = {
    "sass": _sass,
    "postcss": _postcss,
    "uglifyjs": _uglifyjs,
    "jshint": _jshint,
}


@pytest.fixture
def fake_tools(monkeypatch):
    """Replace the external tool runner; returns the list of invoked commands."""
    calls: List[List[str]] = []

    async def fake_run_tool(args, stdin=None, *, env=None, cwd=None):
        calls.append(list(args))
        handler = FAKE_TOOLS.get(args[0])
        if handler is None:
            raise ToolUnavailable(args[0], "not available in tests")
        return handler(list(args), stdin or b"")

    monkeypatch.setattr(tools, "run_tool", fake_run_tool)
    return calls


@pytest.fixture
def console():
    c = Console(beep=False)
    set_console(c)
    return c


@pytest.fixture
def make_ctx(tmp_path, console):
    def _make(**overrides) -> BuildContext:
        overrides.setdefault("cwd", tmp_path)
        return BuildContext(config=BuildConfig(**overrides), console=console)
    return _make


@pytest.fixture
def write_tree(tmp_path):
    """write_tree({"src/a.js": "a"}) -> creates files under tmp_path."""
    def _write(files: Dict[str, str | bytes]) -> Path:
        for rel, content in files.items():
            p = tmp_path / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode("utf-8")
            p.write_bytes(content)
        return tmp_path
    return _write


class FakeObserver:
    """Stands in for watchdog's Observer; tests inject events themselves."""

    def __init__(self):
        self.scheduled: List[str] = []
        self.alive = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append(path)

    def is_alive(self):
        return self.alive

    def start(self):
        self.alive = True

    def stop(self):
        self.alive = False

    def join(self, timeout=None):
        pass


@pytest.fixture
def observers(monkeypatch):
    """Every Watcher gets a FakeObserver; returns the ones created."""
    created: List[FakeObserver] = []

    def factory() -> FakeObserver:
        obs = FakeObserver()
        created.append(obs)
        return obs

    monkeypatch.setattr(watcher, "Observer", factory)
    return created
