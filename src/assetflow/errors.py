# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class ConfigError(Exception):
    """
    Fatal configuration problem detected before any task runs:
      - dependency cycle
      - duplicate / unknown task names
      - malformed glob pattern
    """
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"ConfigError: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class TransformError(Exception):
    """A single file failed inside a pipeline. Recorded, never fatal."""
    source_path: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    plugin: Optional[str] = None

    @property
    def position(self) -> str | None:
        if self.line is None:
            return None
        if self.column is None:
            return str(self.line)
        return f"{self.line}:{self.column}"

    def __str__(self) -> str:
        where = self.source_path
        if self.position:
            where = f"{where}:{self.position}"
        prefix = f"[{self.plugin}] " if self.plugin else ""
        return f"{prefix}{where} - {self.message}"


@dataclass
class TaskFailure(Exception):
    """Aggregate failure of one task invocation."""
    task: str
    errors: tuple = ()
    cause: str | None = None

    def __str__(self) -> str:
        if self.cause:
            return f"[{self.task}] task failed: {self.cause}"
        return f"[{self.task}] task failed with {len(self.errors)} error(s)"


@dataclass
class WatchError(Exception):
    """Filesystem watch registration failed. Fatal to watch mode only."""
    message: str
    pattern: str | None = None

    def __str__(self) -> str:
        if self.pattern:
            return f"WatchError: {self.message} (pattern={self.pattern})"
        return f"WatchError: {self.message}"


@dataclass
class ToolUnavailable(Exception):
    tool: str
    hint: str

    def __str__(self) -> str:
        return f"{self.tool} is not available. {self.hint}"


def as_transform_error(exc: BaseException, path: Path | str, plugin: str | None = None) -> TransformError:
    """Wrap any exception raised by a transform into a TransformError."""
    if isinstance(exc, TransformError):
        if exc.plugin is None and plugin is not None:
            exc.plugin = plugin
        return exc
    message = str(exc) or exc.__class__.__name__
    return TransformError(source_path=str(path), message=message, plugin=plugin)
