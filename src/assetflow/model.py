# model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from .errors import TransformError


@dataclass(frozen=True)
class FileEntry:
    """
    One file flowing through a pipeline.

    Immutable: transforms build new entries with the `with_*` helpers.
    `metadata["base"]` is the glob base the file was matched under; output
    paths are computed relative to it.
    """
    path: Path
    contents: bytes
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def base(self) -> Path:
        return Path(self.metadata.get("base", str(self.path.parent)))

    @property
    def relative(self) -> Path:
        try:
            return self.path.relative_to(self.base)
        except ValueError:
            return Path(self.path.name)

    @property
    def source(self) -> str:
        """Path of the file this entry was originally read from."""
        return self.metadata.get("source", str(self.path))

    def with_contents(self, contents: bytes) -> FileEntry:
        return replace(self, contents=contents)

    def with_path(self, path: Path | str) -> FileEntry:
        return replace(self, path=Path(path))

    def with_suffix(self, suffix: str) -> FileEntry:
        return replace(self, path=self.path.with_suffix(suffix))

    def with_metadata(self, **values: str) -> FileEntry:
        merged = dict(self.metadata)
        merged.update(values)
        return replace(self, metadata=merged)


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one pipeline (or task) invocation."""
    succeeded: int = 0
    failed: int = 0
    errors: tuple[TransformError, ...] = ()
    outputs: tuple[FileEntry, ...] = ()

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.errors

    @classmethod
    def merge(cls, *results: PipelineResult) -> PipelineResult:
        errors: list[TransformError] = []
        outputs: list[FileEntry] = []
        succeeded = failed = 0
        for r in results:
            succeeded += r.succeeded
            failed += r.failed
            errors.extend(r.errors)
            outputs.extend(r.outputs)
        return cls(succeeded=succeeded, failed=failed, errors=tuple(errors), outputs=tuple(outputs))


# body(ctx) -> Pipeline | Sequence[Pipeline] | Awaitable | None
TaskBody = Callable[[Any], Any]


@dataclass(frozen=True)
class TaskSpec:
    """A named unit of work: dependencies + body (+ optional best-effort lint)."""
    name: str
    dependencies: frozenset[str] = frozenset()
    body: Optional[TaskBody] = None
    lint: Optional[TaskBody] = None
    description: str = ""

    @property
    def is_aggregate(self) -> bool:
        return self.body is None and self.lint is None


@dataclass(frozen=True)
class WatchBinding:
    """Glob patterns whose changes rerun `bound_tasks`. Lives for the process lifetime."""
    patterns: tuple[str, ...]
    bound_tasks: tuple[str, ...]
