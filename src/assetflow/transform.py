# transform.py
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Iterable, List, Sequence, Union

from .errors import TransformError, as_transform_error
from .model import FileEntry

TransformOutput = Union[FileEntry, Iterable[FileEntry], None]

# entry -> FileEntry | Iterable[FileEntry] | None   (or an awaitable of those)
Transform = Callable[[FileEntry], Union[TransformOutput, Awaitable[TransformOutput]]]


def _normalize(out: Any) -> List[FileEntry]:
    if out is None:
        return []
    if isinstance(out, FileEntry):
        return [out]
    entries = list(out)
    for e in entries:
        if not isinstance(e, FileEntry):
            raise TypeError(f"Transform must yield FileEntry values, got {type(e).__name__}")
    return entries


def transform_name(transform: Any) -> str:
    return getattr(transform, "plugin_name", None) or getattr(transform, "__name__", None) or type(transform).__name__


async def apply_transform(transform: Transform, entry: FileEntry) -> List[FileEntry]:
    """
    Run one transform on one entry and normalize its output.

    Raises TransformError (wrapping anything else the transform raised).
    """
    try:
        out = transform(entry)
        if inspect.isawaitable(out):
            out = await out
        return _normalize(out)
    except TransformError as e:
        raise as_transform_error(e, entry.source, transform_name(transform))
    except Exception as e:  # any plugin failure is a per-file error
        raise as_transform_error(e, entry.source, transform_name(transform)) from e


class GatherStep:
    """
    Barrier step: sees every surviving entry of the stream at once.

    Subclasses implement `gather(entries)`; entries arrive in declared glob
    order. Used for bundling (concat).
    """
    plugin_name = "gather"

    def gather(self, entries: Sequence[FileEntry]) -> Union[TransformOutput, Awaitable[TransformOutput]]:
        raise NotImplementedError

    async def apply_all(self, entries: Sequence[FileEntry]) -> List[FileEntry]:
        out = self.gather(entries)
        if inspect.isawaitable(out):
            out = await out
        return _normalize(out)


def noop(entry: FileEntry) -> FileEntry:
    return entry


noop.plugin_name = "noop"  # type: ignore[attr-defined]


def when(condition: bool, transform: Transform) -> Transform:
    """Use `transform` only if `condition` holds; otherwise pass entries through."""
    return transform if condition else noop
