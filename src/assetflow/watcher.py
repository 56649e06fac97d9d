# watcher.py
# Filesystem watching on top of watchdog.
#
# watchdog delivers events on its own observer thread; they are handed to
# the event loop with call_soon_threadsafe and debounced there per path, so
# every callback runs on the loop thread.

from __future__ import annotations

import asyncio
import inspect
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatchError
from .glob import GlobSet
from .model import WatchBinding

OnChange = Callable[[Path], Any]

_RELEVANT = {"created", "modified", "deleted", "moved"}


def _contains(parent: Path, child: Path) -> bool:
    return parent == child or parent in child.parents


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT:
            return
        self.watcher.feed(os.fsdecode(event.src_path))
        dest = getattr(event, "dest_path", None)
        if dest:
            self.watcher.feed(os.fsdecode(dest))


class Watcher:
    """
    watch(patterns, on_change): call `on_change(path)` once a burst of
    events for the same path has been quiet for `debounce` seconds.
    """

    def __init__(
        self,
        cwd: str | Path = ".",
        *,
        debounce: float = 0.2,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.cwd = Path(cwd).resolve()
        self.debounce = debounce
        self.loop = loop
        self._observer: Any = None
        self._handler = _Handler(self)
        self._roots: Set[Path] = set()
        self._subs: List[Tuple[GlobSet, OnChange]] = []
        self._pending: Dict[Tuple[int, Path], asyncio.TimerHandle] = {}
        self._inflight: Set[asyncio.Future] = set()
        self.bindings: List[WatchBinding] = []

    def watch(self, patterns: str | Sequence[str] | GlobSet, on_change: OnChange) -> None:
        globs = patterns if isinstance(patterns, GlobSet) else GlobSet(patterns)
        if self.loop is None:
            self.loop = asyncio.get_running_loop()

        if self._observer is None:
            self._observer = Observer()

        roots = globs.roots(self.cwd)
        existing = [r for r in roots if r.is_dir()]
        for root in roots:
            if root in self._roots:
                continue
            if not root.is_dir():
                # covered by a recursive watch on an existing ancestor
                if any(_contains(other, root) for other in (*existing, *self._roots)):
                    continue
                raise WatchError(f"watch root does not exist: {root}", ",".join(globs.patterns))
            try:
                self._observer.schedule(self._handler, str(root), recursive=True)
            except OSError as e:
                raise WatchError(f"cannot watch {root}: {e}", ",".join(globs.patterns)) from e
            self._roots.add(root)

        self._subs.append((globs, on_change))

        if not self._observer.is_alive():
            try:
                self._observer.start()
            except (OSError, RuntimeError) as e:
                raise WatchError(f"cannot start file watcher: {e}") from e

    def bind(self, binding: WatchBinding, runner) -> None:
        """Rerun every bound task (concurrently) when a matching file changes."""
        console = runner.ctx.console

        async def _rerun(path: Path) -> None:
            console.print_change(str(path), binding.bound_tasks)
            results = await asyncio.gather(
                *(runner.run(name) for name in binding.bound_tasks),
                return_exceptions=True,
            )
            for name, res in zip(binding.bound_tasks, results):
                if isinstance(res, BaseException):
                    console.print_task_failed(name, str(res))

        self.watch(binding.patterns, _rerun)
        self.bindings.append(binding)
        console.print_watching(binding.patterns, binding.bound_tasks)

    def feed(self, path: str | Path) -> None:
        """Thread-safe entry point for raw change notifications."""
        if self.loop is None or self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.dispatch, Path(path))

    def dispatch(self, path: Path) -> None:
        """Debounce `path` for every subscription it matches. Loop thread only."""
        path = Path(path)
        if not path.is_absolute():
            path = self.cwd / path
        path = path.resolve()
        for idx, (globs, on_change) in enumerate(self._subs):
            if not globs.matches(path, self.cwd):
                continue
            key = (idx, path)
            pending = self._pending.pop(key, None)
            if pending is not None:
                pending.cancel()
            self._pending[key] = self.loop.call_later(self.debounce, self._fire, key, on_change)

    def _fire(self, key: Tuple[int, Path], on_change: OnChange) -> None:
        self._pending.pop(key, None)
        out = on_change(key[1])
        if inspect.isawaitable(out):
            fut = asyncio.ensure_future(out)
            self._inflight.add(fut)
            fut.add_done_callback(self._inflight.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def stop(self) -> None:
        """Process shutdown only."""
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()
            self._observer.join()
