# task.py
from __future__ import annotations

import asyncio
import inspect
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .config import BuildConfig
from .model import PipelineResult, TaskSpec
from .ui.console import Console, get_console

if TYPE_CHECKING:
    from .runner import Runner
    from .watcher import Watcher


@dataclass
class BuildContext:
    """
    What a task body receives: the build config plus the services of this
    process (console, runner, watchers, dev server).
    """
    config: BuildConfig
    console: Console = field(default_factory=get_console)
    runner: Optional["Runner"] = None
    watchers: List["Watcher"] = field(default_factory=list)
    services: Dict[str, Any] = field(default_factory=dict)

    @property
    def production(self) -> bool:
        return self.config.production

    @property
    def watching(self) -> bool:
        return bool(self.watchers)


async def collect(out: Any) -> PipelineResult:
    """
    Turn whatever a task body returned into one PipelineResult.

    Accepts None, a PipelineResult, anything with an async `run()` (Pipeline,
    Merge), an awaitable of those, or a list/tuple of them (run concurrently).
    """
    if inspect.isawaitable(out):
        out = await out
    if out is None:
        return PipelineResult()
    if isinstance(out, PipelineResult):
        return out
    if hasattr(out, "run") and callable(out.run):
        return await out.run()
    if isinstance(out, (list, tuple)):
        results = await asyncio.gather(*(collect(o) for o in out))
        return PipelineResult.merge(*results)
    raise TypeError(f"Task body returned unsupported value: {type(out).__name__}")


class Task:
    """One invocation of a TaskSpec. Each `run()` is independent."""

    def __init__(self, spec: TaskSpec, ctx: BuildContext):
        self.spec = spec
        self.ctx = ctx

    @property
    def name(self) -> str:
        return self.spec.name

    async def run(self) -> PipelineResult:
        lint_job = asyncio.create_task(self._lint()) if self.spec.lint is not None else None
        try:
            if self.spec.body is None:
                result = PipelineResult()
            else:
                result = await collect(self.spec.body(self.ctx))
        finally:
            if lint_job is not None:
                await lint_job

        for err in result.errors:
            self.ctx.console.print_transform_error(err)
        return result

    async def _lint(self) -> None:
        """Best-effort lint: reports, never fails the task."""
        console = self.ctx.console
        try:
            result = await collect(self.spec.lint(self.ctx))
        except Exception as e:
            console.print_info(f"[{self.name}] lint step crashed (ignored): {e}")
            if self.ctx.config.show_error_stack:
                console.print_info(traceback.format_exc())
            return
        for err in result.errors:
            console.print_info(f"[{self.name}] lint: {err}")
