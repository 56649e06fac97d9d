# runner.py
from __future__ import annotations

import asyncio
import enum
import time
import traceback
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Union

from .errors import ConfigError, TaskFailure
from .graph import ResolvedGraph, TaskGraph
from .model import PipelineResult
from .task import BuildContext, Task


class RunState(str, enum.Enum):
    REQUESTED = "requested"
    RESOLVING = "resolving"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunReport:
    """Outcome of one runner invocation."""
    targets: tuple[str, ...]
    state: RunState = RunState.REQUESTED
    results: Dict[str, str] = field(default_factory=dict)   # name -> ok | failed | skipped
    task_results: Dict[str, PipelineResult] = field(default_factory=dict)
    failures: Dict[str, TaskFailure] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)          # start order

    @property
    def ok(self) -> bool:
        return self.state == RunState.DONE


RebuiltCallback = Callable[[str, PipelineResult], None]


class Runner:
    """
    Resolves a target's dependency graph and runs it level by level.

    - every task in a level runs concurrently; a level starts once the
      previous one finished
    - a failed task never aborts its siblings, but its dependents are skipped
    - each `run()` is a fresh run (nothing is cached between invocations)

    Runs may overlap (watch reruns share one Runner). Each RunReport holds
    the state of its own run; `self.state` is whichever run wrote last.
    """

    def __init__(self, graph: Union[TaskGraph, ResolvedGraph], ctx: BuildContext):
        self.graph = graph
        self.ctx = ctx
        self.state = RunState.REQUESTED
        self._rebuilt: List[RebuiltCallback] = []
        ctx.runner = self

    def on_rebuilt(self, callback: RebuiltCallback) -> None:
        """Called after a task produced output successfully in development mode."""
        self._rebuilt.append(callback)

    def _resolve(self, targets: Sequence[str]) -> tuple[ResolvedGraph, List[List[str]]]:
        graph = self.graph.build() if isinstance(self.graph, TaskGraph) else self.graph
        return graph, graph.levels(targets)

    async def run(self, *targets: str) -> RunReport:
        targets = targets or ("default",)
        report = RunReport(targets=tuple(targets))
        console = self.ctx.console

        self.state = report.state = RunState.RESOLVING
        try:
            graph, levels = self._resolve(targets)
        except ConfigError:
            self.state = report.state = RunState.FAILED
            raise

        self.state = report.state = RunState.RUNNING
        blocked: set[str] = set()

        for idx, level in enumerate(levels):
            console.print_level(idx, level)
            runnable: List[str] = []
            for name in level:
                spec = graph[name]
                bad = sorted(spec.dependencies & blocked)
                if bad:
                    report.results[name] = "skipped"
                    blocked.add(name)
                    console.print_task_skipped(name, f"dependency failed: {', '.join(bad)}")
                else:
                    runnable.append(name)

            outcomes = await asyncio.gather(*(self._run_one(graph, name, report) for name in runnable))
            for name, status in zip(runnable, outcomes):
                report.results[name] = status
                if status != "ok":
                    blocked.add(name)

        failed = any(v == "failed" for v in report.results.values())
        self.state = report.state = RunState.FAILED if failed else RunState.DONE
        return report

    async def run_many(self, targets: Sequence[str]) -> RunReport:
        """One run covering several targets (shared dependencies run once)."""
        return await self.run(*targets)

    async def _run_one(self, graph: ResolvedGraph, name: str, report: RunReport) -> str:
        spec = graph[name]
        console = self.ctx.console
        report.order.append(name)
        console.print_task_start(name)
        started = time.monotonic()

        try:
            result = await Task(spec, self.ctx).run()
        except Exception as e:
            failure = TaskFailure(task=name, cause=str(e) or e.__class__.__name__)
            report.failures[name] = failure
            console.print_task_failed(name, str(failure))
            if self.ctx.config.show_error_stack:
                console.print_info(traceback.format_exc())
            return "failed"

        report.task_results[name] = result
        if not result.ok:
            failure = TaskFailure(task=name, errors=result.errors)
            report.failures[name] = failure
            console.print_task_failed(name, str(failure))
            return "failed"

        console.print_task_done(name, time.monotonic() - started)
        if not self.ctx.production and not spec.is_aggregate and result.succeeded:
            for cb in self._rebuilt:
                cb(name, result)
        return "ok"
