# graph.py
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import ConfigError
from .model import TaskBody, TaskSpec


def build_dag(tasks: Sequence[TaskSpec]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build a DAG from TaskSpec objects.

    Requires:
      - task.name: str (unique)
      - task.dependencies: names of tasks that must run BEFORE this task
    """
    names = [t.name for t in tasks]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigError("Duplicate task names", {"names": dupes})

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in name_set}
    indeg: Dict[str, int] = {n: 0 for n in name_set}

    for task in tasks:
        for dep in task.dependencies:
            if dep not in name_set:
                raise ConfigError(
                    f"Task '{task.name}' depends on missing task '{dep}'",
                    {"known": sorted(name_set)},
                )
            # Edge dep -> task.name (dep must run before task)
            if task.name not in adj[dep]:
                adj[dep].add(task.name)
                indeg[task.name] += 1

    return adj, indeg


def topo_levels(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[List[str]]:
    """
    Convert DAG into topological "levels" (stages).
    Each stage can run in parallel.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    q = deque(sorted([n for n, d in indeg.items() if d == 0]))

    levels: List[List[str]] = []
    processed = 0

    while q:
        level_size = len(q)
        level: List[str] = []

        for _ in range(level_size):
            node = q.popleft()
            level.append(node)
            processed += 1

        # children unlocked by this whole level form the next one
        unlocked: List[str] = []
        for node in level:
            for child in adj.get(node, set()):
                indeg[child] -= 1
                if indeg[child] == 0:
                    unlocked.append(child)
        q.extend(sorted(unlocked))

        levels.append(level)

    if processed != len(indeg):
        remaining = sorted([n for n, d in indeg.items() if d > 0])
        raise ConfigError("Task graph has a cycle", {"stuck": remaining})

    return levels


class ResolvedGraph:
    """Validated, immutable task graph."""

    def __init__(self, tasks: Mapping[str, TaskSpec]):
        self._tasks: Dict[str, TaskSpec] = dict(tasks)
        adj, indeg = build_dag(list(self._tasks.values()))
        topo_levels(adj, indeg)  # reject cycles up front

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def __getitem__(self, name: str) -> TaskSpec:
        return self._tasks[name]

    @property
    def names(self) -> List[str]:
        return list(self._tasks)

    def tasks(self) -> List[TaskSpec]:
        return list(self._tasks.values())

    def closure(self, targets: Iterable[str]) -> Set[str]:
        """Targets plus everything they (transitively) depend on."""
        seen: Set[str] = set()
        stack = list(targets)
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            if name not in self._tasks:
                raise ConfigError(f"Task '{name}' is not defined", {"known": sorted(self._tasks)})
            seen.add(name)
            stack.extend(self._tasks[name].dependencies)
        return seen

    def levels(self, targets: Iterable[str]) -> List[List[str]]:
        """Execution levels for the requested targets only."""
        wanted = self.closure(targets)
        subset = [t for n, t in self._tasks.items() if n in wanted]
        adj, indeg = build_dag(subset)
        return topo_levels(adj, indeg)


class TaskGraph:
    """
    Builder for a task graph.

    Example:
        graph = (
            TaskGraph()
            .task("styles", styles)
            .task("scripts", scripts, lint=lint_scripts)
            .task("build", needs=["styles", "scripts"])
            .build()
        )
    """

    def __init__(self) -> None:
        self._specs: List[TaskSpec] = []

    def task(
        self,
        name: str,
        body: Optional[TaskBody] = None,
        *,
        needs: Iterable[str] = (),
        lint: Optional[TaskBody] = None,
        description: str = "",
    ) -> TaskGraph:
        if not name or not isinstance(name, str):
            raise ConfigError("Task name must be a non-empty string", {"name": name})
        self._specs.append(
            TaskSpec(
                name=name,
                dependencies=frozenset(needs),
                body=body,
                lint=lint,
                description=description,
            )
        )
        return self

    @property
    def specs(self) -> List[TaskSpec]:
        return list(self._specs)

    def build(self) -> ResolvedGraph:
        """Validate once (duplicates, unknown dependencies, cycles)."""
        names = [s.name for s in self._specs]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ConfigError("Duplicate task names", {"names": dupes})
        return ResolvedGraph({s.name: s for s in self._specs})
