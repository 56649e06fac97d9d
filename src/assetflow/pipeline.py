# pipeline.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .errors import TransformError
from .glob import GlobSet
from .model import FileEntry, PipelineResult
from .transform import GatherStep, Transform, apply_transform, transform_name

DEFAULT_CONCURRENCY = 16

Step = Union[Transform, GatherStep]
# (declared-order key, entry); the key keeps bundles in glob order even
# though files finish in arbitrary order.
_Item = Tuple[Tuple[int, ...], FileEntry]


def _as_globset(source: Union[GlobSet, str, Sequence[str]]) -> GlobSet:
    return source if isinstance(source, GlobSet) else GlobSet(source)


@dataclass(frozen=True)
class Branch:
    """Downstream sub-pipeline of a tee. `only` narrows the upstream entries."""
    steps: Tuple[Step, ...]
    only: Optional[GlobSet] = None
    name: str = "branch"

    def accepts(self, entry: FileEntry, cwd: Path) -> bool:
        return self.only is None or self.only.matches(entry.source, cwd)


def branch(*steps: Step, only: Union[GlobSet, str, Sequence[str], None] = None, name: str = "branch") -> Branch:
    return Branch(steps=tuple(steps), only=None if only is None else _as_globset(only), name=name)


class _StepRun:
    """Runs an ordered list of steps over a set of items."""

    def __init__(self, steps: Sequence[Step], semaphore: asyncio.Semaphore):
        self.steps = list(steps)
        self.semaphore = semaphore
        self.errors: List[TransformError] = []
        self.dropped = 0

    def _segments(self) -> List[Union[List[Transform], GatherStep]]:
        segments: List[Union[List[Transform], GatherStep]] = []
        current: List[Transform] = []
        for step in self.steps:
            if isinstance(step, GatherStep):
                if current:
                    segments.append(current)
                    current = []
                segments.append(step)
            else:
                current.append(step)
        if current:
            segments.append(current)
        return segments

    async def _chain(self, transforms: List[Transform], item: _Item) -> List[_Item]:
        key, entry = item
        pending: List[_Item] = [(key, entry)]
        async with self.semaphore:
            for t in transforms:
                nxt: List[_Item] = []
                for k, e in pending:
                    try:
                        produced = await apply_transform(t, e)
                    except TransformError as err:
                        self.errors.append(err)
                        self.dropped += 1
                        continue
                    nxt.extend(((*k, i), out) for i, out in enumerate(produced))
                pending = nxt
                if not pending:
                    break
        return pending

    async def run(self, items: List[_Item]) -> List[_Item]:
        for segment in self._segments():
            if not items:
                break
            if isinstance(segment, GatherStep):
                items = await self._gather(segment, items)
            else:
                chains = await asyncio.gather(*(self._chain(segment, it) for it in items))
                items = [it for chain in chains for it in chain]
        return items

    async def _gather(self, step: GatherStep, items: List[_Item]) -> List[_Item]:
        ordered = sorted(items, key=lambda it: it[0])
        entries = [e for _, e in ordered]
        try:
            produced = await step.apply_all(entries)
        except TransformError as err:
            self.errors.append(err)
            self.dropped += len(entries)
            return []
        except Exception as exc:
            self.errors.append(
                TransformError(
                    source_path=", ".join(e.source for e in entries),
                    message=str(exc) or exc.__class__.__name__,
                    plugin=transform_name(step),
                )
            )
            self.dropped += len(entries)
            return []
        return [((i,), e) for i, e in enumerate(produced)]


class Pipeline:
    """
    Source glob -> ordered steps (-> optional tee into branches).

    Each matched file runs through the per-file transforms independently; a
    file that fails at some step is dropped and its error recorded, siblings
    carry on. Gather steps (e.g. concat) are barriers that see every
    surviving entry in declared glob order.
    """

    def __init__(
        self,
        source: Union[GlobSet, str, Sequence[str]],
        *steps: Step,
        name: str | None = None,
        cwd: Union[str, Path] = ".",
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.source = _as_globset(source)
        self.steps: Tuple[Step, ...] = tuple(steps)
        self.name = name or ",".join(self.source.patterns)
        self.cwd = Path(cwd)
        self.concurrency = concurrency
        self.branches: Tuple[Branch, ...] = ()

    def __repr__(self) -> str:
        return f"Pipeline({self.name!r}, steps={len(self.steps)}, branches={len(self.branches)})"

    def pipe(self, *steps: Step) -> Pipeline:
        if self.branches:
            raise ValueError("Cannot add steps after tee(); add them to a branch instead")
        self.steps = self.steps + tuple(steps)
        return self

    def tee(self, *branches: Branch) -> Pipeline:
        """Fan the upstream stream out into independent downstream branches."""
        if not branches:
            raise ValueError("tee() needs at least one branch")
        self.branches = self.branches + tuple(branches)
        return self

    async def _read(self, path: Path, base: Path) -> FileEntry:
        contents = await asyncio.to_thread(path.read_bytes)
        return FileEntry(path=path, contents=contents, metadata={"base": str(base), "source": str(path)})

    async def _read_all(self) -> Tuple[List[_Item], List[TransformError]]:
        cwd = self.cwd.resolve()
        matched = await asyncio.to_thread(self.source.resolve, cwd)
        reads = await asyncio.gather(*(self._read(p, b) for p, b in matched), return_exceptions=True)

        items: List[_Item] = []
        errors: List[TransformError] = []
        for idx, ((path, _base), res) in enumerate(zip(matched, reads)):
            if isinstance(res, BaseException):
                errors.append(TransformError(source_path=str(path), message=f"cannot read file: {res}", plugin="src"))
                continue
            items.append(((idx,), res))
        return items, errors

    async def run(self) -> PipelineResult:
        semaphore = asyncio.Semaphore(self.concurrency)
        items, read_errors = await self._read_all()

        upstream = _StepRun(self.steps, semaphore)
        survivors = await upstream.run(items)
        errors = read_errors + upstream.errors
        failed = len(read_errors) + upstream.dropped

        if not self.branches:
            outputs = [e for _, e in sorted(survivors, key=lambda it: it[0])]
            return PipelineResult(succeeded=len(outputs), failed=failed, errors=tuple(errors), outputs=tuple(outputs))

        cwd = self.cwd.resolve()
        runs = [_StepRun(b.steps, semaphore) for b in self.branches]
        branch_outputs = await asyncio.gather(*(
            run.run([it for it in survivors if b.accepts(it[1], cwd)])
            for b, run in zip(self.branches, runs)
        ))

        outputs: List[FileEntry] = []
        for run, out in zip(runs, branch_outputs):
            errors.extend(run.errors)
            failed += run.dropped
            outputs.extend(e for _, e in sorted(out, key=lambda it: it[0]))
        return PipelineResult(succeeded=len(outputs), failed=failed, errors=tuple(errors), outputs=tuple(outputs))


class Merge:
    """Run several pipelines concurrently and merge their results."""

    def __init__(self, *pipelines: Pipeline):
        self.pipelines = pipelines
        self.name = " + ".join(p.name for p in pipelines)

    async def run(self) -> PipelineResult:
        results = await asyncio.gather(*(p.run() for p in self.pipelines))
        return PipelineResult.merge(*results)


def merge(*pipelines: Pipeline) -> Merge:
    return Merge(*pipelines)
