from __future__ import annotations

import asyncio

import pytest

from assetflow.errors import TransformError
from assetflow.model import FileEntry, PipelineResult
from assetflow.pipeline import Pipeline, branch, merge
from assetflow.plugins import concat, dest
from assetflow.transform import when


def upper(entry: FileEntry) -> FileEntry:
    return entry.with_contents(entry.contents.upper())


def reject_bad(entry: FileEntry) -> FileEntry:
    if b"bad" in entry.contents:
        raise TransformError(entry.source, "bad content", line=1, column=4)
    return entry


def run(pipeline: Pipeline) -> PipelineResult:
    return asyncio.run(pipeline.run())


def test_output_count_is_input_minus_dropped(write_tree, tmp_path):
    write_tree({
        "src/1.txt": "ok",
        "src/2.txt": "bad",
        "src/3.txt": "ok",
        "src/4.txt": "bad too",
        "src/5.txt": "ok",
    })
    result = run(Pipeline("src/*.txt", reject_bad, upper, cwd=tmp_path))

    assert result.succeeded == 3
    assert result.failed == 2
    assert result.succeeded == 5 - result.failed
    assert not result.ok
    assert sorted(e.source_path.rsplit("/", 1)[-1] for e in result.errors) == ["2.txt", "4.txt"]
    assert all(o.contents == b"OK" for o in result.outputs)


def test_failed_entry_skips_remaining_steps(write_tree, tmp_path):
    write_tree({"src/a.txt": "fine", "src/b.txt": "bad"})
    seen = []

    def record(entry):
        seen.append(entry.path.name)
        return entry

    result = run(Pipeline("src/*.txt", reject_bad, record, cwd=tmp_path))
    assert seen == ["a.txt"]
    assert result.errors[0].line == 1 and result.errors[0].column == 4


def test_plain_exceptions_become_transform_errors(write_tree, tmp_path):
    write_tree({"src/a.txt": "x"})

    def explode(entry):
        raise ValueError("kaput")

    result = run(Pipeline("src/*.txt", explode, cwd=tmp_path))
    (err,) = result.errors
    assert isinstance(err, TransformError)
    assert err.message == "kaput"
    assert err.plugin == "explode"
    assert err.source_path.endswith("a.txt")


def test_transform_may_filter_or_fan_out(write_tree, tmp_path):
    write_tree({"src/a.txt": "a", "src/_skip.txt": "s"})

    def drop_partials(entry):
        return None if entry.path.name.startswith("_") else entry

    def twice(entry):
        return [entry, entry.with_path(entry.path.with_suffix(".copy"))]

    result = run(Pipeline("src/*.txt", drop_partials, twice, cwd=tmp_path))
    assert result.failed == 0
    assert [o.path.name for o in result.outputs] == ["a.txt", "a.copy"]


def test_gather_sees_declared_order_not_completion_order(write_tree, tmp_path):
    write_tree({"src/1.js": "one", "src/2.js": "two", "src/3.js": "three"})

    async def slow_first(entry):
        # earlier files finish last
        await asyncio.sleep({"1.js": 0.06, "2.js": 0.03, "3.js": 0.0}[entry.path.name])
        return entry

    result = run(Pipeline("src/*.js", slow_first, concat("all.js", newline="\n"), cwd=tmp_path))
    (bundle,) = result.outputs
    assert bundle.contents == b"one\ntwo\nthree"
    assert bundle.relative.as_posix() == "all.js"


def test_concurrency_ceiling(write_tree, tmp_path):
    write_tree({f"src/{i}.txt": str(i) for i in range(10)})
    active = 0
    peak = 0

    async def track(entry):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return entry

    result = run(Pipeline("src/*.txt", track, cwd=tmp_path, concurrency=3))
    assert result.succeeded == 10
    assert peak <= 3


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        Pipeline("src/*.txt", concurrency=0)


def test_tee_builds_two_bundles_from_one_stream(write_tree, tmp_path):
    write_tree({"js/a.js": "A", "js/vendors/b.js": "B", "js/c.js": "C"})
    reads = []

    def count_reads(entry):
        reads.append(entry.path.name)
        return entry

    pipeline = Pipeline(["js/vendors/**/*.js", "js/**/*.js"], count_reads, cwd=tmp_path).tee(
        branch(concat("vendors.js"), dest("out", cwd=tmp_path), only=["js/vendors/**/*.js"]),
        branch(concat("app.js"), dest("out", cwd=tmp_path), only=["js/**/*.js", "!js/vendors/**/*.js"]),
    )
    result = run(pipeline)

    assert sorted(reads) == ["a.js", "b.js", "c.js"]  # upstream processed once
    assert result.ok
    assert (tmp_path / "out/vendors.js").read_bytes() == b"B"
    assert (tmp_path / "out/app.js").read_bytes() == b"A;\r\nC"


def test_tee_branch_errors_are_isolated(write_tree, tmp_path):
    write_tree({"src/a.txt": "bad", "src/b.txt": "ok"})
    pipeline = Pipeline("src/*.txt", cwd=tmp_path).tee(
        branch(reject_bad, name="strict"),
        branch(upper, name="loose"),
    )
    result = run(pipeline)
    assert result.failed == 1
    assert sorted(o.contents for o in result.outputs) == [b"BAD", b"OK", b"ok"]


def test_dest_writes_relative_to_base_and_skips_identical(write_tree, tmp_path):
    write_tree({"src/sass/nested/x.txt": "x"})
    p = Pipeline("src/sass/**/*.txt", dest("build", cwd=tmp_path), cwd=tmp_path)
    first = run(p)
    target = tmp_path / "build/nested/x.txt"
    assert target.read_bytes() == b"x"
    assert first.outputs[0].metadata["written"] == "1"
    second = run(p)
    assert second.outputs[0].metadata["written"] == "0"


def test_when_passes_through_when_disabled(write_tree, tmp_path):
    write_tree({"src/a.txt": "a"})
    off = run(Pipeline("src/*.txt", when(False, upper), cwd=tmp_path))
    on = run(Pipeline("src/*.txt", when(True, upper), cwd=tmp_path))
    assert off.outputs[0].contents == b"a"
    assert on.outputs[0].contents == b"A"


def test_merge_aggregates_pipelines(write_tree, tmp_path):
    write_tree({"a/1.txt": "ok", "b/2.txt": "bad"})
    result = asyncio.run(merge(
        Pipeline("a/*.txt", reject_bad, cwd=tmp_path),
        Pipeline("b/*.txt", reject_bad, cwd=tmp_path),
    ).run())
    assert result.succeeded == 1
    assert result.failed == 1
    assert len(result.errors) == 1
