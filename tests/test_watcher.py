from __future__ import annotations

import asyncio
import threading

import pytest

from assetflow.errors import WatchError
from assetflow.graph import TaskGraph
from assetflow.model import WatchBinding
from assetflow.runner import Runner
from assetflow.watcher import Watcher


def test_burst_of_saves_fires_once(write_tree, tmp_path, observers):
    write_tree({"css/sass/main.scss": "", "css/sass/nav.scss": ""})
    fired = []

    async def scenario():
        watcher = Watcher(tmp_path, debounce=0.05)
        watcher.watch("css/sass/**/*.scss", fired.append)
        (observer,) = observers
        assert observer.alive
        assert observer.scheduled == [str((tmp_path / "css/sass").resolve())]
        for _ in range(5):
            watcher.dispatch(tmp_path / "css/sass/main.scss")
            await asyncio.sleep(0.01)
        watcher.dispatch(tmp_path / "css/sass/nav.scss")
        assert watcher.pending == 2
        await asyncio.sleep(0.15)
        watcher.stop()

    asyncio.run(scenario())
    assert sorted(p.name for p in fired) == ["main.scss", "nav.scss"]


def test_events_from_observer_thread_reach_the_loop(write_tree, tmp_path, observers):
    write_tree({"js/app.js": ""})
    fired = []

    async def scenario():
        watcher = Watcher(tmp_path, debounce=0.01)
        watcher.watch(["js/**/*.js"], fired.append)
        t = threading.Thread(target=watcher.feed, args=(str(tmp_path / "js/app.js"),))
        t.start()
        t.join()
        await asyncio.sleep(0.1)
        watcher.stop()

    asyncio.run(scenario())
    assert [p.name for p in fired] == ["app.js"]


def test_excluded_and_unrelated_paths_are_ignored(write_tree, tmp_path, observers):
    write_tree({"js/app.js": "", "js/enlBase.js": "", "js/vendors/x.js": ""})
    fired = []

    async def scenario():
        watcher = Watcher(tmp_path, debounce=0.01)
        watcher.watch(["js/**/*.js", "!js/enlBase.js", "!js/vendors/**/*.js"], fired.append)
        watcher.dispatch(tmp_path / "js/enlBase.js")
        watcher.dispatch(tmp_path / "js/vendors/x.js")
        watcher.dispatch(tmp_path / "README.md")
        assert watcher.pending == 0
        await asyncio.sleep(0.05)
        watcher.stop()

    asyncio.run(scenario())
    assert fired == []


def test_missing_root_is_watch_error(tmp_path, observers):
    async def scenario():
        Watcher(tmp_path).watch("missing/**/*.scss", lambda p: None)

    with pytest.raises(WatchError) as exc:
        asyncio.run(scenario())
    assert exc.value.pattern == "missing/**/*.scss"


def test_missing_root_inside_a_watched_tree_is_skipped(write_tree, tmp_path, observers):
    write_tree({"js/app.js": ""})
    fired = []

    async def scenario():
        watcher = Watcher(tmp_path, debounce=0.01)
        watcher.watch(["js/vendors/**/*.js", "js/**/*.js"], fired.append)
        # the vendor dir shows up later; the recursive js/ watch sees it
        watcher.dispatch(tmp_path / "js/vendors/late.js")
        await asyncio.sleep(0.05)
        watcher.stop()

    asyncio.run(scenario())
    (observer,) = observers
    assert observer.scheduled == [str((tmp_path / "js").resolve())]
    assert [p.name for p in fired] == ["late.js"]


def test_missing_root_covered_by_an_earlier_watch(write_tree, tmp_path, observers):
    write_tree({"js/app.js": ""})

    async def scenario():
        watcher = Watcher(tmp_path)
        watcher.watch("js/**/*.js", lambda p: None)
        watcher.watch("js/vendors/**/*.js", lambda p: None)
        watcher.stop()

    asyncio.run(scenario())
    assert observers[0].scheduled == [str((tmp_path / "js").resolve())]


def test_bound_tasks_rerun_on_change(write_tree, tmp_path, make_ctx, observers):
    write_tree({"css/sass/main.scss": ""})
    runs = []

    async def styles(ctx):
        runs.append("styles")

    async def scenario():
        runner = Runner(TaskGraph().task("styles", styles), make_ctx())
        watcher = Watcher(tmp_path, debounce=0.01)
        watcher.bind(WatchBinding(("css/sass/**/*.scss",), ("styles",)), runner)
        watcher.dispatch(tmp_path / "css/sass/main.scss")
        watcher.dispatch(tmp_path / "css/sass/main.scss")
        await asyncio.sleep(0.1)
        watcher.stop()
        return watcher

    watcher = asyncio.run(scenario())
    assert runs == ["styles"]
    assert len(watcher.bindings) == 1
