# tasks.py
# The stock asset build: styles, scripts, images, watch + dev server.
from __future__ import annotations

import runpy
from pathlib import Path
from typing import List, Union

from .config import BuildConfig
from .errors import ConfigError
from .graph import ResolvedGraph, TaskGraph
from .model import WatchBinding
from .pipeline import Pipeline, branch
from .plugins import (
    autoprefixer,
    concat,
    dest,
    filesize,
    imagemin,
    imagemin_png,
    jshint,
    lint_reporter,
    sass,
    sourcemaps,
    uglify,
)
from .task import BuildContext
from .transform import when


class AppFiles:
    """Glob layout derived from a BuildConfig."""

    def __init__(self, config: BuildConfig):
        c = config
        js = c.src(c.scripts_src)
        self.styles = c.src(c.styles_src, "**/*.scss")
        self.styles_dest = c.dest(c.styles_dest)
        self.scripts_dest = c.dest(c.scripts_dest)
        self.images = c.src(c.images_src, "**/*.{jpg,jpeg,gif,svg}")
        self.images_png = c.src(c.images_src, "**/*.png")
        self.images_dest = c.dest(c.images_src)

        built = ["!" + js + c.script_file, "!" + js + c.vendor_script_file]
        # vendors load first; never pick up our own bundles
        self.vendor_scripts: List[str] = [js + c.vendor_dir + "**/*.js"]
        self.user_scripts: List[str] = [js + "**/*.js", "!" + js + c.vendor_dir + "**/*.js", *built]
        self.all_scripts: List[str] = [js + c.vendor_dir + "**/*.js", js + "**/*.js", *built]


def styles(ctx: BuildContext) -> Pipeline:
    c = ctx.config
    files = AppFiles(c)
    return Pipeline(
        files.styles,
        sass(c.sass_style, source_map=c.source_maps),
        autoprefixer("last 2 versions", source_map=c.source_maps),
        dest(files.styles_dest, cwd=c.cwd),
        filesize(ctx.console),
        name="styles",
        cwd=c.cwd,
        concurrency=c.concurrency,
    )


def lint_scripts(ctx: BuildContext) -> Pipeline:
    c = ctx.config
    # vendor code is not ours to lint
    return Pipeline(
        AppFiles(c).user_scripts,
        jshint(),
        lint_reporter(ctx.console),
        name="lint",
        cwd=c.cwd,
        concurrency=c.concurrency,
    )


def scripts(ctx: BuildContext) -> Pipeline:
    c = ctx.config
    files = AppFiles(c)
    out = dest(files.scripts_dest, cwd=c.cwd)

    vendor = branch(
        concat(c.vendor_script_file),
        when(c.production, filesize(ctx.console, "Before")),
        when(c.production, uglify()),
        out,
        filesize(ctx.console),
        only=files.vendor_scripts,
        name="vendor",
    )
    app = branch(
        when(c.source_maps, sourcemaps.init()),
        concat(c.script_file),
        when(c.production, filesize(ctx.console, "Before")),
        when(c.production, uglify()),
        when(c.source_maps, sourcemaps.write()),
        out,
        filesize(ctx.console),
        only=files.user_scripts,
        name="app",
    )
    return Pipeline(files.all_scripts, name="scripts", cwd=c.cwd, concurrency=c.concurrency).tee(vendor, app)


def compress_images(ctx: BuildContext) -> Pipeline:
    c = ctx.config
    files = AppFiles(c)
    return Pipeline(
        files.images,
        imagemin(),
        dest(files.images_dest, cwd=c.cwd),
        name="imagemin",
        cwd=c.cwd,
        concurrency=c.concurrency,
    )


# TODO: recombine with compress_images once the PNG optimizers work on every platform
def compress_png_images(ctx: BuildContext) -> Pipeline:
    c = ctx.config
    files = AppFiles(c)
    return Pipeline(
        files.images_png,
        imagemin_png(),
        dest(files.images_dest, cwd=c.cwd),
        name="imagemin:png",
        cwd=c.cwd,
        concurrency=c.concurrency,
    )


async def watch_and_reload(ctx: BuildContext) -> None:
    """Start the dev server and register watches; returns once they are live."""
    from .server import DevServer
    from .watcher import Watcher

    c = ctx.config
    if c.production:
        ctx.console.print_info("watch: skipped in production mode")
        return
    if ctx.runner is None:
        raise ConfigError("watch needs a runner to rerun tasks")

    server = DevServer(c, ctx.console)
    ctx.runner.on_rebuilt(lambda name, _result: server.hub.notify(name))
    ctx.services["server"] = server
    await server.start()

    # images are not watched: they are written back into the tree they come from
    files = AppFiles(c)
    watcher = Watcher(c.cwd, debounce=c.debounce_seconds)
    ctx.watchers.append(watcher)
    watcher.bind(WatchBinding((files.styles,), ("styles",)), ctx.runner)
    watcher.bind(WatchBinding(tuple(files.all_scripts), ("scripts",)), ctx.runner)


def build_graph(config: BuildConfig) -> TaskGraph:
    return (
        TaskGraph()
        .task("styles", styles, description="Compile Sass, autoprefix, write CSS")
        .task("scripts", scripts, lint=lint_scripts, description="Lint and bundle vendor + app scripts")
        .task("imagemin", compress_images, description="Compress jpg/gif/svg images in place")
        .task("imagemin:png", compress_png_images, description="Compress png images in place")
        .task("watch", watch_and_reload, description="Dev server + rebuild on change")
        .task("default", needs=["styles", "scripts", "watch"], description="Build, then watch")
        .task("build", needs=["styles", "scripts"], description="Build once")
    )


# ----------------------------------------------------------------------
# Task file loading (local python file)
# ----------------------------------------------------------------------

def load_taskfile(path: str | Path, config: BuildConfig) -> Union[TaskGraph, ResolvedGraph]:
    """
    Load a task graph from a python file.

    The file must define either:
      - tasks(config) -> TaskGraph
      - GRAPH = TaskGraph(...)
    """
    tf_path = Path(path).expanduser().resolve()
    if not tf_path.exists():
        raise ConfigError("Task file not found", {"path": str(tf_path)})
    if tf_path.suffix != ".py":
        raise ConfigError("Task file must be a .py file", {"path": tf_path.name})

    globals_dict = runpy.run_path(str(tf_path), run_name=f"assetflow_taskfile_{tf_path.stem}")

    graph = None
    if callable(globals_dict.get("tasks")):
        graph = globals_dict["tasks"](config)
    elif "GRAPH" in globals_dict:
        graph = globals_dict["GRAPH"]

    if not isinstance(graph, (TaskGraph, ResolvedGraph)):
        raise ConfigError(
            "Task file must define tasks(config) -> TaskGraph or GRAPH = TaskGraph(...)",
            {"path": str(tf_path)},
        )
    return graph
