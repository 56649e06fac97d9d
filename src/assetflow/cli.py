# cli.py
from __future__ import annotations

import asyncio
import sys

import click

from .config import BuildConfig, load_config
from .errors import ConfigError, WatchError
from .graph import ResolvedGraph, TaskGraph
from .runner import Runner
from .task import BuildContext
from .tasks import build_graph, load_taskfile
from .ui.console import Console, get_console, set_console

DEFAULT_TASKFILE = "assetfile.py"


def discover_graph(taskfile: str | None, config: BuildConfig) -> TaskGraph | ResolvedGraph:
    """Explicit task file, else ./assetfile.py if present, else the built-in tasks."""
    if taskfile:
        return load_taskfile(taskfile, config)
    default = config.cwd / DEFAULT_TASKFILE
    if default.exists():
        return load_taskfile(default, config)
    return build_graph(config)


async def _run(graph, config: BuildConfig, targets: tuple[str, ...], console: Console) -> int:
    ctx = BuildContext(config=config, console=console)
    runner = Runner(graph, ctx)

    resolved = graph.build() if isinstance(graph, TaskGraph) else graph
    console.print_run_started(targets, len(resolved.closure(targets)), config.production)
    console.print_debug(f"levels: {resolved.levels(targets)}")

    report = await runner.run_many(targets)
    console.print_results(report.results)

    try:
        # watching outlives a failed first build
        if ctx.watching:
            console.print_info("Watching for changes (Ctrl-C to stop)")
            await asyncio.Event().wait()
    finally:
        for watcher in ctx.watchers:
            watcher.stop()
        server = ctx.services.get("server")
        if server is not None:
            await server.stop()

    return 0 if report.ok else 1


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """assetflow - front-end asset builds: styles, scripts, images, watch."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--prod", is_flag=True, default=False, help="Production build: compressed output, no source maps")
@click.option("--stacktrace", is_flag=True, default=False, help="Print stack traces for task errors")
@click.option("--taskfile", default=None, help="Task file (defaults to assetfile.py if present, else built-ins)")
@click.option("--config", "config_path", default=None, help="Config file (defaults to assetflow.toml if present)")
@click.option("--concurrency", default=None, type=int, help="Max files processed at once per pipeline")
@click.option("--no-open", is_flag=True, default=False, help="Do not open a browser for the dev server")
@click.pass_context
def run(ctx, targets, prod, stacktrace, taskfile, config_path, concurrency, no_open):
    """Run one or more tasks (default: 'default')."""
    console = get_console()
    targets = tuple(targets) or ("default",)

    try:
        config = load_config(
            config_path,
            production=True if prod else None,
            show_error_stack=True if stacktrace else None,
            concurrency=concurrency,
        )
        if no_open:
            config = config.model_copy(update={"server": config.server.model_copy(update={"open_browser": False})})
        graph = discover_graph(taskfile, config)
        console.print_debug(f"config: {config.model_dump()}")
        code = asyncio.run(_run(graph, config, targets, console))
    except ConfigError as e:
        console.print_error("Invalid task configuration", e.message, details=[f"{k}: {v}" for k, v in e.details.items()])
        sys.exit(1)
    except WatchError as e:
        console.print_error("Watch mode failed", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    sys.exit(code)


@cli.command(name="list")
@click.option("--taskfile", default=None, help="Task file (defaults to assetfile.py if present, else built-ins)")
def list_tasks(taskfile):
    """List tasks and their dependencies."""
    console = get_console()
    try:
        config = load_config()
        graph = discover_graph(taskfile, config)
        resolved = graph.build() if isinstance(graph, TaskGraph) else graph
    except ConfigError as e:
        console.print_error("Invalid task configuration", e.message, details=[f"{k}: {v}" for k, v in e.details.items()])
        sys.exit(1)

    console.print_header("Tasks")
    for spec in resolved.tasks():
        deps = f" (needs: {', '.join(sorted(spec.dependencies))})" if spec.dependencies else ""
        desc = f" - {spec.description}" if spec.description else ""
        console.print_info(f"  {spec.name}{deps}{desc}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
