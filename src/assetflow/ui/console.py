"""Console output formatting utilities for assetflow."""

from __future__ import annotations

import traceback
from typing import Optional, Sequence

import click


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "kB", "MB"):
        if value < 1024 or unit == "MB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{size} B"


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, beep: bool = True):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            beep: Ring the terminal bell on transform errors
        """
        self.debug = debug
        self.beep = beep

    def print_header(self, title: str) -> None:
        """Print a section header."""
        click.echo(f"\n{title}")
        click.echo("-" * len(title))

    def print_run_started(self, targets: Sequence[str], task_count: int, production: bool) -> None:
        """Print run start information."""
        click.echo("\nRUN STARTED")
        click.echo(f"Targets: {', '.join(targets)}")
        click.echo(f"Tasks: {task_count}")
        click.echo(f"Mode: {'production' if production else 'development'}")
        click.echo()

    def print_level(self, index: int, names: Sequence[str]) -> None:
        """Print the tasks of one execution level."""
        click.echo(f"=== Stage {index + 1}: {list(names)} ===")

    def print_task_start(self, name: str) -> None:
        """Print task start message."""
        click.echo(f"Starting '{name}'...")

    def print_task_done(self, name: str, seconds: float) -> None:
        """Print task completion with elapsed time."""
        click.echo(f"Finished '{name}' after {seconds * 1000:.0f} ms")

    def print_task_failed(self, name: str, reason: str) -> None:
        """Print task failure message."""
        click.secho(f"TASK FAILED: {name}", fg="red", err=True)
        click.echo(f"Error: {reason}", err=True)

    def print_task_skipped(self, name: str, reason: str) -> None:
        """Print why a task was not run."""
        click.echo(f"Skipping '{name}' ({reason})")

    def print_transform_error(self, err, stack: Optional[str] = None) -> None:
        """Report one per-file error with path and position when known."""
        if self.beep:
            click.echo("\a", nl=False, err=True)
        location = err.source_path
        if err.position:
            location = f"{location}:{err.position}"
        plugin = f" [{err.plugin}]" if err.plugin else ""
        click.echo(click.style("Error: ", fg="red") + f"{err.message} - {location}{plugin}", err=True)
        if stack and self.debug:
            click.echo(stack, err=True)

    def print_lint_errors(self, path: str, diagnostics: Sequence[dict]) -> None:
        """Print lint diagnostics for one file (never fatal)."""
        n = len(diagnostics)
        click.secho(f"JSHint Error{'(s)' if n > 1 else ''}: ({n})", bg="red", fg="white")
        for d in diagnostics:
            click.echo(f" - {path}: {d.get('line')}:{d.get('character')} - {d.get('reason')}")

    def print_filesize(self, title: str, path: str, size: int) -> None:
        """Print the size of one written file."""
        click.echo(f"{title} {click.style(path, fg='cyan')} {_human_size(size)}")

    def print_watching(self, patterns: Sequence[str], tasks: Sequence[str]) -> None:
        """Print a registered watch and the tasks it reruns."""
        click.echo(f"Watching {list(patterns)} -> {list(tasks)}")

    def print_change(self, path: str, tasks: Sequence[str]) -> None:
        """Print a detected change."""
        click.echo(f"Changed: {path} -> rerunning {list(tasks)}")

    def print_server_started(self, url: str) -> None:
        """Print dev server address."""
        click.echo(f"Dev server listening on {url}")

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        click.echo("\n" + "=" * 40)
        click.echo("RESULTS")
        click.echo("=" * 40)
        for task, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            color = "green" if status == "ok" else ("yellow" if status == "skipped" else "red")
            click.echo(f"  {task}: " + click.style(status_display, fg=color))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        click.secho(f"\nERROR: {title}", fg="red", err=True)
        click.echo(f"{message}", err=True)
        if details:
            for detail in details:
                click.echo(f"  {detail}", err=True)
        if suggestion:
            click.echo(f"\n{suggestion}", err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            click.echo("".join(traceback.format_exception(exc)), err=True)
        else:
            click.echo(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        click.echo(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            click.echo(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
