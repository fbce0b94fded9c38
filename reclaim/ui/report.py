"""reclaim report - per-task status lines, run summary and step-summary markdown."""

import logging
from pathlib import Path
from typing import Mapping, Optional

from rich.markup import escape
from rich.table import Table

from reclaim.engine import RunReport, TaskResult, TaskStatus
from reclaim.filesystem import format_bytes
from reclaim.registry import Registry

from .console import console
from .theme import STATUS_STYLES, SYMBOLS

logger = logging.getLogger(__name__)


def format_task_line(result: TaskResult) -> str:
    symbol_key, style = STATUS_STYLES[result.status.name]
    parts = [
        f"[{style}]{SYMBOLS[symbol_key]}[/] [primary]{result.name:<12}[/] [{style}]{result.status.value}[/]"
    ]
    if result.bytes_freed:
        parts.append(f"[secondary]~{format_bytes(result.bytes_freed)}[/]")
    if result.status is not TaskStatus.SKIPPED_KEPT:
        parts.append(f"[muted]{result.duration:.1f}s[/]")
    if result.background:
        parts.append("[muted](background)[/]")
    return " ".join(parts)


def print_task_result(result: TaskResult, verbose: bool = False) -> None:
    """Print the status line for one finished task."""
    console.print(format_task_line(result))
    for failure in result.failures:
        console.print(f"    [error]{escape(failure.target)}[/]: [secondary]{escape(failure.error)}[/]")
    if verbose:
        for target in result.removed:
            console.secondary(f"removed {escape(target)}")
        for target in result.absent:
            console.secondary(f"absent  {escape(target)}")


def print_report(report: RunReport) -> None:
    """Print the final summary of a run."""
    console.blank()
    console.rule("Summary")

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Ran", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Estimated", justify="right")
    table.add_column("Disk free", justify="right")

    disk = "n/a"
    if report.disk_free_before is not None and report.disk_free_after is not None:
        disk = f"{format_bytes(report.disk_free_before)} → {format_bytes(report.disk_free_after)}"

    failed = len(report.failed)
    table.add_row(
        str(len(report.ran)),
        str(len(report.skipped)),
        f"[error]{failed}[/]" if failed else "0",
        format_bytes(report.total_bytes_freed),
        disk,
    )
    console.print(table)
    console.blank()

    if report.failed:
        console.error(f"{failed} task(s) failed: {', '.join(r.name for r in report.failed)}")
        for result in report.failed:
            for failure in result.failures:
                console.error(f"{result.name}: {escape(failure.target)}", details=escape(failure.error))
    elif report.dry_run:
        console.info("Dry run - nothing was removed")
    else:
        console.success("Cleanup complete")


def print_task_list(registry: Registry, enabled: Mapping[str, bool]) -> None:
    """Print the catalog with each task's resolved state."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Task", style="primary", no_wrap=True)
    table.add_column("Default")
    table.add_column("Will run")
    table.add_column("Background")
    table.add_column("Targets", style="secondary")

    for task in registry:
        targets = [f"pkg {p}" for p in task.packages] + list(task.paths)
        table.add_row(
            task.name,
            "remove" if task.default_enabled else "keep",
            "[success]yes[/]" if enabled.get(task.name) else "[secondary]no[/]",
            "yes" if task.background_eligible else "",
            escape("\n".join(targets)),
        )
    console.print(table)


def render_markdown(report: RunReport) -> str:
    """Render a run report as GitHub-flavored markdown."""
    title = "reclaim (dry run)" if report.dry_run else "reclaim"
    lines = [
        f"### {title}",
        "",
        "| Task | Status | Estimated |",
        "| --- | --- | --- |",
    ]
    for result in report.results:
        size = format_bytes(result.bytes_freed) if result.bytes_freed else ""
        lines.append(f"| `{result.name}` | {result.status.value} | {size} |")
    lines.append("")

    summary = (
        f"Ran {len(report.ran)}, skipped {len(report.skipped)}, failed {len(report.failed)}."
    )
    if report.disk_freed is not None:
        summary += f" Disk free changed by {format_bytes(report.disk_freed)}."
    lines.append(summary)

    for result in report.failed:
        lines.append("")
        lines.append(f"**{result.name} failed**")
        for failure in result.failures:
            lines.append(f"- `{failure.target}`: {failure.error}")
    return "\n".join(lines) + "\n"


def write_step_summary(report: RunReport, path: Optional[str]) -> None:
    """Append the markdown report to the Actions step summary file, if any."""
    if not path:
        return
    try:
        with open(Path(path), "a", encoding="utf-8") as f:
            f.write(render_markdown(report))
    except OSError as e:
        logger.warning(f"Could not write step summary to {path}: {e}")
