from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


def _format_counts(counts: Dict[str, int]) -> str:
    if not counts:
        return ""
    return ", ".join(f"{name}={count}" for name, count in counts.items())


class RunProgress:
    """
    One progress bar over the ordered steps of a run; no-op when disabled.
    """

    def __init__(self, *, enabled: bool, total_steps: int, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console()
        self._progress: Optional[Progress] = None
        self._task: Optional[int] = None
        self._counts: Dict[str, int] = {"entities": 0, "relationships": 0}
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[counts]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )
            self._task = self._progress.add_task("Steps", total=total_steps, counts="")

    def __enter__(self) -> RunProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_step(self, step: Any) -> None:
        if not self._enabled or not self._progress or self._task is None:
            return
        self._progress.update(self._task, description=step.name)

    def finish_step(self, result: Any) -> None:
        if not self._enabled or not self._progress or self._task is None:
            return
        self._counts["entities"] += result.entities_added
        self._counts["relationships"] += result.relationships_added
        self._progress.update(self._task, advance=1, counts=_format_counts(self._counts))


def render_run_summary_table(
    *,
    enabled: bool,
    status: str,
    results: Sequence[Any],
    outdir: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Run Summary", show_header=True, header_style="bold")
    table.add_column("Step", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Entities", justify="right")
    table.add_column("Relationships", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Duration (ms)", justify="right")
    for result in results:
        table.add_row(
            result.id,
            result.status.value,
            str(result.entities_added),
            str(result.relationships_added),
            str(result.records_skipped),
            str(result.duration_ms),
        )
    table.caption = f"Status: {status}  Output: {outdir}"
    (console or Console()).print(table)
