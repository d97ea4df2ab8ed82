"""
Manages a Rich progress display for concurrently running workflows, fed by the
workflow event channel.
"""

import asyncio

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from hls_cli.core.events import (
    PhaseCompleted,
    ProgressChanged,
    SizeProbeCompleted,
    SizeProbeProgress,
    TaskErrored,
    WorkflowEvent,
)

_PHASE_STATUS = {
    "attach": "[cyan]attached[/cyan]",
    "download": "[blue]✓ downloaded[/blue]",
    "combine": "[green]✓ done[/green]",
}


class ProgressManager:
    """One progress bar per task, updated from ProgressChanged samples."""

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}"),
            console=console,
            transient=False,
            disable=quiet,
        )
        self._tasks: dict[str, TaskID] = {}

    def add_task(self, url: str, name: str, total_size: int = 0) -> TaskID:
        description = name if len(name) <= 40 else name[:37] + "..."
        task_id = self.progress.add_task(
            description, total=total_size or None, status="[dim]attaching…[/dim]"
        )
        self._tasks[url] = task_id
        return task_id

    def handle_event(self, event: WorkflowEvent) -> None:
        """EventChannel subscriber; ignores events for unknown tasks."""
        task_id = self._tasks.get(event.url)
        if task_id is None:
            return

        if isinstance(event, ProgressChanged):
            self.progress.update(
                task_id,
                total=event.progress.total_bytes or None,
                completed=event.progress.completed_bytes,
                status="",
            )
        elif isinstance(event, SizeProbeProgress):
            self.progress.update(
                task_id,
                status=f"[dim]sizing {event.completed}/{event.total}[/dim]",
            )
        elif isinstance(event, SizeProbeCompleted):
            self.progress.update(task_id, total=event.total_size or None, status="")
        elif isinstance(event, PhaseCompleted):
            self.progress.update(task_id, status=_PHASE_STATUS.get(event.phase, ""))
        elif isinstance(event, TaskErrored):
            self.progress.update(task_id, status="[red]✗ failed[/red]")
            self.progress.stop_task(task_id)

    async def __aenter__(self):
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.sleep(0.2)
        self.progress.stop()
