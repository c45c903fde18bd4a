"""Console rendering and progress helpers for the asset-up CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table

from .models import AssetDescriptor, Phase, UploadItem
from .orchestrator.models import BatchResult
from .progress import ProgressSnapshot, format_eta, format_speed, human_size

console = Console()

PHASE_LABELS = {
    Phase.SINGLE_UPLOAD: "upload",
    Phase.CHUNK_UPLOAD: "chunks",
    Phase.VIDEO_PROCESSING: "processing",
    Phase.COMPLETE: "done",
    Phase.ERROR: "failed",
}


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    console.print(Panel(
        table,
        title="[bold green]asset-up[/bold green]",
        subtitle="[dim]asset uploader CLI[/dim]",
        border_style="blue",
    ))


class BatchUploadProgressDisplay:
    """Event-based console display for one orchestrator batch."""

    def __init__(self):
        self._stats: Dict[str, int] = {"total": 0, "uploaded": 0, "failed": 0, "cancelled": 0}
        self._tasks: Dict[str, TaskID] = {}
        self._overall_task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None

        self._meta_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._file_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            TextColumn("[magenta]{task.fields[phase]:<10}"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("{task.fields[bytes]}"),
            TextColumn("[cyan]{task.fields[speed]}"),
            TextColumn("[dim]eta {task.fields[eta]}"),
            expand=False,
            console=console,
        )

    def attach(self, orchestrator) -> "BatchUploadProgressDisplay":
        """Subscribe to every orchestrator event this display renders."""
        orchestrator.on_queue(self.on_queue)
        orchestrator.on_metrics(self.on_metrics)
        orchestrator.on_complete(self.on_complete)
        orchestrator.on_error(self.on_error)
        orchestrator.on_cancel(self.on_cancel)
        orchestrator.on_finish(self.on_finish)
        return self

    def _emit_timeline(
        self,
        status: str,
        name: str,
        size_bytes: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {human_size(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        detail_label = f" {detail}" if detail else ""
        palette = {"DONE": "green", "FAIL": "red", "SKIP": "yellow", "INFO": "blue"}
        color = palette.get(status, "white")
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{size_label}{detail_label}")

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            Group(self._meta_progress, self._file_progress),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._meta_progress.add_task(
            "overall",
            label="Overall",
            total=1,
            completed=0,
            detail="uploaded=0 failed=0",
        )

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None
        self._overall_task_id = None

    def _update_overall_task(self) -> None:
        if self._overall_task_id is None:
            return
        done = self._stats["uploaded"] + self._stats["failed"] + self._stats["cancelled"]
        total = max(self._stats["total"], done, 1)
        self._meta_progress.update(
            self._overall_task_id,
            completed=min(done, total),
            total=total,
            detail=f"uploaded={self._stats['uploaded']} failed={self._stats['failed']}",
        )

    def _ensure_task(self, item: UploadItem) -> TaskID:
        task_id = self._tasks.get(item.id)
        if task_id is None:
            task_id = self._file_progress.add_task(
                "upload",
                label=item.name[:60],
                total=100,
                phase="queued",
                bytes="",
                speed="-",
                eta="-",
            )
            self._tasks[item.id] = task_id
        return task_id

    def _drop_task(self, item: UploadItem) -> None:
        task_id = self._tasks.pop(item.id, None)
        if task_id is not None:
            self._file_progress.remove_task(task_id)

    def on_queue(self, items) -> None:
        pending = [item for item in items if not item.is_terminal]
        if not pending:
            return
        self._start_live()
        self._stats["total"] = max(self._stats["total"], len(pending))
        for item in pending:
            self._ensure_task(item)
        self._update_overall_task()

    def on_metrics(self, item: UploadItem, snapshot: ProgressSnapshot) -> None:
        self._start_live()
        task_id = self._ensure_task(item)
        self._file_progress.update(
            task_id,
            completed=snapshot.percent,
            phase=PHASE_LABELS.get(snapshot.phase, snapshot.phase.value),
            bytes=f"{human_size(snapshot.bytes_sent)}/{human_size(snapshot.total_bytes)}",
            speed=format_speed(snapshot.speed),
            eta=format_eta(snapshot.eta),
        )

    def on_complete(self, item: UploadItem, asset: AssetDescriptor) -> None:
        self._drop_task(item)
        self._stats["uploaded"] += 1
        self._update_overall_task()
        self._emit_timeline("DONE", item.name, size_bytes=item.file.size, detail=asset.url)

    def on_error(self, item: Optional[UploadItem], message: str) -> None:
        if item is None:
            # Rejected before it was queued.
            self._emit_timeline("SKIP", "file", detail=message)
            return
        self._drop_task(item)
        self._stats["failed"] += 1
        self._update_overall_task()
        self._emit_timeline("FAIL", item.name, size_bytes=item.file.size, detail=f"cause={message}")

    def on_cancel(self, item: UploadItem) -> None:
        self._drop_task(item)
        self._stats["cancelled"] += 1
        self._update_overall_task()
        self._emit_timeline("INFO", item.name, detail="cancelled")

    def on_finish(self, result: BatchResult) -> None:
        self._stop_live()
        self._stats = {"total": 0, "uploaded": 0, "failed": 0, "cancelled": 0}
        console.print(
            f"[bold]Finished[/bold] uploaded={len(result.succeeded)} "
            f"failed={len(result.failed)} cancelled={len(result.cancelled)} "
            f"rejected={len(result.rejected)}"
        )
