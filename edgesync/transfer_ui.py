from __future__ import annotations

import logging
import threading

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

from edgesync.models import UploadTask
from edgesync.scheduler import UploadObserver


logger = logging.getLogger(__name__)


class TransferProgressUI(UploadObserver):
    """Rich progress display with one row per upload."""

    def __init__(self, console: Console | None = None, *, hide_finished: bool = True) -> None:
        self._console = console
        self._hide_finished = hide_finished
        self._lock = threading.Lock()
        self._task_ids: dict[str, TaskID] = {}
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]PUT"),
            TextColumn("{task.fields[key]}"),
            BarColumn(),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[state]}"),
            console=console,
            transient=False,
            expand=True,
        )

    def __enter__(self) -> "TransferProgressUI":
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def queued(self, task: UploadTask) -> None:
        with self._lock:
            self._task_ids[task.key] = self._progress.add_task(
                description=task.key,
                total=task.size or None,
                completed=0,
                start=False,
                key=task.key,
                state="queued",
            )

    def started(self, task: UploadTask) -> None:
        with self._lock:
            task_id = self._task_ids[task.key]
            self._progress.start_task(task_id)
            self._progress.update(task_id, state="uploading")

    def advanced(self, task: UploadTask, bytes_sent: int) -> None:
        with self._lock:
            self._progress.update(self._task_ids[task.key], advance=max(0, bytes_sent))

    def completed(self, task: UploadTask) -> None:
        with self._lock:
            task_id = self._task_ids.pop(task.key)
            self._progress.update(
                task_id,
                total=task.size,
                completed=task.size,
                state="done",
                visible=not self._hide_finished,
            )

    def failed(self, task: UploadTask, exc: BaseException) -> None:
        with self._lock:
            task_id = self._task_ids.get(task.key)
            if task_id is not None:
                self._progress.update(task_id, state="[red]failed")


class LoggingUploadObserver(UploadObserver):
    """Plain log lines for non-interactive runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sent: dict[str, int] = {}

    def started(self, task: UploadTask) -> None:
        with self._lock:
            self._sent[task.key] = 0

    def advanced(self, task: UploadTask, bytes_sent: int) -> None:
        with self._lock:
            self._sent[task.key] = self._sent.get(task.key, 0) + bytes_sent
            sent = self._sent[task.key]
        logger.info("Uploading %s %d/%d", task.key, sent, task.size)

    def completed(self, task: UploadTask) -> None:
        with self._lock:
            self._sent.pop(task.key, None)

    def failed(self, task: UploadTask, exc: BaseException) -> None:
        with self._lock:
            self._sent.pop(task.key, None)
        logger.error("Upload of %s failed: %s", task.key, exc)
