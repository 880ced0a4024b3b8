"""Progress reporting for downloads.

The backup manager calls a reporter at fixed points of a run. Reporters may
be shared by several worker threads, so every implementation here is safe
to call concurrently: the log reporter goes through logging handlers and the
rich reporter through one shared, internally locked ``rich.progress.Progress``.
"""

import logging
from typing import Optional

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .. import __logger__

logger = logging.getLogger(__name__)


def _mb(size: int) -> float:
    return size / 1e6


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."


class ProgressReporter:
    """Reporter capability. The base implementation does nothing."""

    def start(self, total_bytes: int, file_count: int) -> None:
        pass

    def file_start(self, name: str, size: int) -> None:
        pass

    def file_progress(self, name: str, written: int, size: int) -> None:
        pass

    def file_done(self, name: str) -> None:
        pass

    def message(self, text: str) -> None:
        pass

    def close(self) -> None:
        pass


class NullReporter(ProgressReporter):
    """Used for quiet output."""


class LogReporter(ProgressReporter):
    """Plain text progress through the logger; only file start/done are shown."""

    def __init__(self, log: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self.log = log or logger

    def start(self, total_bytes: int, file_count: int) -> None:
        self.log.info("Files: %d, Total: %.1f MB", file_count, _mb(total_bytes))

    def file_start(self, name: str, size: int) -> None:
        self.log.info("- %s (%.1f MB)", name, _mb(size))

    def file_done(self, name: str) -> None:
        self.log.debug("  done %s", name)

    def message(self, text: str) -> None:
        self.log.info("%s", text)


class JsonReporter(ProgressReporter):
    """Progress events as structured log records for json output.

    Lines are written by the json log handler, which serializes writers.
    """

    def __init__(self, log: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self.log = log or logger

    def start(self, total_bytes: int, file_count: int) -> None:
        self.log.info(
            "download started",
            extra={"meta": {"files": file_count, "bytes": total_bytes}},
        )

    def file_done(self, name: str) -> None:
        self.log.debug("file done", extra={"meta": {"file": name}})

    def message(self, text: str) -> None:
        self.log.info("%s", text)


def create_rich_progress() -> Progress:
    """One Progress display shared by every server of a run."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=30),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeElapsedColumn(),
        console=__logger__.cons,
        transient=False,
    )


class RichReporter(ProgressReporter):
    """One task (bar) per server on a shared rich Progress display."""

    def __init__(self, progress: Progress, label: str) -> None:
        self.progress = progress
        self.label = label
        self.task_id: Optional[TaskID] = None
        self._file_written = 0
        self._total = 1
        self._file_count = 0
        self._files_done = 0

    def start(self, total_bytes: int, file_count: int) -> None:
        self._total = max(total_bytes, 1)
        self._file_count = file_count
        self.task_id = self.progress.add_task(
            f"[cyan]{self.label}[/cyan] ({file_count} files)",
            total=self._total,
        )

    def file_start(self, name: str, size: int) -> None:
        self._file_written = 0
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                description=f"[cyan]{self.label}[/cyan] {_truncate(name, 30)}",
            )

    def file_progress(self, name: str, written: int, size: int) -> None:
        delta = written - self._file_written
        if delta <= 0 or self.task_id is None:
            return
        self._file_written = written
        self.progress.advance(self.task_id, delta)

    def file_done(self, name: str) -> None:
        self._files_done += 1

    def message(self, text: str) -> None:
        self.progress.console.print(text)

    def close(self) -> None:
        """Finish the bar, as done only when every file was reported done."""
        if self.task_id is None:
            return
        if self._files_done >= self._file_count:
            self.progress.update(
                self.task_id,
                description=f"[green]{self.label}[/green] done",
                completed=self._total,
            )
        else:
            self.progress.update(
                self.task_id,
                description=f"[red]{self.label}[/red] failed",
            )
            self.progress.stop_task(self.task_id)


def create_reporter(
    output_format: str,
    quiet: bool = False,
    log: logging.Logger | logging.LoggerAdapter | None = None,
    progress: Optional[Progress] = None,
    label: str = "",
) -> ProgressReporter:
    """Pick a reporter for the output mode.

    Quiet output gets the no-op reporter, json output structured records;
    rich output needs a shared Progress (only created for terminals) and
    everything else logs plain lines.
    """
    if quiet:
        return NullReporter()
    if output_format == "json":
        return JsonReporter(log)
    if output_format == "rich" and progress is not None:
        return RichReporter(progress, label)
    return LogReporter(log)
