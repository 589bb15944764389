"""Bounded concurrent execution of conversion jobs with per-file outcomes."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger
from rich.console import Console
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from xnbtedit.errors import ErrorKind, XnbtEditError
from xnbtedit.types import ConversionJobResult, OutputPlan, PlannedOutput

if TYPE_CHECKING:
    from xnbtedit.config import BatchConfig
    from xnbtedit.watcher import EditWatcher


class FileStatus(str, Enum):
    """Status of a file in a run.

    State transitions:
        PENDING -> IN_PROGRESS -> COMPLETED
                               -> FAILED
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FileState:
    """Outcome of a single input.

    Attributes:
        path: Absolute source path
        status: Current processing status
        output: Destination path, once planned
        error: Error message if status is FAILED
        error_kind: Error kind if the failure was an ``XnbtEditError``
        watching: Whether an edit watcher is attached to the output
        started_at: ISO timestamp when processing started
        completed_at: ISO timestamp when processing completed
        duration: Processing time in seconds
    """

    path: str
    status: FileStatus = FileStatus.PENDING
    output: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    watching: bool = False
    started_at: str | None = None
    completed_at: str | None = None
    duration: float | None = None


@dataclass
class RunReport:
    """Succeeded and failed inputs of one run, in input order."""

    started_at: str = ""
    finished_at: str = ""
    output_dir: str | None = None
    files: dict[str, FileState] = field(default_factory=dict)
    results: list[ConversionJobResult] = field(default_factory=list, repr=False)

    @property
    def total(self) -> int:
        return len(self.files)

    @property
    def completed_count(self) -> int:
        return sum(1 for f in self.files.values() if f.status == FileStatus.COMPLETED)

    @property
    def failed_count(self) -> int:
        return sum(1 for f in self.files.values() if f.status == FileStatus.FAILED)

    @property
    def succeeded(self) -> list[FileState]:
        return [f for f in self.files.values() if f.status == FileStatus.COMPLETED]

    @property
    def failed(self) -> list[FileState]:
        return [f for f in self.files.values() if f.status == FileStatus.FAILED]

    @property
    def ok(self) -> bool:
        return self.failed_count == 0

    @property
    def watchers(self) -> list[EditWatcher]:
        return [r.watcher for r in self.results if r.watcher is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "output_dir": self.output_dir,
            "summary": {
                "total": self.total,
                "completed": self.completed_count,
                "failed": self.failed_count,
            },
            "files": {
                key: {
                    "status": state.status.value,
                    "output": state.output,
                    "error": state.error,
                    "error_kind": state.error_kind.value if state.error_kind else None,
                    "watching": state.watching,
                    "duration": state.duration,
                }
                for key, state in self.files.items()
            },
        }


# Starts one job; returns once its codec pass is underway or done
JobFunc = Callable[[PlannedOutput], Coroutine[Any, Any, ConversionJobResult]]


class BatchRunner:
    """Runs jobs through a fixed number of slots.

    One job's failure is recorded against its input and never cancels its
    siblings. A job's pending codec pass is awaited inside its slot, so at
    most ``config.concurrency`` passes are in flight.
    """

    def __init__(
        self,
        config: BatchConfig,
        *,
        show_progress: bool = False,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.show_progress = show_progress
        self.console = console or Console(stderr=True)
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None

    def _advance(self) -> None:
        if self._progress is not None and self._task_id is not None:
            self._progress.advance(self._task_id)

    async def _process(
        self,
        entry: PlannedOutput,
        job_func: JobFunc,
        semaphore: asyncio.Semaphore,
        report: RunReport,
    ) -> None:
        file_state = report.files[str(entry.source.path)]
        file_state.status = FileStatus.IN_PROGRESS
        file_state.started_at = datetime.now().astimezone().isoformat()
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        try:
            async with semaphore:
                result = await job_func(entry)
                if result.completion is not None:
                    await result.completion

            report.results.append(result)
            file_state.status = FileStatus.COMPLETED
            file_state.output = str(result.destination) if result.destination else None
            file_state.watching = result.watcher is not None

        except XnbtEditError as e:
            file_state.status = FileStatus.FAILED
            file_state.error = str(e)
            file_state.error_kind = e.kind
            logger.error(f"Failed to convert {entry.source.path.name}: {e}")

        except Exception as e:
            file_state.status = FileStatus.FAILED
            file_state.error = str(e) or type(e).__name__
            logger.error(f"Failed to convert {entry.source.path.name}: {file_state.error}")

        finally:
            file_state.completed_at = datetime.now().astimezone().isoformat()
            file_state.duration = loop.time() - start_time
            self._advance()

    async def run(self, plan: OutputPlan, job_func: JobFunc) -> RunReport:
        """Run ``job_func`` for every planned input.

        Args:
            plan: Planned outputs, in input order
            job_func: Async function starting one job

        Returns:
            Report with one ``FileState`` per input
        """
        report = RunReport(
            started_at=datetime.now().astimezone().isoformat(),
            output_dir=str(plan.directory) if plan.directory else None,
        )
        for entry in plan.entries:
            report.files[str(entry.source.path)] = FileState(
                path=str(entry.source.path),
                output=str(entry.destination) if entry.destination else None,
            )

        semaphore = asyncio.Semaphore(self.config.concurrency)
        tasks = [self._process(entry, job_func, semaphore, report) for entry in plan.entries]

        if self.show_progress and len(tasks) > 1:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.fields[filename]:<30}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
            )
            self._task_id = self._progress.add_task(
                "Overall", total=len(tasks), filename="[Converting]"
            )
            try:
                with Live(self._progress, console=self.console, refresh_per_second=4):
                    await asyncio.gather(*tasks, return_exceptions=True)
            finally:
                self._progress = None
                self._task_id = None
        else:
            await asyncio.gather(*tasks, return_exceptions=True)

        report.finished_at = datetime.now().astimezone().isoformat()
        logger.debug(
            f"Run finished: {report.completed_count} succeeded, {report.failed_count} failed"
        )
        return report
