"""Run orchestration: resolve -> plan -> convert, and the edit session."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger
from rich.console import Console

from xnbtedit.batch import BatchRunner, RunReport
from xnbtedit.codec import CodecPipe, NbtCodecPipe
from xnbtedit.errors import ErrorKind, XnbtEditError
from xnbtedit.job import ConversionJob
from xnbtedit.planner import plan_outputs
from xnbtedit.resolver import resolve_inputs
from xnbtedit.types import ConversionJobResult, ConversionRequest, PlannedOutput
from xnbtedit.utils.executor import CodecExecutor

if TYPE_CHECKING:
    from xnbtedit.config import EditorConfig, XnbtEditConfig
    from xnbtedit.lifecycle import LifecycleManager


def validate_request(request: ConversionRequest) -> None:
    """Reject requests that cannot succeed, before anything touches disk."""
    if not request.input:
        raise XnbtEditError(ErrorKind.NO_INPUT, "No input given")
    if not request.edit and not request.output:
        raise XnbtEditError(
            ErrorKind.NO_OUTPUT_AND_NOT_EDITING, "Give an output with --output or use --edit"
        )


async def perform(
    request: ConversionRequest,
    config: XnbtEditConfig,
    lifecycle: LifecycleManager,
    *,
    codec: CodecPipe | None = None,
    show_progress: bool = False,
    console: Console | None = None,
) -> RunReport:
    """Convert every input of ``request``.

    Resolution and planning errors are raised before any job starts. Job
    failures are recorded in the returned report instead.

    Args:
        request: What to convert and how
        config: Loaded configuration
        lifecycle: Owner of watchers and ephemeral outputs for this run
        codec: Codec to use. Defaults to an ``NbtCodecPipe`` on
            ``config.batch.codec_workers`` threads, shut down with ``lifecycle``
        show_progress: Show a progress bar for bulk runs
        console: Console for the progress bar

    Returns:
        Per-input outcomes. In edit mode the watchers stay active.

    Raises:
        XnbtEditError: The run could not start
    """
    validate_request(request)
    inputs = await resolve_inputs(request.input, request.bulk)
    plan = plan_outputs(request, inputs, lifecycle)
    if codec is None:
        executor = CodecExecutor(config.batch.codec_workers)
        lifecycle.register_executor(executor)
        codec = NbtCodecPipe(executor)

    async def start_job(entry: PlannedOutput) -> ConversionJobResult:
        return await ConversionJob(entry, request, codec, lifecycle, config.watch).start()

    runner = BatchRunner(config.batch, show_progress=show_progress, console=console)
    return await runner.run(plan, start_job)


def edit_target(report: RunReport) -> Path | None:
    """What to open in the editor: the single watched file or the output directory."""
    watchers = report.watchers
    if len(report.results) == 1 and watchers:
        return watchers[0].text_path
    if report.output_dir is not None:
        return Path(report.output_dir)
    return watchers[0].text_path if watchers else None


async def launch_editor(
    editor: EditorConfig, target: Path
) -> asyncio.subprocess.Process | None:
    """Start the configured editor on ``target`` without waiting for it.

    Returns:
        The editor process, or None if no editor is configured or it could
        not be started
    """
    if not editor.command:
        logger.info(f"No editor configured; edit {target} with any editor")
        return None
    try:
        process = await asyncio.create_subprocess_exec(
            editor.command, *editor.args, str(target)
        )
    except OSError as e:
        logger.error(f"Could not start editor {editor.command}: {e.strerror or e}")
        return None
    logger.info(f"Opened {target} in {editor.command}")
    return process


async def run_edit_session(report: RunReport, config: XnbtEditConfig) -> None:
    """Open the editor and keep watchers running until cancelled.

    The session outlives the editor process: editors that detach (or a
    closed editor window) do not stop the write-back.
    """
    target = edit_target(report)
    if target is None or not report.watchers:
        logger.warning("Nothing to edit: no output is being watched")
        return

    process = await launch_editor(config.editor, target)
    monitor = asyncio.create_task(_log_editor_exit(process)) if process is not None else None
    try:
        await asyncio.Event().wait()
    finally:
        if monitor is not None:
            monitor.cancel()


async def _log_editor_exit(process: asyncio.subprocess.Process) -> None:
    code = await process.wait()
    logger.debug(f"Editor exited with code {code}; still watching for changes")
