"""Per-input conversion: backup, codec pass and watcher attachment.

State transitions::

    PLANNED -> BACKED_UP -> CONVERTING -> DONE
            -> CONVERTING -> DONE        (no backup needed)
    any     -> FAILED
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from xnbtedit.codec import CodecError, CodecPipe
from xnbtedit.config import WatchConfig
from xnbtedit.errors import ErrorKind, XnbtEditError
from xnbtedit.planner import is_text_source
from xnbtedit.sniff import sniff_compression
from xnbtedit.types import ConversionJobResult, ConversionRequest, PlannedOutput
from xnbtedit.utils.fs import backup_path, copy_file_async
from xnbtedit.watcher import EditWatcher

if TYPE_CHECKING:
    from xnbtedit.lifecycle import LifecycleManager


class JobState(str, Enum):
    """State of one conversion job."""

    PLANNED = "planned"
    BACKED_UP = "backed_up"
    CONVERTING = "converting"
    DONE = "done"
    FAILED = "failed"


async def write_backup(source: Path) -> Path:
    """Copy ``source`` byte for byte to ``<source>.backup``.

    Raises:
        XnbtEditError: ``BACKUP_WRITE_FAILED``
    """
    target = backup_path(source)
    try:
        size = await copy_file_async(source, target)
    except OSError as e:
        raise XnbtEditError(
            ErrorKind.BACKUP_WRITE_FAILED,
            f"Could not write backup: {e.strerror or e}",
            path=target,
            cause=e,
        ) from e
    logger.info(f"Backed up {source.name} to {target} ({size} bytes)")
    return target


class ConversionJob:
    """Converts one planned input and, in edit mode, starts watching it."""

    def __init__(
        self,
        entry: PlannedOutput,
        request: ConversionRequest,
        codec: CodecPipe,
        lifecycle: LifecycleManager | None = None,
        watch_config: WatchConfig | None = None,
    ) -> None:
        self.entry = entry
        self.request = request
        self.codec = codec
        self.lifecycle = lifecycle
        self.watch_config = watch_config or WatchConfig()
        self.state = JobState.PLANNED
        self.compressed: bool | None = request.compressed

    @property
    def source(self) -> Path:
        return self.entry.source.path

    def _fail(self, error: XnbtEditError) -> XnbtEditError:
        self.state = JobState.FAILED
        return error

    async def _run_codec(self, forward: bool, destination: Path, compressed: bool) -> None:
        self.state = JobState.CONVERTING
        try:
            if forward:
                await self.codec.forward(
                    self.source,
                    destination,
                    compressed=compressed,
                    alternate_syntax=self.request.alternate_syntax,
                )
            else:
                await self.codec.reverse(self.source, destination, compressed=compressed)
        except CodecError as e:
            raise self._fail(
                XnbtEditError(
                    ErrorKind.CODEC_FAILURE,
                    f"Conversion failed: {e}",
                    path=self.source,
                    cause=e,
                )
            ) from e
        except BaseException:
            self.state = JobState.FAILED
            raise
        self.state = JobState.DONE
        logger.info(f"Converted {self.source.name} -> {destination}")

    async def _resolve_compression(self) -> bool:
        if self.compressed is not None:
            return self.compressed
        try:
            self.compressed = await sniff_compression(self.source)
        except OSError as e:
            raise self._fail(
                XnbtEditError(
                    ErrorKind.CODEC_FAILURE,
                    f"Could not read input: {e.strerror or e}",
                    path=self.source,
                    cause=e,
                )
            ) from e
        logger.debug(f"Sniffed {self.source.name}: compressed={self.compressed}")
        return self.compressed

    async def _backup(self, path: Path) -> None:
        try:
            await write_backup(path)
        except XnbtEditError:
            self.state = JobState.FAILED
            raise
        self.state = JobState.BACKED_UP

    async def _start_reverse(self) -> ConversionJobResult:
        destination = self.entry.destination
        if destination is None:
            raise self._fail(
                XnbtEditError(
                    ErrorKind.NO_DESTINATION_FOR_REVERSE_CONVERSION,
                    "Text input needs an output file",
                    path=self.source,
                )
            )
        if self.compressed is None:
            raise self._fail(
                XnbtEditError(
                    ErrorKind.COMPRESSION_STATE_REQUIRED,
                    "Compression must be stated for text input",
                    path=self.source,
                )
            )
        if destination.is_file():
            await self._backup(destination)

        task = asyncio.create_task(self._run_codec(False, destination, self.compressed))
        return ConversionJobResult(
            source=self.source,
            destination=destination,
            ephemeral=self.entry.ephemeral,
            completion=task,
        )

    async def _start_forward(self) -> ConversionJobResult:
        destination = self.entry.destination
        if destination is None:
            raise self._fail(
                XnbtEditError(
                    ErrorKind.NO_OUTPUT_AND_NOT_EDITING,
                    "No output planned",
                    path=self.source,
                )
            )
        compressed = await self._resolve_compression()

        if not self.request.edit:
            task = asyncio.create_task(self._run_codec(True, destination, compressed))
            return ConversionJobResult(
                source=self.source,
                destination=destination,
                ephemeral=self.entry.ephemeral,
                completion=task,
            )

        # Edits are written back over the source, so keep the original
        await self._backup(self.source)
        await self._run_codec(True, destination, compressed)

        watcher = EditWatcher(
            destination,
            self.source,
            compressed=compressed,
            codec=self.codec,
            observer=self.lifecycle.observer if self.lifecycle is not None else None,
            stability_threshold=self.watch_config.stability_threshold,
            poll_interval=self.watch_config.poll_interval,
        )
        await watcher.start()
        if self.lifecycle is not None:
            self.lifecycle.register(
                watcher, destination if self.entry.ephemeral else None
            )
        return ConversionJobResult(
            source=self.source,
            destination=destination,
            ephemeral=self.entry.ephemeral,
            watcher=watcher,
        )

    async def start(self) -> ConversionJobResult:
        """Start the job.

        In edit mode the forward pass is awaited and the result carries the
        watcher. Otherwise the result carries the pending codec pass as
        ``completion``.

        Raises:
            XnbtEditError: The job failed before or while converting
        """
        if is_text_source(self.request, self.source):
            return await self._start_reverse()
        return await self._start_forward()


async def run_job(
    entry: PlannedOutput,
    request: ConversionRequest,
    codec: CodecPipe,
    lifecycle: LifecycleManager | None = None,
    watch_config: WatchConfig | None = None,
) -> ConversionJobResult:
    """Start a job and wait for its codec pass to finish."""
    result = await ConversionJob(entry, request, codec, lifecycle, watch_config).start()
    if result.completion is not None:
        await result.completion
    return result
