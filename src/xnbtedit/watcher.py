"""Edit mode: watch a converted text file and write edits back to the binary.

State transitions::

    IDLE -> SETTLING -> CONVERTING -> IDLE
    any  -> CLOSED

A write event moves an idle watcher to SETTLING, where it waits until the
file's size and mtime stop changing for ``stability_threshold`` seconds. The
reverse pass then runs in CONVERTING. Events that arrive while converting
are folded into one more pass afterwards, so reverse passes for a watcher
never overlap.

Filesystem events come from a ``watchdog`` observer thread and are handed to
the asyncio loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import os
from enum import Enum
from pathlib import Path

from loguru import logger
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers.api import BaseObserver, ObservedWatch

from xnbtedit.codec import CodecPipe
from xnbtedit.constants import DEFAULT_POLL_INTERVAL, DEFAULT_STABILITY_THRESHOLD
from xnbtedit.errors import ErrorKind, XnbtEditError

_WRITE_EVENTS = frozenset(
    {EVENT_TYPE_MODIFIED, EVENT_TYPE_CREATED, EVENT_TYPE_MOVED, EVENT_TYPE_CLOSED}
)


class WatcherState(str, Enum):
    """Lifecycle state of an ``EditWatcher``."""

    IDLE = "idle"
    SETTLING = "settling"
    CONVERTING = "converting"
    CLOSED = "closed"


def _same_file_keys(path: Path) -> frozenset[str]:
    return frozenset({os.path.abspath(path), os.path.realpath(path)})


class _TextFileHandler(FileSystemEventHandler):
    """Forwards write events for one file to its watcher."""

    def __init__(self, watcher: EditWatcher) -> None:
        super().__init__()
        self._watcher = watcher
        self._keys = _same_file_keys(watcher.text_path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _WRITE_EVENTS:
            return
        target = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
        target = os.fsdecode(target)
        if os.path.abspath(target) in self._keys or os.path.realpath(target) in self._keys:
            self._watcher.notify()


class EditWatcher:
    """Reflects completed edits of ``text_path`` back into ``binary_path``."""

    def __init__(
        self,
        text_path: Path,
        binary_path: Path,
        *,
        compressed: bool,
        codec: CodecPipe,
        observer: BaseObserver | None = None,
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.text_path = Path(text_path)
        self.binary_path = Path(binary_path)
        self.compressed = compressed
        self.state = WatcherState.IDLE
        self.conversions = 0
        self.failures = 0
        self.last_error: XnbtEditError | None = None

        self._codec = codec
        self._observer = observer
        self._stability_threshold = stability_threshold
        self._poll_interval = poll_interval
        self._handler: _TextFileHandler | None = None
        self._watch: ObservedWatch | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None
        self._idle: asyncio.Event | None = None

    @property
    def closed(self) -> bool:
        return self.state == WatcherState.CLOSED

    async def start(self) -> None:
        """Begin observing. Must be called from the event loop thread."""
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._task = self._loop.create_task(self._run(), name=f"watch:{self.text_path.name}")

        if self._observer is not None:
            self._handler = _TextFileHandler(self)
            self._watch = self._observer.schedule(
                self._handler, str(self.text_path.parent), recursive=False
            )
        logger.info(f"Watching {self.text_path} for changes")

    def notify(self) -> None:
        """Report a write to the text file. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed() or self.closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._mark_dirty()
        else:
            loop.call_soon_threadsafe(self._mark_dirty)

    def _mark_dirty(self) -> None:
        if self.closed or self._wake is None or self._idle is None:
            return
        self._idle.clear()
        self._wake.set()

    async def wait_idle(self) -> None:
        """Wait until no edit is pending or being converted."""
        if self._idle is not None:
            await self._idle.wait()

    def _snapshot(self) -> tuple[int, int] | None:
        try:
            stat = self.text_path.stat()
        except FileNotFoundError:
            # Editors that save by rename leave a short gap
            return None
        return stat.st_size, stat.st_mtime_ns

    async def _wait_until_stable(self) -> None:
        loop = asyncio.get_running_loop()
        last = self._snapshot()
        stable_since = loop.time()
        while True:
            await asyncio.sleep(self._poll_interval)
            current = self._snapshot()
            if current != last:
                last = current
                stable_since = loop.time()
            elif loop.time() - stable_since >= self._stability_threshold:
                return

    async def _reverse_pass(self) -> None:
        try:
            await self._codec.reverse(
                self.text_path, self.binary_path, compressed=self.compressed
            )
        except Exception as e:
            self.failures += 1
            self.last_error = XnbtEditError(
                ErrorKind.CODEC_FAILURE,
                f"Could not write edits back: {e}",
                path=self.text_path,
                cause=e,
            )
            logger.error(str(self.last_error))
            return
        self.conversions += 1
        logger.info(f"Saved edits to {self.binary_path}")

    async def _run(self) -> None:
        assert self._wake is not None and self._idle is not None
        while True:
            await self._wake.wait()
            self._wake.clear()

            self.state = WatcherState.SETTLING
            await self._wait_until_stable()
            # Writes seen while settling are covered by the stability check
            self._wake.clear()

            self.state = WatcherState.CONVERTING
            await self._reverse_pass()

            if not self._wake.is_set():
                self.state = WatcherState.IDLE
                self._idle.set()

    def close(self) -> None:
        """Stop observing. Idempotent; safe after the event loop has closed."""
        if self.closed:
            return
        self.state = WatcherState.CLOSED

        if self._observer is not None and self._watch is not None and self._handler:
            try:
                self._observer.remove_handler_for_watch(self._handler, self._watch)
            except (KeyError, ValueError):
                pass
            self._watch = None

        loop = self._loop
        if self._task is not None and not self._task.done() and loop is not None:
            if not loop.is_closed():
                try:
                    running = asyncio.get_running_loop()
                except RuntimeError:
                    running = None
                if running is loop:
                    self._task.cancel()
                    if self._idle is not None:
                        self._idle.set()
                else:
                    loop.call_soon_threadsafe(self._task.cancel)
        logger.debug(f"Stopped watching {self.text_path}")
