"""Process-wide cleanup of edit watchers and ephemeral outputs.

Edit mode leaves watchers running and temporary text files on disk until the
user stops the process. ``LifecycleManager`` owns them, together with the
single ``watchdog`` observer thread they share, and tears everything down in
``close()``. ``close()`` is synchronous and idempotent so it can run from a
``finally`` block and again from an ``atexit`` hook.
"""

from __future__ import annotations

import atexit
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from loguru import logger
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from xnbtedit.utils.executor import CodecExecutor
from xnbtedit.watcher import EditWatcher

_OBSERVER_JOIN_TIMEOUT = 5.0  # seconds


@dataclass(frozen=True)
class LifecycleEntry:
    """A watcher and, if ephemeral, the text file it watches."""

    watcher: EditWatcher | None
    ephemeral: Path | None = None


def _prune_empty_dirs(root: Path) -> None:
    """Remove ``root`` and its subdirectories, bottom-up, while they are empty."""
    if not root.is_dir():
        return
    for current, _dirs, _files in os.walk(root, topdown=False):
        try:
            os.rmdir(current)
        except OSError:
            # Not empty: something other than our outputs lives there
            continue


class LifecycleManager:
    """Registry of watchers and ephemeral files for one process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[LifecycleEntry] = []
        self._ephemeral_dirs: list[Path] = []
        self._executors: list[CodecExecutor] = []
        self._observer: BaseObserver | None = None
        self._closed = False
        self._exit_hook_installed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def entries(self) -> tuple[LifecycleEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    @property
    def watchers(self) -> list[EditWatcher]:
        return [entry.watcher for entry in self.entries if entry.watcher is not None]

    @property
    def observer(self) -> BaseObserver:
        """The shared filesystem observer, started on first use."""
        with self._lock:
            if self._observer is None:
                observer = Observer()
                observer.daemon = True
                observer.start()
                self._observer = observer
                logger.debug("Started filesystem observer")
            return self._observer

    def register(self, watcher: EditWatcher | None, ephemeral: Path | None = None) -> None:
        """Track a watcher and the ephemeral file to delete at shutdown.

        A watcher registered after ``close()`` is closed immediately.
        """
        with self._lock:
            closed = self._closed
            if not closed:
                self._entries.append(LifecycleEntry(watcher=watcher, ephemeral=ephemeral))
        if closed and watcher is not None:
            watcher.close()

    def register_ephemeral_dir(self, path: Path) -> None:
        """Track a temporary directory to remove at shutdown if left empty."""
        with self._lock:
            self._ephemeral_dirs.append(Path(path))

    def register_executor(self, executor: CodecExecutor) -> None:
        """Shut ``executor`` down once the watchers that use it are closed."""
        with self._lock:
            closed = self._closed
            if not closed:
                self._executors.append(executor)
        if closed:
            executor.shutdown()

    def install_exit_hook(self) -> None:
        """Run ``close()`` at interpreter exit as well."""
        with self._lock:
            if self._exit_hook_installed:
                return
            self._exit_hook_installed = True
        atexit.register(self.close)

    def close(self) -> None:
        """Close watchers, stop codec workers, delete ephemeral files and stop the observer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            entries = list(self._entries)
            directories = list(self._ephemeral_dirs)
            executors = list(self._executors)
            observer = self._observer
            self._entries.clear()
            self._ephemeral_dirs.clear()
            self._executors.clear()
            self._observer = None

        for entry in entries:
            if entry.watcher is not None:
                entry.watcher.close()
        # Let reverse passes already on a worker finish before their files go
        for executor in executors:
            executor.shutdown()

        removed = 0
        for entry in entries:
            if entry.watcher is None or entry.ephemeral is None:
                continue
            try:
                entry.ephemeral.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove {entry.ephemeral}: {e}")

        if observer is not None:
            observer.stop()
            if observer.is_alive() and observer is not threading.current_thread():
                observer.join(timeout=_OBSERVER_JOIN_TIMEOUT)

        for directory in reversed(directories):
            _prune_empty_dirs(directory)

        if entries or directories:
            logger.debug(
                f"Shut down {len(entries)} watcher(s), removed {removed} ephemeral file(s)"
            )

    def __enter__(self) -> LifecycleManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
