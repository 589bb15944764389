"""Worker threads for codec passes.

Encoding and decoding NBT is CPU bound and blocks on file I/O, so every pass
runs on a ``CodecExecutor`` instead of the event loop. One executor belongs to
one run: ``perform`` sizes it from ``batch.codec_workers`` and the lifecycle
manager shuts it down with the watchers.
"""

from __future__ import annotations

import asyncio
import functools
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from loguru import logger

from xnbtedit.constants import DEFAULT_CODEC_WORKERS

T = TypeVar("T")


def default_codec_workers() -> int:
    """CPU count, capped at ``DEFAULT_CODEC_WORKERS``."""
    return max(1, min(os.cpu_count() or 1, DEFAULT_CODEC_WORKERS))


class CodecExecutor:
    """Lazily started thread pool for codec passes.

    The pool is created on the first ``run``. After ``shutdown`` the next
    ``run`` starts a fresh pool, so a shut down executor never strands a
    watcher that outlives it.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self.max_workers = max_workers or default_codec_workers()
        self._pool: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    @property
    def started(self) -> bool:
        return self._pool is not None

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._pool is None:
                logger.debug(f"Starting {self.max_workers} codec worker(s)")
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="xnbtedit-codec",
                )
            return self._pool

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func(*args, **kwargs)`` on a worker thread and await its result."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_pool(), functools.partial(func, *args, **kwargs)
        )

    def shutdown(self) -> None:
        """Wait for running passes to finish and stop the workers. Idempotent."""
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)
