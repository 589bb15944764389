"""File system utilities for xnbtedit.

Atomic writes (temp file + rename) for codec output and configuration, and
the streaming byte copy used for backups.
"""

from __future__ import annotations

import os
import stat
import sys
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

import aiofiles

from xnbtedit.constants import BACKUP_SUFFIX, COPY_CHUNK_SIZE

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms

# Read once: os.umask can only be queried by setting it
_UMASK = os.umask(0)
os.umask(_UMASK)


def _replace_with_retry(src: str, dst: Path) -> None:
    """Replace file with retry logic for Windows file locking.

    On Windows, os.replace() can fail with PermissionError while an editor or
    indexer briefly holds the target open.
    """
    if sys.platform != "win32":
        os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                time.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


def _output_mode(path: Path) -> int:
    """Permission bits for a file written over ``path``.

    An existing file keeps its mode. A new one gets what ``open()`` would give
    it, ``0o666`` less the umask, rather than the ``0o600`` of a temp file.
    """
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


@contextmanager
def atomic_output(
    path: Path, mode: str = "wb", encoding: str | None = None
) -> Iterator[IO[Any]]:
    """Open a temp file next to ``path`` and move it over ``path`` on success.

    If the block raises, the temp file is removed and ``path`` is left as it
    was. The result has the permissions of the file it replaces, or the
    umask default for a new file.

    Args:
        path: Target file path
        mode: "w" or "wb"
        encoding: Text encoding for mode "w"

    Yields:
        The open temp file
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=f".{path.name}.", dir=parent)
    try:
        with os.fdopen(fd, mode, encoding=encoding) as f:
            os.chmod(tmp_path, _output_mode(path))
            yield f
        _replace_with_retry(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write text to file atomically using temp file + rename.

    Args:
        path: Target file path
        content: Text content to write
        encoding: Text encoding (default: utf-8)
    """
    with atomic_output(path, "w", encoding=encoding) as f:
        f.write(content)


def backup_path(path: Path) -> Path:
    """Return the backup location for ``path`` (``<path>.backup``)."""
    return path.with_name(path.name + BACKUP_SUFFIX)


async def copy_file_async(src: Path, dst: Path) -> int:
    """Copy ``src`` to ``dst`` byte for byte without loading it whole.

    Args:
        src: File to copy
        dst: Destination file (replaced if it exists)

    Returns:
        Number of bytes copied
    """
    copied = 0
    async with aiofiles.open(src, "rb") as reader, aiofiles.open(dst, "wb") as writer:
        while chunk := await reader.read(COPY_CHUNK_SIZE):
            await writer.write(chunk)
            copied += len(chunk)
    return copied
