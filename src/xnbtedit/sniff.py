"""Compression detection for binary inputs."""

from __future__ import annotations

from pathlib import Path

import aiofiles

from xnbtedit.constants import GZIP_MAGIC, MAGIC_LENGTH


def is_compressed_header(header: bytes) -> bool:
    """True if ``header`` is exactly the gzip magic number."""
    return header == GZIP_MAGIC


async def sniff_compression(path: Path) -> bool:
    """Read the first bytes of ``path`` and report whether it is gzip.

    The file is opened and closed here; the codec reopens it from offset 0.
    Streams shorter than the magic number count as uncompressed.
    """
    async with aiofiles.open(path, "rb") as f:
        header = await f.read(MAGIC_LENGTH)
    return is_compressed_header(header)
