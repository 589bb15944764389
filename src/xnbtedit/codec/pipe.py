"""Forward (binary -> text) and reverse (text -> binary) codec passes.

Both passes stream: the forward pass reads through a buffered, optionally
gzip-decompressing stream and writes text as it goes; the reverse pass
writes binary to a scratch file, then copies (and optionally compresses) it
over the destination in one atomic rename. A failed pass never leaves a
partially written destination behind.

The blocking work runs on a ``CodecExecutor``; the async entry points are
what the orchestration layer awaits.
"""

from __future__ import annotations

import gzip
import shutil
import tempfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Protocol

from loguru import logger

from xnbtedit.codec.binary import NbtReader, NbtWriter
from xnbtedit.codec.errors import CodecIOError, MalformedInputError
from xnbtedit.codec.snbt import SnbtEmitter, SnbtParser
from xnbtedit.codec.xmltext import XmlEmitter, parse_xml
from xnbtedit.constants import COPY_CHUNK_SIZE
from xnbtedit.utils.executor import CodecExecutor
from xnbtedit.utils.fs import atomic_output


class CodecPipe(Protocol):
    """The two codec operations consumed by conversion jobs and watchers."""

    async def forward(
        self,
        source: Path,
        destination: Path,
        *,
        compressed: bool,
        alternate_syntax: bool = False,
    ) -> None: ...

    async def reverse(self, source: Path, destination: Path, *, compressed: bool) -> None: ...


@contextmanager
def _translate_errors(source: Path) -> Iterator[None]:
    """Map stream-level failures onto the codec error hierarchy."""
    try:
        yield
    except (gzip.BadGzipFile, zlib.error, EOFError) as exc:
        raise MalformedInputError(f"Corrupt gzip stream in {source.name}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise MalformedInputError(f"{source.name} is not UTF-8 text: {exc.reason}") from exc
    except OSError as exc:
        raise CodecIOError(f"{exc.strerror or exc} ({exc.filename or source})") from exc


def _open_binary(path: Path, compressed: bool) -> BinaryIO:
    if compressed:
        return gzip.open(path, "rb")  # type: ignore[return-value]
    return open(path, "rb", buffering=COPY_CHUNK_SIZE)


def forward_convert_sync(
    source: Path, destination: Path, compressed: bool, alternate_syntax: bool = False
) -> None:
    """Convert the binary ``source`` into text at ``destination``."""
    with _translate_errors(source):
        with _open_binary(source, compressed) as raw:
            with atomic_output(destination, "w", encoding="utf-8") as out:
                emitter = SnbtEmitter(out) if alternate_syntax else XmlEmitter(out)
                NbtReader(raw).walk(emitter)
                emitter.close()


def sniff_text_syntax(path: Path) -> str:
    """Return ``"xml"`` or ``"snbt"`` from the first non-blank character."""
    with open(path, encoding="utf-8-sig") as f:
        while chunk := f.read(COPY_CHUNK_SIZE):
            stripped = chunk.lstrip()
            if stripped:
                return "xml" if stripped[0] == "<" else "snbt"
    raise MalformedInputError(f"{path.name} is empty")


def reverse_convert_sync(source: Path, destination: Path, compressed: bool) -> None:
    """Convert the text ``source`` (XML or SNBT) into binary at ``destination``."""
    with _translate_errors(source):
        syntax = sniff_text_syntax(source)
        with tempfile.TemporaryFile() as scratch:
            writer = NbtWriter(scratch)
            if syntax == "xml":
                parse_xml(str(source), writer)
            else:
                SnbtParser(source.read_text(encoding="utf-8-sig")).parse(writer)
            writer.finish()
            scratch.seek(0)

            with atomic_output(destination, "wb") as out:
                if compressed:
                    with gzip.GzipFile(filename="", mode="wb", fileobj=out) as gz:
                        shutil.copyfileobj(scratch, gz, COPY_CHUNK_SIZE)
                else:
                    shutil.copyfileobj(scratch, out, COPY_CHUNK_SIZE)


class NbtCodecPipe:
    """Default ``CodecPipe``: NBT binary <-> XML/SNBT text.

    Args:
        executor: Worker threads the passes run on
    """

    def __init__(self, executor: CodecExecutor) -> None:
        self.executor = executor

    async def forward(
        self,
        source: Path,
        destination: Path,
        *,
        compressed: bool,
        alternate_syntax: bool = False,
    ) -> None:
        logger.debug(
            f"Forward pass {source} -> {destination} "
            f"(compressed={compressed}, snbt={alternate_syntax})"
        )
        await self.executor.run(
            forward_convert_sync, Path(source), Path(destination), compressed, alternate_syntax
        )

    async def reverse(self, source: Path, destination: Path, *, compressed: bool) -> None:
        logger.debug(f"Reverse pass {source} -> {destination} (compressed={compressed})")
        await self.executor.run(
            reverse_convert_sync, Path(source), Path(destination), compressed
        )
