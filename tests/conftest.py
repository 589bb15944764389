"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import gzip
import struct
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from loguru import logger

from xnbtedit.codec import CodecError, NbtCodecPipe
from xnbtedit.config import WatchConfig
from xnbtedit.utils.executor import CodecExecutor

# =============================================================================
# NBT builders
# =============================================================================


def _string(text: str) -> bytes:
    data = text.encode("utf-8")
    return struct.pack(">H", len(data)) + data


def _named(tag_id: int, name: str, payload: bytes) -> bytes:
    return bytes([tag_id]) + _string(name) + payload


def build_sample_nbt(root_name: str = "Level", data_version: int = 3465) -> bytes:
    """A compound using every tag kind, encoded by hand."""
    items = _named(10, "", _named(1, "Count", struct.pack(">b", 3)) + b"\x00")
    items = items[3:]  # list items carry no type byte or name
    nested = (
        _named(8, "id", _string("minecraft:chest"))
        + _named(9, "items", b"\x0a" + struct.pack(">i", 1) + items)
        + b"\x00"
    )
    body = (
        _named(1, "flag", struct.pack(">b", 1))
        + _named(2, "s", struct.pack(">h", -2))
        + _named(3, "DataVersion", struct.pack(">i", data_version))
        + _named(4, "seed", struct.pack(">q", 1234567890123))
        + _named(5, "f", struct.pack(">f", 0.5))
        + _named(6, "d", struct.pack(">d", 1.25))
        + _named(8, "name", _string("Steve"))
        + _named(9, "Pos", b"\x06" + struct.pack(">i", 3) + struct.pack(">3d", 0.5, 64.0, -3.5))
        + _named(9, "empty", b"\x00" + struct.pack(">i", 0))
        + _named(10, "nested", nested)
        + _named(7, "bytes", struct.pack(">i", 3) + struct.pack(">3b", 1, 0, -1))
        + _named(11, "ints", struct.pack(">i", 3) + struct.pack(">3i", 1, 2, 3))
        + _named(12, "longs", struct.pack(">i", 2) + struct.pack(">2q", -1, 2))
    )
    return _named(10, root_name, body + b"\x00")


# =============================================================================
# Fake codec
# =============================================================================


class RecordingCodec:
    """``CodecPipe`` that records calls and writes marker files.

    ``gate`` (when set) holds every reverse pass until it is released.
    ``fail_reverse`` makes the next N reverse passes raise ``CodecError``.
    """

    def __init__(self) -> None:
        self.forward_calls: list[tuple[Path, Path, bool, bool]] = []
        self.reverse_calls: list[tuple[Path, Path, bool]] = []
        self.gate: asyncio.Event | None = None
        self.fail_forward = False
        self.fail_reverse = 0
        self.active = 0
        self.max_active = 0

    async def forward(
        self,
        source: Path,
        destination: Path,
        *,
        compressed: bool,
        alternate_syntax: bool = False,
    ) -> None:
        self.forward_calls.append((Path(source), Path(destination), compressed, alternate_syntax))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            if self.fail_forward:
                raise CodecError(f"cannot read {Path(source).name}")
            Path(destination).write_text(f"text of {Path(source).name}\n", encoding="utf-8")
        finally:
            self.active -= 1

    async def reverse(self, source: Path, destination: Path, *, compressed: bool) -> None:
        self.reverse_calls.append((Path(source), Path(destination), compressed))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fail_reverse:
                self.fail_reverse -= 1
                raise CodecError("bad edit")
            Path(destination).write_bytes(Path(source).read_bytes())
        finally:
            self.active -= 1


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _quiet_loguru() -> Iterator[None]:
    """Keep loguru handlers from outliving the streams a test captured."""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def codec_executor() -> Iterator[CodecExecutor]:
    executor = CodecExecutor(max_workers=2)
    yield executor
    executor.shutdown()


@pytest.fixture
def codec_pipe(codec_executor: CodecExecutor) -> NbtCodecPipe:
    return NbtCodecPipe(codec_executor)


@pytest.fixture
def sample_nbt_bytes() -> bytes:
    return build_sample_nbt()


@pytest.fixture
def nbt_builder() -> Callable[..., bytes]:
    return build_sample_nbt


@pytest.fixture
def sample_nbt(tmp_path: Path, sample_nbt_bytes: bytes) -> Path:
    """Uncompressed NBT file."""
    path = tmp_path / "model.dat"
    path.write_bytes(sample_nbt_bytes)
    return path


@pytest.fixture
def sample_nbt_gz(tmp_path: Path, sample_nbt_bytes: bytes) -> Path:
    """gzip-compressed NBT file."""
    path = tmp_path / "level.dat"
    path.write_bytes(gzip.compress(sample_nbt_bytes))
    return path


@pytest.fixture
def nbt_tree(tmp_path: Path) -> Path:
    """Directory with NBT files in nested subdirectories."""
    root = tmp_path / "world"
    (root / "region").mkdir(parents=True)
    (root / "players" / "data").mkdir(parents=True)
    (root / "level.dat").write_bytes(gzip.compress(build_sample_nbt(data_version=1)))
    (root / "region" / "r.0.0.dat").write_bytes(build_sample_nbt(data_version=2))
    (root / "players" / "data" / "steve.dat").write_bytes(build_sample_nbt(data_version=3))
    return root


@pytest.fixture
def recording_codec() -> RecordingCodec:
    return RecordingCodec()


@pytest.fixture
def fast_watch() -> WatchConfig:
    """Watch timing short enough for tests."""
    return WatchConfig(stability_threshold=0.05, poll_interval=0.01)
