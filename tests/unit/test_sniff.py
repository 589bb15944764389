"""Tests for gzip header detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from xnbtedit.sniff import is_compressed_header, sniff_compression


class TestIsCompressedHeader:
    def test_gzip_magic(self) -> None:
        assert is_compressed_header(b"\x1f\x8b\x08")

    @pytest.mark.parametrize(
        "header",
        [b"\x0a\x00\x05", b"\x1f\x8b\x00", b"\x1f\x8b", b"", b"<?x"],
    )
    def test_anything_else(self, header: bytes) -> None:
        assert not is_compressed_header(header)


class TestSniffCompression:
    @pytest.mark.asyncio
    async def test_gzip_file(self, sample_nbt_gz: Path) -> None:
        assert await sniff_compression(sample_nbt_gz) is True

    @pytest.mark.asyncio
    async def test_plain_file(self, sample_nbt: Path) -> None:
        assert await sniff_compression(sample_nbt) is False

    @pytest.mark.asyncio
    async def test_stream_shorter_than_magic(self, tmp_path: Path) -> None:
        short = tmp_path / "short.dat"
        short.write_bytes(b"\x1f\x8b")
        assert await sniff_compression(short) is False

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty.dat"
        empty.write_bytes(b"")
        assert await sniff_compression(empty) is False

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await sniff_compression(tmp_path / "missing.dat")
