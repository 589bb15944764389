"""Streaming reader and writer for the binary NBT format.

The reader walks a document depth-first and reports every tag to a
``TagSink``; it never holds more than one array in memory. The writer is a
``TagSink`` itself and needs a seekable stream: list headers are written with
placeholder type and count and patched when the list closes, which lets text
parsers feed it without knowing list sizes up front.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from xnbtedit.codec.errors import MalformedInputError
from xnbtedit.codec.tags import (
    ARRAY_TAGS,
    INTEGER_TAGS,
    Scalar,
    TagSink,
    TagType,
    check_integer,
)
from xnbtedit.constants import COPY_CHUNK_SIZE, MAX_NBT_DEPTH

_SCALAR_FORMATS = {
    TagType.BYTE: ">b",
    TagType.SHORT: ">h",
    TagType.INT: ">i",
    TagType.LONG: ">q",
    TagType.FLOAT: ">f",
    TagType.DOUBLE: ">d",
}
_ARRAY_ITEM_CODES = {
    TagType.BYTE_ARRAY: "b",
    TagType.INT_ARRAY: "i",
    TagType.LONG_ARRAY: "q",
}
_LENGTH = struct.Struct(">i")
_STRING_LENGTH = struct.Struct(">H")
_MAX_STRING_BYTES = 0xFFFF


def decode_modified_utf8(data: bytes) -> str:
    """Decode Java modified UTF-8 (NUL as C0 80, CESU-8 surrogate pairs)."""
    if data.isascii():
        return data.decode("ascii")
    try:
        text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    except UnicodeDecodeError as exc:
        raise MalformedInputError(f"Invalid string encoding: {exc.reason}") from exc
    # Re-join surrogate pairs into single code points
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


def encode_modified_utf8(text: str) -> bytes:
    """Encode ``text`` as Java modified UTF-8."""
    if text.isascii() and "\x00" not in text:
        return text.encode("ascii")
    out = bytearray()
    for ch in text:
        cp = ord(ch)
        if cp == 0:
            out += b"\xc0\x80"
        elif cp > 0xFFFF:
            cp -= 0x10000
            for unit in (0xD800 + (cp >> 10), 0xDC00 + (cp & 0x3FF)):
                out += chr(unit).encode("utf-8", "surrogatepass")
        else:
            out += ch.encode("utf-8", "surrogatepass")
    return bytes(out)


def _tag_type(tag_id: int, offset: int) -> TagType:
    try:
        return TagType(tag_id)
    except ValueError:
        raise MalformedInputError(f"Unknown tag id {tag_id}", position=offset) from None


class NbtReader:
    """Depth-first reader over a binary NBT stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._offset = 0

    def _read(self, size: int) -> bytes:
        if size > COPY_CHUNK_SIZE:
            return self._read_chunked(size)
        data = self._stream.read(size)
        if len(data) != size:
            raise MalformedInputError("Unexpected end of data", position=self._offset)
        self._offset += size
        return data

    def _read_chunked(self, size: int) -> bytes:
        """Read a large payload piecewise.

        Array lengths come from the file, so nothing of ``size`` is allocated
        until that many bytes have actually arrived.
        """
        chunks: list[bytes] = []
        remaining = size
        while remaining:
            chunk = self._stream.read(min(remaining, COPY_CHUNK_SIZE))
            if not chunk:
                raise MalformedInputError("Unexpected end of data", position=self._offset)
            chunks.append(chunk)
            remaining -= len(chunk)
        self._offset += size
        return b"".join(chunks)

    def _unpack(self, fmt: str) -> Scalar:
        return struct.unpack(fmt, self._read(struct.calcsize(fmt)))[0]

    def _read_length(self) -> int:
        offset = self._offset
        (length,) = _LENGTH.unpack(self._read(_LENGTH.size))
        if length < 0:
            raise MalformedInputError(f"Negative length {length}", position=offset)
        return length

    def _read_string(self) -> str:
        (length,) = _STRING_LENGTH.unpack(self._read(_STRING_LENGTH.size))
        offset = self._offset
        try:
            return decode_modified_utf8(self._read(length))
        except MalformedInputError as exc:
            raise MalformedInputError(str(exc), position=offset) from exc

    def walk(self, sink: TagSink) -> None:
        """Read one complete document and report it to ``sink``."""
        tag = _tag_type(self._read(1)[0], 0)
        if tag == TagType.END:
            raise MalformedInputError("Document has no root tag", position=0)
        name = self._read_string()
        self._payload(tag, name, sink, 0)

    def _payload(self, tag: TagType, name: str | None, sink: TagSink, depth: int) -> None:
        if depth > MAX_NBT_DEPTH:
            raise MalformedInputError("Nesting too deep", position=self._offset)

        if tag in _SCALAR_FORMATS:
            sink.scalar(name, tag, self._unpack(_SCALAR_FORMATS[tag]))
        elif tag == TagType.STRING:
            sink.scalar(name, tag, self._read_string())
        elif tag in _ARRAY_ITEM_CODES:
            length = self._read_length()
            fmt = f">{length}{_ARRAY_ITEM_CODES[tag]}"
            sink.array(name, tag, list(struct.unpack(fmt, self._read(struct.calcsize(fmt)))))
        elif tag == TagType.LIST:
            item_type = _tag_type(self._read(1)[0], self._offset - 1)
            length = self._read_length()
            if item_type == TagType.END and length:
                raise MalformedInputError("List of end tags", position=self._offset)
            sink.start_list(name, item_type, length)
            for _ in range(length):
                self._payload(item_type, None, sink, depth + 1)
            sink.end_list()
        elif tag == TagType.COMPOUND:
            sink.start_compound(name)
            while True:
                child = _tag_type(self._read(1)[0], self._offset - 1)
                if child == TagType.END:
                    break
                self._payload(child, self._read_string(), sink, depth + 1)
            sink.end_compound()
        else:
            raise MalformedInputError("Unexpected end tag", position=self._offset)


@dataclass
class _ListFrame:
    item_type: TagType | None
    header_offset: int
    count: int = 0


# None marks an open compound on the writer stack
_Frame = _ListFrame | None


class NbtWriter:
    """``TagSink`` that writes binary NBT to a seekable stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._stack: list[_Frame] = []
        self._root_written = False

    def _write(self, data: bytes) -> None:
        self._stream.write(data)

    def _write_string(self, text: str) -> None:
        data = encode_modified_utf8(text)
        if len(data) > _MAX_STRING_BYTES:
            raise MalformedInputError(f"String of {len(data)} bytes is too long")
        self._write(_STRING_LENGTH.pack(len(data)))
        self._write(data)

    def _begin(self, name: str | None, tag: TagType) -> None:
        """Write whatever precedes a payload in the current context."""
        if not self._stack:
            if self._root_written:
                raise MalformedInputError("More than one root tag")
            self._root_written = True
            self._write(bytes([tag]))
            self._write_string(name or "")
            return

        frame = self._stack[-1]
        if frame is None:
            if name is None:
                raise MalformedInputError(f"Unnamed {tag.label} inside a compound")
            self._write(bytes([tag]))
            self._write_string(name)
            return

        if frame.item_type is None:
            frame.item_type = tag
        elif frame.item_type != tag:
            raise MalformedInputError(
                f"List of {frame.item_type.label} cannot hold {tag.label}"
            )
        frame.count += 1

    def start_compound(self, name: str | None) -> None:
        self._begin(name, TagType.COMPOUND)
        self._stack.append(None)

    def end_compound(self) -> None:
        if not self._stack or self._stack[-1] is not None:
            raise MalformedInputError("Unbalanced compound")
        self._stack.pop()
        self._write(bytes([TagType.END]))

    def start_list(
        self, name: str | None, item_type: TagType | None, length: int | None = None
    ) -> None:
        self._begin(name, TagType.LIST)
        if item_type == TagType.END:
            item_type = None
        frame = _ListFrame(item_type=item_type, header_offset=self._stream.tell())
        # Placeholder header, patched by end_list
        self._write(bytes([TagType.END]))
        self._write(_LENGTH.pack(0))
        self._stack.append(frame)

    def end_list(self) -> None:
        frame = self._stack.pop() if self._stack else None
        if frame is None:
            raise MalformedInputError("Unbalanced list")
        end = self._stream.tell()
        self._stream.seek(frame.header_offset)
        self._write(bytes([frame.item_type or TagType.END]))
        self._write(_LENGTH.pack(frame.count))
        self._stream.seek(end)

    def scalar(self, name: str | None, tag: TagType, value: Scalar) -> None:
        self._begin(name, tag)
        if tag == TagType.STRING:
            self._write_string(str(value))
            return
        try:
            if tag in INTEGER_TAGS:
                value = check_integer(tag, int(value))
            data = struct.pack(_SCALAR_FORMATS[tag], value)
        except (ValueError, OverflowError, struct.error) as exc:
            raise MalformedInputError(f"Bad {tag.label} value {value!r}: {exc}") from exc
        self._write(data)

    def array(self, name: str | None, tag: TagType, values: list[int]) -> None:
        self._begin(name, tag)
        item_tag = ARRAY_TAGS[tag]
        try:
            for value in values:
                check_integer(item_tag, value)
        except ValueError as exc:
            raise MalformedInputError(str(exc)) from exc
        self._write(_LENGTH.pack(len(values)))
        self._write(struct.pack(f">{len(values)}{_ARRAY_ITEM_CODES[tag]}", *values))

    def finish(self) -> None:
        """Check that exactly one complete root tag was written."""
        if self._stack:
            raise MalformedInputError("Document ends inside an open tag")
        if not self._root_written:
            raise MalformedInputError("Document has no root tag")
