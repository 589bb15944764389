"""Codec error hierarchy.

    CodecError (base)
    ├── MalformedInputError (the input does not follow the grammar)
    └── CodecIOError (reading or writing the streams failed)
"""

from __future__ import annotations


class CodecError(Exception):
    """Base exception for codec failures."""


class MalformedInputError(CodecError):
    """The input is not a valid NBT binary or text document.

    Attributes:
        position: Byte offset (binary) or line:column (text) when known
    """

    def __init__(self, message: str, *, position: str | int | None = None) -> None:
        self.position = position
        if position is not None:
            message = f"{message} at {position}"
        super().__init__(message)


class CodecIOError(CodecError):
    """An I/O error while streaming the input or output."""
