"""NBT tag kinds and the event interface shared by readers and writers."""

from __future__ import annotations

from enum import IntEnum
from typing import Protocol


class TagType(IntEnum):
    """NBT tag ids as they appear on the wire."""

    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12

    @property
    def label(self) -> str:
        """Text name of the tag kind (``byte-array``, ``compound``...)."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def from_label(cls, label: str) -> TagType:
        return cls[label.upper().replace("-", "_")]


INTEGER_TAGS = frozenset({TagType.BYTE, TagType.SHORT, TagType.INT, TagType.LONG})
FLOAT_TAGS = frozenset({TagType.FLOAT, TagType.DOUBLE})
ARRAY_TAGS = {
    TagType.BYTE_ARRAY: TagType.BYTE,
    TagType.INT_ARRAY: TagType.INT,
    TagType.LONG_ARRAY: TagType.LONG,
}

# Signed ranges of the integer kinds
INTEGER_BITS = {
    TagType.BYTE: 8,
    TagType.SHORT: 16,
    TagType.INT: 32,
    TagType.LONG: 64,
}


def check_integer(tag: TagType, value: int) -> int:
    """Return ``value`` if it fits the signed width of ``tag``."""
    bits = INTEGER_BITS[tag]
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise ValueError(f"{value} out of range for {tag.label}")
    return value


Scalar = int | float | str


class TagSink(Protocol):
    """Receiver of a depth-first walk over an NBT document.

    ``name`` is the tag name for tags inside a compound (and for the root),
    and None for list items.
    """

    def start_compound(self, name: str | None) -> None: ...

    def end_compound(self) -> None: ...

    def start_list(
        self, name: str | None, item_type: TagType | None, length: int | None
    ) -> None: ...

    def end_list(self) -> None: ...

    def scalar(self, name: str | None, tag: TagType, value: Scalar) -> None: ...

    def array(self, name: str | None, tag: TagType, values: list[int]) -> None: ...
