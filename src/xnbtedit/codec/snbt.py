"""SNBT (stringified NBT) text representation.

Example::

    {
      DataVersion: 3465,
      Pos: [0.5d, 64.0d, 0.5d],
      Flags: [B; 1b, 0b, -1b],
      "display name": "Chest"
    }

Numbers carry a type suffix (``b`` byte, ``s`` short, ``L`` long, ``f``
float, ``d`` double, none for int). The root tag's name is not part of the
notation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import IO

from xnbtedit.codec.errors import MalformedInputError
from xnbtedit.codec.tags import (
    ARRAY_TAGS,
    Scalar,
    TagSink,
    TagType,
    check_integer,
)
from xnbtedit.codec.xmltext import format_float
from xnbtedit.constants import MAX_NBT_DEPTH

INDENT = "  "

_BARE = re.compile(r"[A-Za-z0-9._+-]+")
_INTEGER = re.compile(r"([-+]?(?:0|[1-9][0-9]*))([bBsSlL]?)")
_FLOAT = re.compile(
    r"([-+]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?)([fFdD]?)"
)
_SPECIAL_FLOAT = re.compile(r"([-+]?(?:nan|inf|infinity))([fFdD])", re.IGNORECASE)
_ARRAY_HEADER = re.compile(r"\[\s*([BIL])\s*;")

_INTEGER_SUFFIX = {"": TagType.INT, "b": TagType.BYTE, "s": TagType.SHORT, "l": TagType.LONG}
_FLOAT_SUFFIX = {"": TagType.DOUBLE, "d": TagType.DOUBLE, "f": TagType.FLOAT}
_ARRAY_KINDS = {"B": TagType.BYTE_ARRAY, "I": TagType.INT_ARRAY, "L": TagType.LONG_ARRAY}
_SCALAR_SUFFIX = {
    TagType.BYTE: "b",
    TagType.SHORT: "s",
    TagType.INT: "",
    TagType.LONG: "L",
    TagType.FLOAT: "f",
    TagType.DOUBLE: "d",
}
_ARRAY_PREFIX = {TagType.BYTE_ARRAY: "B", TagType.INT_ARRAY: "I", TagType.LONG_ARRAY: "L"}
_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {"\\": "\\", '"': '"', "'": "'", "n": "\n", "r": "\r", "t": "\t"}


def quote(text: str) -> str:
    """Double-quote ``text`` with SNBT escapes."""
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in text) + '"'


def format_key(key: str) -> str:
    return key if _BARE.fullmatch(key) else quote(key)


def format_scalar(tag: TagType, value: Scalar) -> str:
    if tag == TagType.STRING:
        return quote(str(value))
    if tag in (TagType.FLOAT, TagType.DOUBLE):
        return format_float(tag, float(value)) + _SCALAR_SUFFIX[tag]
    return f"{value}{_SCALAR_SUFFIX[tag]}"


@dataclass
class _Frame:
    multiline: bool
    in_compound: bool
    count: int = 0


class SnbtEmitter:
    """``TagSink`` writing indented SNBT to a text stream.

    Compounds and lists of containers are spread over lines; lists of plain
    values and arrays stay on one line.
    """

    def __init__(self, out: IO[str]) -> None:
        self._out = out
        self._stack: list[_Frame] = []

    def _prefix(self, name: str | None) -> None:
        if not self._stack:
            return
        frame = self._stack[-1]
        if frame.count:
            self._out.write(",")
            if not frame.multiline:
                self._out.write(" ")
        if frame.multiline:
            self._out.write("\n" + INDENT * len(self._stack))
        frame.count += 1
        if frame.in_compound:
            self._out.write(f"{format_key(name or '')}: ")

    def _close(self, bracket: str) -> None:
        frame = self._stack.pop()
        if frame.multiline and frame.count:
            self._out.write("\n" + INDENT * len(self._stack))
        self._out.write(bracket)

    def start_compound(self, name: str | None) -> None:
        self._prefix(name)
        self._out.write("{")
        self._stack.append(_Frame(multiline=True, in_compound=True))

    def end_compound(self) -> None:
        self._close("}")

    def start_list(
        self, name: str | None, item_type: TagType | None, length: int | None = None
    ) -> None:
        self._prefix(name)
        self._out.write("[")
        nested = item_type in (TagType.COMPOUND, TagType.LIST)
        self._stack.append(_Frame(multiline=nested, in_compound=False))

    def end_list(self) -> None:
        self._close("]")

    def scalar(self, name: str | None, tag: TagType, value: Scalar) -> None:
        self._prefix(name)
        self._out.write(format_scalar(tag, value))

    def array(self, name: str | None, tag: TagType, values: list[int]) -> None:
        self._prefix(name)
        suffix = _SCALAR_SUFFIX[ARRAY_TAGS[tag]]
        items = ", ".join(f"{value}{suffix}" for value in values)
        self._out.write(f"[{_ARRAY_PREFIX[tag]}; {items}]" if items else f"[{_ARRAY_PREFIX[tag]};]")

    def close(self) -> None:
        self._out.write("\n")


def parse_token(token: str) -> tuple[TagType, Scalar]:
    """Classify an unquoted SNBT token.

    Returns:
        The tag kind and value; tokens that are not numbers are strings.
    """
    lowered = token.lower()
    if lowered in ("true", "false"):
        return TagType.BYTE, int(lowered == "true")

    match = _INTEGER.fullmatch(token)
    if match:
        tag = _INTEGER_SUFFIX[match.group(2).lower()]
        return tag, check_integer(tag, int(match.group(1)))

    match = _FLOAT.fullmatch(token) or _SPECIAL_FLOAT.fullmatch(token)
    if match:
        return _FLOAT_SUFFIX[match.group(2).lower()], float(match.group(1))

    return TagType.STRING, token


class SnbtParser:
    """Recursive-descent SNBT parser reporting to a ``TagSink``."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def _where(self) -> str:
        line = self._text.count("\n", 0, self._pos) + 1
        column = self._pos - (self._text.rfind("\n", 0, self._pos) + 1) + 1
        return f"{line}:{column}"

    def _error(self, message: str) -> MalformedInputError:
        return MalformedInputError(message, position=self._where())

    def _skip_ws(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos].isspace():
            self._pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        if self._pos >= len(self._text):
            raise self._error("Unexpected end of text")
        return self._text[self._pos]

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise self._error(f"Expected {char!r}")
        self._pos += 1

    def parse(self, sink: TagSink, root_name: str = "") -> None:
        """Parse the whole text as one document."""
        self._value(root_name, sink, 0)
        self._skip_ws()
        if self._pos != len(self._text):
            raise self._error("Unexpected text after the document")

    def _quoted(self) -> str:
        quote_char = self._text[self._pos]
        self._pos += 1
        chars: list[str] = []
        while self._pos < len(self._text):
            ch = self._text[self._pos]
            self._pos += 1
            if ch == quote_char:
                return "".join(chars)
            if ch == "\\":
                if self._pos >= len(self._text):
                    break
                escaped = self._text[self._pos]
                if escaped not in _UNESCAPES:
                    raise self._error(f"Invalid escape \\{escaped}")
                chars.append(_UNESCAPES[escaped])
                self._pos += 1
            else:
                chars.append(ch)
        raise self._error("Unterminated string")

    def _bare(self) -> str:
        match = _BARE.match(self._text, self._pos)
        if not match:
            raise self._error(f"Unexpected character {self._text[self._pos]!r}")
        self._pos = match.end()
        return match.group()

    def _key(self) -> str:
        if self._peek() in "\"'":
            return self._quoted()
        return self._bare()

    def _close_if(self, bracket: str) -> bool:
        if self._peek() == bracket:
            self._pos += 1
            return True
        return False

    def _separator(self, bracket: str) -> bool:
        """Consume ``,`` or ``bracket``; True once the container is closed."""
        ch = self._peek()
        if ch == bracket:
            self._pos += 1
            return True
        if ch != ",":
            raise self._error(f"Expected ',' or {bracket!r}")
        self._pos += 1
        return False

    def _value(self, name: str | None, sink: TagSink, depth: int) -> None:
        # Containers are parsed inline: one stack frame per nesting level
        if depth > MAX_NBT_DEPTH:
            raise self._error("Nesting too deep")
        ch = self._peek()
        if ch == "{":
            self._pos += 1
            sink.start_compound(name)
            if not self._close_if("}"):
                while True:
                    key = self._key()
                    self._expect(":")
                    self._value(key, sink, depth + 1)
                    if self._separator("}"):
                        break
            sink.end_compound()
        elif ch == "[":
            header = _ARRAY_HEADER.match(self._text, self._pos)
            if header:
                self._pos = header.end()
                self._array(name, _ARRAY_KINDS[header.group(1)], sink)
                return
            self._pos += 1
            sink.start_list(name, None, None)
            if not self._close_if("]"):
                while True:
                    self._value(None, sink, depth + 1)
                    if self._separator("]"):
                        break
            sink.end_list()
        elif ch in "\"'":
            sink.scalar(name, TagType.STRING, self._quoted())
        else:
            token = self._bare()
            try:
                tag, value = parse_token(token)
            except ValueError as exc:
                raise self._error(str(exc)) from exc
            sink.scalar(name, tag, value)

    def _array(self, name: str | None, tag: TagType, sink: TagSink) -> None:
        item_tag = ARRAY_TAGS[tag]
        values: list[int] = []
        if not self._close_if("]"):
            while True:
                self._peek()
                token = self._bare()
                match = _INTEGER.fullmatch(token)
                suffix = match.group(2).lower() if match else ""
                if not match or (suffix and _INTEGER_SUFFIX[suffix] != item_tag):
                    raise self._error(f"Bad {item_tag.label} {token!r} in {tag.label}")
                try:
                    values.append(check_integer(item_tag, int(match.group(1))))
                except ValueError as exc:
                    raise self._error(str(exc)) from exc
                if self._separator("]"):
                    break
        sink.array(name, tag, values)
