"""XML text representation of NBT documents.

Layout::

    <?xml version="1.0" encoding="utf-8"?>
    <compound name="">
      <int name="DataVersion">3465</int>
      <list name="Pos" type="double">
        <double>0.5</double>
      </list>
      <byte-array name="Flags">1 0 -1</byte-array>
    </compound>

Tags inside a list carry no ``name`` attribute.

Characters XML cannot carry (C0 controls, lone surrogates, U+FFFE and U+FFFF)
and carriage returns, which XML parsers turn into newlines, are written as
``\\uXXXX``. An element whose name or string value holds such an escape is
marked ``escaped="1"``, and inside it a literal backslash is doubled::

    <string name="Motd" escaped="1">C:\\\\Games\\u0007</string>

Elements without the marker are read verbatim.
"""

from __future__ import annotations

import re
import struct
import xml.etree.ElementTree as ET
from typing import IO, Any
from xml.sax.saxutils import XMLGenerator

from xnbtedit.codec.errors import MalformedInputError
from xnbtedit.codec.tags import (
    ARRAY_TAGS,
    FLOAT_TAGS,
    Scalar,
    TagSink,
    TagType,
)

INDENT = "  "
ESCAPED_ATTR = "escaped"

_NEEDS_ESCAPE = re.compile("[\x00-\x08\x0b-\x1f\ud800-\udfff\ufffe\uffff]")
_ESCAPE_SEQUENCE = re.compile(r"\\(?:(\\)|u([0-9a-fA-F]{4}))")


def needs_escape(text: str) -> bool:
    return _NEEDS_ESCAPE.search(text) is not None


def escape_text(text: str) -> str:
    """Double backslashes, then write unrepresentable characters as ``\\uXXXX``."""
    text = text.replace("\\", "\\\\")
    return _NEEDS_ESCAPE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)


def unescape_text(text: str) -> str:
    """Inverse of ``escape_text``. Other backslashes are kept as they are."""
    return _ESCAPE_SEQUENCE.sub(
        lambda m: "\\" if m.group(1) else chr(int(m.group(2), 16)), text
    )


def format_float(tag: TagType, value: float) -> str:
    """Shortest decimal text that reads back to the same float/double."""
    if tag == TagType.DOUBLE:
        return repr(value)
    packed = struct.pack(">f", value)
    for precision in range(6, 10):
        text = f"{value:.{precision}g}"
        if struct.pack(">f", float(text)) == packed:
            return text
    return repr(value)


class XmlEmitter:
    """``TagSink`` writing indented XML to a text stream."""

    def __init__(self, out: IO[str]) -> None:
        self._out = out
        self._xml = XMLGenerator(out, encoding="utf-8", short_empty_elements=True)
        # One entry per open container: True once it has children
        self._open: list[bool] = []
        self._in_list: list[bool] = []
        self._xml.startDocument()

    def _attrs(self, name: str | None, value: str = "", **extra: str) -> dict[str, str]:
        attrs = {}
        if name is not None and not (self._in_list and self._in_list[-1]):
            attrs["name"] = name
        if needs_escape(attrs.get("name", "")) or needs_escape(value):
            if "name" in attrs:
                attrs["name"] = escape_text(attrs["name"])
            attrs[ESCAPED_ATTR] = "1"
        attrs.update(extra)
        return attrs

    def _newline(self, depth: int) -> None:
        self._xml.ignorableWhitespace("\n" + INDENT * depth)

    def _child(self) -> None:
        if self._open:
            self._open[-1] = True
            self._newline(len(self._open))

    def _start_container(self, label: str, attrs: dict[str, str], in_list: bool) -> None:
        self._child()
        self._xml.startElement(label, attrs)
        self._open.append(False)
        self._in_list.append(in_list)

    def _end_container(self, label: str) -> None:
        had_children = self._open.pop()
        self._in_list.pop()
        if had_children:
            self._newline(len(self._open))
        self._xml.endElement(label)

    def start_compound(self, name: str | None) -> None:
        self._start_container("compound", self._attrs(name), in_list=False)

    def end_compound(self) -> None:
        self._end_container("compound")

    def start_list(
        self, name: str | None, item_type: TagType | None, length: int | None = None
    ) -> None:
        label = (item_type or TagType.END).label
        self._start_container("list", self._attrs(name, type=label), in_list=True)

    def end_list(self) -> None:
        self._end_container("list")

    def _leaf(self, name: str | None, tag: TagType, text: str) -> None:
        self._child()
        attrs = self._attrs(name, text if tag == TagType.STRING else "")
        if ESCAPED_ATTR in attrs:
            text = escape_text(text)
        self._xml.startElement(tag.label, attrs)
        if text:
            self._xml.characters(text)
        self._xml.endElement(tag.label)

    def scalar(self, name: str | None, tag: TagType, value: Scalar) -> None:
        if tag in FLOAT_TAGS:
            text = format_float(tag, float(value))
        else:
            text = str(value)
        self._leaf(name, tag, text)

    def array(self, name: str | None, tag: TagType, values: list[int]) -> None:
        self._leaf(name, tag, " ".join(map(str, values)))

    def close(self) -> None:
        self._out.write("\n")
        self._xml.endDocument()


def _parse_number(tag: TagType, text: str) -> int | float:
    if tag in FLOAT_TAGS:
        return float(text)
    return int(text, 10)


def _position(exc: ET.ParseError) -> str:
    line, column = exc.position
    return f"{line}:{column}"


def _element_name(elem: ET.Element, stack: list[tuple[ET.Element, TagType]]) -> str | None:
    if stack and stack[-1][1] == TagType.LIST:
        return None
    name = elem.get("name", "" if not stack else None)
    if name and elem.get(ESCAPED_ATTR) == "1":
        return unescape_text(name)
    return name


def parse_xml(source: Any, sink: TagSink) -> None:
    """Parse an XML document incrementally and report it to ``sink``.

    Finished elements are detached from the tree as soon as they are
    reported, so memory stays proportional to nesting depth.

    Args:
        source: File name or binary file object
        sink: Receiver of the tag events
    """
    stack: list[tuple[ET.Element, TagType]] = []
    try:
        for event, elem in ET.iterparse(source, events=("start", "end")):
            try:
                tag = TagType.from_label(elem.tag)
            except KeyError:
                raise MalformedInputError(f"Unknown element <{elem.tag}>") from None
            if tag == TagType.END:
                raise MalformedInputError("<end> is not a valid element")

            name = _element_name(elem, stack)
            if event == "start":
                stack.append((elem, tag))
                if tag == TagType.COMPOUND:
                    sink.start_compound(name)
                elif tag == TagType.LIST:
                    item_label = elem.get("type")
                    try:
                        item_type = TagType.from_label(item_label) if item_label else None
                    except KeyError:
                        raise MalformedInputError(
                            f"Unknown list type {item_label!r}"
                        ) from None
                    sink.start_list(name, item_type, None)
                continue

            stack.pop()
            name = _element_name(elem, stack)
            text = elem.text or ""
            if tag == TagType.COMPOUND:
                sink.end_compound()
            elif tag == TagType.LIST:
                sink.end_list()
            elif tag == TagType.STRING:
                if elem.get(ESCAPED_ATTR) == "1":
                    text = unescape_text(text)
                sink.scalar(name, tag, text)
            elif tag in ARRAY_TAGS:
                try:
                    values = [int(token, 10) for token in text.split()]
                except ValueError:
                    raise MalformedInputError(
                        f"Bad {tag.label} content in {name!r}"
                    ) from None
                sink.array(name, tag, values)
            else:
                try:
                    value = _parse_number(tag, text.strip())
                except ValueError:
                    raise MalformedInputError(
                        f"Bad {tag.label} value {text.strip()!r} in {name!r}"
                    ) from None
                sink.scalar(name, tag, value)

            if stack:
                stack[-1][0].remove(elem)
            else:
                elem.clear()
    except ET.ParseError as exc:
        raise MalformedInputError("Invalid XML", position=_position(exc)) from exc
