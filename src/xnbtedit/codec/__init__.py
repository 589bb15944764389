"""NBT codec: binary NBT <-> XML / SNBT text."""

from xnbtedit.codec.errors import CodecError, CodecIOError, MalformedInputError
from xnbtedit.codec.pipe import (
    CodecPipe,
    NbtCodecPipe,
    forward_convert_sync,
    reverse_convert_sync,
)
from xnbtedit.codec.tags import TagSink, TagType

__all__ = [
    "CodecError",
    "CodecIOError",
    "CodecPipe",
    "MalformedInputError",
    "NbtCodecPipe",
    "TagSink",
    "TagType",
    "forward_convert_sync",
    "reverse_convert_sync",
]
