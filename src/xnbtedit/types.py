"""Value types shared by the resolver, planner, jobs and batch runner."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from xnbtedit.constants import SNBT_SUFFIX, XML_SUFFIX

if TYPE_CHECKING:
    from xnbtedit.watcher import EditWatcher


@dataclass(frozen=True)
class ConversionRequest:
    """One invocation's worth of user intent. Never mutated.

    Attributes:
        input: Literal path, glob pattern or directory
        bulk: Operate over many inputs, preserving relative structure
        edit: Watch the text output and write edits back to the binary
        source_is_text: Inputs are text and are converted back to binary
        compressed: True/False when known, None to sniff the binary header
        alternate_syntax: Emit SNBT instead of XML
        output: Output directory (bulk) or file name (single)
        overwrite: Allow writing into a non-empty bulk output directory
    """

    input: str | None
    bulk: bool = False
    edit: bool = False
    source_is_text: bool = False
    compressed: bool | None = None
    alternate_syntax: bool = False
    output: str | None = None
    overwrite: bool = False

    @property
    def text_suffix(self) -> str:
        """Suffix of the text representation produced by a forward pass."""
        return SNBT_SUFFIX if self.alternate_syntax else XML_SUFFIX


@dataclass(frozen=True)
class ResolvedInput:
    """An absolute input file and its path relative to the top folder."""

    path: Path
    relative: str


class OutputKind(str, Enum):
    """Whether a destination outlives the run."""

    DURABLE = "durable"
    EPHEMERAL = "ephemeral"


@dataclass(frozen=True)
class PlannedOutput:
    """Destination chosen for one resolved input.

    ``destination`` is None only for a text source in single mode without an
    explicit output; the job rejects that case.
    """

    source: ResolvedInput
    destination: Path | None
    kind: OutputKind = OutputKind.DURABLE

    @property
    def ephemeral(self) -> bool:
        return self.kind == OutputKind.EPHEMERAL


@dataclass
class OutputPlan:
    """Destinations for every resolved input, in input order."""

    entries: list[PlannedOutput] = field(default_factory=list)
    directory: Path | None = None
    directory_kind: OutputKind = OutputKind.DURABLE

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ConversionJobResult:
    """Outcome of starting a conversion job.

    Attributes:
        source: The input the job converted
        destination: Where the output was (or is being) written
        ephemeral: Whether the destination is deleted at shutdown
        watcher: Edit watcher attached to the destination (edit mode only)
        completion: Pending codec pass (non-edit mode only)
    """

    source: Path
    destination: Path | None = None
    ephemeral: bool = False
    watcher: EditWatcher | None = None
    completion: asyncio.Task[None] | None = None
