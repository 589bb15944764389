"""Error kinds raised by the conversion orchestration layer.

Every failure carries an ``ErrorKind`` and, where one is known, the path it
concerns, so the CLI can report it as a single actionable line.

Propagation:
    Resolution and planning errors abort the whole run before any job starts.
    Job errors (``CODEC_FAILURE``, ``BACKUP_WRITE_FAILED``) are recorded per
    file by the batch runner and do not stop sibling jobs.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Kinds of failure reported by xnbtedit."""

    NO_INPUT = "no_input"
    NO_OUTPUT_AND_NOT_EDITING = "no_output_and_not_editing"
    NO_DESTINATION_FOR_REVERSE_CONVERSION = "no_destination_for_reverse_conversion"
    COMPRESSION_STATE_REQUIRED = "compression_state_required"
    BULK_INPUT_MUST_BE_DIRECTORY_OR_PATTERN = "bulk_input_must_be_directory_or_pattern"
    OUTPUT_NOT_EMPTY = "output_not_empty"
    ENUMERATION_FAILED = "enumeration_failed"
    CODEC_FAILURE = "codec_failure"
    BACKUP_WRITE_FAILED = "backup_write_failed"
    DIRECTORY_CREATE_FAILED = "directory_create_failed"


# Short hints shown below the error line by the CLI
_HINTS: dict[ErrorKind, str] = {
    ErrorKind.NO_INPUT: "Pass an input file, directory or glob pattern.",
    ErrorKind.NO_OUTPUT_AND_NOT_EDITING: "Use --output or --edit.",
    ErrorKind.NO_DESTINATION_FOR_REVERSE_CONVERSION: (
        "Text input needs --output naming the binary file to write."
    ),
    ErrorKind.COMPRESSION_STATE_REQUIRED: (
        "Text input needs --compression gzip or --compression none."
    ),
    ErrorKind.BULK_INPUT_MUST_BE_DIRECTORY_OR_PATTERN: (
        "Drop --bulk or pass a directory or glob pattern."
    ),
    ErrorKind.OUTPUT_NOT_EMPTY: "Use --overwrite to write into it anyway.",
}


class XnbtEditError(Exception):
    """A failure of the orchestration layer.

    Attributes:
        kind: What went wrong
        path: The file or directory concerned, if any
        cause: Underlying exception (codec or OS error), if any
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        path: Path | str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.path = Path(path) if path is not None else None
        self.cause = cause
        super().__init__(message)

    @property
    def hint(self) -> str | None:
        """Resolution hint for the user, if one exists for this kind."""
        return _HINTS.get(self.kind)

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{message} ({self.path})"
        return message
