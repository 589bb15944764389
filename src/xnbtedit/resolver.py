"""Input discovery: literal path, glob pattern or directory -> input files."""

from __future__ import annotations

import asyncio
import glob
import os
from pathlib import Path

from loguru import logger

from xnbtedit.errors import ErrorKind, XnbtEditError
from xnbtedit.types import ResolvedInput

WILDCARD_CHARS = frozenset("*?[")


def has_wildcard(segment: str) -> bool:
    return any(ch in WILDCARD_CHARS for ch in segment)


def find_top_folder(spec: str) -> Path:
    """Return the longest wildcard-free prefix of ``spec`` as an absolute path.

    Examples:
        >>> find_top_folder("/a/b/*/c")
        PosixPath('/a/b')
        >>> find_top_folder("/a/b/c.dat")
        PosixPath('/a/b/c.dat')
    """
    parts = spec.replace("/", os.sep).split(os.sep)
    for i, part in enumerate(parts):
        if has_wildcard(part):
            parts = parts[:i]
            break
    # An empty prefix (pattern in the current directory) resolves to cwd
    prefix = os.sep.join(parts)
    if not prefix and spec.startswith(os.sep):
        prefix = os.sep
    return Path(os.path.abspath(prefix))


def strip_top_folder(path: Path, top: Path) -> str:
    """Return ``path`` relative to ``top`` without a leading separator."""
    text = str(path)
    top_text = str(top)
    if text.startswith(top_text):
        text = text[len(top_text) :]
    return text.lstrip(os.sep)


def _walk_directory(directory: Path) -> list[Path]:
    files: list[Path] = []
    for root, dirs, names in os.walk(directory, onerror=_raise):
        dirs.sort()
        for name in sorted(names):
            candidate = Path(root) / name
            if candidate.is_file():
                files.append(candidate)
    return files


def _raise(error: OSError) -> None:
    raise error


def _expand_pattern(pattern: str) -> list[Path]:
    matches = glob.glob(pattern, recursive=True)
    return sorted(Path(match) for match in matches if os.path.isfile(match))


def _dedupe_absolute(paths: list[Path]) -> list[Path]:
    seen: set[Path] = set()
    result: list[Path] = []
    for path in paths:
        absolute = Path(os.path.abspath(path))
        if absolute not in seen:
            seen.add(absolute)
            result.append(absolute)
    return result


async def resolve_inputs(spec: str | None, bulk: bool) -> list[ResolvedInput]:
    """Turn the user's input spec into an ordered list of absolute input files.

    Args:
        spec: Literal path, glob pattern or directory
        bulk: Whether many inputs are expected

    Returns:
        Deduplicated inputs, each with its path relative to the top folder

    Raises:
        XnbtEditError: ``NO_INPUT`` when nothing was given or nothing matched,
            ``BULK_INPUT_MUST_BE_DIRECTORY_OR_PATTERN`` for a single file in
            bulk mode, ``ENUMERATION_FAILED`` when scanning fails.
    """
    if not spec:
        raise XnbtEditError(ErrorKind.NO_INPUT, "No input given")

    top = find_top_folder(spec)
    literal = Path(spec)

    if not bulk:
        path = Path(os.path.abspath(spec))
        if not path.is_file():
            raise XnbtEditError(ErrorKind.NO_INPUT, "Input file not found", path=path)
        return [ResolvedInput(path=path, relative=strip_top_folder(path, top))]

    if literal.is_file():
        raise XnbtEditError(
            ErrorKind.BULK_INPUT_MUST_BE_DIRECTORY_OR_PATTERN,
            "Bulk input must be a directory or a glob pattern",
            path=literal,
        )

    try:
        if literal.is_dir():
            logger.debug(f"Scanning directory {top}")
            found = await asyncio.to_thread(_walk_directory, literal)
        else:
            logger.debug(f"Expanding pattern {spec}")
            found = await asyncio.to_thread(_expand_pattern, spec)
    except OSError as e:
        raise XnbtEditError(
            ErrorKind.ENUMERATION_FAILED,
            f"Could not enumerate inputs: {e.strerror or e}",
            path=e.filename or spec,
            cause=e,
        ) from e

    inputs = [
        ResolvedInput(path=path, relative=strip_top_folder(path, top))
        for path in _dedupe_absolute(found)
    ]
    if not inputs:
        raise XnbtEditError(ErrorKind.NO_INPUT, "No files matched", path=spec)

    logger.info(f"Found {len(inputs)} input file(s) under {top}")
    return inputs
