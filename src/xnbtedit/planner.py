"""Output planning: decide where each resolved input is written."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from xnbtedit.constants import TEMP_PREFIX, TEXT_SUFFIXES
from xnbtedit.errors import ErrorKind, XnbtEditError
from xnbtedit.types import ConversionRequest, OutputKind, OutputPlan, PlannedOutput, ResolvedInput

if TYPE_CHECKING:
    from xnbtedit.lifecycle import LifecycleManager


def is_text_source(request: ConversionRequest, path: Path) -> bool:
    """Whether ``path`` is converted text -> binary.

    The explicit flag always wins. Without it, a single input named
    ``*.xml`` or ``*.snbt`` is also taken as text; bulk inputs never are.
    """
    if request.source_is_text:
        return True
    if request.bulk:
        return False
    return path.name.lower().endswith(TEXT_SUFFIXES)


def strip_text_suffix(name: str) -> str:
    """Drop a trailing ``.xml``/``.snbt`` from ``name`` if present."""
    lowered = name.lower()
    for suffix in TEXT_SUFFIXES:
        if lowered.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name


def _destination_name(request: ConversionRequest, relative: str, text: bool) -> str:
    if text:
        return strip_text_suffix(relative)
    return relative + request.text_suffix


def _make_temp_dir(lifecycle: LifecycleManager | None) -> Path:
    try:
        directory = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
    except OSError as e:
        raise XnbtEditError(
            ErrorKind.DIRECTORY_CREATE_FAILED,
            f"Could not create a temporary directory: {e.strerror or e}",
            path=tempfile.gettempdir(),
            cause=e,
        ) from e
    if lifecycle is not None:
        lifecycle.register_ephemeral_dir(directory)
    logger.debug(f"Created temporary directory {directory}")
    return directory


def _ensure_parent(destination: Path) -> None:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise XnbtEditError(
            ErrorKind.DIRECTORY_CREATE_FAILED,
            f"Could not create output directory: {e.strerror or e}",
            path=destination.parent,
            cause=e,
        ) from e


def _check_output_directory(directory: Path, overwrite: bool) -> None:
    if not directory.is_dir():
        return
    if not any(directory.iterdir()):
        return
    if not overwrite:
        raise XnbtEditError(
            ErrorKind.OUTPUT_NOT_EMPTY,
            "Output directory is not empty",
            path=directory,
        )
    logger.warning(f"Output directory {directory} is not empty; existing files may be replaced")


def _plan_single(
    request: ConversionRequest,
    source: ResolvedInput,
    lifecycle: LifecycleManager | None,
) -> OutputPlan:
    text = is_text_source(request, source.path)

    if request.output:
        destination = Path(os.path.abspath(request.output))
        _ensure_parent(destination)
        return OutputPlan(entries=[PlannedOutput(source, destination, OutputKind.DURABLE)])

    if text:
        # Reverse conversion needs a named binary; the job reports it
        return OutputPlan(entries=[PlannedOutput(source, None, OutputKind.DURABLE)])

    if not request.edit:
        raise XnbtEditError(
            ErrorKind.NO_OUTPUT_AND_NOT_EDITING,
            "No output given and not editing",
            path=source.path,
        )

    directory = _make_temp_dir(lifecycle)
    destination = directory / (source.path.name + request.text_suffix)
    return OutputPlan(
        entries=[PlannedOutput(source, destination, OutputKind.EPHEMERAL)],
        directory=directory,
        directory_kind=OutputKind.EPHEMERAL,
    )


def _plan_bulk(
    request: ConversionRequest,
    inputs: list[ResolvedInput],
    lifecycle: LifecycleManager | None,
) -> OutputPlan:
    if request.edit:
        directory = _make_temp_dir(lifecycle)
        kind = OutputKind.EPHEMERAL
    elif request.output:
        directory = Path(os.path.abspath(request.output))
        kind = OutputKind.DURABLE
        _check_output_directory(directory, request.overwrite)
    else:
        raise XnbtEditError(
            ErrorKind.NO_OUTPUT_AND_NOT_EDITING, "No output directory given and not editing"
        )

    plan = OutputPlan(directory=directory, directory_kind=kind)
    for source in inputs:
        text = is_text_source(request, source.path)
        destination = directory / _destination_name(request, source.relative, text)
        _ensure_parent(destination)
        plan.entries.append(PlannedOutput(source, destination, kind))

    logger.debug(f"Planned {len(plan)} output(s) under {directory}")
    return plan


def plan_outputs(
    request: ConversionRequest,
    inputs: list[ResolvedInput],
    lifecycle: LifecycleManager | None = None,
) -> OutputPlan:
    """Map every resolved input to exactly one destination.

    Args:
        request: The user's request
        inputs: Resolved inputs, in order
        lifecycle: Receives temporary directories created for edit mode

    Returns:
        One ``PlannedOutput`` per input, in input order

    Raises:
        XnbtEditError: ``NO_OUTPUT_AND_NOT_EDITING``, ``OUTPUT_NOT_EMPTY`` or
            ``DIRECTORY_CREATE_FAILED``
    """
    if not request.bulk:
        if len(inputs) != 1:
            raise XnbtEditError(ErrorKind.NO_INPUT, "Expected exactly one input file")
        return _plan_single(request, inputs[0], lifecycle)
    return _plan_bulk(request, inputs, lifecycle)
