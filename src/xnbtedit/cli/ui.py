"""Terminal output for the xnbtedit CLI.

Converted files and summaries go to stdout; failures go to stderr. Each
stream has one rich ``Console``, created on first use so that a test runner
swapping ``sys.stdout``/``sys.stderr`` is picked up after ``reset_consoles``.

Usage:
    from xnbtedit.cli import ui

    ui.converted("level.dat", "/out/level.dat.xml")
    ui.failed("broken.dat", detail="Unknown tag id 42 at 17")
    ui.run_report(report)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from xnbtedit.batch import RunReport
    from xnbtedit.errors import XnbtEditError

MARK_OK = "✓"
MARK_FAILED = "✗"
MARK_WARNING = "!"
MARK_NOTE = "•"
MARK_HEADING = "◆"
MARK_DETAIL = "│"

_consoles: dict[bool, Console] = {}


def console(*, stderr: bool = False) -> Console:
    """The stdout console, or the stderr one."""
    if stderr not in _consoles:
        _consoles[stderr] = Console(stderr=stderr)
    return _consoles[stderr]


def reset_consoles() -> None:
    _consoles.clear()


def _mark(color: str, mark: str, text: str, detail: str | None, *, stderr: bool) -> None:
    out = console(stderr=stderr)
    out.print(f"  [{color}]{mark}[/] {escape(text)}")
    if detail:
        out.print(f"    [dim]{MARK_DETAIL} {escape(detail)}[/]")


def heading(text: str) -> None:
    console().print(f"[cyan]{MARK_HEADING}[/] [bold]{escape(text)}[/]")
    console().print()


def converted(source: str, output: str | None = None) -> None:
    """One converted file: ``✓ level.dat -> /out/level.dat.xml``."""
    _mark("green", MARK_OK, f"{source} -> {output}" if output else source, None, stderr=False)


def failed(text: str, *, detail: str | None = None) -> None:
    _mark("red", MARK_FAILED, text, detail, stderr=True)


def warning(text: str, *, detail: str | None = None) -> None:
    _mark("yellow", MARK_WARNING, text, detail, stderr=False)


def note(text: str) -> None:
    _mark("dim", MARK_NOTE, text, None, stderr=False)


def run_error(error: XnbtEditError) -> None:
    """A run that could not start: the error line plus its hint."""
    failed(str(error), detail=error.hint)


def run_report(report: RunReport, *, quiet: bool = False) -> None:
    """Per-file outcomes, then ``Done: N file(s) converted`` or the failure count.

    With ``quiet`` only failures are printed.
    """
    if not quiet:
        for state in report.succeeded:
            converted(Path(state.path).name, state.output)

    for state in report.failed:
        failed(Path(state.path).name, detail=state.error)

    if not report.ok:
        console(stderr=True).print()
        failed(f"{report.failed_count} of {report.total} file(s) failed")
    elif not quiet:
        console().print()
        console().print(
            f"[green]{MARK_OK}[/] Done: {report.completed_count} file(s) converted"
        )
