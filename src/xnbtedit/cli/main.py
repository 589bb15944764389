"""Command-line interface for xnbtedit."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Fix Windows console encoding for Unicode output
if sys.platform == "win32":
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import click
from dotenv import load_dotenv

# Load .env file (XNBTEDIT_CONFIG, XNBTEDIT_LOG_DIR) from the current directory
load_dotenv()

from click import Context
from loguru import logger
from pydantic import ValidationError

from xnbtedit import __version__
from xnbtedit.cli import ui
from xnbtedit.cli.commands.config import config as config_command
from xnbtedit.cli.framework import XnbtEditGroup
from xnbtedit.cli.logging_config import setup_logging
from xnbtedit.config import ConfigManager, XnbtEditConfig
from xnbtedit.errors import XnbtEditError
from xnbtedit.lifecycle import LifecycleManager
from xnbtedit.types import ConversionRequest
from xnbtedit.workflow import perform, run_edit_session

_COMPRESSION_CHOICES: dict[str, bool | None] = {
    "auto": None,
    "gzip": True,
    "none": False,
}


def print_version(ctx: Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    ui.console().print(f"xnbtedit {__version__}")
    ctx.exit(0)


async def run_request(
    request: ConversionRequest,
    cfg: XnbtEditConfig,
    *,
    quiet: bool = False,
) -> int:
    """Run one request end to end and return the process exit code.

    The lifecycle manager, and with it the codec workers, is closed on every
    path out of here, and again at interpreter exit if that is never reached.
    """
    lifecycle = LifecycleManager()
    lifecycle.install_exit_hook()
    try:
        try:
            report = await perform(
                request,
                cfg,
                lifecycle,
                show_progress=request.bulk and not quiet,
                console=ui.console(stderr=True),
            )
        except XnbtEditError as e:
            ui.run_error(e)
            return 1

        ui.run_report(report, quiet=quiet)

        if request.edit and report.watchers:
            if not quiet:
                ui.note("Watching for edits. Press Ctrl+C to stop.")
            await run_edit_session(report, cfg)

        return 0 if report.ok else 1
    finally:
        lifecycle.close()

# =============================================================================
# Main CLI app
# =============================================================================


@click.group(
    cls=XnbtEditGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--bulk",
    "-b",
    is_flag=True,
    help="Convert every file under a directory or matching a glob pattern.",
)
@click.option(
    "--edit",
    "-e",
    is_flag=True,
    help="Open the text output in an editor and write saved edits back.",
)
@click.option(
    "--output",
    "-o",
    type=str,
    default=None,
    help="Output file (single) or directory (bulk).",
)
@click.option(
    "--overwrite",
    "-y",
    is_flag=True,
    help="Write into a non-empty output directory.",
)
@click.option(
    "--xml-input",
    "-x",
    is_flag=True,
    help="Input is text (XML or SNBT); convert it back to NBT.",
)
@click.option(
    "--compression",
    "-c",
    type=click.Choice(list(_COMPRESSION_CHOICES), case_sensitive=False),
    default="auto",
    show_default=True,
    help="Compression of the NBT side. 'auto' sniffs binary input.",
)
@click.option(
    "--snbt",
    "-s",
    is_flag=True,
    help="Write SNBT instead of XML.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent conversions (default from config).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Only show errors.",
)
@click.option(
    "--version",
    "-v",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.pass_context
def app(
    ctx: Context,
    bulk: bool,
    edit: bool,
    output: str | None,
    overwrite: bool,
    xml_input: bool,
    compression: str,
    snbt: bool,
    jobs: int | None,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """xnbtedit - Convert NBT files to editable XML or SNBT and back.

    \b
    Examples:
        xnbtedit level.dat -o level.xml          # NBT -> XML
        xnbtedit level.xml -o level.dat -c gzip  # XML -> gzip NBT
        xnbtedit level.dat -e                    # Edit, saving back on change
        xnbtedit -b 'data/**/*.dat' -o out/      # Bulk conversion
        xnbtedit config set editor.command code  # Configure the editor
    """
    ctx.ensure_object(dict)
    ctx.obj["_config_path"] = config_path

    if ctx.invoked_subcommand is not None:
        return

    input_spec = ctx.obj.get("_input_path")
    if not input_spec:
        click.echo(ctx.get_help())
        ctx.exit(0)

    config_manager = ConfigManager()
    try:
        cfg = config_manager.load(config_path=config_path)
    except (OSError, ValueError, ValidationError) as e:
        ui.failed("Could not load configuration", detail=str(e))
        ctx.exit(1)

    if jobs is not None:
        cfg.batch.concurrency = jobs

    setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        quiet=quiet,
    )

    if config_manager.config_path and config_manager.config_path.exists():
        logger.debug(f"[Config] Loaded from: {config_manager.config_path}")
    else:
        logger.debug("[Config] No config file found, using defaults")

    request = ConversionRequest(
        input=input_spec,
        bulk=bulk,
        edit=edit,
        source_is_text=xml_input,
        compressed=_COMPRESSION_CHOICES[compression.lower()],
        alternate_syntax=snbt,
        output=output,
        overwrite=overwrite,
    )
    logger.debug(f"Request: {request}")

    try:
        exit_code = asyncio.run(run_request(request, cfg, quiet=quiet))
    except KeyboardInterrupt:
        if not quiet:
            ui.console().print()
            ui.note("Stopped")
        exit_code = 0

    ctx.exit(exit_code)


app.add_command(config_command)
