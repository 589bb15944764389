"""Configuration management CLI commands.

- config list: Show current effective configuration
- config path: Show configuration file lookup order
- config get: Get a configuration value
- config set: Set a configuration value (e.g. the editor program)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel, ValidationError
from rich.syntax import Syntax

from xnbtedit.cli import ui
from xnbtedit.config import ConfigManager


def _load_manager(ctx: click.Context) -> ConfigManager:
    """Load the config named by the top-level ``--config``, if any."""
    config_path: Path | None = None
    if ctx.find_root().obj:
        config_path = ctx.find_root().obj.get("_config_path")
    manager = ConfigManager()
    try:
        manager.load(config_path=config_path)
    except (OSError, ValueError) as e:
        ui.failed("Could not load configuration", detail=str(e))
        raise SystemExit(1) from e
    return manager


def _parse_value(value: str) -> Any:
    """Parse a command-line value: JSON where it parses, else the raw string."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """Show current effective configuration."""
    manager = _load_manager(ctx)
    config_dict = manager.config.model_dump(mode="json")
    config_json = json.dumps(config_dict, indent=2, ensure_ascii=False)
    ui.console().print(Syntax(config_json, "json", theme="monokai", line_numbers=False))


@config.command("path")
@click.pass_context
def config_path_cmd(ctx: click.Context) -> None:
    """Show configuration file lookup order."""
    manager = _load_manager(ctx)

    ui.heading("Configuration sources")
    rows = [
        "--config <path>",
        "$XNBTEDIT_CONFIG",
        f"./{manager.CONFIG_FILENAME}",
        str(manager.DEFAULT_USER_CONFIG_DIR / "config.json"),
        "defaults",
    ]
    for i, label in enumerate(rows, start=1):
        ui.console().print(f"  {i}. {label}")
    ui.console().print()

    if manager.config_path and manager.config_path.exists():
        ui.note(f"Currently using: {manager.config_path}")
    else:
        ui.warning("Using default configuration (no config file found)")


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Get a configuration value."""
    manager = _load_manager(ctx)

    value = manager.get(key)
    if value is None:
        ui.failed(f"Key not found or unset: {key}")
        raise SystemExit(1)

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")

    if isinstance(value, (dict, list)):
        output = json.dumps(value, indent=2, ensure_ascii=False)
        ui.console().print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        ui.console().print(str(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a configuration value.

    \b
    Examples:
        xnbtedit config set editor.command /usr/bin/vim
        xnbtedit config set editor.args '["--wait"]'
        xnbtedit config set batch.codec_workers 2
    """
    manager = _load_manager(ctx)
    parsed_value = _parse_value(value)

    try:
        manager.set(key, parsed_value)
    except KeyError:
        ui.failed(f"Unknown configuration key: {key}")
        raise SystemExit(1)
    except ValidationError as ve:
        problems = "; ".join(
            f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in ve.errors()
        )
        ui.failed(f"Invalid value for '{key}'", detail=problems)
        raise SystemExit(1)

    try:
        saved = manager.save()
    except OSError as e:
        ui.failed("Could not save configuration", detail=str(e))
        raise SystemExit(1) from e
    ui.converted(f"{key} = {parsed_value}")
    ui.note(f"Saved to {saved}")


__all__ = ["config"]
