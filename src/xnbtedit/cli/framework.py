"""Click group that takes a positional INPUT next to its subcommands.

``xnbtedit level.dat -o level.xml`` converts, ``xnbtedit config list`` runs a
subcommand. A plain ``click.Group`` would read ``level.dat`` as a command
name, so the INPUT is taken out of the arguments before the group parses
them and handed to the callback through ``ctx.obj["_input_path"]``.
"""

from __future__ import annotations

import click
from click import Context


class XnbtEditGroup(click.Group):
    """``xnbtedit [OPTIONS] INPUT [COMMAND]``."""

    input_help = "NBT file, text file (with -x), directory or glob pattern (with -b)"

    def _value_options(self, ctx: Context) -> set[str]:
        """Option spellings that consume the next argument, e.g. ``-o``."""
        names: set[str] = set()
        for param in self.get_params(ctx):
            if isinstance(param, click.Option) and not param.is_flag and not param.count:
                names.update(param.opts)
                names.update(param.secondary_opts)
        return names

    def _input_span(self, ctx: Context, args: list[str]) -> tuple[int, int] | None:
        """Slice of ``args`` holding the INPUT (and a ``--`` before it)."""
        value_options = self._value_options(ctx)
        takes_value = False
        for i, arg in enumerate(args):
            if takes_value:
                takes_value = False
            elif arg == "--":
                return (i, i + 2) if i + 1 < len(args) else None
            elif arg.startswith("-") and arg != "-":
                # "--output=x" and "-ox" carry their value
                takes_value = arg in value_options
            elif arg in self.commands:
                return None
            else:
                return i, i + 1
        return None

    def parse_args(self, ctx: Context, args: list[str]) -> list[str]:
        ctx.ensure_object(dict)
        span = self._input_span(ctx, args)
        if span is not None:
            start, stop = span
            ctx.obj["_input_path"] = args[stop - 1]
            args = args[:start] + args[stop:]
        return super().parse_args(ctx, args)

    def format_usage(self, ctx: Context, formatter: click.HelpFormatter) -> None:
        formatter.write_usage(ctx.command_path, "[OPTIONS] INPUT [COMMAND [ARGS]...]")

    def format_options(self, ctx: Context, formatter: click.HelpFormatter) -> None:
        with formatter.section("Arguments"):
            formatter.write_dl([("INPUT", self.input_help)])
        super().format_options(ctx, formatter)
