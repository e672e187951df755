"""LabelForge CLI entry point."""

import logging

import click

from labelforge.config import EngineConfig
from labelforge.scripting.builtins import register_all_builtins


@click.group()
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: LABELFORGE_LOG_LEVEL or INFO).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """LabelForge: label template scripting CLI."""
    config = EngineConfig.from_env()
    if log_level:
        config.log_level = log_level.upper()

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    register_all_builtins()
    ctx.obj = config


# Register subcommands
from labelforge.cli.functions_cmd import functions  # noqa: E402
from labelforge.cli.presets_cmd import presets  # noqa: E402
from labelforge.cli.script_cmd import run  # noqa: E402
from labelforge.cli.template_cmd import inspect, render  # noqa: E402

cli.add_command(render)
cli.add_command(inspect)
cli.add_command(run)
cli.add_command(presets)
cli.add_command(functions)
