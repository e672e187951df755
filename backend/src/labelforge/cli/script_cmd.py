"""Script CLI command: run a single script file."""

from dataclasses import replace
from pathlib import Path

import click

from labelforge.cli.template_cmd import load_context
from labelforge.config import EngineConfig
from labelforge.scripting import execute_script, freeze_context


@click.command()
@click.argument("script_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--preset", "preset_name", default=None, help="Run against a named preset.")
@click.option(
    "--context",
    "context_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Run against a YAML or JSON context file.",
)
@click.option("--strict", is_flag=True, default=False, help="Fail on unresolvable expressions.")
@click.pass_obj
def run(
    config: EngineConfig,
    script_file: Path,
    preset_name: str | None,
    context_file: Path | None,
    strict: bool,
):
    """Execute a script file and print its output."""
    if strict:
        config = replace(config, strict=True)

    context = load_context(config, preset_name, context_file)
    result = execute_script(
        script_file.read_text(encoding="utf-8"), freeze_context(context), config
    )

    for anomaly in result.diagnostics:
        click.echo(click.style(f"Note: {anomaly.message}", fg="cyan"), err=True)

    if not result.success:
        click.echo(
            click.style(f"Error ({result.error_kind.value}): {result.error}", fg="red"),
            err=True,
        )
        raise SystemExit(1)

    click.echo(result.output)
