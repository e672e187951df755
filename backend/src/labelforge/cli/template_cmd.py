"""Template CLI commands: render and inspect."""

from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from labelforge.config import EngineConfig
from labelforge.presets import PresetLoader, PresetNotFoundError, load_context_file
from labelforge.templates import RenderMode, TemplateRenderer, analyze_template


def load_context(
    config: EngineConfig, preset_name: str | None, context_file: Path | None
) -> dict[str, Any]:
    """Build the execution context from a preset or a context file."""
    if preset_name and context_file:
        click.echo("Error: use either --preset or --context, not both", err=True)
        raise SystemExit(1)

    if context_file:
        try:
            return load_context_file(context_file)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)

    if preset_name:
        loader = PresetLoader(config.presets_path)
        try:
            loader.load_all()
            return loader.get_preset(preset_name).data
        except (PresetNotFoundError, ValueError) as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)

    return {}


def _parse_assignments(assignments: tuple[str, ...]) -> dict[str, str]:
    values = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name.strip():
            click.echo(f"Error: --set expects NAME=VALUE, got '{assignment}'", err=True)
            raise SystemExit(1)
        values[name.strip()] = value
    return values


@click.command()
@click.argument("template_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--preset", "preset_name", default=None, help="Render against a named preset.")
@click.option(
    "--context",
    "context_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Render against a YAML or JSON context file.",
)
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="NAME=VALUE",
    help="Placeholder value (repeatable).",
)
@click.option("--manual", is_flag=True, default=False, help="Strip scripts instead of running them.")
@click.option("--strict", is_flag=True, default=False, help="Fail on unresolvable expressions.")
@click.option(
    "--output",
    "-o",
    "output_file",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the markup to a file instead of stdout.",
)
@click.option(
    "--fail-on-warning",
    is_flag=True,
    default=False,
    help="Exit with status 1 when any script block failed.",
)
@click.pass_obj
def render(
    config: EngineConfig,
    template_file: Path,
    preset_name: str | None,
    context_file: Path | None,
    assignments: tuple[str, ...],
    manual: bool,
    strict: bool,
    output_file: Path | None,
    fail_on_warning: bool,
):
    """Render a label template to final markup."""
    if strict:
        config = replace(config, strict=True)

    template = template_file.read_text(encoding="utf-8")
    context = load_context(config, preset_name, context_file)
    values = _parse_assignments(assignments)
    mode = RenderMode.MANUAL if manual else RenderMode.AUTO

    result = TemplateRenderer(config).render(template, context, values, mode)

    for warning in result.warnings:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)
    for diagnostic in result.diagnostics:
        click.echo(click.style(f"Note: {diagnostic}", fg="cyan"), err=True)

    if output_file:
        output_file.write_text(result.text, encoding="utf-8")
        click.echo(f"Wrote {output_file}", err=True)
    else:
        click.echo(result.text)

    if fail_on_warning and result.failures:
        raise SystemExit(1)


@click.command()
@click.argument("template_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(template_file: Path):
    """List the placeholders and script references of a template."""
    analysis = analyze_template(template_file.read_text(encoding="utf-8"))

    click.echo(click.style(f"Placeholders ({len(analysis.placeholders)}):", bold=True))
    for name in analysis.placeholders:
        click.echo(f"  <{name}>")

    click.echo(click.style(f"Script blocks: {analysis.script_blocks}", bold=True))

    click.echo(click.style(f"Script variables ({len(analysis.script_variables)}):", bold=True))
    for path in analysis.script_variables:
        click.echo(f"  {path}")
