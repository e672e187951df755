"""Preset CLI commands: list and show."""

import click
import yaml

from labelforge.config import EngineConfig
from labelforge.presets import PresetLoader, PresetNotFoundError


def _load_presets(config: EngineConfig) -> PresetLoader:
    loader = PresetLoader(config.presets_path)
    try:
        loader.load_all()
    except (PresetNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    return loader


@click.group()
def presets():
    """Mock-data preset commands."""
    pass


@presets.command("list")
@click.pass_obj
def list_cmd(config: EngineConfig):
    """List the available presets."""
    loader = _load_presets(config)
    items = loader.list_presets()

    if not items:
        click.echo(f"No presets found in {config.presets_path}")
        return

    for preset in sorted(items, key=lambda p: p.name.lower()):
        click.echo(f"  {click.style(preset.name, bold=True)}  {preset.description}")


@presets.command("show")
@click.argument("name")
@click.pass_obj
def show(config: EngineConfig, name: str):
    """Print the context data of a preset."""
    loader = _load_presets(config)
    try:
        preset = loader.get_preset(name)
    except PresetNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(click.style(f"{preset.name}: {preset.description}", bold=True))
    click.echo(yaml.safe_dump(preset.data, sort_keys=False, allow_unicode=True), nl=False)
