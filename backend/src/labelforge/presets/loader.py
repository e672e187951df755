"""Load mock-data presets and context files.

A preset file looks like:

    preset:
      name: DPD Sweden
      description: DPD label for Swedish delivery
      extends: Default          # optional, deep-merged over the named preset
      data:
        Shipment:
          Receiver:
            ISOCountry: SE
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class PresetNotFoundError(Exception):
    """No preset with the requested name exists."""


@dataclass
class Preset:
    """A named execution context for previews."""

    name: str
    description: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    extends: str | None = None
    source: Path | None = None

    def to_dict(self, include_data: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "extends": self.extends,
        }
        if include_data:
            result["data"] = self.data
        return result


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge overrides into a copy of base; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class PresetLoader:
    """Loads presets from presets/*.yaml files."""

    def __init__(self, presets_path: Path):
        self.presets_path = presets_path
        self.presets: dict[str, Preset] = {}

    def load_all(self) -> None:
        """Load all presets from YAML files and resolve `extends`."""
        self.presets = {}
        if not self.presets_path.exists():
            logger.warning("Presets directory %s does not exist", self.presets_path)
            return

        for yaml_file in sorted(self.presets_path.glob("*.yaml")):
            with open(yaml_file, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data and "preset" in data:
                    preset = self._parse_preset(data["preset"], yaml_file)
                    self.presets[preset.name.lower()] = preset

        for preset in self.presets.values():
            preset.data = self._resolve_data(preset, set())

        logger.info("Loaded %d preset(s) from %s", len(self.presets), self.presets_path)

    def _parse_preset(self, data: dict, source: Path) -> Preset:
        """Parse a preset YAML into a Preset."""
        if "name" not in data:
            raise ValueError(f"Preset in {source} has no name")

        context = data.get("data") or {}
        if not isinstance(context, Mapping):
            raise ValueError(f"Preset '{data['name']}' in {source}: data must be a mapping")

        return Preset(
            name=data["name"],
            description=data.get("description", ""),
            data=dict(context),
            extends=data.get("extends"),
            source=source,
        )

    def _resolve_data(self, preset: Preset, seen: set[str]) -> dict[str, Any]:
        if preset.extends is None:
            return preset.data

        key = preset.name.lower()
        if key in seen:
            raise ValueError(f"Preset '{preset.name}' extends itself")

        parent = self.presets.get(preset.extends.lower())
        if parent is None:
            raise PresetNotFoundError(
                f"Preset '{preset.name}' extends unknown preset '{preset.extends}'"
            )

        return deep_merge(self._resolve_data(parent, seen | {key}), preset.data)

    def get_preset(self, name: str) -> Preset:
        """Get a preset by name (any case).

        Raises:
            PresetNotFoundError: If no preset has that name
        """
        preset = self.presets.get(name.lower())
        if preset is None:
            raise PresetNotFoundError(f"Preset '{name}' not found")
        return preset

    def list_presets(self) -> list[Preset]:
        """List all loaded presets."""
        return list(self.presets.values())


def load_context_file(path: Path) -> dict[str, Any]:
    """Read a context mapping from a JSON or YAML file.

    Raises:
        ValueError: If the file does not hold a mapping
    """
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Context file {path} must contain a mapping")
    return dict(data)
