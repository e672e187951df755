"""Mock-data presets and context files for label previews."""

from labelforge.presets.loader import (
    Preset,
    PresetLoader,
    PresetNotFoundError,
    load_context_file,
)

__all__ = ["Preset", "PresetLoader", "PresetNotFoundError", "load_context_file"]
