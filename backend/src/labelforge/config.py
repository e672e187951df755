"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_LOOP_ITERATIONS = 10_000

_TRUE_VALUES = {"1", "true", "yes", "on"}


def resolve_base_path() -> Path:
    """Resolve the repository root from cwd (run from the repo root or backend/)."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        return cwd.parent
    return cwd


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class EngineConfig:
    """Scripting engine configuration.

    Attributes:
        strict: Unresolvable expressions fail instead of evaluating to
            their own text
        strict_lexing: Unrecognized characters raise LexerError instead of
            being skipped and reported as diagnostics
        max_loop_iterations: Upper bound on the iterations of one for-loop
        presets_path: Directory holding preset YAML files
        log_level: Logging level name for the CLI and API server
    """

    strict: bool = False
    strict_lexing: bool = False
    max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS
    presets_path: Path = field(default_factory=lambda: resolve_base_path() / "presets")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> EngineConfig:
        """Create config from environment variables.

        Variables:
        - LABELFORGE_STRICT (default false)
        - LABELFORGE_STRICT_LEXING (default false)
        - LABELFORGE_MAX_LOOP_ITERATIONS (default 10000)
        - LABELFORGE_PRESETS_PATH (default {base_path}/presets)
        - LABELFORGE_LOG_LEVEL (default INFO)
        """
        base_path = base_path or resolve_base_path()

        presets_path = os.environ.get("LABELFORGE_PRESETS_PATH")
        max_iterations = os.environ.get("LABELFORGE_MAX_LOOP_ITERATIONS")

        return cls(
            strict=_env_flag("LABELFORGE_STRICT"),
            strict_lexing=_env_flag("LABELFORGE_STRICT_LEXING"),
            max_loop_iterations=(
                int(max_iterations) if max_iterations else DEFAULT_MAX_LOOP_ITERATIONS
            ),
            presets_path=Path(presets_path) if presets_path else base_path / "presets",
            log_level=os.environ.get("LABELFORGE_LOG_LEVEL", "INFO").upper(),
        )
