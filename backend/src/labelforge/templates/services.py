"""Contracts for the external collaborators of the render pipeline.

The structural markup validator and the raster renderer live outside this
package. They are passed into TemplateRenderer explicitly; anything that
implements these protocols can be used.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class Severity(Enum):
    """Diagnostic severity reported by a validator."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single validator finding.

    Attributes:
        message: Human-readable message
        line: 1-based line of the final markup, or None for whole-label findings
        severity: ERROR or WARNING
    """

    message: str
    line: int | None = None
    severity: Severity = Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "line": self.line,
            "severity": self.severity.value,
        }


@dataclass
class ValidationReport:
    """Result of validating assembled markup."""

    valid: bool
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class LabelValidator(Protocol):
    """Structural checks on final label markup."""

    def validate(self, text: str) -> ValidationReport:
        ...


class RasterRenderer(Protocol):
    """Turns final label markup into an image.

    Implementations raise an exception when rendering fails.
    """

    def render(
        self, text: str, width_mm: float, height_mm: float, dots_per_mm: int
    ) -> bytes:
        ...
