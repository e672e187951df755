"""Template render pipeline.

Render flow:
1. AUTO mode: execute every script block against the context, each with a
   fresh Evaluator, and splice the outputs back (failed blocks are removed).
   MANUAL mode: strip every script block and warn about each one.
2. Substitute operator-supplied placeholder values.
3. Optionally validate the final markup with an injected LabelValidator.

preview() additionally hands the markup to an injected RasterRenderer.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from labelforge.config import EngineConfig
from labelforge.scripting.context import freeze_context
from labelforge.scripting.evaluator import Evaluator, ScriptResult
from labelforge.templates.assembler import (
    BlockFailure,
    assemble,
    substitute_placeholders,
)
from labelforge.templates.scanner import (
    SCRIPT_BLOCK_PATTERN,
    extract_placeholders,
    extract_script_blocks,
    extract_script_variables,
)
from labelforge.templates.services import LabelValidator, RasterRenderer, ValidationReport

logger = logging.getLogger(__name__)

WARNING_PREVIEW_LENGTH = 50


class RenderMode(Enum):
    """How script blocks are handled."""

    AUTO = "auto"  # Execute scripts against the context
    MANUAL = "manual"  # Strip scripts; the operator fills placeholders by hand


class RendererUnavailableError(Exception):
    """No raster renderer was configured."""


class RenderServiceError(Exception):
    """The raster renderer failed."""


@dataclass
class ScriptRemovalResult:
    """A template with its script blocks stripped."""

    cleaned_template: str
    script_count: int
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleanedTemplate": self.cleaned_template,
            "scriptCount": self.script_count,
            "warnings": self.warnings,
        }


@dataclass
class TemplateAnalysis:
    """Summary of what a template contains."""

    placeholders: list[str]
    script_blocks: int
    script_variables: list[str]

    @property
    def has_placeholders(self) -> bool:
        return bool(self.placeholders)

    @property
    def has_scripts(self) -> bool:
        return self.script_blocks > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "placeholders": self.placeholders,
            "scriptBlocks": self.script_blocks,
            "scriptVariables": self.script_variables,
            "hasPlaceholders": self.has_placeholders,
            "hasScripts": self.has_scripts,
        }


@dataclass(frozen=True)
class LabelSize:
    """Physical label size for previews (default 4x6 inch at 203 dpi)."""

    width_mm: float = 101.6
    height_mm: float = 152.4
    dots_per_mm: int = 8


@dataclass
class RenderResult:
    """Outcome of rendering a template.

    Attributes:
        text: Final markup
        mode: How script blocks were handled
        warnings: Operator-facing messages (failed or stripped blocks)
        block_results: One result per script block (AUTO mode only)
        failures: Failed blocks, removed from the markup
        diagnostics: Characters the lexer skipped, per block
        validation: Validator report when a validator is configured
    """

    text: str
    mode: RenderMode
    warnings: list[str] = field(default_factory=list)
    block_results: list[ScriptResult] = field(default_factory=list)
    failures: list[BlockFailure] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    validation: ValidationReport | None = None

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "mode": self.mode.value,
            "success": self.success,
            "warnings": self.warnings,
            "blocks": [r.to_dict() for r in self.block_results],
            "failures": [f.to_dict() for f in self.failures],
            "diagnostics": self.diagnostics,
            "validation": self.validation.to_dict() if self.validation else None,
        }


def _first_line_preview(source: str) -> str | None:
    for line in source.splitlines():
        line = line.strip()
        if line:
            preview = line[:WARNING_PREVIEW_LENGTH]
            if len(preview) == WARNING_PREVIEW_LENGTH:
                preview += "..."
            return preview
    return None


def strip_script_blocks(template: str) -> ScriptRemovalResult:
    """Remove all script blocks, with one warning per non-empty block."""
    blocks = extract_script_blocks(template)
    warnings = []

    for block in blocks:
        preview = _first_line_preview(block.source)
        if preview is not None:
            warnings.append(f"Script {block.index + 1}: {preview}")

    return ScriptRemovalResult(
        cleaned_template=SCRIPT_BLOCK_PATTERN.sub("", template),
        script_count=len(blocks),
        warnings=warnings,
    )


def analyze_template(template: str) -> TemplateAnalysis:
    """Summarize the placeholders and script blocks of a template."""
    blocks = extract_script_blocks(template)
    return TemplateAnalysis(
        placeholders=extract_placeholders(template),
        script_blocks=len(blocks),
        script_variables=extract_script_variables(blocks),
    )


class TemplateRenderer:
    """Renders templates against an execution context.

    Usage:
        renderer = TemplateRenderer(EngineConfig.from_env())
        result = renderer.render(template, context, {"SortCode": "A1"})
        result.text
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        validator: LabelValidator | None = None,
        raster_renderer: RasterRenderer | None = None,
    ):
        self.config = config or EngineConfig()
        self.validator = validator
        self.raster_renderer = raster_renderer

    def execute_blocks(
        self, template: str, context: Mapping[str, Any] | None
    ) -> list[ScriptResult]:
        """Execute every script block of a template, each in isolation."""
        snapshot = freeze_context(context or {})
        results = []

        for block in extract_script_blocks(template):
            result = Evaluator(snapshot, self.config).execute(block.source)
            logger.debug(
                "Script block %d: success=%s output=%r", block.index + 1, result.success, result.output
            )
            results.append(result)

        return results

    def render(
        self,
        template: str,
        context: Mapping[str, Any] | None = None,
        placeholder_values: Mapping[str, str] | None = None,
        mode: RenderMode = RenderMode.AUTO,
    ) -> RenderResult:
        """Render a template to final markup.

        Failed script blocks never abort the render: they are removed from
        the markup and reported in the result's warnings.
        """
        if mode == RenderMode.MANUAL:
            removal = strip_script_blocks(template)
            result = RenderResult(
                text=substitute_placeholders(removal.cleaned_template, placeholder_values or {}),
                mode=mode,
                warnings=removal.warnings,
            )
        else:
            block_results = self.execute_blocks(template, context)
            assembled = assemble(template, block_results, placeholder_values)
            result = RenderResult(
                text=assembled.text,
                mode=mode,
                warnings=[
                    f"Script {failure.index + 1}: {failure.message}"
                    for failure in assembled.failures
                ],
                block_results=block_results,
                failures=assembled.failures,
                diagnostics=[
                    f"Script {index + 1}: {anomaly.message}"
                    for index, block_result in enumerate(block_results)
                    for anomaly in block_result.diagnostics
                ],
            )

        if self.validator is not None:
            result.validation = self.validator.validate(result.text)

        logger.info(
            "Rendered template (%s mode): %d warning(s)", mode.value, len(result.warnings)
        )
        return result

    def preview(
        self,
        template: str,
        context: Mapping[str, Any] | None = None,
        placeholder_values: Mapping[str, str] | None = None,
        mode: RenderMode = RenderMode.AUTO,
        size: LabelSize = LabelSize(),
    ) -> tuple[RenderResult, bytes]:
        """Render a template and rasterize the final markup.

        Raises:
            RendererUnavailableError: If no raster renderer is configured
            RenderServiceError: If the raster renderer fails
        """
        if self.raster_renderer is None:
            raise RendererUnavailableError("No raster renderer is configured")

        result = self.render(template, context, placeholder_values, mode)
        try:
            image = self.raster_renderer.render(
                result.text, size.width_mm, size.height_mm, size.dots_per_mm
            )
        except Exception as e:
            raise RenderServiceError(f"Rendering failed: {e}") from e

        return result, image
