"""Label templates: scanning, assembly and the render pipeline."""

from labelforge.templates.assembler import (
    AssembledTemplate,
    BlockFailure,
    assemble,
    substitute_placeholders,
)
from labelforge.templates.renderer import (
    RenderMode,
    RenderResult,
    RendererUnavailableError,
    RenderServiceError,
    ScriptRemovalResult,
    TemplateAnalysis,
    TemplateRenderer,
    analyze_template,
    strip_script_blocks,
)
from labelforge.templates.scanner import (
    ScriptBlock,
    extract_placeholders,
    extract_script_blocks,
    extract_script_variables,
)

__all__ = [
    "AssembledTemplate",
    "BlockFailure",
    "assemble",
    "substitute_placeholders",
    "RenderMode",
    "RenderResult",
    "RendererUnavailableError",
    "RenderServiceError",
    "ScriptRemovalResult",
    "TemplateAnalysis",
    "TemplateRenderer",
    "analyze_template",
    "strip_script_blocks",
    "ScriptBlock",
    "extract_placeholders",
    "extract_script_blocks",
    "extract_script_variables",
]
