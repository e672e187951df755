"""Template, script, preset and function API endpoints."""

import base64
from typing import Any, Callable

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from labelforge.presets import PresetLoader, PresetNotFoundError
from labelforge.scripting import Evaluator, FunctionRegistry, freeze_context
from labelforge.templates import (
    RenderMode,
    RendererUnavailableError,
    RenderServiceError,
    TemplateRenderer,
    analyze_template,
)
from labelforge.templates.renderer import LabelSize


class AnalyzeRequest(BaseModel):
    template: str


class RenderRequest(BaseModel):
    template: str
    preset: str | None = None
    context: dict[str, Any] | None = None
    values: dict[str, str] = Field(default_factory=dict)
    mode: RenderMode = RenderMode.AUTO


class PreviewRequest(RenderRequest):
    width_mm: float = Field(101.6, alias="widthMm")
    height_mm: float = Field(152.4, alias="heightMm")
    dots_per_mm: int = Field(8, alias="dotsPerMm")

    model_config = {"populate_by_name": True}


class ExecuteRequest(BaseModel):
    script: str
    preset: str | None = None
    context: dict[str, Any] | None = None


def _resolve_context(
    preset_loader: PresetLoader | None,
    preset: str | None,
    context: dict[str, Any] | None,
) -> dict[str, Any]:
    """Context for a request: an explicit context wins over a preset name."""
    if context is not None:
        return context
    if preset is None:
        return {}
    if not preset_loader:
        raise HTTPException(500, "Service not initialized")
    try:
        return preset_loader.get_preset(preset).data
    except PresetNotFoundError as e:
        raise HTTPException(404, str(e))


def create_templates_router(
    get_renderer: Callable[[], TemplateRenderer | None],
    get_preset_loader: Callable[[], PresetLoader | None],
) -> APIRouter:
    """Create the templates/scripts router with injected dependencies."""
    router = APIRouter(prefix="/api", tags=["templates"])

    @router.post("/templates/analyze")
    async def analyze(request: AnalyzeRequest) -> dict[str, Any]:
        """Return the placeholders and script references of a template."""
        return {"data": analyze_template(request.template).to_dict()}

    @router.post("/templates/render")
    async def render(request: RenderRequest) -> dict[str, Any]:
        """Render a template against a preset or an explicit context."""
        renderer = get_renderer()
        if not renderer:
            raise HTTPException(500, "Service not initialized")

        context = _resolve_context(get_preset_loader(), request.preset, request.context)
        result = renderer.render(request.template, context, request.values, request.mode)
        return {"data": result.to_dict()}

    @router.post("/templates/preview")
    async def preview(request: PreviewRequest) -> dict[str, Any]:
        """Render a template and rasterize it with the configured renderer."""
        renderer = get_renderer()
        if not renderer:
            raise HTTPException(500, "Service not initialized")

        context = _resolve_context(get_preset_loader(), request.preset, request.context)
        size = LabelSize(request.width_mm, request.height_mm, request.dots_per_mm)
        try:
            result, image = renderer.preview(
                request.template, context, request.values, request.mode, size
            )
        except RendererUnavailableError as e:
            raise HTTPException(503, str(e))
        except RenderServiceError as e:
            raise HTTPException(502, str(e))

        return {
            "data": {
                "render": result.to_dict(),
                "image": base64.b64encode(image).decode("ascii"),
            }
        }

    @router.post("/scripts/execute")
    async def execute(request: ExecuteRequest) -> dict[str, Any]:
        """Execute a single script."""
        renderer = get_renderer()
        if not renderer:
            raise HTTPException(500, "Service not initialized")

        context = _resolve_context(get_preset_loader(), request.preset, request.context)
        result = Evaluator(freeze_context(context), renderer.config).execute(request.script)
        return {"data": result.to_dict()}

    return router


def create_presets_router(
    get_preset_loader: Callable[[], PresetLoader | None],
) -> APIRouter:
    """Create the presets router with injected dependencies."""
    router = APIRouter(prefix="/api", tags=["presets"])

    @router.get("/presets")
    async def list_presets() -> dict[str, Any]:
        """List presets (without their data)."""
        loader = get_preset_loader()
        if not loader:
            raise HTTPException(500, "Service not initialized")
        return {"data": [p.to_dict(include_data=False) for p in loader.list_presets()]}

    @router.get("/presets/{name}")
    async def get_preset(name: str) -> dict[str, Any]:
        """Return a preset with its context data."""
        loader = get_preset_loader()
        if not loader:
            raise HTTPException(500, "Service not initialized")
        try:
            preset = loader.get_preset(name)
        except PresetNotFoundError:
            raise HTTPException(404, f"Preset not found: {name}")
        return {"data": preset.to_dict()}

    return router


def create_functions_router() -> APIRouter:
    """Create the function documentation router."""
    router = APIRouter(prefix="/api", tags=["functions"])

    @router.get("/functions")
    async def list_functions() -> dict[str, Any]:
        """Export the function registry documentation."""
        return {"data": FunctionRegistry.export_documentation()}

    return router
