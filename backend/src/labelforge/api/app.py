"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from labelforge.api.endpoints import (
    create_functions_router,
    create_presets_router,
    create_templates_router,
)
from labelforge.config import EngineConfig
from labelforge.presets import PresetLoader
from labelforge.scripting.builtins import register_all_builtins
from labelforge.templates import TemplateRenderer
from labelforge.templates.services import LabelValidator, RasterRenderer

logger = logging.getLogger(__name__)


def create_app(
    config: EngineConfig | None = None,
    validator: LabelValidator | None = None,
    raster_renderer: RasterRenderer | None = None,
) -> FastAPI:
    """Build the API application.

    The renderer and preset loader are created on startup and kept on
    ``app.state``. No validator or raster renderer is bundled; deployments
    pass their own here. Without a raster renderer the preview endpoint
    answers 503.

    Args:
        config: Engine settings; read from the environment when omitted
        validator: Markup validator used after every render
        raster_renderer: Image backend used by the preview endpoint
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup."""
        register_all_builtins()

        engine_config = config or EngineConfig.from_env()
        logger.info(
            "Engine config: strict=%s strict_lexing=%s max_loop_iterations=%d",
            engine_config.strict,
            engine_config.strict_lexing,
            engine_config.max_loop_iterations,
        )

        app.state.preset_loader = PresetLoader(engine_config.presets_path)
        app.state.preset_loader.load_all()

        app.state.renderer = TemplateRenderer(
            engine_config,
            validator=validator,
            raster_renderer=raster_renderer,
        )

        yield

    app = FastAPI(title="LabelForge API", lifespan=lifespan)
    app.state.renderer = None
    app.state.preset_loader = None

    # CORS for frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        create_templates_router(
            get_renderer=lambda: app.state.renderer,
            get_preset_loader=lambda: app.state.preset_loader,
        )
    )
    app.include_router(
        create_presets_router(get_preset_loader=lambda: app.state.preset_loader)
    )
    app.include_router(create_functions_router())

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Liveness check."""
        return {"status": "ok"}

    return app


app = create_app()
