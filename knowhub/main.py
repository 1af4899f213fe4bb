from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from knowhub.api.collections import router as collections_router
from knowhub.api.filters import router as filters_router
from knowhub.api.health import router as health_router
from knowhub.api.quick_topics import router as quick_topics_router
from knowhub.api.search import router as search_router
from knowhub.api.starter_questions import router as starter_questions_router
from knowhub.api.telemetry import router as telemetry_router
from knowhub.core.config import Settings, settings as default_settings
from knowhub.core.container import ServiceContainer, build_services
from knowhub.core.errors import setup_exception_handlers
from knowhub.utils.logging import get_logger, level_for_environment, setup_logging

logger = get_logger("knowhub.main")

# sentence-transformers tokenizers warn when forked after first use
os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")


def create_app(
    settings: Settings | None = None,
    services: ServiceContainer | None = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    When ``services`` is given (tests), it is used as is; otherwise the
    production providers are built on startup.
    """
    config = settings or default_settings

    app = FastAPI(
        title=config.app_name,
        description="Knowledge hub search API: cited answers, smart collections and contextual filters",
        version="1.0.0",
    )
    app.state.settings = config
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset", "Retry-After"],
    )

    setup_exception_handlers(app, expose_details=config.is_development)

    app.include_router(health_router)
    app.include_router(search_router)
    app.include_router(collections_router)
    app.include_router(filters_router)
    app.include_router(quick_topics_router)
    app.include_router(starter_questions_router)
    app.include_router(telemetry_router)

    @app.on_event("startup")
    async def on_startup():
        setup_logging(level_for_environment(config.environment))
        logger.info("Starting %s (%s)...", config.app_name, config.environment)
        if app.state.services is None:
            app.state.services = build_services(config)
        logger.info("[OK] Services ready")

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.services is not None:
            await app.state.services.shutdown()
        logger.info("Shutdown complete")

    return app


app = create_app()
