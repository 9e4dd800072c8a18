"""
FastAPI application factory.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import register_error_handlers
from .api.router import router
from .core.config import Settings, get_settings
from .core.context import AppContext
from .core.flags import FeatureFlags, get_flags

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, flags: Optional[FeatureFlags] = None) -> FastAPI:
    settings = settings or get_settings()
    flags = flags or get_flags()

    app = FastAPI(
        title="Encore",
        description="Music marketing assistant with memory",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Application context ──────────────────────────────────────
    app.state.context = AppContext.build(settings, flags)

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting Encore (env=%s)", settings.env)

        # Create database tables
        await app.state.context.startup()

        logger.info(
            "Flags: auth=%s remote_store=%s llm=%s manual=%s",
            flags.use_auth, flags.use_remote_store, flags.llm_provider, flags.manual_mode,
        )
        logger.info("Encore is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        # Flushes debounced memory writes, closes the HTTP client and the engine
        await app.state.context.shutdown()
        logger.info("Encore shut down")

    # ── Routes ───────────────────────────────────────────────────
    register_error_handlers(app)
    app.include_router(router)

    return app
