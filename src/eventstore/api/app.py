"""Event store API — FastAPI application factory.

The app factory creates a FastAPI instance with:
- Lifespan handler that opens and closes the DB pool
- Event CRUD routes at /events
- Health endpoint at GET /api/health
- CORS (when origins are configured) and security headers
- Optional static file serving for the scheduler UI
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from eventstore.api.deps import check_health, init_event_store, shutdown_event_store
from eventstore.api.middleware import SecurityHeadersMiddleware, register_error_handlers
from eventstore.api.models import HealthResponse
from eventstore.api.routers.events import router as events_router
from eventstore.config import StoreConfig, default_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle for the DB pool.

    A database that cannot be reached at startup is logged; the event
    endpoints then answer 503 while the rest of the app keeps serving.
    """
    config: StoreConfig = app.state.config
    try:
        await init_event_store(config)
    except Exception:
        logger.warning(
            "Failed to initialize event storage; event endpoints will be unavailable",
            exc_info=True,
        )

    yield

    await shutdown_event_store()


def create_app(
    config: StoreConfig | None = None,
    cors_origins: list[str] | None = None,
    static_dir: str | Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded configuration. Defaults to ``default_config()``.
    cors_origins:
        Allowed CORS origins. Defaults to ``config.server.cors_origins``; no
        CORS middleware is installed when the list is empty.
    static_dir:
        Path to the built scheduler UI. Falls back to
        ``config.server.static_dir`` and then the ``EVENTSTORE_STATIC_DIR``
        environment variable. When none is set, no static mount is registered.
    """
    if config is None:
        config = default_config()
    if cors_origins is None:
        cors_origins = config.server.cors_origins

    app = FastAPI(
        title="Event Store API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.router.redirect_slashes = False

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(events_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status=await check_health())

    # Mount AFTER all API routes so /events and /api/* always take precedence.
    resolved_static = static_dir or config.server.static_dir or os.environ.get(
        "EVENTSTORE_STATIC_DIR"
    )
    if resolved_static is not None:
        dist_path = Path(resolved_static)
        if dist_path.is_dir():
            app.mount(
                "/",
                StaticFiles(directory=str(dist_path), html=True),
                name="frontend",
            )
            logger.info("Mounted frontend static files from %s", dist_path)
        else:
            logger.warning("static_dir %s does not exist; skipping static mount", dist_path)

    return app
