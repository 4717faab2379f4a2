"""Seatline API: FastAPI application factory and entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from seatline.config.cors import SecurityHeadersMiddleware, configure_cors
from seatline.config.log_config import configure_logging
from seatline.config.settings import Settings, get_settings
from seatline.db.client import init_db, make_engine, make_session_factory
from seatline.events.broker import LiveChannelBroker
from seatline.events.routes import router as events_router
from seatline.messages.routes import router as messages_router
from seatline.middleware.error_handler import register_error_handlers
from seatline.middleware.rate_limiter import RateLimiterMiddleware
from seatline.middleware.request_id import RequestIDMiddleware
from seatline.roles.routes import router as roles_router
from seatline.roles.routes import search_router
from seatline.tables.routes import router as tables_router

logger = logging.getLogger(__name__)

DESCRIPTION = (
    "Seat-bound roles at shared tables exchanging short request/response messages.\n\n"
    "## Features\n"
    "- Exclusive seat claims at six-seat tables\n"
    "- Durable sent box and inbox with cursor pagination\n"
    "- Live delivery over Server-Sent Events (`/api/v1/events`)\n"
    "- Signal search across roles\n"
    "- Per-client rate limiting (standard + send tiers)"
)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    engine = make_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        init_db(engine, settings.seed_table_ids)
        logger.info("Seatline API ready")
        yield
        app.state.broker.close()
        engine.dispose()

    app = FastAPI(
        title="Seatline API",
        description=DESCRIPTION,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Health check endpoints"},
            {"name": "Roles", "description": "Create, edit and remove seated roles"},
            {"name": "Tables", "description": "Tables and seat availability"},
            {"name": "Messages", "description": "Send messages, sent box and inbox"},
            {"name": "Search", "description": "Find roles by signal"},
            {"name": "Streaming", "description": "Server-Sent Events for live message delivery"},
        ],
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.broker = LiveChannelBroker(
        heartbeat_interval=settings.HEARTBEAT_INTERVAL_SECONDS,
        max_pending=settings.SUBSCRIBER_QUEUE_SIZE,
    )

    # --- Middleware (last added runs first) ---
    app.add_middleware(RateLimiterMiddleware, settings=settings)
    configure_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # --- Error handlers ---
    register_error_handlers(app)

    # --- Routes ---
    app.include_router(roles_router)
    app.include_router(search_router)
    app.include_router(tables_router)
    app.include_router(messages_router)
    app.include_router(events_router)

    @app.get("/health", tags=["Health"], summary="Health check", description="Returns OK if the service is running.")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
