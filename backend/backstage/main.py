"""Backstage API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map BackstageError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and the SSH session registry are created in the lifespan;
      every SSH session is closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - PropsManager lives on app.state and reaches routes through a dependency
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import backstage.infrastructure.database as db_module
from backstage.api.error_handlers import register_error_handlers
from backstage.api.routes import cast, conversations, health, session
from backstage.config import get_settings
from backstage.infrastructure.database import init_db
from backstage.infrastructure.observability import setup_logging
from backstage.infrastructure.ssh_client import SSHConnector
from backstage.services.props_manager import PropsManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.props = PropsManager(
        SSHConnector(
            connect_timeout=settings.ssh_connect_timeout_seconds,
            known_hosts=settings.ssh_known_hosts,
        ),
        command_timeout=settings.ssh_command_timeout_seconds,
        max_log_entries=settings.ssh_max_log_entries,
    )
    logger.info("Backstage API started")
    yield
    logger.info("Backstage API shutting down")
    await app.state.props.disconnect_all()
    if db_module.db_manager is not None:
        await db_module.db_manager.dispose()


app = FastAPI(title="Backstage API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(cast.router)
app.include_router(session.router)
app.include_router(conversations.router)

register_error_handlers(app)
