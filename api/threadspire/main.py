from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from . import schemas  # noqa: E402
from .db import get_database_url  # noqa: E402
from .errors import ThreadSpireError  # noqa: E402
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .realtime import reaction_hub  # noqa: E402
from .routers import (  # noqa: E402
    bookmarks,
    collections,
    drafts,
    profiles,
    reactions,
    system,
    threads,
)
from .settings import RUN_MIGRATIONS_ON_STARTUP  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    ini_path = base_dir / "alembic.ini"
    cfg = Config(str(ini_path)) if ini_path.exists() else Config()
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    cfg.set_main_option("sqlalchemy.url", get_database_url().replace("%", "%%"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        command.upgrade(_alembic_config(), "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    if RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()
    else:
        logger.info("run_startup_tasks: RUN_MIGRATIONS_ON_STARTUP is off, skipping migrations.")
    _STARTUP_COMPLETE = True
    logger.info("Startup tasks completed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    # Server won't accept requests until the schema is current
    run_startup_tasks()
    await reaction_hub.start_redis_listener()
    logger.info("ThreadSpire API server ready")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await reaction_hub.stop_redis_listener()


app = FastAPI(
    title="ThreadSpire API",
    version="1.0.0",
    description="Threads, forks, drafts, reactions and collections",
    lifespan=lifespan,
)


@app.exception_handler(ThreadSpireError)
async def handle_domain_error(request: Request, exc: ThreadSpireError) -> JSONResponse:
    """Render domain errors as RFC 7807 problem documents."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    problem = schemas.Problem(title=exc.title, status=exc.status_code, detail=exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        problem.model_dump(),
        status_code=exc.status_code,
        media_type="application/problem+json",
        headers=headers,
    )


# CORS Configuration - restrict to specific origins
# In production, set CORS_ORIGINS environment variable to comma-separated list of allowed origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


app.include_router(system.router)
app.include_router(threads.router)
app.include_router(reactions.router)
app.include_router(drafts.router)
app.include_router(collections.router)
app.include_router(bookmarks.router)
app.include_router(profiles.router)
