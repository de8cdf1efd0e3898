# ruff: noqa: I001

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from ledger_engine.api.router import api_router
from ledger_engine.config import settings
from ledger_engine.core.errors import LedgerError
from ledger_engine.core.observability import (
    global_exception_handler,
    ledger_error_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from ledger_engine.database import POOL_CONFIG, SessionLocal, engine

api_prefix = (
    settings.api_prefix
    if settings.api_prefix.startswith("/")
    else f"/{settings.api_prefix}"
    if settings.api_prefix
    else ""
)

logger = logging.getLogger("ledger_engine")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger for middleware without creating circular imports.
app.state.logger = logger

app.add_exception_handler(LedgerError, ledger_error_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not settings.run_migrations_on_start:
        return

    # Tests build the schema themselves.
    if (settings.environment or "").lower() == "test":
        return

    # Import lazily to keep import graph light for non-migration startups.
    from alembic import command
    from alembic.config import Config
    from sqlalchemy.engine.url import make_url

    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))

    url_obj = make_url(str(settings.database_url))
    logger.info(
        "migrations_db_target driver=%s host=%s port=%s db=%s",
        url_obj.drivername,
        url_obj.host,
        url_obj.port,
        url_obj.database,
    )

    try:
        with engine.connect() as connection:
            # Reuse this connection inside alembic/env.py (config.attributes['connection']).
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
            connection.commit()
        logger.info("migrations_applied")
    except SQLAlchemyError as e:
        # Don't crash the API if migrations fail; endpoints will surface DB errors.
        logger.error("migrations_failed error=%s", str(e))


def _seed_dev_reference_data() -> None:
    env = str(settings.environment or "dev").lower()
    if env in {"prod", "production", "test"}:
        return

    from ledger_engine.scripts.seed_reference_data import seed_reference_data

    db = SessionLocal()
    try:
        seed_reference_data(db)
    except SQLAlchemyError as e:
        # Database not ready yet (e.g., missing tables) - don't block startup.
        logger.warning("reference_data_seed_failed", extra={"error": str(e)})
        db.rollback()
    finally:
        db.close()


@app.on_event("startup")
def _startup():
    logger.info(
        "runtime_config",
        extra={
            "pid": os.getpid(),
            "environment": settings.environment,
            "base_currency": settings.base_currency,
            "db_pool": POOL_CONFIG,
        },
    )
    _run_migrations_if_configured()
    _seed_dev_reference_data()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    return {"message": settings.app_name, "docs": docs_path}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def healthcheck():
    """Liveness probe; the payload shape is stable for monitoring."""

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
