"""FastAPI application for the survey API.

``create_app()`` wires the publication and response services, the error
handlers that turn service exceptions into HTTP statuses, the routes under
``/api/v1`` and a ``/health`` readiness check reporting survey counts.
``cli()`` backs the ``survey-server`` console script.
"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from survey_db.engine import create_tables, dispose_engine, survey_counts
from survey_engine.publication import PublicationService
from survey_engine.responses import ResponseService

from survey_server.config import ServerSettings, apply_overrides, load_settings
from survey_server.errors import (
    generic_error_handler,
    key_error_handler,
    permission_error_handler,
    value_error_handler,
)
from survey_server.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the services once; release the connection pool on shutdown."""
    settings: ServerSettings = app.state.settings
    if settings.create_tables:
        await create_tables()

    app.state.publication = PublicationService()
    app.state.responses = ResponseService()
    logger.info("Survey services ready")

    yield

    await dispose_engine()


async def health() -> JSONResponse:
    """200 with survey counts while the database answers, else 503."""
    try:
        counts = await survey_counts()
    except Exception as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(content={"status": "ok", **counts})


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Survey API",
        description="Survey authoring, publication, responses and field questions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ValueError keywords pick 404 / 409 / 400; see survey_server.errors
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(PermissionError, permission_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    app.add_api_route("/health", health, methods=["GET"], include_in_schema=False)
    register_routes(app)
    return app


# ASGI target for ``uvicorn survey_server.app:app``
app = create_app()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="survey-server",
        description="Serve the survey API. Flags override SERVER_* environment variables.",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: $SERVER_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: $SERVER_PORT or 8080)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "error", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: $SERVER_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--cors-origins",
        default=None,
        help="Comma-separated allowed origins (default: $SERVER_CORS_ORIGINS or *)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        default=None,
        help="Create missing survey tables before serving",
    )
    return parser


def settings_from_args(argv: list[str] | None = None) -> ServerSettings:
    """Environment settings with command-line flags applied on top."""
    args = build_parser().parse_args(argv)
    return apply_overrides(
        load_settings(),
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        cors_origins=args.cors_origins,
        create_tables=args.create_tables,
    )


def cli(argv: list[str] | None = None) -> None:
    """Console-script entry point: ``survey-server``."""
    import uvicorn

    settings = settings_from_args(argv)
    logger.info("Starting survey API on %s:%d", settings.host, settings.port)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
