"""
FastAPI application entry point.
Responsibilities:
1.Build the app from explicit Settings (create_app)
2.Own the store: engine + session factory live on app.state
3.Include routers
4.Map domain errors, malformed input and store failures to responses
5.Define root health check endpoint
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional
from datetime import datetime
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from debate_archive import __version__
from debate_archive.config import Settings, get_settings
from debate_archive.database import Base, build_engine, build_session_factory
from debate_archive.errors import ArchiveError, StoreFailure
from debate_archive.routers import entries, votes, verifiers
from debate_archive.services.rate_limiter import system_clock

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg", "Invalid input"))
    return "; ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ArchiveError)
    async def archive_error_handler(request: Request, exc: ArchiveError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Malformed input is a 400 here, not FastAPI's default 422
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": _validation_message(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_failure_handler(request: Request, exc: SQLAlchemyError):
        failure = StoreFailure(str(getattr(exc, "orig", None) or exc))
        return JSONResponse(
            status_code=failure.status_code,
            content={"detail": failure.detail},
        )


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Application factory.

    settings defaults to get_settings() (environment / .env). clock feeds
    the rate limiter and exists so tests can move time.
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Runs once around the server's lifetime:
        - Create tables (AUTO_CREATE_TABLES; production uses managed schema)
        - Dispose the connection pool on shutdown
        """
        if settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=engine)
        logger.info(f"Debate archive {__version__} starting")
        logger.info(f"    Moderation capability: {settings.MODERATION_CAPABILITY}")
        yield
        logger.info("Debate archive shutting down")
        engine.dispose()

    app = FastAPI(
        title="Debate Clip Archive",
        description="Community-moderated archive of debate clip citations - API only",
        version=__version__,
        docs_url="/docs",  # Swagger UI at /docs
        redoc_url="/redoc",  # ReDoc at /redoc
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.clock = clock or system_clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(entries.router, tags=["Entries"])
    app.include_router(votes.router, tags=["Votes"])
    app.include_router(verifiers.router, tags=["Verifiers"])

    @app.get("/", tags=["Health"])
    async def root():
        """Health check for load balancers and quick connectivity tests."""
        return {
            "status": "ok",
            "version": __version__,
        }

    return app
