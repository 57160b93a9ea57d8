# fintrack/main.py

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import __version__, analytics, auth, transactions, users
from .cache import build_cache
from .config import Settings, get_settings
from .database import init_db, make_engine, make_session_factory
from .errors import register_exception_handlers
from .middleware import BodySizeLimitMiddleware
from .rate_limit import default_limiters

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; img-src 'self' data: https:"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "same-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    init_db(state.engine, state.session_factory)
    logger.info("Finance Tracker API ready (environment: %s)", state.settings.environment)
    try:
        yield
    finally:
        logger.info("Shutting down: closing database pool and cache")
        state.cache.close()
        state.engine.dispose()


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.jwt_secret == "change-me":
        logger.warning("JWT_SECRET is not set; using an insecure default")

    app = FastAPI(title="Finance Tracker API", version=__version__, lifespan=lifespan)

    # process-scoped resources, handed to endpoints through dependencies
    app.state.settings = settings
    app.state.engine = make_engine(settings.database_url)
    app.state.session_factory = make_session_factory(app.state.engine)
    app.state.cache = build_cache(settings)
    app.state.limiters = default_limiters()

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origin.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_and_logging(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    register_exception_handlers(app, headers=SECURITY_HEADERS)

    prefix = settings.api_prefix.rstrip("/")
    app.include_router(auth.router, prefix=prefix)
    app.include_router(transactions.router, prefix=prefix)
    app.include_router(analytics.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)

    @app.get("/health")
    def health(request: Request):
        state = request.app.state
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            with state.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Health check failed: %s", e)
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "timestamp": timestamp, "error": str(e)},
            )

        if not state.cache.configured:
            cache_status = "not configured"
        else:
            cache_status = "connected" if state.cache.ping() else "disconnected"

        return {
            "status": "healthy",
            "timestamp": timestamp,
            "services": {"database": "connected", "cache": cache_status},
        }

    @app.get("/")
    def root():
        return {
            "message": "Finance Tracker API",
            "version": __version__,
            "endpoints": {
                "auth": f"{prefix}/auth",
                "transactions": f"{prefix}/transactions",
                "analytics": f"{prefix}/analytics",
                "users": f"{prefix}/users",
            },
        }

    return app


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run("fintrack.main:create_app", factory=True, host=settings.host, port=settings.port)
