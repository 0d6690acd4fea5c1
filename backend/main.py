# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Build the process-wide services once (database, repositories, auth,
  analysis pipeline) and hang them on ``app.state`` for the dependencies.
* Register CORS and request-logging middleware.
* Mount the three feature routers (auth, admin, cro).
* Map validation errors to 400 and anything unhandled to 500.
* Expose /health and /health/db for liveness and readiness checks.

Production note
---------------
CORS origins come from ``CORS_ORIGINS``.  In a production deployment this
must be the exact frontend origin.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from admin.router import router as admin_router
from auth.router import router as auth_router
from auth.service import AuthService
from core.config import Settings, settings
from core.logger import logger
from cro.router import router as cro_router
from cro.service import CroPipeline, CroService
from database import Database, get_database
from repositories.analysis import AnalysisRepository
from repositories.user import UserRepository

# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Sensitive paths (login payload, password fields) are NOT echoed – only the
# URL and metadata are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


async def _validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def _unhandled_error(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc) or "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings = settings, pipeline: Optional[CroPipeline] = None) -> FastAPI:
    """
    Build the application.  *pipeline* replaces the Playwright/OpenAI/reportlab
    implementation, which is what the tests do.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("CRO Analyzer service starting up")
        db = Database(app_settings)
        # Failure here aborts startup
        db.connect()

        users = UserRepository(db, password_rounds=app_settings.password_hash_rounds)
        app.state.settings = app_settings
        app.state.db = db
        app.state.users = users
        app.state.analyses = AnalysisRepository(db)
        app.state.auth = AuthService(
            users,
            secret=app_settings.jwt_secret,
            expire_minutes=app_settings.access_token_expire_minutes,
        )
        app.state.pipeline = pipeline or CroService.from_settings(app_settings)
        try:
            yield
        finally:
            logger.info("CRO Analyzer service shutting down")
            db.close()

    app = FastAPI(title="CRO Analyzer", version="1.0.0", lifespan=lifespan)

    # -----------------------------------------------------------------------
    # CORS
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)

    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(cro_router)

    # -----------------------------------------------------------------------
    # Health checks
    # -----------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"message": "CRO Analyzer API"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/health/db")
    def health_db(db: Database = Depends(get_database)):
        if db.health_check():
            return {"status": "healthy", "database": db.storage.name}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": db.storage.name},
        )

    return app


app = create_app()
