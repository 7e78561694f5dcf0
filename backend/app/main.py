"""FastAPI application: the main entrypoint for the feedback board."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.app.api.feedback import router as feedback_router
from backend.app.config import settings
from backend.app.db import engine, init_db
from backend.app.errors import FeedbackError, StorageError

logger = logging.getLogger(__name__)

# Configure logging for our app modules so INFO/DEBUG logs are visible.
# Uvicorn's log_level="info" only affects its own logger, not ours.
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(levelname)s:%(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    logger.info("Feedback board ready on port %d (db: %s)", settings.port, settings.db_path)
    yield
    await engine.dispose()


app = FastAPI(
    title="Feedback Board",
    description="Collect, search and upvote product feedback",
    version="0.1.0",
    lifespan=lifespan,
)

# allow_origins=["*"] + allow_credentials=True is rejected by browsers,
# so the origin list is always explicit.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception handlers ---


@app.exception_handler(FeedbackError)
async def _feedback_error_handler(request: Request, exc: FeedbackError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed input is a 400 with the individual field errors attached."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a clean JSON 500 instead of a stack trace."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include routers
app.include_router(feedback_router, prefix="/api")


# --- Health check ---


@app.get("/api/health")
async def health() -> dict[str, str]:
    """Health check with DB connectivity verification."""
    db_ok = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_ok = "error"
        logger.exception("Health check: database connectivity failed")

    return {
        "status": "ok" if db_ok == "ok" else "degraded",
        "database": db_ok,
    }
