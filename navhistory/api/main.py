"""FastAPI application for the navhistory dashboard."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from navhistory import __version__
from navhistory.errors import AppError, DatabaseError, InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


def _build_allowed_origins(host: str, port: int) -> list[str]:
    """Build the CORS allowed origins list.

    >>> _build_allowed_origins("127.0.0.1", 8765)
    ['http://127.0.0.1:8765', 'http://localhost:8765']
    >>> _build_allowed_origins("0.0.0.0", 8765)
    ['*']
    """
    if host == "0.0.0.0":
        return ["*"]
    return [f"http://127.0.0.1:{port}", f"http://localhost:{port}"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the process-wide history service; close its handle on shutdown."""
    if getattr(app.state, "history", None) is None:
        from navhistory.commands import HistoryService

        app.state.history = HistoryService()
        logger.info("History service initialized")

    yield

    service = getattr(app.state, "history", None)
    if service is not None:
        service.close()


app = FastAPI(
    title="navhistory dashboard",
    description="Browse and analyze a local navigation-history database.",
    version=__version__,
    lifespan=lifespan,
)

_cors_origins = _build_allowed_origins(
    os.environ.get("NAVHISTORY_HOST", DEFAULT_HOST),
    int(os.environ.get("NAVHISTORY_PORT", str(DEFAULT_PORT))),
)
# allow_credentials must be False when origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception handlers ---


def _status_for(exc: AppError) -> int:
    if isinstance(exc, InvalidArgumentError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, DatabaseError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if not isinstance(exc, InvalidArgumentError):
        logger.warning("%s error on %s: %s", exc.kind, request.url.path, exc)
    return JSONResponse(
        status_code=_status_for(exc),
        content={"error": {"message": str(exc), "code": exc.code, "type": exc.kind}},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "An internal error occurred",
                "code": "INTERNAL_ERROR",
                "type": "Internal",
            }
        },
    )


# --- Include route modules ---

from navhistory.api.routes import history, settings  # noqa: E402

app.include_router(history.router, prefix="/api", tags=["history"])
app.include_router(settings.router, prefix="/api", tags=["settings"])
