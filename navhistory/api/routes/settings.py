"""Settings routes: config, database path switching, file housekeeping."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from navhistory.config import AppConfig

router = APIRouter()


def _get_service(request: Request):
    """Get the history service from app state, or None."""
    return getattr(request.app.state, "history", None)


def _service_unavailable():
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": {"message": "History service unavailable", "code": "DB_UNAVAILABLE", "type": "Db"}
        },
    )


# --- Pydantic v2 request/response models ---

class PathRequest(BaseModel):
    path: str = Field(min_length=1)


class TopSitesRequest(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str


class ValidateResponse(BaseModel):
    valid: bool


class CopyResponse(BaseModel):
    path: str


# --- Routes ---

@router.get("/health")
def health_check(request: Request):
    """Health check. Reports which database file is live, if any."""
    service = _get_service(request)
    active = service.manager.active_path if service is not None else None
    return {"status": "ok", "db": active}


@router.get("/config", response_model=AppConfig)
def get_config(request: Request):
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return service.get_config()


@router.put("/config/db-path", response_model=MessageResponse)
def set_db_path(request: Request, body: PathRequest):
    """Validate a SQLite file and switch the live connection to it."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return MessageResponse(message=service.set_db_path(body.path))


@router.put("/config/browser-db-path", response_model=MessageResponse)
def set_browser_db_path(request: Request, body: PathRequest):
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return MessageResponse(message=service.set_browser_db_path(body.path))


@router.post("/config/validate-db-path", response_model=ValidateResponse)
def validate_db_path(request: Request, body: PathRequest):
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return ValidateResponse(valid=service.validate_db_path(body.path))


@router.put("/config/top-sites-count", response_model=MessageResponse)
def set_top_sites_count(request: Request, body: TopSitesRequest):
    """Top-N size for the overview (1-50)."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return MessageResponse(message=service.set_top_sites_count(body.count))


@router.post("/db/copy-browser-db", response_model=CopyResponse)
def copy_browser_db(request: Request, body: PathRequest):
    """Copy a browser history file into the app directory."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return CopyResponse(path=service.copy_browser_db_to_app(body.path))


@router.post("/db/open-directory", response_model=MessageResponse)
def open_db_directory(request: Request):
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return MessageResponse(message=service.open_db_directory())


@router.post("/db/cleanup", response_model=MessageResponse)
def cleanup_old_dbs(request: Request):
    """Delete other .db files next to the active database."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return MessageResponse(message=service.cleanup_old_dbs())
