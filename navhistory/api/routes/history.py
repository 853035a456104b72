"""History routes: paginated listing and overview stats."""

from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from navhistory.web.filters import FilterSpec
from navhistory.web.models import OverviewStats, Page

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


@router.get("/history", response_model=Page)
def list_history(
    request: Request,
    page: int = 1,
    page_size: int = 50,
    keyword: Optional[str] = None,
    time_range: Optional[str] = None,
    locale: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """One page of history matching the filters, plus the filtered total."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()

    filters = FilterSpec(
        keyword=keyword,
        time_range=time_range,
        locale=locale,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return service.list_history(page, page_size, filters)


@router.get("/stats/overview", response_model=OverviewStats)
def stats_overview(request: Request, time_range: Optional[str] = None):
    """Total visits, distinct sites and top sites for the time range."""
    service = _get_service(request)
    if service is None:
        return _service_unavailable()
    return service.stats_overview(time_range)
