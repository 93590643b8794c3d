from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from src.appointy_sync.cache import is_force_refresh
from src.appointy_sync.errors import AccessDenied, ConfigurationMissing, ScrapingError
from src.appointy_sync.logging import get_logger
from src.appointy_sync.service import FeedService

log = get_logger(__name__)

router = APIRouter()

CALENDAR_MEDIA_TYPE = "text/calendar; charset=utf-8"


def _service(request: Request) -> FeedService:
    return request.app.state.feed_service


async def _calendar_response(
    service: FeedService, token: str | None, refresh: str | None
) -> Response:
    try:
        document, status = await service.calendar(token, refresh=is_force_refresh(refresh))
    except AccessDenied:
        return PlainTextResponse("Invalid token", status_code=403)
    except ConfigurationMissing as e:
        return PlainTextResponse(f"Not configured: {e}", status_code=503)
    except ScrapingError as e:
        return PlainTextResponse(f"Error fetching appointments: {e}", status_code=500)
    except Exception as e:
        log.exception("calendar_request_failed", type=type(e).__name__)
        return PlainTextResponse(f"Error fetching appointments: {e}", status_code=500)

    return Response(
        content=document,
        media_type=CALENDAR_MEDIA_TYPE,
        headers={"X-Cache": status.value},
    )


@router.get("/calendar/{token}")
async def calendar_by_path(request: Request, token: str, refresh: str | None = None):
    """Calendar feed, token in the path (what calendar apps subscribe to)."""
    return await _calendar_response(_service(request), token, refresh)


@router.get("/calendar")
async def calendar_by_query(
    request: Request,
    token: str | None = Query(default=None),
    refresh: str | None = None,
):
    return await _calendar_response(_service(request), token, refresh)


@router.get("/health")
async def health_check(request: Request):
    return JSONResponse(await _service(request).health())


@router.get("/")
def root():
    return RedirectResponse("/health")
