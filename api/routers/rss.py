from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.core.logging import get_logger
from app.models.rss import ErrorResponse, Headline, HeadlinesResponse
from services.rss_export import (
    ExportError,
    MEDIA_TYPES,
    attachment_headers,
    export_filename,
    render_export,
    validate_format,
)
from services.rss_service import (
    FeedUnavailableError,
    RssHeadlineService,
    RssValidationError,
    get_rss_service,
    parse_export_limit,
    parse_limit,
    validate_filter,
)

logger = get_logger().bind(module="rss_router")

router = APIRouter(
    prefix="/rss/spiegel",
    tags=["rss"],
)

UNAVAILABLE_DETAIL = "Unable to fetch RSS feed"

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _bad_request(exc: RssValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def _unavailable(exc: FeedUnavailableError) -> HTTPException:
    logger.warning("rss_unavailable", reason=str(exc))
    return HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL)


@router.get("/latest", response_model=Headline, responses=_ERROR_RESPONSES)
async def get_latest(
    filter_keyword: Optional[str] = Query(default=None, alias="filter", description="Case-insensitive title keyword."),
    service: RssHeadlineService = Depends(get_rss_service),
) -> Headline:
    try:
        keyword = validate_filter(filter_keyword)
    except RssValidationError as exc:
        raise _bad_request(exc) from exc

    try:
        return await service.get_latest(keyword)
    except FeedUnavailableError as exc:
        raise _unavailable(exc) from exc


@router.get("/top5", response_model=HeadlinesResponse, responses=_ERROR_RESPONSES)
async def get_top(
    limit: Optional[str] = Query(default=None, description="Number of headlines (1-200, default 5)."),
    filter_keyword: Optional[str] = Query(default=None, alias="filter", description="Case-insensitive title keyword."),
    service: RssHeadlineService = Depends(get_rss_service),
) -> HeadlinesResponse:
    # Out-of-range or malformed limits are clamped, never rejected.
    count = parse_limit(limit)
    try:
        keyword = validate_filter(filter_keyword)
    except RssValidationError as exc:
        raise _bad_request(exc) from exc

    try:
        headlines, total = await service.get_top(limit=count, keyword=keyword)
    except FeedUnavailableError as exc:
        raise _unavailable(exc) from exc
    return HeadlinesResponse(headlines=headlines, total_count=total)


@router.get(
    "/export",
    responses={
        200: {"content": {"application/json": {}, "text/csv": {}}},
        500: {"model": ErrorResponse},
        **_ERROR_RESPONSES,
    },
)
async def export_headlines(
    export_format: Optional[str] = Query(default=None, alias="format", description="Export format: json or csv."),
    filter_keyword: Optional[str] = Query(default=None, alias="filter", description="Case-insensitive title keyword."),
    limit: Optional[str] = Query(default=None, description="Number of headlines (1-1000)."),
    service: RssHeadlineService = Depends(get_rss_service),
) -> Response:
    try:
        fmt = validate_format(export_format)
        keyword = validate_filter(filter_keyword)
        count = parse_export_limit(limit)
    except RssValidationError as exc:
        raise _bad_request(exc) from exc

    try:
        headlines = await service.get_export_headlines(limit=count, keyword=keyword)
    except FeedUnavailableError as exc:
        raise _unavailable(exc) from exc

    try:
        body = render_export(fmt, headlines, keyword)
    except ExportError as exc:
        logger.error("rss_export_failed", format=fmt, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to generate export") from exc

    return Response(
        content=body,
        media_type=MEDIA_TYPES[fmt],
        headers=attachment_headers(export_filename(fmt, keyword)),
    )
