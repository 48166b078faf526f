"""
API endpoints for draw results, cache prefetch, draw schedule and ticket checks.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from xoso.date_utils import DateManager
from xoso.loader import ResultFetcher
from xoso.models import result_set_to_dict
from xoso.provinces import REGION_KEYS, get_province, normalize_region, provinces_for_date
from xoso.ticket_verifier import TicketVerifier

lottery_router = APIRouter(prefix="/api/lottery", tags=["lottery"])

MAX_PREFETCH_DAYS = 90


class CheckTicketRequest(BaseModel):
    ticket: str = Field(..., min_length=1, max_length=32)
    date: Optional[str] = None
    region: Optional[str] = None
    province: Optional[str] = None


def get_fetcher(request: Request) -> ResultFetcher:
    return request.app.state.fetcher


def get_verifier(request: Request) -> TicketVerifier:
    return request.app.state.ticket_verifier


def _parse_date_param(value: Optional[str]):
    if not value:
        return DateManager.today()
    try:
        return DateManager.parse_query_date(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_region_param(value: Optional[str]) -> Optional[str]:
    try:
        return normalize_region(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@lottery_router.get("")
def get_lottery_results(date: Optional[str] = Query(None, description="DD-MM-YYYY, defaults to today"),
                        region: Optional[str] = Query(None, description="south | central | north | all"),
                        fetcher: ResultFetcher = Depends(get_fetcher)):
    """
    Draw results for a date. An empty `data` object means no results are
    published (yet) for that date; it is not an error.
    """
    draw_day = _parse_date_param(date)
    region_key = _parse_region_param(region)
    date_str = DateManager.format_query_date(draw_day)

    try:
        outcome = fetcher.fetch_with_diagnostics(draw_day, region_key)
    except Exception as e:
        logger.error(f"Failed to fetch lottery results for {date_str}: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to fetch results"})

    return {
        "success": True,
        "data": result_set_to_dict(outcome['results']),
        "date": date_str,
        "source": "cache" if outcome['from_cache'] else "fresh",
        "attempts": [d.to_dict() for d in outcome['diagnostics']],
    }


@lottery_router.get("/prefetch")
def prefetch_lottery_results(days: int = Query(30, ge=1, le=MAX_PREFETCH_DAYS),
                             region: str = Query("south"),
                             fetcher: ResultFetcher = Depends(get_fetcher)):
    """
    Walk back `days` days from today and populate the cache for each date.
    """
    region_key = _parse_region_param(region)
    try:
        report = fetcher.prefetch(days, region_key)
    except Exception as e:
        logger.error(f"Prefetch failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Prefetch failed"})

    durable = fetcher.cache is not None and fetcher.cache.has_durable_store
    return {"success": True, "durableCache": durable, **report}


@lottery_router.get("/provinces")
def get_provinces_for_date(date: Optional[str] = Query(None), region: Optional[str] = Query(None)):
    """Provinces drawing on the given date, in display order."""
    draw_day = _parse_date_param(date)
    region_key = _parse_region_param(region)
    provinces = provinces_for_date(draw_day, region_key)
    return {
        "success": True,
        "date": DateManager.format_query_date(draw_day),
        "display": DateManager.format_date_display(draw_day),
        "provinces": [p.to_dict() for p in provinces],
    }


@lottery_router.post("/check")
def check_ticket(body: CheckTicketRequest,
                 fetcher: ResultFetcher = Depends(get_fetcher),
                 verifier: TicketVerifier = Depends(get_verifier)):
    """
    Resolve results for the ticket's date and report every winning tier.

    `hasResults=false` means nothing is published for that date yet.
    """
    draw_day = _parse_date_param(body.date)
    region_key = _parse_region_param(body.region)

    scope = None
    if body.province:
        province = get_province(body.province)
        if province is None:
            raise HTTPException(status_code=400, detail=f"Unknown province: {body.province}")
        if region_key and region_key != province.region:
            raise HTTPException(
                status_code=400,
                detail=f"Province {body.province} draws in region {province.region}, not {region_key}",
            )
        region_key = province.region
        scope = body.province

    date_str = DateManager.format_query_date(draw_day)
    try:
        outcome = fetcher.fetch_with_diagnostics(draw_day, region_key)
    except Exception as e:
        logger.error(f"Ticket check failed for {date_str}: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to fetch results"})

    results = outcome['results']
    if scope and scope not in results and region_key:
        # scraped pages are keyed by region aggregate, not province
        scope = REGION_KEYS[region_key] if REGION_KEYS[region_key] in results else None

    verification = verifier.verify(body.ticket, results, province=scope)
    return {
        "success": True,
        "date": date_str,
        "source": "cache" if outcome['from_cache'] else "fresh",
        **verification,
    }
