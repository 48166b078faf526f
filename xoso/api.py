from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from xoso import config
from xoso.api_lottery_endpoints import lottery_router
from xoso.api_ocr_endpoints import ocr_router
from xoso.date_utils import DateManager
from xoso.loader import ResultFetcher
from xoso.provinces import normalize_region
from xoso.result_cache import create_result_cache
from xoso.ticket_processor import TicketProcessor, create_ticket_processor
from xoso.ticket_verifier import create_ticket_verifier


def run_scheduled_prefetch(fetcher: ResultFetcher) -> None:
    """Warm yesterday and today for each configured region."""
    for region in config.get_prefetch_schedule_regions():
        try:
            report = fetcher.prefetch(2, normalize_region(region))
            logger.info(f"Scheduled prefetch {region}: {report['summary']}")
        except Exception as e:
            logger.error(f"Scheduled prefetch for {region} failed: {e}")


def _start_scheduler(app: FastAPI) -> Optional[AsyncIOScheduler]:
    if not config.is_prefetch_schedule_enabled():
        logger.info("Scheduled prefetch disabled (set PREFETCH_SCHEDULE_ENABLED=true to enable)")
        return None

    scheduler = AsyncIOScheduler(job_defaults={'coalesce': True, 'max_instances': 1, 'misfire_grace_time': 600})
    # 19:00 Vietnam time - after the 18:15 northern draw, the last of the day
    scheduler.add_job(
        func=run_scheduled_prefetch,
        args=[app.state.fetcher],
        trigger="cron",
        hour=19,
        minute=0,
        timezone=DateManager.VIETNAM_TIMEZONE,
        id="nightly_prefetch",
        name="Nightly result prefetch 19:00 ICT",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduled prefetch enabled: daily at 19:00 Asia/Ho_Chi_Minh")
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    scheduler = _start_scheduler(app)
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("Application shutdown complete")


def create_app(fetcher: Optional[ResultFetcher] = None,
               ticket_processor: Optional[TicketProcessor] = None) -> FastAPI:
    """
    Build the application and its long-lived components.

    The cache and fetcher are created exactly once here and shared by every
    request through app.state.
    """
    app = FastAPI(
        title="Xổ Số Ticket Checker API",
        description="Vietnamese lottery results, ticket OCR and prize checking",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_allow_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.fetcher = fetcher or ResultFetcher(cache=create_result_cache())
    app.state.ticket_processor = ticket_processor or create_ticket_processor()
    app.state.ticket_verifier = create_ticket_verifier()

    app.include_router(lottery_router)
    app.include_router(ocr_router)

    @app.get("/health")
    async def health():
        """Simple health check"""
        cache = app.state.fetcher.cache
        return {
            "status": "ok",
            "durableCache": bool(cache is not None and cache.has_durable_store),
            "cloudOcr": app.state.ticket_processor.cloud_available,
        }

    return app


config.configure_logging()
app = create_app()
