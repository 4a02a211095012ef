import asyncio, logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from baysnipe.settings import load_settings
from baysnipe.fetchers.ebay import EbayExtractor
from baysnipe.sniper import SnipeService
from baysnipe import db

log = logging.getLogger("baysnipe")

TICK_JOB = "snipe-tick"
REFRESH_JOB = "refresh-stale"

_SCHEDULER: Optional[AsyncIOScheduler] = None
_SERVICE: Optional[SnipeService] = None


def get_service() -> SnipeService:
    global _SERVICE
    if _SERVICE is None:
        settings = load_settings()
        _SERVICE = SnipeService(EbayExtractor(settings=settings), settings=settings)
    return _SERVICE


async def get_scheduler() -> AsyncIOScheduler:
    global _SCHEDULER
    if _SCHEDULER is None:
        _SCHEDULER = AsyncIOScheduler(timezone="UTC")
    return _SCHEDULER


async def add_jobs(service: SnipeService, scheduler: AsyncIOScheduler) -> None:
    cfg = service.settings.sniper

    async def tick():
        try:
            await service.tick()
        except Exception:
            log.exception("Snipe tick failed")

    async def refresh():
        try:
            await service.refresh_stale()
        except Exception:
            log.exception("Stale refresh failed")

    common = dict(coalesce=True, max_instances=1, misfire_grace_time=5, replace_existing=True)
    scheduler.add_job(tick, "interval", seconds=cfg.tick_seconds, id=TICK_JOB, **common)
    scheduler.add_job(refresh, "interval", seconds=cfg.refresh_seconds, id=REFRESH_JOB, **common)


async def remove_jobs(scheduler: AsyncIOScheduler) -> None:
    for job_id in (TICK_JOB, REFRESH_JOB):
        if scheduler.get_job(job_id):
            scheduler.remove_job(job_id)


async def start() -> AsyncIOScheduler:
    sched = await get_scheduler()
    if not sched.running:
        await add_jobs(get_service(), sched)
        sched.start()
        log.info("APScheduler started")
    return sched


async def _watch(url: str, max_bid: float):
    service = get_service()
    listing = await service.add_listing(url, max_bid)
    log.info("Watching %s (max $%.2f, ends %s UTC)", listing.title, max_bid, listing.end_time)
    await start()
    try:
        while True:
            await asyncio.sleep(1)
            row = db.listing_get(listing.id)
            if row is None or not row.is_active:
                status = row.status.value if row else "removed"
                log.info("Finished %s: %s", listing.title, status)
                return row
    finally:
        sched = await get_scheduler()
        await remove_jobs(sched)
        if sched.running:
            sched.shutdown(wait=False)


def watch(url: str, max_bid: float):
    return asyncio.run(_watch(url, max_bid))
