# baysnipe/web/scheduler_bridge.py
from __future__ import annotations
import logging
from typing import Optional

from baysnipe.scheduler import get_service, start
from baysnipe import db as core_db

log = logging.getLogger("baysnipe_web.scheduler")


async def ensure_scheduler_started():
    await start()


async def add_listing(url: str, max_bid) -> core_db.Listing:
    """Raises SniperError subclasses; the API turns them into HTTP errors."""
    await ensure_scheduler_started()
    row = await get_service().add_listing(url, max_bid)
    log.info("Tracking listing %s: %s", row.id, row.url)
    return row


async def add_listing_from_form(url: str, max_bid) -> Optional[core_db.Listing]:
    """UI variant: failures become toasts instead of exceptions."""
    await ensure_scheduler_started()
    return await get_service().add_listing_or_notify(url, max_bid)


async def refresh_listing(listing_id: int) -> Optional[core_db.Listing]:
    return await get_service().refresh_listing(listing_id)


def remove_listing(listing_id: int) -> bool:
    return get_service().remove_listing(listing_id)


def controls() -> dict:
    svc = get_service()
    return {"auto_snipe": svc.auto_snipe, "demo_mode": svc.demo_mode}


def set_controls(auto_snipe: Optional[bool] = None, demo_mode: Optional[bool] = None) -> dict:
    svc = get_service()
    if auto_snipe is not None:
        svc.set_auto_snipe(auto_snipe)
    if demo_mode is not None:
        svc.set_demo_mode(demo_mode)
    return controls()


def toasts(limit: int = 10):
    return get_service().notifier.recent(limit)
