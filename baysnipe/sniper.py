"""
Listing lifecycle and the snipe loop.

``SnipeService.tick`` runs once per second: it recomputes time remaining for
every active listing, refreshes data when the close is near, and fires a
single simulated bid once the countdown crosses the snipe threshold.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from datetime import datetime, timedelta
from typing import NamedTuple, Optional, Union

from baysnipe import db
from baysnipe.core import (
    AuctionData,
    AuctionSite,
    InvalidInput,
    ListingNotFound,
    ListingStatus,
    MaxBidTooLow,
    utcnow,
)
from baysnipe.demo import generate_demo_auction_data, is_demo_title
from baysnipe.notify import Notifier, describe_error
from baysnipe.settings import Settings, load_settings

log = logging.getLogger("baysnipe.sniper")


class TimeRemaining(NamedTuple):
    hours: int
    minutes: int
    seconds: int
    total: float  # seconds, 0 once ended


def calculate_time_remaining(end_time: datetime, now: Optional[datetime] = None) -> TimeRemaining:
    diff = (end_time - (now or utcnow())).total_seconds()
    if diff <= 0:
        return TimeRemaining(0, 0, 0, 0.0)
    whole = int(diff)
    return TimeRemaining(whole // 3600, (whole % 3600) // 60, whole % 60, diff)


def format_time(tr: TimeRemaining) -> str:
    return f"{tr.hours:02d}:{tr.minutes:02d}:{tr.seconds:02d}"


def bid_progress(listing: db.Listing) -> float:
    """Last bid as a percentage of the max bid, clamped to 0..100."""
    if not listing.max_bid:
        return 0.0
    return max(0.0, min(100.0, (listing.last_bid_amount or 0) / listing.max_bid * 100))


def parse_max_bid(raw: Union[str, float, int, None]) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise InvalidInput("Please enter both auction URL and max bid amount")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidInput("Please enter a valid max bid amount") from None
    if math.isnan(value) or value <= 0:
        raise InvalidInput("Please enter a valid max bid amount")
    return value


class SnipeService:
    def __init__(
        self,
        site: AuctionSite,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
        rng: Optional[random.Random] = None,
    ):
        self.site = site
        self.settings = settings or load_settings()
        self.notifier = notifier or Notifier(self.settings.toast_history)
        self.rng = rng or random.Random()
        self.auto_snipe = self.settings.sniper.auto_snipe
        self.demo_mode = self.settings.sniper.demo_mode
        self._refreshing: dict[int, asyncio.Task] = {}

    # ---- data ----------------------------------------------------------------

    async def _fetch(self, url: str, demo: bool) -> AuctionData:
        if demo:
            return generate_demo_auction_data(url, self.rng)
        return await self.site.monitor_auction(url)

    async def add_listing(self, url: str, max_bid: Union[str, float, None]) -> db.Listing:
        """Register a listing; raises SniperError subclasses on bad input."""
        url = (url or "").strip()
        if not url:
            raise InvalidInput("Please enter both auction URL and max bid amount")
        amount = parse_max_bid(max_bid)

        data = await self._fetch(url, self.demo_mode)
        if amount <= data.current_bid:
            raise MaxBidTooLow(
                f"Your max bid (${amount:.2f}) must be higher than the "
                f"current bid (${data.current_bid:.2f})"
            )

        row = db.listing_add(url, data, amount)
        self.notifier.notify(
            "Auction Added Successfully",
            f"Now monitoring: {row.title} (Current bid: ${row.current_bid:.2f})",
        )
        return row

    async def add_listing_or_notify(self, url: str, max_bid) -> Optional[db.Listing]:
        try:
            return await self.add_listing(url, max_bid)
        except Exception as exc:
            log.warning("Adding %s failed: %r", url, exc)
            title, msg = describe_error(exc)
            self.notifier.error(title, msg)
            return None

    def remove_listing(self, listing_id: int) -> bool:
        task = self._refreshing.pop(listing_id, None)
        if task:
            task.cancel()
        ok = db.listing_remove(listing_id)
        if ok:
            self.notifier.notify("Auction Removed", "Auction has been removed from monitoring")
        return ok

    async def refresh_listing(
        self, listing_id: int, now: Optional[datetime] = None
    ) -> Optional[db.Listing]:
        listing = db.listing_get(listing_id)
        if listing is None:
            raise ListingNotFound(f"No listing {listing_id}")

        demo = self.demo_mode or is_demo_title(listing.title)
        try:
            data = await self._fetch(listing.url, demo)
        except Exception as exc:
            log.warning("Refreshing listing %s failed: %r", listing_id, exc)
            title, msg = describe_error(exc, refresh=True)
            self.notifier.error(title, msg)
            return None

        row = db.listing_apply_data(listing_id, data, when=now)
        if row is not None:
            self.notifier.notify(
                "Auction Updated",
                f"Current bid: {row.current_bid:.2f}{' (Demo)' if demo else ''}",
            )
        return row

    async def _background_refresh(self, listing_id: int, now: Optional[datetime]) -> None:
        try:
            await self.refresh_listing(listing_id, now)
        except ListingNotFound:
            log.debug("Listing %s removed before refresh", listing_id)

    def _schedule_refresh(self, listing_id: int, now: Optional[datetime] = None) -> bool:
        if listing_id in self._refreshing:
            return False
        task = asyncio.get_running_loop().create_task(self._background_refresh(listing_id, now))
        self._refreshing[listing_id] = task
        task.add_done_callback(lambda _t, lid=listing_id: self._refreshing.pop(lid, None))
        return True

    async def drain(self) -> None:
        """Wait for background refreshes to finish."""
        while self._refreshing:
            await asyncio.gather(*list(self._refreshing.values()), return_exceptions=True)

    # ---- controls ------------------------------------------------------------

    def set_auto_snipe(self, enabled: bool) -> None:
        self.auto_snipe = enabled
        log.info("Auto-snipe %s", "enabled" if enabled else "disabled")

    def set_demo_mode(self, enabled: bool) -> None:
        self.demo_mode = enabled
        log.info("Demo mode %s", "enabled" if enabled else "disabled")

    # ---- bidding -------------------------------------------------------------

    def attempt_bid(
        self, listing: db.Listing, amount: float, now: Optional[datetime] = None
    ) -> db.BidAttempt:
        now = now or utcnow()
        if amount > listing.max_bid:
            reason = f"Bid amount (${amount:.2f}) exceeds max bid (${listing.max_bid:.2f})"
            rec = db.bid_record(listing.id, amount, False, reason, when=now)
            db.listing_update(listing.id, status=ListingStatus.ERROR, is_active=False)
            self.notifier.error("Bid Rejected", reason)
            return rec

        success = self.rng.random() > 1 - self.settings.sniper.success_rate
        reason = None if success else "Outbid by another user"
        rec = db.bid_record(listing.id, amount, success, reason, when=now)
        db.listing_update(
            listing.id,
            last_bid_amount=amount,
            status=ListingStatus.WON if success else ListingStatus.LOST,
            is_active=False,
        )
        if success:
            self.notifier.notify("Bid Successful!", f"Successfully bid ${amount:.2f} on {listing.title}")
        else:
            self.notifier.error("Bid Failed", f"Failed to bid on {listing.title} - {reason}")
        return rec

    def _fire_snipe(self, listing: db.Listing, now: datetime) -> Optional[db.BidAttempt]:
        if listing.max_bid <= listing.current_bid:
            reason = (
                f"Max bid (${listing.max_bid:.2f}) is lower than current bid "
                f"(${listing.current_bid:.2f})"
            )
            db.bid_record(listing.id, 0.0, False, reason, when=now)
            db.listing_update(listing.id, status=ListingStatus.ERROR, is_active=False)
            self.notifier.error("Snipe Skipped", reason)
            return None

        amount = min(listing.current_bid + self.settings.sniper.bid_increment, listing.max_bid)
        db.listing_update(listing.id, status=ListingStatus.BIDDING)
        log.info("Sniping %s at $%.2f", listing.title, amount)
        return self.attempt_bid(listing, amount, now)

    async def tick(self, now: Optional[datetime] = None) -> list[db.BidAttempt]:
        """One pass of the snipe loop; returns the bids fired."""
        if not self.auto_snipe:
            return []
        now = now or utcnow()
        cfg = self.settings.sniper
        fired: list[db.BidAttempt] = []

        for listing in db.listing_list(active_only=True):
            if listing.status != ListingStatus.MONITORING:
                continue
            remaining = (listing.end_time - now).total_seconds()

            if cfg.snipe_threshold_seconds < remaining <= cfg.close_window_seconds:
                age = now - listing.last_updated
                if age > timedelta(seconds=cfg.close_refresh_seconds):
                    self._schedule_refresh(listing.id, now)

            if 0 < remaining <= cfg.snipe_threshold_seconds:
                rec = self._fire_snipe(listing, now)
                if rec is not None:
                    fired.append(rec)
                continue

            if remaining <= 0:
                log.info("Auction ended without a snipe: %s", listing.title)
                db.listing_update(listing.id, status=ListingStatus.LOST, is_active=False)

        return fired

    async def refresh_stale(self, now: Optional[datetime] = None) -> list[int]:
        """Refresh monitoring listings whose data is older than the refresh interval."""
        now = now or utcnow()
        stale_after = timedelta(seconds=self.settings.sniper.refresh_seconds)
        scheduled = []
        for listing in db.listing_list(active_only=True):
            if listing.status != ListingStatus.MONITORING:
                continue
            if now - listing.last_updated > stale_after and self._schedule_refresh(listing.id, now):
                scheduled.append(listing.id)
        return scheduled
