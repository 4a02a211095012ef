from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC now; SQLite hands datetimes back without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ListingStatus(str, Enum):
    MONITORING = "monitoring"
    BIDDING = "bidding"
    WON = "won"
    LOST = "lost"
    ERROR = "error"


@dataclass(frozen=True)
class AuctionData:
    title: str
    current_bid: float
    end_time: datetime
    item_id: str
    image_url: Optional[str] = None
    seller: Optional[str] = None
    bid_count: Optional[int] = None
    buy_it_now_price: Optional[float] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    shipping: Optional[str] = None

    @property
    def is_demo(self) -> bool:
        return "Demo Mode" in self.title


class SniperError(RuntimeError):
    """Base class for errors surfaced to the user."""

    title = "Error"


class InvalidListingUrl(SniperError):
    title = "Invalid URL"


class InvalidInput(SniperError):
    title = "Error"


class MaxBidTooLow(SniperError):
    title = "Max Bid Too Low"


class ListingNotFound(SniperError):
    title = "Not Found"


class AccessBlocked(SniperError):
    """The marketplace answered with an anti-bot / server error."""

    title = "eBay Access Blocked"


class ScrapeTimeout(SniperError):
    title = "Connection Timeout"


class ScrapeFailed(SniperError):
    title = "Page Access Failed"


class PriceExtractionFailed(SniperError):
    """Raised when no plausible price can be extracted from the page text."""

    title = "Price Data Unavailable"


class ExtractionFailed(SniperError):
    """Every strategy in the fallback chain failed."""

    title = "Data Fetch Failed"

    def __init__(self, message: str, attempts: Optional[list[tuple[str, Exception]]] = None):
        super().__init__(message)
        self.attempts = attempts or []


class AuctionSite(ABC):
    """A pluggable auction data reader."""

    @abstractmethod
    async def extract_auction_data(self, url: str) -> AuctionData: ...

    async def monitor_auction(self, url: str) -> AuctionData:
        return await self.extract_auction_data(url)
