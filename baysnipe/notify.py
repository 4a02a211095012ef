from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List

from baysnipe.core import (
    AccessBlocked,
    ExtractionFailed,
    InvalidListingUrl,
    PriceExtractionFailed,
    ScrapeFailed,
    ScrapeTimeout,
    SniperError,
    utcnow,
)

log = logging.getLogger("baysnipe.notify")

_ADD_MESSAGES = {
    InvalidListingUrl: "Please enter a valid eBay auction URL (e.g., https://www.ebay.com/itm/...)",
    AccessBlocked: (
        "eBay is blocking automated requests. This is common due to anti-bot "
        "protection. Enable Demo Mode to test the app functionality."
    ),
    ScrapeTimeout: (
        "Request timed out while fetching auction data. eBay may be slow or "
        "blocking requests. Try Demo Mode for testing."
    ),
    PriceExtractionFailed: (
        "Could not extract price information from the auction page. The page "
        "format may have changed. Try Demo Mode for testing."
    ),
    ScrapeFailed: (
        "Failed to access the auction page. eBay may be blocking automated "
        "access. Enable Demo Mode to test the app."
    ),
}
_ADD_FALLBACK = (
    "Unable to fetch auction data. This is likely due to eBay's anti-bot "
    "protection. Enable Demo Mode to test the app functionality."
)

_REFRESH_MESSAGES = {
    AccessBlocked: "eBay is blocking refresh requests. This is normal due to anti-bot protection.",
    ScrapeTimeout: "Refresh request timed out. Will retry automatically later.",
    PriceExtractionFailed: "Could not extract updated price data. The auction may have ended.",
}
_REFRESH_FALLBACK = "Could not refresh auction data. Please try again later."

# most telling cause first
_CAUSE_ORDER = (AccessBlocked, ScrapeTimeout, PriceExtractionFailed, ScrapeFailed)


@dataclass
class Toast:
    title: str
    description: str
    variant: str = "default"
    timestamp: datetime = field(default_factory=utcnow)


def root_cause(exc: BaseException) -> BaseException:
    """Pick the most specific failure out of an exhausted fallback chain."""
    if isinstance(exc, ExtractionFailed) and exc.attempts:
        errors = [e for _, e in exc.attempts]
        for kind in _CAUSE_ORDER:
            for e in errors:
                if isinstance(e, kind):
                    return e
    return exc


def describe_error(exc: BaseException, refresh: bool = False) -> tuple[str, str]:
    """Map an error to the (title, message) pair shown to the user."""
    cause = root_cause(exc)
    if refresh:
        for kind, msg in _REFRESH_MESSAGES.items():
            if isinstance(cause, kind):
                return "Update Failed", msg
        return "Update Failed", _REFRESH_FALLBACK

    for kind, msg in _ADD_MESSAGES.items():
        if isinstance(cause, kind):
            return kind.title, msg
    if isinstance(exc, SniperError) and not isinstance(exc, ExtractionFailed):
        return exc.title, str(exc)
    return ExtractionFailed.title, _ADD_FALLBACK


class Notifier:
    """Toast feed: every toast is logged and kept for the UI."""

    def __init__(self, maxlen: int = 50):
        self._toasts: Deque[Toast] = deque(maxlen=maxlen)

    def notify(self, title: str, description: str, variant: str = "default") -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self._toasts.append(toast)
        level = logging.WARNING if variant == "destructive" else logging.INFO
        log.log(level, "%s: %s", title, description)
        return toast

    def error(self, title: str, description: str) -> Toast:
        return self.notify(title, description, variant="destructive")

    def recent(self, limit: int = 10) -> List[Toast]:
        return list(self._toasts)[-limit:][::-1]

    def clear(self) -> None:
        self._toasts.clear()
