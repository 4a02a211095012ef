"""Tests for user-facing error messages and the toast feed."""

from __future__ import annotations

import logging

import pytest

from baysnipe.core import (
    AccessBlocked,
    ExtractionFailed,
    InvalidListingUrl,
    MaxBidTooLow,
    PriceExtractionFailed,
    ScrapeFailed,
    ScrapeTimeout,
)
from baysnipe.notify import Notifier, describe_error, root_cause


# ---------------------------------------------------------------------------
# describe_error
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "cause,title",
    [
        (AccessBlocked("403"), "eBay Access Blocked"),
        (ScrapeTimeout("slow"), "Connection Timeout"),
        (PriceExtractionFailed("no price"), "Price Data Unavailable"),
        (ScrapeFailed("404"), "Page Access Failed"),
    ],
)
def test_add_errors_map_to_titles(cause, title) -> None:
    exc = ExtractionFailed("all methods failed", [("scrape", cause)])
    got_title, msg = describe_error(exc)
    assert got_title == title
    assert "Demo Mode" in msg


def test_root_cause_prefers_blocking_over_timeouts() -> None:
    blocked = AccessBlocked("503")
    exc = ExtractionFailed(
        "all", [("scrape", ScrapeTimeout("t")), ("alt", ScrapeFailed("f")), ("proxy", blocked)]
    )
    assert root_cause(exc) is blocked


def test_invalid_url_and_plain_errors() -> None:
    title, msg = describe_error(InvalidListingUrl("bad"))
    assert title == "Invalid URL"
    assert "ebay.com/itm" in msg

    assert describe_error(MaxBidTooLow("too low")) == ("Max Bid Too Low", "too low")

    title, _ = describe_error(ValueError("boom"))
    assert title == "Data Fetch Failed"


def test_refresh_errors_always_update_failed() -> None:
    blocked = ExtractionFailed("x", [("scrape", AccessBlocked("429"))])
    title, msg = describe_error(blocked, refresh=True)
    assert title == "Update Failed"
    assert "blocking refresh" in msg

    title, msg = describe_error(ScrapeTimeout("t"), refresh=True)
    assert "timed out" in msg

    title, msg = describe_error(RuntimeError("?"), refresh=True)
    assert (title, msg) == ("Update Failed", "Could not refresh auction data. Please try again later.")


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


def test_recent_is_newest_first_and_bounded() -> None:
    n = Notifier(maxlen=3)
    for i in range(5):
        n.notify(f"t{i}", "d")
    assert [t.title for t in n.recent(10)] == ["t4", "t3", "t2"]
    assert [t.title for t in n.recent(1)] == ["t4"]
    n.clear()
    assert n.recent() == []


def test_destructive_toasts_log_warnings(caplog) -> None:
    n = Notifier()
    with caplog.at_level(logging.INFO, logger="baysnipe.notify"):
        n.notify("Auction Added Successfully", "ok")
        toast = n.error("Bid Failed", "outbid")
    assert toast.variant == "destructive"
    levels = [r.levelno for r in caplog.records if r.name == "baysnipe.notify"]
    assert levels == [logging.INFO, logging.WARNING]
