"""
Field extraction for eBay listings.

Every extractor is an ordered list of regex attempts; the first plausible
match wins.  Inputs come in three shapes:

  • scraped pages   markdown text + metadata + structured extracts
  • raw HTML        what the CORS proxies hand back
  • API payloads    Shopping ``GetSingleItem`` / Finding ``findItemsByKeywords``
"""

from __future__ import annotations

import json
import logging
import re
import statistics
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup

from baysnipe.core import AuctionData, PriceExtractionFailed, utcnow
from baysnipe.fetchers.transport import ScrapedPage

log = logging.getLogger("baysnipe.parse")

DEFAULT_TITLE = "eBay Auction Item"
MAX_PLAUSIBLE_PRICE = 1_000_000

# --------------------------------------------------------------------------- #
#  Patterns
# --------------------------------------------------------------------------- #

_MARKDOWN_TITLE_RE = re.compile(r"^#\s*(.+?)$", re.M)

_MAIN_PRICE_RES = [
    re.compile(r"US \$([\d,]+\.?\d*)\s*(?:\d+\s*bids?)", re.I),
    re.compile(r"Current bid[:\s]*US\s*\$([\d,]+\.?\d*)", re.I),
    re.compile(r"Current bid[:\s]*\$([\d,]+\.?\d*)", re.I),
    re.compile(r"\$([\d,]+\.?\d*)\s*(?:\d+\s*bids?)", re.I),
]
_LINE_PRICE_RE = re.compile(r"US \$([\d,]+\.?\d*)", re.I)
_SIMILAR_MARKERS = ("similar", "related", "people who viewed", "previous price")

_DHM_RE = re.compile(r"(\d+)d\s*(\d+)h\s*(\d+)m", re.I)
_DAYS_HOURS_MINS_RE = re.compile(
    r"(\d+)\s*days?\s*(\d+)\s*hours?\s*(\d+)\s*minutes?", re.I
)
_HOURS_MINS_RE = re.compile(r"(\d+)\s*hours?\s*(\d+)\s*minutes?", re.I)
_MINS_RE = re.compile(r"(\d+)\s*minutes?", re.I)
_ENDS_IN_RE = re.compile(r"ends?\s*in[:\s]*(.+?)(?:\n|$)", re.I)
_DURATION_PART_RE = re.compile(
    r"(\d+)\s*(d|days?|h|hrs?|hours?|m|mins?|minutes?|s|secs?|seconds?)\b", re.I
)

_MD_IMAGE_RE = re.compile(r"!\[.*?\]\((https?://[^)]+)\)")

_SELLER_RES = [
    re.compile(r"seller[:\s]*([^\n\r]+)", re.I),
    re.compile(r"sold by[:\s]*([^\n\r]+)", re.I),
    re.compile(r"from[:\s]*([^\n\r]+)", re.I),
]
_BID_COUNT_RES = [
    re.compile(r"(\d+)\s*bids?", re.I),
    re.compile(r"(\d+)\s*bidders?", re.I),
]
_CONDITION_RES = [
    re.compile(r"condition[:\s]*([^\n\r]+)", re.I),
    re.compile(r"(new|used|refurbished|for parts)", re.I),
]
_LOCATION_RES = [
    re.compile(r"location[:\s]*([^\n\r]+)", re.I),
    re.compile(r"ships? from[:\s]*([^\n\r]+)", re.I),
    re.compile(r"item location[:\s]*([^\n\r]+)", re.I),
]
_SHIPPING_RES = [
    re.compile(r"shipping[:\s]*([^\n\r]+)", re.I),
    re.compile(r"delivery[:\s]*([^\n\r]+)", re.I),
    re.compile(r"postage[:\s]*([^\n\r]+)", re.I),
]

_HTML_PRICE_RES = [
    re.compile(r"US \$([0-9,]+\.?[0-9]*)"),
    re.compile(r'"currentPrice"[^}]*"value":"([0-9,]+\.?[0-9]*)"'),
    re.compile(r'"price"[^}]*"value":"([0-9,]+\.?[0-9]*)"'),
    re.compile(r"\$([0-9,]+\.?[0-9]*)"),
]
_HTML_END_ISO_RE = re.compile(r'"endTime":"([^"]+)"')
_HTML_END_MS_RE = re.compile(r'"endTimeMs":([0-9]+)')
_HTML_ENDS_IN_RE = re.compile(r"ends in[^0-9]*([0-9]+)[^0-9]*([0-9]+)[^0-9]*([0-9]+)", re.I)
_HTML_BIDS_RE = re.compile(r"([0-9]+)\s*bids?", re.I)
_HTML_SELLER_RE = re.compile(r'"sellerUserName":"([^"]+)"', re.I)


# --------------------------------------------------------------------------- #
#  small helpers
# --------------------------------------------------------------------------- #


def _clean_title(title: str) -> str:
    return title.replace(" | eBay", "").strip()


def _to_price(raw: Any) -> Optional[float]:
    try:
        value = float(str(raw).replace(",", ""))
    except (TypeError, ValueError):
        return None
    return value if 0 < value < MAX_PLAUSIBLE_PRICE else None


def _first_group(patterns: list[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1).strip()
    return None


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_iso(raw: str) -> Optional[datetime]:
    try:
        return _to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except (TypeError, ValueError):
        return None


def parse_duration(text: str) -> Optional[timedelta]:
    """'2d 3h 10m' / '45 minutes 10 seconds' -> timedelta; None when empty."""
    total = timedelta()
    found = False
    for amount, unit in _DURATION_PART_RE.findall(text):
        n = int(amount)
        u = unit.lower()
        if u.startswith("d"):
            total += timedelta(days=n)
        elif u.startswith("h"):
            total += timedelta(hours=n)
        elif u.startswith("m"):
            total += timedelta(minutes=n)
        else:
            total += timedelta(seconds=n)
        found = True
    return total if found else None


# --------------------------------------------------------------------------- #
#  scraped page fields
# --------------------------------------------------------------------------- #


def extract_title(metadata: dict, extract: dict, markdown: str) -> str:
    if (metadata or {}).get("title"):
        return _clean_title(metadata["title"])

    for h in (extract or {}).get("headings") or []:
        text = h.get("text") or ""
        if h.get("level") == 1 or len(text) > 20:
            return _clean_title(text)

    m = _MARKDOWN_TITLE_RE.search(markdown or "")
    if m:
        return _clean_title(m.group(1))
    return DEFAULT_TITLE


def extract_current_bid(markdown: str, extract: dict) -> float:
    for item in (extract or {}).get("jsonLd") or []:
        if item.get("@type") == "Product":
            offers = item.get("offers") or {}
            if isinstance(offers, list):
                offers = offers[0] if offers else {}
            price = _to_price(offers.get("price"))
            if price:
                log.debug("price from JSON-LD: %.2f", price)
                return price

    for pattern in _MAIN_PRICE_RES:
        m = pattern.search(markdown)
        if m:
            price = _to_price(m.group(1))
            if price:
                log.debug("main auction price %.2f via %s", price, pattern.pattern)
                return price

    candidates: list[float] = []
    in_similar = False
    for line in markdown.splitlines():
        lower = line.lower()
        if any(marker in lower for marker in _SIMILAR_MARKERS):
            in_similar = True
            continue
        if "item description" in lower or "# " in line:
            in_similar = False
        if in_similar:
            continue
        for raw in _LINE_PRICE_RE.findall(line):
            price = _to_price(raw)
            if price:
                candidates.append(price)

    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        median = statistics.median(candidates)
        log.debug("median of %d candidate prices: %.2f", len(candidates), median)
        return median

    raise PriceExtractionFailed(
        "Unable to extract current bid/price from auction. "
        "The auction may have ended or the URL may be invalid."
    )


def extract_end_time(markdown: str, now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()

    for pattern in (_DHM_RE, _DAYS_HOURS_MINS_RE):
        m = pattern.search(markdown)
        if m:
            d, h, mins = (int(g) for g in m.groups())
            return now + timedelta(days=d, hours=h, minutes=mins)

    m = _HOURS_MINS_RE.search(markdown)
    if m:
        return now + timedelta(hours=int(m.group(1)), minutes=int(m.group(2)))

    m = _MINS_RE.search(markdown)
    if m:
        return now + timedelta(minutes=int(m.group(1)))

    m = _ENDS_IN_RE.search(markdown)
    if m:
        delta = parse_duration(m.group(1))
        if delta is not None:
            return now + delta

    return now + timedelta(hours=2)


def extract_image_url(extract: dict, markdown: str) -> Optional[str]:
    images = (extract or {}).get("images") or []
    if images:
        return images[0]
    m = _MD_IMAGE_RE.search(markdown)
    return m.group(1) if m else None


def extract_seller(markdown: str) -> Optional[str]:
    return _first_group(_SELLER_RES, markdown)


def extract_bid_count(markdown: str) -> Optional[int]:
    raw = _first_group(_BID_COUNT_RES, markdown)
    return int(raw) if raw is not None else None


def extract_condition(markdown: str) -> Optional[str]:
    return _first_group(_CONDITION_RES, markdown)


def extract_location(markdown: str) -> Optional[str]:
    return _first_group(_LOCATION_RES, markdown)


def extract_shipping(markdown: str) -> Optional[str]:
    return _first_group(_SHIPPING_RES, markdown)


def parse_page_data(
    page: ScrapedPage, item_id: str, now: Optional[datetime] = None
) -> AuctionData:
    markdown = page.markdown or ""
    return AuctionData(
        title=extract_title(page.metadata, page.extract, markdown),
        current_bid=extract_current_bid(markdown, page.extract),
        end_time=extract_end_time(markdown, now),
        item_id=item_id,
        image_url=extract_image_url(page.extract, markdown),
        seller=extract_seller(markdown),
        bid_count=extract_bid_count(markdown),
        condition=extract_condition(markdown),
        location=extract_location(markdown),
        shipping=extract_shipping(markdown),
    )


# --------------------------------------------------------------------------- #
#  raw HTML (proxy responses)
# --------------------------------------------------------------------------- #


def parse_html_content(
    html: str, item_id: str, now: Optional[datetime] = None
) -> Optional[AuctionData]:
    now = now or utcnow()
    soup = BeautifulSoup(html, "html.parser")
    title = (
        _clean_title(soup.title.string)
        if soup.title and soup.title.string
        else DEFAULT_TITLE
    )

    current_bid = 0.0
    for pattern in _HTML_PRICE_RES:
        m = pattern.search(html)
        if m:
            price = _to_price(m.group(1))
            if price:
                current_bid = price
                break
    if current_bid <= 0:
        return None

    end_time = now + timedelta(hours=24)
    m = _HTML_END_ISO_RE.search(html)
    parsed = parse_iso(m.group(1)) if m and "T" in m.group(1) else None
    if parsed:
        end_time = parsed
    elif m := _HTML_END_MS_RE.search(html):
        end_time = datetime.fromtimestamp(int(m.group(1)) / 1000, tz=timezone.utc).replace(tzinfo=None)
    elif m := _HTML_ENDS_IN_RE.search(html):
        d, h, mins = (int(g) for g in m.groups())
        end_time = now + timedelta(days=d, hours=h, minutes=mins)

    bids = _HTML_BIDS_RE.search(html)
    seller = _HTML_SELLER_RE.search(html)
    return AuctionData(
        title=title,
        current_bid=current_bid,
        end_time=end_time,
        item_id=item_id,
        seller=seller.group(1) if seller else None,
        bid_count=int(bids.group(1)) if bids else None,
    )


# --------------------------------------------------------------------------- #
#  API payloads
# --------------------------------------------------------------------------- #


def _as_json(body: Any) -> Any:
    return json.loads(body) if isinstance(body, (str, bytes)) else body


def _int_or_zero(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def _float_or_zero(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def parse_shopping_item(
    body: Any, item_id: str, now: Optional[datetime] = None
) -> Optional[AuctionData]:
    """Shopping API ``GetSingleItem`` response -> AuctionData."""
    now = now or utcnow()
    item = (_as_json(body) or {}).get("Item")
    if not item:
        return None

    price = (item.get("CurrentPrice") or {}).get("Value") or (
        item.get("ConvertedCurrentPrice") or {}
    ).get("Value")
    end_time = parse_iso(item["EndTime"]) if item.get("EndTime") else None
    buy_it_now = (item.get("BuyItNowPrice") or {}).get("Value")
    shipping_cost = ((item.get("ShippingCostSummary") or {}).get("ShippingServiceCost") or {}).get("Value")
    pictures = item.get("PictureURL") or []

    return AuctionData(
        title=item.get("Title") or DEFAULT_TITLE,
        current_bid=_float_or_zero(price),
        end_time=end_time or now + timedelta(hours=24),
        item_id=str(item.get("ItemID") or item_id),
        image_url=pictures[0] if pictures else item.get("GalleryURL"),
        seller=(item.get("Seller") or {}).get("UserID"),
        bid_count=_int_or_zero(item.get("BidCount")),
        buy_it_now_price=_float_or_zero(buy_it_now) or None,
        condition=item.get("ConditionDisplayName"),
        location=item.get("Location"),
        shipping=f"{shipping_cost} shipping" if shipping_cost else "See item details",
    )


def _first(seq: Any) -> Any:
    return seq[0] if isinstance(seq, list) and seq else None


def parse_finding_item(
    body: Any, item_id: str, now: Optional[datetime] = None
) -> Optional[AuctionData]:
    """Finding API ``findItemsByKeywords`` response -> AuctionData (first hit)."""
    now = now or utcnow()
    resp = _first((_as_json(body) or {}).get("findItemsByKeywordsResponse")) or {}
    items = (_first(resp.get("searchResult")) or {}).get("item") or []
    if not items:
        return None
    item = items[0]

    selling = _first(item.get("sellingStatus")) or {}
    price = (_first(selling.get("currentPrice")) or {}).get("__value__")
    end_raw = _first((_first(item.get("listingInfo")) or {}).get("endTime"))
    end_time = parse_iso(end_raw) if end_raw else None
    shipping_cost = (
        _first((_first(item.get("shippingInfo")) or {}).get("shippingServiceCost")) or {}
    ).get("__value__")

    return AuctionData(
        title=_first(item.get("title")) or DEFAULT_TITLE,
        current_bid=_float_or_zero(price),
        end_time=end_time or now + timedelta(hours=24),
        item_id=str(_first(item.get("itemId")) or item_id),
        image_url=_first(item.get("galleryURL")),
        seller=_first((_first(item.get("sellerInfo")) or {}).get("sellerUserName")),
        bid_count=_int_or_zero(_first(selling.get("bidCount"))),
        condition=_first((_first(item.get("condition")) or {}).get("conditionDisplayName")),
        location=_first(item.get("location")),
        shipping=f"{shipping_cost} shipping" if shipping_cost else "See item details",
    )
