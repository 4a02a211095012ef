"""Tests for the eBay fallback chain and the HTML transport."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest
import respx

from baysnipe.core import (
    AccessBlocked,
    AuctionData,
    ExtractionFailed,
    InvalidListingUrl,
    ScrapeTimeout,
    utcnow,
)
from baysnipe.fetchers.ebay import EbayExtractor, get_auction_status
from baysnipe.fetchers.transport import HttpxTransport, ScrapedPage, Transport, html_to_page
from baysnipe.settings import Settings

LISTING_URL = "https://www.ebay.com/itm/123456789012?hash=item1c"
CLEAN_URL = "https://www.ebay.com/itm/123456789012"
SHOPPING = "https://open.api.ebay.com/shopping"
FINDING = "https://svcs.ebay.com/services/search/FindingService/v1"

LISTING_HTML = """
<html>
  <head>
    <title>Vintage Camera | eBay</title>
    <script type="application/ld+json">{"@type": "BreadcrumbList"}</script>
  </head>
  <body>
    <h1>Vintage Camera</h1>
    <img src="https://i.ebayimg.com/cam.jpg" alt="camera">
    <div>Current bid: US $45.00</div>
    <span>3 bids</span>
    <div>Time left: 2d 3h 15m</div>
    <div>Seller: camera_shop</div>
    <div>Condition: Used</div>
    <div>Item location: Austin, Texas</div>
  </body>
</html>
"""


@pytest.fixture
def extractor() -> EbayExtractor:
    settings = Settings()
    return EbayExtractor(HttpxTransport(settings), settings=settings)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def test_html_to_page_extracts_structure() -> None:
    page = html_to_page(LISTING_HTML)
    assert page.metadata["title"] == "Vintage Camera | eBay"
    assert page.extract["headings"] == [{"level": 1, "text": "Vintage Camera"}]
    assert page.extract["images"] == ["https://i.ebayimg.com/cam.jpg"]
    assert page.extract["jsonLd"] == [{"@type": "BreadcrumbList"}]
    assert "# Vintage Camera" in page.markdown
    assert "![camera](https://i.ebayimg.com/cam.jpg)" in page.markdown
    assert "Current bid: US $45.00" in page.markdown


@pytest.mark.asyncio
@respx.mock
async def test_scrape_maps_server_errors_to_access_blocked() -> None:
    respx.get(CLEAN_URL).mock(return_value=httpx.Response(503))
    with pytest.raises(AccessBlocked):
        await HttpxTransport(Settings()).scrape(CLEAN_URL)


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_invalid_url_rejected_before_network(extractor) -> None:
    with respx.mock:
        with pytest.raises(InvalidListingUrl):
            await extractor.extract_auction_data("https://www.amazon.com/dp/B000")


@pytest.mark.asyncio
async def test_shopping_api_hit(extractor) -> None:
    body = {
        "Item": {
            "ItemID": "123456789012",
            "Title": "Vintage Camera",
            "CurrentPrice": {"Value": 61.0},
            "EndTime": "2030-01-01T00:00:00.000Z",
            "BidCount": 9,
        }
    }
    with respx.mock:
        api = respx.get(url__startswith=SHOPPING).mock(return_value=httpx.Response(200, json=body))
        data = await extractor.extract_auction_data(LISTING_URL)
    assert api.called
    assert "ItemID=123456789012" in str(api.calls.last.request.url)
    assert data.current_bid == 61.0
    assert data.bid_count == 9


@pytest.mark.asyncio
async def test_page_scrape_after_api_failure(extractor) -> None:
    with respx.mock:
        respx.get(url__startswith=SHOPPING).mock(return_value=httpx.Response(500))
        respx.get(url__startswith=FINDING).mock(return_value=httpx.Response(500))
        page = respx.get(CLEAN_URL).mock(return_value=httpx.Response(200, text=LISTING_HTML))
        before = utcnow()
        data = await extractor.extract_auction_data(LISTING_URL)

    assert page.called
    assert data.title == "Vintage Camera"
    assert data.current_bid == 45.0
    assert data.bid_count == 3
    assert data.seller == "camera_shop"
    assert data.location == "Austin, Texas"
    assert data.image_url == "https://i.ebayimg.com/cam.jpg"
    expected = before + timedelta(days=2, hours=3, minutes=15)
    assert abs((data.end_time - expected).total_seconds()) < 60


@pytest.mark.asyncio
async def test_alternative_url_used_when_main_page_blocked(extractor) -> None:
    with respx.mock:
        respx.get(url__startswith=SHOPPING).mock(return_value=httpx.Response(500))
        respx.get(url__startswith=FINDING).mock(return_value=httpx.Response(500))
        respx.get(CLEAN_URL).mock(return_value=httpx.Response(503))
        mobile = respx.get("https://m.ebay.com/itm/123456789012").mock(
            return_value=httpx.Response(200, text=LISTING_HTML)
        )
        data = await extractor.extract_auction_data(LISTING_URL)
    assert mobile.called
    assert data.current_bid == 45.0


@pytest.mark.asyncio
async def test_proxy_bypass_unwraps_allorigins(extractor) -> None:
    raw = "<title>Vintage Camera | eBay</title><span>US $12.50</span><span>2 bids</span>"
    with respx.mock:
        respx.get(url__startswith="https://api.allorigins.win/get").mock(
            return_value=httpx.Response(200, json={"contents": raw})
        )
        respx.route().mock(return_value=httpx.Response(503))
        data = await extractor.extract_auction_data(LISTING_URL)
    assert data.title == "Vintage Camera"
    assert data.current_bid == 12.5
    assert data.bid_count == 2


@pytest.mark.asyncio
async def test_everything_failing_raises_with_attempts(extractor) -> None:
    with respx.mock:
        respx.route().mock(return_value=httpx.Response(503))
        with pytest.raises(ExtractionFailed) as info:
            await extractor.extract_auction_data(LISTING_URL)
    kinds = {type(e) for _, e in info.value.attempts}
    assert AccessBlocked in kinds
    assert info.value.attempts[0][0] == "scrape"


class SlowTransport(Transport):
    async def get(self, url, *, headers=None):
        return httpx.Response(500, request=httpx.Request("GET", url))

    async def scrape(self, url):
        await asyncio.sleep(1)
        return ScrapedPage(markdown="")


@pytest.mark.asyncio
async def test_scrape_timeout_is_recorded() -> None:
    settings = Settings.model_validate(
        {"network": {"scrape_timeout_seconds": 0.01, "alt_scrape_timeout_seconds": 0.01}}
    )
    extractor = EbayExtractor(SlowTransport(), settings=settings)
    with pytest.raises(ExtractionFailed) as info:
        await extractor.extract_auction_data(LISTING_URL)
    assert any(isinstance(e, ScrapeTimeout) for _, e in info.value.attempts)


def test_demo_titles_are_not_accepted_as_real_data() -> None:
    from baysnipe.fetchers.ebay import _accepted

    def data(title="Camera", price=10.0):
        return AuctionData(title=title, current_bid=price, end_time=utcnow(), item_id="1")

    assert _accepted(data())
    assert not _accepted(data(title="Camera (Demo Mode)"))
    assert not _accepted(data(price=0))
    assert not _accepted(None)


def test_get_auction_status() -> None:
    now = utcnow()
    assert get_auction_status(now - timedelta(seconds=1), now) == "ended"
    assert get_auction_status(now + timedelta(minutes=4), now) == "ending_soon"
    assert get_auction_status(now + timedelta(hours=1), now) == "active"


def test_shopping_url_carries_app_id() -> None:
    settings = Settings.model_validate({"ebay": {"app_id": "MyApp-123"}})
    url = EbayExtractor(SlowTransport(), settings=settings)._shopping_url("42")
    assert url.startswith(SHOPPING + "?")
    assert "appid=MyApp-123" in url
    assert "callname=GetSingleItem" in url
    assert "ItemID=42" in url
