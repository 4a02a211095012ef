"""
Tests for eBay field extraction.

Covers:
- title / price / end-time heuristics over scraped markdown
- raw HTML parsing used behind proxies
- Shopping and Finding API payloads
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from baysnipe.core import PriceExtractionFailed
from baysnipe.fetchers import ebay_parse as p
from baysnipe.fetchers.transport import ScrapedPage

NOW = datetime(2026, 3, 1, 12, 0, 0)


# ---------------------------------------------------------------------------
# Title
# ---------------------------------------------------------------------------


class TestTitle:
    def test_metadata_wins_and_suffix_stripped(self) -> None:
        assert p.extract_title({"title": "Leica M6 | eBay"}, {}, "# Other") == "Leica M6"

    def test_heading_fallback(self) -> None:
        extract = {"headings": [{"level": 2, "text": "short"}, {"level": 1, "text": "Leica M6 Body"}]}
        assert p.extract_title({}, extract, "") == "Leica M6 Body"

    def test_long_heading_counts(self) -> None:
        extract = {"headings": [{"level": 3, "text": "A rather long listing title here"}]}
        assert p.extract_title({}, extract, "") == "A rather long listing title here"

    def test_markdown_heading(self) -> None:
        assert p.extract_title({}, {}, "intro\n# Nikon F3 | eBay\nmore") == "Nikon F3"

    def test_default(self) -> None:
        assert p.extract_title({}, {}, "nothing here") == p.DEFAULT_TITLE


# ---------------------------------------------------------------------------
# Current bid
# ---------------------------------------------------------------------------


class TestCurrentBid:
    def test_json_ld_product(self) -> None:
        extract = {"jsonLd": [{"@type": "Product", "offers": {"price": "123.45"}}]}
        assert p.extract_current_bid("US $1.00", extract) == 123.45

    def test_main_pattern_with_bids(self) -> None:
        assert p.extract_current_bid("Price: US $1,234.50 12 bids", {}) == 1234.50

    def test_current_bid_label(self) -> None:
        assert p.extract_current_bid("Current bid: US $87.00", {}) == 87.0
        assert p.extract_current_bid("Current bid: $15", {}) == 15.0

    def test_implausible_price_skipped(self) -> None:
        md = "Current bid: US $0.00\nUS $25.00"
        assert p.extract_current_bid(md, {}) == 25.0

    def test_median_of_candidates_ignores_similar_items(self) -> None:
        md = "\n".join(
            [
                "# Camera",
                "Price US $40.00",
                "Buy it now US $60.00",
                "Also US $50.00",
                "Similar items",
                "US $5.00",
                "US $6.00",
            ]
        )
        assert p.extract_current_bid(md, {}) == 50.0

    def test_similar_section_reset_by_heading(self) -> None:
        md = "People who viewed this also viewed\nUS $9.00\n# Main item\nUS $70.00"
        assert p.extract_current_bid(md, {}) == 70.0

    def test_similar_section_reset_by_subheading(self) -> None:
        md = "## Similar sponsored items\nUS $5.00\n## About this item\nUS $42.00"
        assert p.extract_current_bid(md, {}) == 42.0

    def test_no_price_raises(self) -> None:
        with pytest.raises(PriceExtractionFailed):
            p.extract_current_bid("no prices at all", {})


# ---------------------------------------------------------------------------
# End time
# ---------------------------------------------------------------------------


class TestEndTime:
    @pytest.mark.parametrize(
        "text,delta",
        [
            ("Time left: 5d 12h 30m", timedelta(days=5, hours=12, minutes=30)),
            ("1 day 2 hours 3 minutes left", timedelta(days=1, hours=2, minutes=3)),
            ("3 hours 15 minutes", timedelta(hours=3, minutes=15)),
            ("only 7 minutes", timedelta(minutes=7)),
            ("Ends in: 2h 10m", timedelta(hours=2, minutes=10)),
            ("ends in 45s", timedelta(seconds=45)),
        ],
    )
    def test_patterns(self, text, delta) -> None:
        assert p.extract_end_time(text, NOW) == NOW + delta

    def test_default_two_hours(self) -> None:
        assert p.extract_end_time("no countdown", NOW) == NOW + timedelta(hours=2)

    def test_parse_duration_empty(self) -> None:
        assert p.parse_duration("soon") is None


# ---------------------------------------------------------------------------
# Details
# ---------------------------------------------------------------------------


def test_detail_fields() -> None:
    md = "\n".join(
        [
            "![main](https://i.ebayimg.com/a.jpg)",
            "Seller: camera_shop (1234)",
            "Condition: Used",
            "Item location: Austin, Texas",
            "Shipping: Free shipping",
            "7 bids",
        ]
    )
    assert p.extract_image_url({}, md) == "https://i.ebayimg.com/a.jpg"
    assert p.extract_image_url({"images": ["https://x/1.jpg"]}, md) == "https://x/1.jpg"
    assert p.extract_seller(md) == "camera_shop (1234)"
    assert p.extract_condition(md) == "Used"
    assert p.extract_location(md) == "Austin, Texas"
    assert p.extract_shipping(md) == "Free shipping"
    assert p.extract_bid_count(md) == 7


def test_parse_page_data() -> None:
    page = ScrapedPage(
        markdown="# Leica M6\nCurrent bid: US $900.00\n3 bids\nTime left: 0d 1h 5m",
        metadata={"title": "Leica M6 | eBay"},
        extract={"images": ["https://i.ebayimg.com/m6.jpg"]},
    )
    data = p.parse_page_data(page, "42", NOW)
    assert data.title == "Leica M6"
    assert data.current_bid == 900.0
    assert data.bid_count == 3
    assert data.end_time == NOW + timedelta(hours=1, minutes=5)
    assert data.image_url == "https://i.ebayimg.com/m6.jpg"
    assert data.item_id == "42"


# ---------------------------------------------------------------------------
# Raw HTML
# ---------------------------------------------------------------------------


class TestHtmlContent:
    def test_full_page(self) -> None:
        html = (
            "<html><head><title>Leica M6 | eBay</title></head><body>"
            '<script>{"endTimeMs":1772370000000,"sellerUserName":"leica_fan"}</script>'
            "<span>US $1,050.00</span><span>8 bids</span></body></html>"
        )
        data = p.parse_html_content(html, "42", NOW)
        assert data is not None
        assert data.title == "Leica M6"
        assert data.current_bid == 1050.0
        assert data.bid_count == 8
        assert data.seller == "leica_fan"
        assert data.end_time == datetime(2026, 3, 1, 13, 0, 0)

    def test_iso_end_time(self) -> None:
        html = '<title>X</title>{"endTime":"2026-03-02T10:00:00.000Z"} $20.00'
        data = p.parse_html_content(html, "1", NOW)
        assert data.current_bid == 20.0
        assert data.end_time == datetime(2026, 3, 2, 10, 0, 0)

    def test_default_end_time(self) -> None:
        data = p.parse_html_content("<title>X</title> $5.00", "1", NOW)
        assert data.end_time == NOW + timedelta(hours=24)

    def test_no_price_returns_none(self) -> None:
        assert p.parse_html_content("<title>X</title> nothing", "1", NOW) is None


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


def test_parse_shopping_item() -> None:
    body = {
        "Item": {
            "ItemID": "42",
            "Title": "Leica M6",
            "CurrentPrice": {"Value": 910.0, "CurrencyID": "USD"},
            "EndTime": "2026-03-02T10:00:00.000Z",
            "PictureURL": ["https://i.ebayimg.com/m6.jpg"],
            "Seller": {"UserID": "leica_fan"},
            "BidCount": 5,
            "ConditionDisplayName": "Used",
            "Location": "Austin, Texas",
            "ShippingCostSummary": {"ShippingServiceCost": {"Value": 12.5}},
            "BuyItNowPrice": {"Value": 1200.0, "CurrencyID": "USD"},
        }
    }
    data = p.parse_shopping_item(body, "0", NOW)
    assert data.item_id == "42"
    assert data.current_bid == 910.0
    assert data.end_time == datetime(2026, 3, 2, 10, 0, 0)
    assert data.image_url == "https://i.ebayimg.com/m6.jpg"
    assert data.seller == "leica_fan"
    assert data.bid_count == 5
    assert data.shipping == "12.5 shipping"
    assert data.buy_it_now_price == 1200.0


def test_parse_shopping_item_missing() -> None:
    assert p.parse_shopping_item({"Ack": "Failure"}, "0", NOW) is None
    assert p.parse_shopping_item('{"Ack": "Failure"}', "0", NOW) is None


def test_parse_finding_item() -> None:
    body = {
        "findItemsByKeywordsResponse": [
            {
                "searchResult": [
                    {
                        "item": [
                            {
                                "itemId": ["42"],
                                "title": ["Leica M6"],
                                "galleryURL": ["https://thumbs/m6.jpg"],
                                "sellingStatus": [
                                    {"currentPrice": [{"__value__": "905.00"}], "bidCount": ["6"]}
                                ],
                                "listingInfo": [{"endTime": ["2026-03-02T10:00:00.000Z"]}],
                                "location": ["Austin,TX,USA"],
                            }
                        ]
                    }
                ]
            }
        ]
    }
    data = p.parse_finding_item(body, "0", NOW)
    assert data.title == "Leica M6"
    assert data.current_bid == 905.0
    assert data.bid_count == 6
    assert data.location == "Austin,TX,USA"
    assert data.shipping == "See item details"


def test_parse_finding_item_empty() -> None:
    body = {"findItemsByKeywordsResponse": [{"searchResult": [{"@count": "0"}]}]}
    assert p.parse_finding_item(body, "0", NOW) is None
