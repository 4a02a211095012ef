"""
eBay auction reader – fallback chain.

Strategies, tried in order until one yields a plausible price:
  1. public APIs         Shopping GetSingleItem, then Finding findItemsByKeywords
  2. page scrape         the cleaned listing URL
  3. alternate URLs      mobile host, bare /itm/<id> forms
  4. proxy bypass        CORS proxies returning raw HTML
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote, urlencode

import httpx

from baysnipe.core import (
    AuctionData,
    AuctionSite,
    ExtractionFailed,
    InvalidListingUrl,
    ScrapeTimeout,
    utcnow,
)
from baysnipe.fetchers import ebay_parse
from baysnipe.fetchers.transport import HttpxTransport, Transport
from baysnipe.settings import Settings, load_settings
from baysnipe import urls

log = logging.getLogger("baysnipe.ebay")

ENDING_SOON = timedelta(minutes=5)


def get_auction_status(end_time: datetime, now: Optional[datetime] = None) -> str:
    remaining = end_time - (now or utcnow())
    if remaining <= timedelta(0):
        return "ended"
    if remaining <= ENDING_SOON:
        return "ending_soon"
    return "active"


def _accepted(data: Optional[AuctionData]) -> bool:
    return data is not None and data.current_bid > 0 and not data.is_demo


class EbayExtractor(AuctionSite):
    """Reads eBay auction data through a chain of fallbacks."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or load_settings()
        self.transport = transport or HttpxTransport(self.settings)

    async def extract_auction_data(self, url: str) -> AuctionData:
        if not urls.is_valid_ebay_url(url):
            raise InvalidListingUrl("Please enter a valid eBay auction URL")

        processed = urls.preprocess_url(url)
        item_id = urls.extract_item_id(processed)
        log.info("Fetching auction data for %s (item %s)", processed, item_id)

        attempts: list[tuple[str, Exception]] = []
        net = self.settings.network

        try:
            data = await self._fetch_from_api(item_id)
            if _accepted(data):
                log.info("API hit for item %s", item_id)
                return data
        except Exception as exc:
            log.warning("eBay API failed: %s", exc)
            attempts.append(("api", exc))

        try:
            data = await self._scrape(processed, item_id, net.scrape_timeout_seconds)
            if _accepted(data):
                log.info("Scraped %s → $%.2f", processed, data.current_bid)
                return data
        except Exception as exc:
            log.warning("Scraping %s failed: %s", processed, exc)
            attempts.append(("scrape", exc))

        for alt in urls.alternative_urls(processed, item_id):
            try:
                data = await self._scrape(alt, item_id, net.alt_scrape_timeout_seconds)
                if _accepted(data):
                    log.info("Alternative URL %s → $%.2f", alt, data.current_bid)
                    return data
            except Exception as exc:
                log.warning("Alternative URL %s failed: %s", alt, exc)
                attempts.append((alt, exc))

        try:
            data = await self._fetch_with_proxy(processed)
            if _accepted(data):
                log.info("Proxy hit for %s", processed)
                return data
        except Exception as exc:
            log.warning("Proxy method failed: %s", exc)
            attempts.append(("proxy", exc))

        raise ExtractionFailed(
            "Unable to fetch real auction data. eBay may be blocking automated "
            "requests, the auction may have ended or been removed, or the "
            "network is unavailable.",
            attempts,
        )

    # ---------------- strategies ---------------- #

    async def _scrape(self, url: str, item_id: str, timeout: float) -> AuctionData:
        try:
            page = await asyncio.wait_for(self.transport.scrape(url), timeout)
        except asyncio.TimeoutError as exc:
            raise ScrapeTimeout(f"Scraping timeout after {timeout:g}s") from exc
        return ebay_parse.parse_page_data(page, item_id)

    def _shopping_url(self, item_id: str) -> str:
        cfg = self.settings.ebay
        query = urlencode(
            {
                "callname": "GetSingleItem",
                "responseencoding": "JSON",
                "appid": cfg.app_id,
                "siteid": cfg.site_id,
                "version": 967,
                "ItemID": item_id,
                "IncludeSelector": "Description,Details,ItemSpecifics,ShippingCosts",
            }
        )
        return f"{cfg.shopping_url}?{query}"

    def _finding_url(self, item_id: str) -> str:
        cfg = self.settings.ebay
        query = urlencode(
            {
                "OPERATION-NAME": "findItemsByKeywords",
                "SERVICE-VERSION": "1.0.0",
                "SECURITY-APPNAME": cfg.app_id,
                "RESPONSE-DATA-FORMAT": "JSON",
                "REST-PAYLOAD": "",
                "keywords": item_id,
            }
        )
        return f"{cfg.finding_url}?{query}"

    async def _fetch_from_api(self, item_id: str) -> Optional[AuctionData]:
        try:
            r = await self.transport.get(self._shopping_url(item_id))
            if r.status_code == 200 and r.content:
                data = ebay_parse.parse_shopping_item(r.json(), item_id)
                if data:
                    return data
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Shopping API failed: %s", exc)

        try:
            r = await self.transport.get(self._finding_url(item_id))
            if r.status_code == 200 and r.content:
                return ebay_parse.parse_finding_item(r.json(), item_id)
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Finding API failed: %s", exc)
        return None

    async def _fetch_with_proxy(self, url: str) -> Optional[AuctionData]:
        item_id = urls.extract_item_id(url)
        for template in self.settings.ebay.proxy_templates:
            proxy_url = template.format(url=url, quoted=quote(url, safe=""))
            try:
                log.debug("Trying proxy %s", proxy_url)
                r = await self.transport.get(proxy_url)
                if r.status_code != 200 or not r.content:
                    continue
                html = r.text
                if "json" in r.headers.get("content-type", ""):
                    body = r.json()
                    if isinstance(body, dict) and isinstance(body.get("contents"), str):
                        html = body["contents"]
                data = ebay_parse.parse_html_content(html, item_id)
                if data and data.current_bid > 0:
                    return data
            except (httpx.HTTPError, ValueError) as exc:
                log.warning("Proxy %s failed: %s", proxy_url, exc)
        return None
