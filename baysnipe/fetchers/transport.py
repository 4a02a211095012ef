"""
HTTP transport for the extraction chain.

Two operations:
  • get(url)     raw response (API calls, proxy bypass)
  • scrape(url)  page rendered to markdown-ish text plus metadata and
                 structured extracts (headings, JSON-LD, images)
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from baysnipe.core import AccessBlocked, ScrapeFailed
from baysnipe.settings import Settings, load_settings

log = logging.getLogger("baysnipe.transport")

_BLANK_RUN_RE = re.compile(r"\n\s*\n+")


@dataclass
class ScrapedPage:
    markdown: str
    metadata: dict[str, Any] = field(default_factory=dict)
    extract: dict[str, Any] = field(default_factory=dict)


class Transport(ABC):
    @abstractmethod
    async def get(
        self, url: str, *, headers: Optional[dict[str, str]] = None
    ) -> httpx.Response: ...

    @abstractmethod
    async def scrape(self, url: str) -> ScrapedPage: ...


class HttpxTransport(Transport):
    """httpx-backed transport with rotating headers and optional proxies."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()

    async def get(
        self, url: str, *, headers: Optional[dict[str, str]] = None
    ) -> httpx.Response:
        hdrs = self.settings.random_headers()
        if headers:
            hdrs.update(headers)
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.network.request_timeout_seconds,
            headers=hdrs,
            proxy=self.settings.random_proxy(),
        ) as client:
            return await client.get(url)

    async def scrape(self, url: str) -> ScrapedPage:
        r = await self.get(url)
        if r.status_code in (403, 429) or r.status_code >= 500:
            raise AccessBlocked(f"{url} answered HTTP {r.status_code}")
        if r.status_code != 200:
            raise ScrapeFailed(f"{url} answered HTTP {r.status_code}")
        log.debug("scraped %s (%d bytes)", url, len(r.text))
        return html_to_page(r.text)


def html_to_page(html: str) -> ScrapedPage:
    soup = BeautifulSoup(html, "html.parser")

    metadata: dict[str, Any] = {}
    if soup.title and soup.title.string:
        metadata["title"] = soup.title.string.strip()
    desc = soup.find("meta", attrs={"name": "description"})
    if desc and desc.get("content"):
        metadata["description"] = desc["content"].strip()

    json_ld: list[dict] = []
    for node in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(node.string or "")
        except ValueError:
            continue
        json_ld.extend(d for d in (data if isinstance(data, list) else [data]) if isinstance(d, dict))

    headings = [
        {"level": int(h.name[1]), "text": h.get_text(" ", strip=True)}
        for h in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
        if h.get_text(strip=True)
    ]
    images = [img["src"] for img in soup.find_all("img") if img.get("src", "").startswith("http")]

    for node in soup(["script", "style", "noscript"]):
        node.decompose()
    for h in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        h.replace_with(f"\n{'#' * int(h.name[1])} {h.get_text(' ', strip=True)}\n")
    for img in soup.find_all("img"):
        src = img.get("src", "")
        img.replace_with(f"\n![{img.get('alt', '')}]({src})\n" if src else "")

    text = soup.get_text("\n")
    lines = [ln.strip() for ln in text.splitlines()]
    markdown = _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()

    return ScrapedPage(
        markdown=markdown,
        metadata=metadata,
        extract={"headings": headings, "jsonLd": json_ld, "images": images},
    )
