"""URL helpers for eBay listing pages."""

from __future__ import annotations

import re

EBAY_DOMAINS = [
    "ebay.com",
    "ebay.co.uk",
    "ebay.de",
    "ebay.fr",
    "ebay.it",
    "ebay.es",
    "ebay.ca",
    "ebay.com.au",
]

# ebay.com is the fallback host
_REGIONAL_HOSTS = [
    ("ebay.co.uk", "www.ebay.co.uk"),
    ("ebay.de", "www.ebay.de"),
    ("ebay.fr", "www.ebay.fr"),
    ("ebay.it", "www.ebay.it"),
    ("ebay.es", "www.ebay.es"),
    ("ebay.ca", "www.ebay.ca"),
    ("ebay.com.au", "www.ebay.com.au"),
]

_ITEM_ID_PATTERNS = [
    re.compile(r"/itm/([^/?]+)"),
    re.compile(r"/p/(\d+)"),
    re.compile(r"item=(\d+)"),
    re.compile(r"/(\d{12,})"),
]


def is_valid_ebay_url(url: str) -> bool:
    return any(d in url for d in EBAY_DOMAINS) and ("/itm/" in url or "/p/" in url)


def preprocess_url(url: str) -> str:
    """Strip tracking params, force https and the www host on ebay.com."""
    clean = url.strip().split("?")[0]
    if clean.startswith("http://"):
        clean = "https://" + clean[len("http://") :]
    if "ebay.com" in clean and "www." not in clean and "m.ebay.com" not in clean:
        clean = clean.replace("ebay.com", "www.ebay.com", 1)
    return clean


def extract_item_id(url: str) -> str:
    for pattern in _ITEM_ID_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return "unknown"


def to_mobile_url(url: str) -> str:
    return url.replace("www.ebay.com", "m.ebay.com")


def simplify_url(url: str, item_id: str) -> str:
    domain = "www.ebay.com"
    for needle, host in _REGIONAL_HOSTS:
        if needle in url:
            domain = host
            break
    return f"https://{domain}/itm/{item_id}"


def alternative_urls(url: str, item_id: str) -> list[str]:
    candidates = [
        to_mobile_url(url),
        simplify_url(url, item_id),
        f"https://www.ebay.com/itm/{item_id}",
        f"https://m.ebay.com/itm/{item_id}",
    ]
    out: list[str] = []
    for c in candidates:
        if c not in out:
            out.append(c)
    return out
