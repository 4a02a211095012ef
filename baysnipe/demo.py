"""Simulated auction data for demo mode."""

from __future__ import annotations

import random
import re
from datetime import datetime, timedelta
from typing import Optional

from baysnipe.core import AuctionData, utcnow

DEMO_SUFFIX = "(Demo Mode)"

DEMO_TITLES = [
    "Apple iPhone 15 Pro Max 256GB - Natural Titanium (Unlocked)",
    "Sony PlayStation 5 Console - Digital Edition",
    'MacBook Pro 16" M3 Pro Chip 512GB SSD - Space Black',
    "Nintendo Switch OLED Model - White",
    "Samsung Galaxy S24 Ultra 512GB - Titanium Black",
    'iPad Pro 12.9" M2 Chip 256GB WiFi + Cellular',
    "Dell XPS 13 Plus Laptop Intel i7 32GB RAM 1TB SSD",
    "Canon EOS R6 Mark II Mirrorless Camera Body",
    "Bose QuietComfort Ultra Wireless Headphones",
    "Apple Watch Series 9 45mm GPS + Cellular - Midnight",
]
DEMO_CONDITIONS = ["New", "Used - Excellent", "Used - Good", "Refurbished"]
DEMO_LOCATIONS = ["California, US", "New York, US", "Texas, US", "Florida, US"]
DEMO_SHIPPING = ["Free shipping", "$9.99 shipping", "$15.00 expedited", "Local pickup"]

_ID_RE = re.compile(r"/(\d+)")


def is_demo_title(title: str) -> bool:
    return DEMO_SUFFIX in title


def generate_demo_auction_data(
    url: str,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> AuctionData:
    rng = rng or random.Random()
    now = now or utcnow()
    m = _ID_RE.search(url)
    item_id = m.group(1) if m else str(int(now.timestamp() * 1000))

    hours = rng.randint(1, 48)
    minutes = rng.randint(0, 59)
    return AuctionData(
        title=f"{rng.choice(DEMO_TITLES)} {DEMO_SUFFIX}",
        current_bid=float(rng.randint(100, 899)),
        end_time=now + timedelta(hours=hours, minutes=minutes),
        item_id=item_id,
        seller=f"demo_seller_{rng.randint(0, 99)}",
        bid_count=rng.randint(1, 25),
        condition=rng.choice(DEMO_CONDITIONS),
        location=rng.choice(DEMO_LOCATIONS),
        shipping=rng.choice(DEMO_SHIPPING),
    )
