"""
Shared pytest fixtures for baysnipe:

- fresh in-memory database per test
- a fake auction site returning canned AuctionData
- a deterministic coin for the bid simulator
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from baysnipe import db
from baysnipe.core import AuctionData, AuctionSite, utcnow
from baysnipe.settings import Settings
from baysnipe.sniper import SnipeService

pytest_plugins = ("pytest_asyncio",)


class FakeSite(AuctionSite):
    """Returns queued results in order; the last one repeats."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[str] = []

    async def extract_auction_data(self, url: str) -> AuctionData:
        self.calls.append(url)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FixedCoin:
    """Stands in for random.Random in the bid simulator."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def make_data(
    price: float = 50.0,
    end_time: datetime | None = None,
    title: str = "Vintage Camera",
    item_id: str = "123456789012",
    bid_count: int | None = 4,
) -> AuctionData:
    return AuctionData(
        title=title,
        current_bid=price,
        end_time=end_time or utcnow() + timedelta(hours=1),
        item_id=item_id,
        bid_count=bid_count,
    )


@pytest.fixture(autouse=True)
def clean_db():
    db.reset()
    yield
    db.reset()


@pytest.fixture
def now() -> datetime:
    return utcnow()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def make_service(settings):
    def _make(*results, coin: float = 0.9) -> SnipeService:
        site = FakeSite(*(results or (make_data(),)))
        return SnipeService(site, settings=settings, rng=FixedCoin(coin))

    return _make
