# baysnipe/db.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List

from sqlmodel import SQLModel, Field, create_engine, Session, select
from sqlalchemy.pool import StaticPool

from baysnipe.core import AuctionData, ListingStatus, utcnow
from baysnipe.settings import load_settings


class Listing(SQLModel, table=True):
    __tablename__ = "listing"
    id: Optional[int] = Field(default=None, primary_key=True)
    url: str = Field(index=True)
    item_id: str = Field(index=True)
    title: str
    current_bid: float
    max_bid: float
    end_time: datetime = Field(index=True, description="Auction end (UTC)")
    is_active: bool = Field(default=True, index=True)
    status: ListingStatus = Field(default=ListingStatus.MONITORING, index=True)
    last_bid_amount: Optional[float] = None
    image_url: Optional[str] = None
    seller: Optional[str] = None
    bid_count: Optional[int] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    shipping: Optional[str] = None
    last_updated: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)


class BidAttempt(SQLModel, table=True):
    __tablename__ = "bid_attempt"
    id: Optional[int] = Field(default=None, primary_key=True)
    listing_id: int = Field(index=True, foreign_key="listing.id")
    amount: float
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    success: bool
    reason: Optional[str] = None


class PriceSnapshot(SQLModel, table=True):
    __tablename__ = "price_snapshot"
    id: Optional[int] = Field(default=None, primary_key=True)
    listing_id: int = Field(index=True, foreign_key="listing.id")
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    price: float
    bid_count: Optional[int] = None


def _make_engine(url: str):
    if url.startswith("sqlite"):
        # one shared connection so the in-memory database outlives sessions
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False)


DB_URL = load_settings().database_url
engine = _make_engine(DB_URL)
SQLModel.metadata.create_all(engine)

# the in-memory engine shares one connection across threads; one session at a time
_LOCK = threading.RLock()


@contextmanager
def _session():
    with _LOCK, Session(engine) as s:
        yield s


def reset() -> None:
    """Drop every record; the in-memory store starts empty."""
    with _LOCK:
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)


# ---- listings ----------------------------------------------------------------


def listing_add(url: str, data: AuctionData, max_bid: float) -> Listing:
    now = utcnow()
    row = Listing(
        url=url,
        item_id=data.item_id,
        title=data.title,
        current_bid=data.current_bid,
        max_bid=max_bid,
        end_time=data.end_time,
        image_url=data.image_url,
        seller=data.seller,
        bid_count=data.bid_count,
        condition=data.condition,
        location=data.location,
        shipping=data.shipping,
        last_updated=now,
        created_at=now,
    )
    with _session() as s:
        s.add(row)
        s.commit()
        s.refresh(row)
        return row


def listing_get(listing_id: int) -> Optional[Listing]:
    with _session() as s:
        return s.get(Listing, listing_id)


def listing_list(active_only: bool = False) -> List[Listing]:
    with _session() as s:
        stmt = select(Listing)
        if active_only:
            stmt = stmt.where(Listing.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Listing.created_at, Listing.id)
        return list(s.exec(stmt).all())


def listing_update(listing_id: int, **fields) -> Optional[Listing]:
    with _session() as s:
        row = s.get(Listing, listing_id)
        if not row:
            return None
        for k, v in fields.items():
            setattr(row, k, v)
        s.add(row)
        s.commit()
        s.refresh(row)
        return row


def listing_apply_data(
    listing_id: int, data: AuctionData, when: Optional[datetime] = None
) -> Optional[Listing]:
    """Store refreshed auction data and append a price snapshot."""
    when = when or utcnow()
    with _session() as s:
        row = s.get(Listing, listing_id)
        if not row:
            return None
        row.current_bid = data.current_bid
        row.title = data.title
        row.end_time = data.end_time
        row.bid_count = data.bid_count
        row.last_updated = when
        s.add(row)
        s.add(
            PriceSnapshot(
                listing_id=listing_id,
                timestamp=when,
                price=data.current_bid,
                bid_count=data.bid_count,
            )
        )
        s.commit()
        s.refresh(row)
        return row


def listing_remove(listing_id: int) -> bool:
    with _session() as s:
        row = s.get(Listing, listing_id)
        if not row:
            return False
        for model in (BidAttempt, PriceSnapshot):
            for child in s.exec(select(model).where(model.listing_id == listing_id)):
                s.delete(child)
        s.delete(row)
        s.commit()
        return True


# ---- bid attempts --------------------------------------------------------------


def bid_record(
    listing_id: int,
    amount: float,
    success: bool,
    reason: Optional[str] = None,
    when: Optional[datetime] = None,
) -> BidAttempt:
    row = BidAttempt(
        listing_id=listing_id,
        amount=amount,
        success=success,
        reason=reason,
        timestamp=when or utcnow(),
    )
    with _session() as s:
        s.add(row)
        s.commit()
        s.refresh(row)
        return row


def bid_history(listing_id: Optional[int] = None, limit: int = 100) -> List[BidAttempt]:
    with _session() as s:
        stmt = select(BidAttempt)
        if listing_id is not None:
            stmt = stmt.where(BidAttempt.listing_id == listing_id)
        stmt = stmt.order_by(BidAttempt.timestamp.desc(), BidAttempt.id.desc()).limit(limit)
        return list(s.exec(stmt).all())


def price_history(listing_id: int, limit: int = 100) -> List[PriceSnapshot]:
    with _session() as s:
        stmt = (
            select(PriceSnapshot)
            .where(PriceSnapshot.listing_id == listing_id)
            .order_by(PriceSnapshot.timestamp.desc(), PriceSnapshot.id.desc())
            .limit(limit)
        )
        return list(s.exec(stmt).all())
