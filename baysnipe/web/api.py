# baysnipe/web/api.py
from __future__ import annotations
from typing import Optional, List
from fastapi import FastAPI, HTTPException, Query, Response
from pydantic import BaseModel, Field

from baysnipe import db as core_db
from baysnipe.core import InvalidInput, InvalidListingUrl, ListingNotFound, MaxBidTooLow, SniperError
from baysnipe.fetchers.ebay import get_auction_status
from baysnipe.notify import describe_error
from baysnipe.sniper import bid_progress, calculate_time_remaining, format_time
from .scheduler_bridge import (
    add_listing,
    controls,
    refresh_listing,
    remove_listing,
    set_controls,
    toasts,
)

api = FastAPI(
    title="baysnipe API", version="1.0.0", docs_url="/docs", openapi_url="/openapi.json"
)

_BAD_INPUT = (InvalidListingUrl, InvalidInput, MaxBidTooLow)


class ListingIn(BaseModel):
    url: str
    max_bid: float = Field(gt=0)


class ListingOut(BaseModel):
    id: int
    url: str
    item_id: str
    title: str
    current_bid: float
    max_bid: float
    end_time: str
    status: str
    is_active: bool
    auction_status: str
    time_remaining: str
    seconds_remaining: float
    progress: float
    last_bid_amount: Optional[float] = None
    bid_count: Optional[int] = None
    seller: Optional[str] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    shipping: Optional[str] = None
    image_url: Optional[str] = None
    last_updated: str


class BidOut(BaseModel):
    id: int
    listing_id: int
    amount: float
    timestamp: str
    success: bool
    reason: Optional[str] = None


class SnapshotOut(BaseModel):
    timestamp: str
    price: float
    bid_count: Optional[int] = None


class ControlsIn(BaseModel):
    auto_snipe: Optional[bool] = None
    demo_mode: Optional[bool] = None


class ControlsOut(BaseModel):
    auto_snipe: bool
    demo_mode: bool


class ToastOut(BaseModel):
    title: str
    description: str
    variant: str
    timestamp: str


def _to_listing_out(row: core_db.Listing) -> ListingOut:
    tr = calculate_time_remaining(row.end_time)
    return ListingOut(
        id=row.id,
        url=row.url,
        item_id=row.item_id,
        title=row.title,
        current_bid=row.current_bid,
        max_bid=row.max_bid,
        end_time=row.end_time.isoformat(),
        status=row.status.value,
        is_active=row.is_active,
        auction_status=get_auction_status(row.end_time),
        time_remaining=format_time(tr) if tr.total > 0 else "ENDED",
        seconds_remaining=tr.total,
        progress=bid_progress(row),
        last_bid_amount=row.last_bid_amount,
        bid_count=row.bid_count,
        seller=row.seller,
        condition=row.condition,
        location=row.location,
        shipping=row.shipping,
        image_url=row.image_url,
        last_updated=row.last_updated.isoformat(),
    )


def _to_bid_out(b: core_db.BidAttempt) -> BidOut:
    return BidOut(
        id=b.id,
        listing_id=b.listing_id,
        amount=b.amount,
        timestamp=b.timestamp.isoformat(),
        success=b.success,
        reason=b.reason,
    )


def _get_or_404(listing_id: int) -> core_db.Listing:
    row = core_db.listing_get(listing_id)
    if not row:
        raise HTTPException(404, "Listing not found")
    return row


@api.get("/listings", response_model=List[ListingOut])
def listings(active_only: bool = False):
    return [_to_listing_out(r) for r in core_db.listing_list(active_only=active_only)]


@api.post("/listings", response_model=ListingOut, status_code=201)
async def create_listing(payload: ListingIn):
    try:
        row = await add_listing(payload.url, payload.max_bid)
    except _BAD_INPUT as exc:
        raise HTTPException(400, str(exc))
    except SniperError as exc:
        title, msg = describe_error(exc)
        raise HTTPException(502, f"{title}: {msg}")
    return _to_listing_out(row)


@api.get("/listings/{listing_id}", response_model=ListingOut)
def get_listing(listing_id: int):
    return _to_listing_out(_get_or_404(listing_id))


@api.delete("/listings/{listing_id}", status_code=204)
def delete_listing(listing_id: int):
    if not remove_listing(listing_id):
        raise HTTPException(404, "Listing not found")
    return Response(status_code=204)


@api.post("/listings/{listing_id}/refresh", response_model=ListingOut)
async def refresh(listing_id: int):
    try:
        row = await refresh_listing(listing_id)
    except ListingNotFound:
        raise HTTPException(404, "Listing not found")
    if row is None:
        raise HTTPException(502, "Could not refresh auction data")
    return _to_listing_out(row)


@api.get("/listings/{listing_id}/prices", response_model=List[SnapshotOut])
def prices(listing_id: int, limit: int = Query(100, ge=1, le=1000)):
    _get_or_404(listing_id)
    return [
        SnapshotOut(timestamp=p.timestamp.isoformat(), price=p.price, bid_count=p.bid_count)
        for p in core_db.price_history(listing_id, limit=limit)
    ]


@api.get("/bids", response_model=List[BidOut])
def bids(listing_id: Optional[int] = None, limit: int = Query(100, ge=1, le=1000)):
    return [_to_bid_out(b) for b in core_db.bid_history(listing_id, limit=limit)]


@api.get("/controls", response_model=ControlsOut)
def get_controls():
    return controls()


@api.put("/controls", response_model=ControlsOut)
def put_controls(payload: ControlsIn):
    return set_controls(payload.auto_snipe, payload.demo_mode)


@api.get("/toasts", response_model=List[ToastOut])
def recent_toasts(limit: int = Query(10, ge=1, le=100)):
    return [
        ToastOut(
            title=t.title,
            description=t.description,
            variant=t.variant,
            timestamp=t.timestamp.isoformat(),
        )
        for t in toasts(limit)
    ]
