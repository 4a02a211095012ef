from __future__ import annotations
from fasthtml.common import *
from monsterui.all import *

from .scheduler_bridge import (
    add_listing_from_form,
    controls,
    refresh_listing,
    remove_listing,
    set_controls,
    toasts,
)
from baysnipe import db as core_db
from baysnipe.core import ListingNotFound, ListingStatus
from baysnipe.demo import is_demo_title
from baysnipe.sniper import bid_progress, calculate_time_remaining, format_time
from starlette.requests import Request
import logging

log = logging.getLogger("baysnipe_web.ui")

_STATUS_BADGE = {
    ListingStatus.MONITORING: "badge-info",
    ListingStatus.BIDDING: "badge-warning",
    ListingStatus.WON: "badge-success",
    ListingStatus.LOST: "badge-error",
    ListingStatus.ERROR: "badge-error",
}


def _countdown_cls(total: float) -> str:
    if total <= 60:
        return "text-error"
    if total <= 300:
        return "text-warning"
    return ""


def _alert(text, kind="alert-warning"):
    return Div(Span(text), cls=f"alert {kind} text-sm")


def _listing_card(row: core_db.Listing):
    tr = calculate_time_remaining(row.end_time)
    progress = bid_progress(row)
    details = [
        Div(f"{label}: {value}", cls="text-xs")
        for label, value in (
            ("Seller", row.seller),
            ("Condition", row.condition),
            ("Location", row.location),
        )
        if value
    ]
    alerts = []
    if is_demo_title(row.title):
        alerts.append(
            _alert(
                "Demo Mode: this auction is using simulated data.", "alert-error"
            )
        )
    if row.max_bid <= row.current_bid:
        alerts.append(
            _alert(
                f"Your max bid (${row.max_bid:,.2f}) is not higher than the "
                f"current bid (${row.current_bid:,.2f})",
                "alert-error",
            )
        )
    if 0 < tr.total <= 10 and row.is_active:
        alerts.append(
            _alert("Snipe will trigger at 3 seconds remaining with max bid protection")
        )

    return Card(
        Div(cls="flex items-start justify-between gap-3")(
            Div(cls="flex gap-3")(
                Img(src=row.image_url, cls="w-16 h-16 object-cover rounded-md")
                if row.image_url
                else "",
                Div(
                    H4(row.title),
                    Div(
                        f"Item ID: {row.item_id} ",
                        A("Open", href=row.url, target="_blank", cls="link"),
                        cls="text-xs",
                    ),
                    *details,
                ),
            ),
            Span(row.status.value, cls=f"badge {_STATUS_BADGE[row.status]}"),
        ),
        Div(cls="grid grid-cols-2 gap-4 mt-3")(
            Div(
                P("Current Bid", cls="text-sm opacity-70"),
                P(
                    f"${row.current_bid:,.2f}",
                    Span(f" ({row.bid_count} bids)", cls="text-xs") if row.bid_count else "",
                    cls="text-lg font-semibold",
                ),
            ),
            Div(
                P("Your Max Bid", cls="text-sm opacity-70"),
                P(f"${row.max_bid:,.2f}", cls="text-lg font-semibold text-primary"),
            ),
        ),
        Div(cls="flex justify-between text-xs opacity-70 mt-2")(
            Span(f"Last updated: {row.last_updated:%H:%M:%S}"),
            Span(f"Shipping: {row.shipping}") if row.shipping else "",
        ),
        *alerts,
        Div(cls="mt-2")(
            Div(cls="flex justify-between text-sm")(
                Span("Bid Progress"), Span(f"{progress:.0f}% of max")
            ),
            Progress(value=f"{progress:.0f}", max="100", cls="progress w-full"),
        ),
        Div(cls="flex items-center justify-between mt-2")(
            Div(
                P("Time Remaining", cls="text-sm opacity-70"),
                P(
                    format_time(tr) if tr.total > 0 else "ENDED",
                    cls=f"text-lg font-mono font-semibold {_countdown_cls(tr.total)}",
                ),
            ),
            Div(
                P("Last Bid", cls="text-sm opacity-70"),
                P(f"${row.last_bid_amount:,.2f}", cls="text-lg font-semibold text-success"),
                cls="text-right",
            )
            if row.last_bid_amount
            else "",
        ),
        Div(cls="flex gap-2 mt-3")(
            Button(
                "Refresh",
                cls=ButtonT.secondary,
                hx_post=f"/refresh_listing?listing_id={row.id}",
                hx_target="#listings-pane",
                hx_swap="innerHTML",
            ),
            Button(
                "Prices",
                cls=ButtonT.secondary,
                hx_get=f"/prices_partial?listing_id={row.id}",
                hx_target=f"#prices-{row.id}",
                hx_swap="innerHTML",
            ),
            Button(
                "Remove",
                cls=ButtonT.destructive,
                hx_post=f"/delete_listing?listing_id={row.id}",
                hx_confirm="Stop monitoring this auction?",
                hx_target="#listings-pane",
                hx_swap="innerHTML",
            ),
        ),
        Div(id=f"prices-{row.id}"),
    )


def _listings():
    rows = core_db.listing_list()
    active = sum(1 for r in rows if r.is_active)
    if not rows:
        body = Card(
            H3("No auctions being monitored"),
            P("Add an eBay auction URL to start sniping"),
            Button(
                "Add First Auction",
                cls=ButtonT.primary,
                hx_get="/tab/add",
                hx_target="#tab-pane",
                hx_swap="innerHTML",
            ),
        )
    else:
        body = Div(*[_listing_card(r) for r in rows], cls="grid gap-4 md:grid-cols-2")
    return Div(H2(f"Active Auctions ({active})", cls="mb-2"), body)


def _controls_card():
    state = controls()
    notes = []
    if not state["auto_snipe"]:
        notes.append(_alert("Auto-snipe is disabled. Auctions will not be bid on automatically."))
    if state["demo_mode"]:
        notes.append(
            _alert("Demo Mode is active. All auction data will be simulated for testing purposes.")
        )
    return Card(
        H3("Sniper Controls"),
        Div(cls="flex gap-4")(
            Button(
                f"Auto-snipe: {'ON' if state['auto_snipe'] else 'OFF'} (3 seconds remaining)",
                cls=ButtonT.primary if state["auto_snipe"] else ButtonT.secondary,
                hx_post=f"/set_controls?auto_snipe={'false' if state['auto_snipe'] else 'true'}",
                hx_target="#controls-pane",
                hx_swap="innerHTML",
            ),
            Button(
                f"Demo Mode: {'ON' if state['demo_mode'] else 'OFF'}",
                cls=ButtonT.primary if state["demo_mode"] else ButtonT.secondary,
                hx_post=f"/set_controls?demo_mode={'false' if state['demo_mode'] else 'true'}",
                hx_target="#controls-pane",
                hx_swap="innerHTML",
            ),
        ),
        *notes,
    )


def _dashboard_tab():
    return Div(cls="space-y-6")(
        Div(id="controls-pane")(_controls_card()),
        Div(
            id="listings-pane",
            hx_get="/listings_partial",
            hx_trigger="every 1s",
            hx_swap="innerHTML",
        )(_listings()),
    )


def _add_tab():
    return Card(
        H3("Add New Auction"),
        P("Enter an eBay auction URL and your maximum bid amount", cls="text-sm opacity-70"),
        Form(
            hx_post="/create_listing",
            hx_target="#tab-pane",
            hx_swap="innerHTML",
            cls="space-y-4",
        )(
            LabelInput(
                "eBay Auction URL",
                id="url",
                name="url",
                type="url",
                placeholder="https://www.ebay.com/itm/…",
                required=True,
            ),
            LabelInput(
                "Maximum Bid ($)",
                id="max_bid",
                name="max_bid",
                type="number",
                step="0.01",
                min="0.01",
                placeholder="100.00",
                required=True,
            ),
            Button("Add Auction", type="submit", cls=ButtonT.primary),
        ),
    )


def _history_tab():
    hist = core_db.bid_history(limit=200)
    if not hist:
        return Card(H3("Bid History"), P("No bids placed yet."))
    titles = {r.id: r.title for r in core_db.listing_list()}
    return Card(
        H3("Bid History"),
        Table(
            Thead(Tr(Td("Time (UTC)"), Td("Auction"), Td("Amount"), Td("Result"), Td("Reason"))),
            Tbody(*[
                Tr(
                    Td(b.timestamp.isoformat(timespec="seconds")),
                    Td(titles.get(b.listing_id, f"#{b.listing_id}")),
                    Td(f"${b.amount:,.2f}"),
                    Td(
                        Span("Success", cls="badge badge-success")
                        if b.success
                        else Span("Failed", cls="badge badge-error")
                    ),
                    Td(b.reason or "—"),
                )
                for b in hist
            ]),
            cls="table table-zebra w-full",
        ),
    )


def _toasts_pane():
    items = [
        Div(
            Strong(t.title),
            Div(t.description, cls="text-sm"),
            cls=f"alert {'alert-error' if t.variant == 'destructive' else 'alert-info'}",
        )
        for t in toasts(5)
    ]
    return Div(*items, cls="space-y-2") if items else P("No notifications.", cls="opacity-70")


def _LogsPane():
    return Card(
        H3("Live Log"),
        Div(
            id="log-stream",
            cls="h-80 overflow-y-auto border rounded-md p-3 bg-base-200 font-mono text-sm",
        ),
        # inline client that appends lines as they arrive
        Script("""
          (function(){
            if (window.__baysnipeLogES) return;
            var el = document.getElementById('log-stream');
            function append(line){
              var d = document.createElement('div');
              d.textContent = line;
              el.appendChild(d);
              el.scrollTop = el.scrollHeight;
            }
            function start(){
              var es = new EventSource('/logs_stream');
              window.__baysnipeLogES = es;
              es.onmessage = function(ev){ append(ev.data); };
              es.onerror = function(){ try{ es.close(); }catch(e){}; window.__baysnipeLogES = null; setTimeout(start, 1500); };
            }
            start();
          })();
          """),
    )


def _tab_button(label, name):
    return Button(
        label,
        cls=ButtonT.secondary,
        hx_get=f"/tab/{name}",
        hx_target="#tab-pane",
        hx_swap="innerHTML",
    )


async def _form_value(request: Request, key: str) -> str:
    # accept both form and query (robust for HTMX)
    try:
        form = await request.form()
    except Exception as exc:
        log.debug("No form body for %s: %r", key, exc)
        form = {}
    return (form.get(key) or request.query_params.get(key) or "").strip()


def add_ui_routes(app, rt, broadcast_handler):
    @rt("/")
    def get():
        return Titled(
            Container(
                Div(cls="flex items-center justify-between mb-4")(
                    Div(
                        H1("eBay Auction Sniper"),
                        P("Automated bidding tool with 3-second precision timing"),
                    ),
                    A("API Docs", href="/api/docs", target="_blank", cls="link"),
                ),
                Div(cls="flex gap-2 mb-4")(
                    _tab_button("Dashboard", "dashboard"),
                    _tab_button("Add Auction", "add"),
                    _tab_button("Bid History", "history"),
                ),
                Div(cls="flex gap-6")(
                    Div(id="tab-pane", cls="basis-2/3")(_dashboard_tab()),
                    Div(cls="basis-1/3 space-y-6")(
                        Card(
                            H3("Notifications"),
                            Div(
                                id="toasts-pane",
                                hx_get="/toasts_partial",
                                hx_trigger="every 2s",
                                hx_swap="innerHTML",
                            )(_toasts_pane()),
                        ),
                        _LogsPane(),
                    ),
                ),
            ),
        )

    @rt("/tab/dashboard")
    def get():
        return _dashboard_tab()

    @rt("/tab/add")
    def get():
        return _add_tab()

    @rt("/tab/history")
    def get():
        return _history_tab()

    @rt("/listings_partial")
    def get():
        return _listings()

    @rt("/toasts_partial")
    def get():
        return _toasts_pane()

    @rt("/prices_partial")
    def get(listing_id: int):
        hist = core_db.price_history(listing_id, limit=50)
        if not hist:
            return P("No price history yet.")
        return Table(
            Thead(Tr(Td("Time (UTC)"), Td("Price"), Td("Bids"))),
            Tbody(*[
                Tr(
                    Td(p.timestamp.isoformat(timespec="seconds")),
                    Td(f"${p.price:,.2f}"),
                    Td(p.bid_count if p.bid_count is not None else "—"),
                )
                for p in hist
            ]),
            cls="table table-compact w-full",
        )

    @app.post("/create_listing")
    async def create_listing(request: Request):
        url = await _form_value(request, "url")
        max_bid = await _form_value(request, "max_bid")
        row = await add_listing_from_form(url, max_bid)
        return _dashboard_tab() if row else _add_tab()

    @app.post("/delete_listing")
    async def delete_listing(request: Request):
        raw = await _form_value(request, "listing_id")
        if raw.isdigit():
            remove_listing(int(raw))
        return _listings()

    @app.post("/refresh_listing")
    async def refresh(request: Request):
        raw = await _form_value(request, "listing_id")
        if raw.isdigit():
            try:
                await refresh_listing(int(raw))
            except ListingNotFound:
                log.info("Listing %s is gone", raw)
        return _listings()

    @app.post("/set_controls")
    async def update_controls(request: Request):
        auto = await _form_value(request, "auto_snipe")
        demo = await _form_value(request, "demo_mode")
        set_controls(
            auto_snipe=(auto == "true") if auto else None,
            demo_mode=(demo == "true") if demo else None,
        )
        return _controls_card()
