import logging
from logging.handlers import RotatingFileHandler
from typing import Annotated
import os
import typer

from baysnipe.core import SniperError
from baysnipe.fetchers.ebay import EbayExtractor, get_auction_status
from baysnipe.notify import describe_error
from baysnipe.sniper import calculate_time_remaining, format_time

if os.getenv("DEBUG_CLI", "0") == "1":
    import debugpy

    debugpy.listen(("0.0.0.0", 5679))
    if os.getenv("DEBUGPY_WAIT", "0") == "1":
        debugpy.wait_for_client()


# ---------------------------------------------------------------------------
# Global logging configuration - set once at import time
# ---------------------------------------------------------------------------
LOG_LEVEL = logging.DEBUG if os.getenv("BAYSNIPE_DEBUG", "0") == "1" else logging.INFO
LOG_FILE = os.getenv("BAYSNIPE_LOG_FILE", "./baysnipe.log")
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s -- %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
if LOG_FILE:
    file_handler = RotatingFileHandler(
        LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(LOG_LEVEL)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s -- %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.getLogger().addHandler(file_handler)


app = typer.Typer(help="baysnipe CLI")


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port.")] = 8000,
):
    """Run the dashboard and snipe loop."""
    import uvicorn

    uvicorn.run("baysnipe.web.app:app", host=host, port=port)


@app.command()
def check(url: Annotated[str, typer.Argument(help="eBay auction URL.")]):
    """Extract auction data once and print it."""
    import asyncio

    try:
        data = asyncio.run(EbayExtractor().extract_auction_data(url))
    except SniperError as exc:
        title, msg = describe_error(exc)
        typer.echo(f"{title}: {msg}", err=True)
        raise typer.Exit(1)

    tr = calculate_time_remaining(data.end_time)
    typer.echo(f"{data.title}")
    typer.echo(f"  item      {data.item_id}")
    typer.echo(f"  price     ${data.current_bid:,.2f} ({data.bid_count or 0} bids)")
    typer.echo(f"  ends      {data.end_time:%Y-%m-%d %H:%M:%S} UTC ({format_time(tr)}, {get_auction_status(data.end_time)})")
    if data.buy_it_now_price:
        typer.echo(f"  buy now   ${data.buy_it_now_price:,.2f}")
    for label, value in (
        ("seller", data.seller),
        ("condition", data.condition),
        ("location", data.location),
        ("shipping", data.shipping),
    ):
        if value:
            typer.echo(f"  {label:<9} {value}")


@app.command()
def watch(
    url: Annotated[str, typer.Argument(help="eBay auction URL.")],
    max_bid: Annotated[
        float, typer.Option("--max-bid", "-m", help="Maximum bid in dollars.")
    ],
    demo: Annotated[bool, typer.Option("--demo", help="Use simulated data.")] = False,
):
    """Monitor one auction headlessly and snipe it at the close."""
    from baysnipe.scheduler import get_service, watch as run_watch

    get_service().set_demo_mode(demo)
    try:
        row = run_watch(url, max_bid)
    except SniperError as exc:
        title, msg = describe_error(exc)
        typer.echo(f"{title}: {msg}", err=True)
        raise typer.Exit(1)
    if row is not None:
        typer.echo(f"{row.title}: {row.status.value}")


if __name__ == "__main__":
    app()
