# baysnipe/web/logging_stream.py
from __future__ import annotations
import asyncio, logging
from fasthtml.common import sse_message

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s -- %(message)s"
# uvicorn loggers default to propagate=False, so root handlers never see them
_NON_PROPAGATING = ("uvicorn", "uvicorn.error", "uvicorn.access")


class BroadcastHandler(logging.Handler):
    """Logging handler that fans out log lines to connected SSE clients."""

    def __init__(self, maxsize: int = 1000):
        super().__init__()
        self.maxsize = maxsize
        self._qs: set[asyncio.Queue[str]] = set()

    @property
    def clients(self) -> int:
        return len(self._qs)

    def register(self) -> asyncio.Queue[str]:
        q: asyncio.Queue[str] = asyncio.Queue(maxsize=self.maxsize)
        self._qs.add(q)
        q.put_nowait("log stream connected")
        return q

    def unregister(self, q: asyncio.Queue[str]):
        self._qs.discard(q)

    def emit(self, record: logging.LogRecord):
        try:
            msg = self.format(record)
        except Exception:
            self.handleError(record)
            return
        for q in list(self._qs):
            if q.full():
                # drop oldest (simple backpressure)
                q.get_nowait()
            q.put_nowait(msg)


async def get_log_generator(handler: BroadcastHandler):
    """Yield SSE chunks, one per log line."""
    q = handler.register()
    try:
        while True:
            line = await q.get()
            # plain text so the client can set textContent safely
            yield sse_message(line)
    finally:
        handler.unregister(q)


def setup_broadcast_logging(handler: BroadcastHandler, level: int = logging.INFO):
    """Attach `handler` to the root logger and to uvicorn's own loggers."""
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(level)
    if handler not in root.handlers:
        root.addHandler(handler)

    for name in _NON_PROPAGATING:
        lg = logging.getLogger(name)
        if handler not in lg.handlers:
            lg.addHandler(handler)
