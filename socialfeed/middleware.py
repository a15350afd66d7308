import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# ---------------------------------------------------------------------------
# Per-request SQL statement counter
# ---------------------------------------------------------------------------

class QueryCounter:
    __slots__ = ("count",)

    def __init__(self) -> None:
        self.count = 0


# Holds a mutable counter rather than an int: loader dispatches run in their
# own asyncio tasks, which see a copy of the context, and must still add to
# the count of the request that scheduled them.
query_count_var: ContextVar[QueryCounter | None] = ContextVar("query_count", default=None)


def reset_query_count() -> None:
    query_count_var.set(QueryCounter())


def current_query_count() -> int:
    counter = query_count_var.get()
    return counter.count if counter is not None else 0


def install_query_counter(engine) -> None:
    """
    Count every statement *engine* sends to the database in
    ``query_count_var``.

    Loader dispatches and direct writes both go through
    ``before_cursor_execute``, so the header reflects what batching
    actually saved.  Call once per engine.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        counter = query_count_var.get()
        if counter is not None:
            counter.count += 1


# ---------------------------------------------------------------------------
# Middleware (pure ASGI so the ContextVar stays visible to send_wrapper)
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Adds ``X-Response-Time-Ms`` and ``X-Query-Count`` to every HTTP
    response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        reset_query_count()
        start = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(current_query_count()).encode()))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)
