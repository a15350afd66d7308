import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from socialfeed.config import settings
from socialfeed.middleware import install_query_counter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency; tests override it with a factory bound to SQLite."""
    return async_session


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """
    Run *work* inside exactly one database transaction.

    The session holds a single pooled connection for the whole call.
    ``session.begin()`` commits when *work* returns and rolls back when it
    raises; the original exception propagates unchanged and is never
    retried.  Leaving the outer ``async with`` closes the session, which
    returns the connection to the pool on every path, cancellation
    included.
    """
    async with session_factory() as session:
        try:
            async with session.begin():
                return await work(session)
        except BaseException as exc:
            logger.debug("Transaction rolled back: %s", type(exc).__name__)
            raise
