"""
Request-scoped batching loaders.

Design notes
------------
- A ``LoaderSet`` is built inside ``run_in_transaction`` for one unit of
  work and dropped with it.  It is never stored on the app, a module or a
  ContextVar, so neither cached rows nor the viewer id can leak into
  another request.
- Each ``BatchLoader`` keeps a key -> Future cache.  ``load`` hands back
  the cached future when the key was already requested (resolved or still
  in flight), otherwise it registers the key as pending.
- The first pending key after a dispatch schedules the next one with
  ``loop.call_soon``; every ``load`` issued before the loop gets back to
  that callback joins the same batch, so a ``gather`` over N loads costs
  one ``IN (...)`` query.
- One ``AsyncSession`` cannot run two statements at once, so the loaders
  of a set share one ``asyncio.Lock`` around query execution.  Loaders
  dispatched in the same tick run one after the other in whichever order
  the lock grants; callers must not rely on that order.
- A failing query fails every future of its batch with the same exception
  and evicts those keys, so the error reaches the awaiting service code
  and aborts the transaction.
- Dispatch tasks outlive the ``gather`` that awaits them: when one batch
  fails, a sibling batch may still be queued on the lock.  ``LoaderSet`` is
  an async context manager whose exit cancels and awaits every dispatch
  still scheduled or running, so no loader touches the session after the
  unit of work has returned or raised.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, Iterable, Mapping, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from socialfeed.config import settings
from socialfeed.models import Post, User, user_likes_post

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

BatchFn = Callable[[list[K]], Awaitable[Mapping[K, V]]]


class BatchLoader(Generic[K, V]):
    """Deduplicating, per-tick batching cache for one entity type."""

    def __init__(
        self,
        name: str,
        batch_fn: BatchFn,
        lock: asyncio.Lock,
        *,
        default: V | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self.name = name
        self._batch_fn = batch_fn
        self._lock = lock
        self._default = default
        self._max_batch_size = max_batch_size or settings.LOADER_MAX_BATCH_SIZE
        self._cache: dict[K, asyncio.Future] = {}
        self._pending: dict[K, asyncio.Future] = {}
        self._dispatch_handle: asyncio.Handle | None = None
        self._tasks: dict[asyncio.Task, dict[K, asyncio.Future]] = {}
        self._closed = False
        self.dispatch_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, key: K) -> asyncio.Future:
        """Return an awaitable resolving to the value for *key* (or the default)."""
        if self._closed:
            raise RuntimeError(f"{self.name} loader is closed")
        future = self._cache.get(key)
        if future is not None and not future.cancelled():
            return future

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._cache[key] = future
        self._pending[key] = future
        if self._dispatch_handle is None:
            self._dispatch_handle = loop.call_soon(self._start_dispatch)
        return future

    def load_many(self, keys: Iterable[K]) -> asyncio.Future:
        """
        Resolve *keys* in input order.

        Repeated keys share a single future, so they are fetched once and
        come back as the same object at every position.
        """
        return asyncio.gather(*[self.load(key) for key in keys])

    def prime(self, key: K, value: V) -> None:
        """Seed the cache with a known value unless *key* is already cached."""
        if key in self._cache:
            return
        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._cache[key] = future

    def clear(self, key: K) -> None:
        """Forget *key*; the next ``load`` goes back to the database."""
        self._cache.pop(key, None)

    async def aclose(self) -> None:
        """
        Stop all work: drop the scheduled dispatch, cancel running ones and
        wait until they have let go of the lock.

        Futures still waiting on a value are cancelled.  Loading from a
        closed loader raises RuntimeError.
        """
        self._closed = True
        if self._dispatch_handle is not None:
            self._dispatch_handle.cancel()
            self._dispatch_handle = None
        pending, self._pending = self._pending, {}
        self._evict(pending)
        for future in pending.values():
            future.cancel()

        running = list(self._tasks.items())
        if not running:
            return
        logger.debug("Cancelling %d %s dispatch(es)", len(running), self.name)
        for task, _ in running:
            task.cancel()
        await asyncio.gather(*(task for task, _ in running), return_exceptions=True)
        # A task cancelled before its first step never settles its batch.
        for _, batch in running:
            self._evict(batch)
            for future in batch.values():
                future.cancel()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _start_dispatch(self) -> None:
        batch, self._pending = self._pending, {}
        self._dispatch_handle = None
        if not batch:
            return
        task = asyncio.ensure_future(self._dispatch(batch))
        self._tasks[task] = batch
        task.add_done_callback(self._forget_task)

    def _forget_task(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)

    async def _dispatch(self, batch: dict[K, asyncio.Future]) -> None:
        keys = list(batch)
        self.dispatch_count += 1
        logger.debug("Dispatching %s loader: %d key(s)", self.name, len(keys))

        found: dict[K, V] = {}
        try:
            for start in range(0, len(keys), self._max_batch_size):
                chunk = keys[start:start + self._max_batch_size]
                async with self._lock:
                    found.update(await self._batch_fn(chunk))
        except asyncio.CancelledError:
            self._evict(batch)
            for future in batch.values():
                future.cancel()
            raise
        except Exception as exc:
            logger.debug("%s loader failed: %s", self.name, type(exc).__name__)
            self._evict(batch)
            for future in batch.values():
                if not future.done():
                    future.set_exception(exc)
            return

        for key, future in batch.items():
            if not future.done():
                future.set_result(found.get(key, self._default))

    def _evict(self, batch: dict[K, asyncio.Future]) -> None:
        for key, future in batch.items():
            if self._cache.get(key) is future:
                del self._cache[key]


class LoaderSet:
    """
    The loaders for one transaction, bound to its session and viewer.

    ``viewer_id`` is the caller's user id (or None); it scopes the
    ``liked`` loader and is fixed for the lifetime of the set.

    Use it as ``async with LoaderSet(viewer_id, session) as loaders:`` inside
    the transaction so pending dispatches are stopped before it ends.
    """

    def __init__(self, viewer_id: str | None, session: AsyncSession) -> None:
        self.viewer_id = viewer_id
        self.session = session
        self._lock = asyncio.Lock()

        self.users: BatchLoader[str, User] = BatchLoader("user", self._fetch_users, self._lock)
        self.posts: BatchLoader[str, Post] = BatchLoader("post", self._fetch_posts, self._lock)
        self.liked: BatchLoader[str, bool] = BatchLoader(
            "liked", self._fetch_liked, self._lock, default=False
        )

    async def __aenter__(self) -> LoaderSet:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop every loader of the set; see ``BatchLoader.aclose``."""
        for loader in (self.users, self.posts, self.liked):
            await loader.aclose()

    async def _fetch_users(self, ids: list[str]) -> dict[str, User]:
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def _fetch_posts(self, ids: list[str]) -> dict[str, Post]:
        result = await self.session.execute(select(Post).where(Post.id.in_(ids)))
        return {post.id: post for post in result.scalars().all()}

    async def _fetch_liked(self, post_ids: list[str]) -> dict[str, bool]:
        if self.viewer_id is None:
            return {}
        q = select(user_likes_post.c.post_id).where(
            user_likes_post.c.user_id == self.viewer_id,
            user_likes_post.c.post_id.in_(post_ids),
        )
        result = await self.session.execute(q)
        return {post_id: True for post_id in result.scalars().all()}
