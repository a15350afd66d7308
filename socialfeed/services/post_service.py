"""
Post service: creating posts, the two feeds, and likes.

Design notes
------------
- Posts are always materialised through ``_load_posts``: one batched
  post lookup, then the authors and the viewer's ``liked`` flags as two
  more batched lookups issued in the same tick.  A feed of N posts costs
  the id query plus three loader queries, whatever N is.
- Feeds order by ``id DESC``; ids are ULIDs, so that is newest first.
- like / unlike look the post up before writing so that a missing post
  returns None without touching ``user_likes_post``.
"""
import asyncio
from typing import Sequence

from sqlalchemy import delete, insert, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialfeed.database import run_in_transaction
from socialfeed.loaders import LoaderSet
from socialfeed.models import Post, User, user_likes_post
from socialfeed.schemas import CreatePostInput
from socialfeed.security import new_id
from socialfeed.services.auth_service import user_to_dict

_LIKE_STMT = text(
    "INSERT INTO user_likes_post (user_id, post_id) "
    "VALUES (:user_id, :post_id) "
    "ON CONFLICT DO NOTHING"
)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _post_to_dict(post: Post, author: User | None, liked: bool) -> dict:
    return {
        "id": post.id,
        "content": post.content,
        "author": user_to_dict(author),
        "liked": liked,
    }


async def _load_posts(loaders: LoaderSet, post_ids: Sequence[str]) -> list[dict | None]:
    """Materialise *post_ids* in order; a missing id yields None."""
    posts = await loaders.posts.load_many(post_ids)
    present = [post for post in posts if post is not None]

    authors, liked = await asyncio.gather(
        loaders.users.load_many([post.author_id for post in present]),
        loaders.liked.load_many([post.id for post in present]),
    )

    extras = iter(zip(authors, liked))
    result: list[dict | None] = []
    for post in posts:
        if post is None:
            result.append(None)
            continue
        author, is_liked = next(extras)
        result.append(_post_to_dict(post, author, bool(is_liked)))
    return result


async def _load_post(loaders: LoaderSet, post_id: str) -> dict | None:
    return (await _load_posts(loaders, [post_id]))[0]


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
    data: CreatePostInput,
) -> dict:
    """Insert a post by *viewer_id* and return it as read back in the same transaction."""

    async def work(session: AsyncSession) -> dict:
        post_id = new_id()
        await session.execute(
            insert(Post).values(id=post_id, author_id=viewer_id, content=data.content)
        )
        async with LoaderSet(viewer_id, session) as loaders:
            return await _load_post(loaders, post_id)

    return await run_in_transaction(session_factory, work)


async def get_my_posts(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
) -> list[dict]:
    """Posts authored by *viewer_id*, newest first."""

    async def work(session: AsyncSession) -> list[dict]:
        q = select(Post.id).where(Post.author_id == viewer_id).order_by(Post.id.desc())
        ids = (await session.execute(q)).scalars().all()
        async with LoaderSet(viewer_id, session) as loaders:
            return [post for post in await _load_posts(loaders, ids) if post is not None]

    return await run_in_transaction(session_factory, work)


async def get_all_posts(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
) -> list[dict]:
    """Every post, newest first, with ``liked`` from *viewer_id*'s point of view."""

    async def work(session: AsyncSession) -> list[dict]:
        q = select(Post.id).order_by(Post.id.desc())
        ids = (await session.execute(q)).scalars().all()
        async with LoaderSet(viewer_id, session) as loaders:
            return [post for post in await _load_posts(loaders, ids) if post is not None]

    return await run_in_transaction(session_factory, work)


async def like_post(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
    post_id: str,
) -> dict | None:
    """
    Record that *viewer_id* likes *post_id*; liking twice is a no-op.

    Returns None when the post does not exist.
    """

    async def work(session: AsyncSession) -> dict | None:
        async with LoaderSet(viewer_id, session) as loaders:
            if await loaders.posts.load(post_id) is None:
                return None
            await session.execute(_LIKE_STMT, {"user_id": viewer_id, "post_id": post_id})
            return await _load_post(loaders, post_id)

    return await run_in_transaction(session_factory, work)


async def unlike_post(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
    post_id: str,
) -> dict | None:
    """
    Remove *viewer_id*'s like from *post_id*; unliking an unliked post is
    a no-op.

    Returns None when the post does not exist.
    """

    async def work(session: AsyncSession) -> dict | None:
        async with LoaderSet(viewer_id, session) as loaders:
            if await loaders.posts.load(post_id) is None:
                return None
            await session.execute(
                delete(user_likes_post).where(
                    user_likes_post.c.user_id == viewer_id,
                    user_likes_post.c.post_id == post_id,
                )
            )
            return await _load_post(loaders, post_id)

    return await run_in_transaction(session_factory, work)
