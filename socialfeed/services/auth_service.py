"""
Auth service: signup, login and the caller's own profile.

Credentials are checked inside the transaction, but the access token is
returned to the router rather than written here; the cookie is only set
once the transaction has committed.
"""
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialfeed.database import run_in_transaction
from socialfeed.exceptions import AuthenticationError
from socialfeed.loaders import LoaderSet
from socialfeed.models import User
from socialfeed.schemas import LoginInput, SignupInput
from socialfeed.security import hash_password, make_token, new_id, verify_password


def user_to_dict(user: User | None) -> dict | None:
    """Public fields of *user*; the password digest never leaves."""
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
    }


async def signup(
    session_factory: async_sessionmaker[AsyncSession],
    data: SignupInput,
) -> tuple[dict, str]:
    """
    Create a user and return ``(self_user, access_token)``.

    Username uniqueness is enforced by the database; the IntegrityError
    propagates and the router turns it into a 409.
    """
    user_id = new_id()
    hashed = await hash_password(data.password)

    async def work(session: AsyncSession) -> dict:
        await session.execute(
            insert(User).values(
                id=user_id,
                username=data.username,
                password=hashed,
                name=data.name,
            )
        )
        async with LoaderSet(user_id, session) as loaders:
            return user_to_dict(await loaders.users.load(user_id))

    self_user = await run_in_transaction(session_factory, work)
    return self_user, make_token(user_id)


async def login(
    session_factory: async_sessionmaker[AsyncSession],
    data: LoginInput,
) -> tuple[dict, str]:
    """
    Check *data* and return ``(self_user, access_token)``.

    An unknown username and a wrong password raise the same
    AuthenticationError.
    """

    async def work(session: AsyncSession) -> dict:
        q = select(User.id, User.password).where(User.username == data.username)
        row = (await session.execute(q)).first()
        if row is None:
            raise AuthenticationError()
        user_id, hashed = row
        if not await verify_password(data.password, hashed):
            raise AuthenticationError()

        async with LoaderSet(user_id, session) as loaders:
            return user_to_dict(await loaders.users.load(user_id))

    self_user = await run_in_transaction(session_factory, work)
    return self_user, make_token(self_user["id"])


async def get_self(
    session_factory: async_sessionmaker[AsyncSession],
    viewer_id: str,
) -> dict | None:
    """Return the caller's profile, or None when the user no longer exists."""

    async def work(session: AsyncSession) -> dict | None:
        async with LoaderSet(viewer_id, session) as loaders:
            return user_to_dict(await loaders.users.load(viewer_id))

    return await run_in_transaction(session_factory, work)
