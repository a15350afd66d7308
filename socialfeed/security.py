"""
Credential primitives: identifiers, password digests, access tokens and
the cookie that carries them.

Nothing here touches the database; the service layer composes these with
the transaction runner.
"""
import asyncio
import time

import bcrypt
import jwt
from fastapi import Request, Response
from ulid import ULID

from socialfeed.config import settings
from socialfeed.exceptions import AuthorizationError

TOKEN_ALGORITHM = "HS256"

# bcrypt only reads the first 72 bytes of its input.
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

def new_id() -> str:
    """Return a fresh ULID; string order matches creation order."""
    return str(ULID())


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def _hash_sync(plaintext: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plaintext.encode()[:_BCRYPT_MAX_BYTES], salt).decode()


def _verify_sync(plaintext: str, digest: str) -> bool:
    try:
        return bcrypt.checkpw(plaintext.encode()[:_BCRYPT_MAX_BYTES], digest.encode())
    except ValueError:
        # Malformed digest in the row.
        return False


async def hash_password(plaintext: str) -> str:
    return await asyncio.to_thread(_hash_sync, plaintext)


async def verify_password(plaintext: str, digest: str) -> bool:
    return await asyncio.to_thread(_verify_sync, plaintext, digest)


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

def make_token(user_id: str) -> str:
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + settings.ACCESS_TOKEN_TTL_SECONDS,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def extract_user_id(token: str) -> str:
    """
    Return the user id carried by *token*.

    Raises AuthorizationError for a bad signature, an expired token or a
    payload without a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise AuthorizationError("invalid access token") from exc
    return payload["sub"]


# ---------------------------------------------------------------------------
# Cookie channel
# ---------------------------------------------------------------------------

def read_access_token(request: Request) -> str | None:
    """Token from the access cookie, else from an ``Authorization: Bearer`` header."""
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def write_access_token(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        value=token,
        max_age=settings.ACCESS_TOKEN_TTL_SECONDS,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_access_token(response: Response) -> None:
    response.delete_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
