from fastapi import Depends, Request, Response

from socialfeed.exceptions import AuthorizationError, ConflictError
from socialfeed.security import clear_access_token, extract_user_id, read_access_token


async def get_viewer_id(request: Request) -> str | None:
    """
    Resolve the caller's user id from the access token.

    No token means an anonymous caller (None); a token that fails
    verification raises AuthorizationError instead of being ignored.
    """
    token = read_access_token(request)
    if token is None:
        return None
    return extract_user_id(token)


async def require_viewer_id(viewer_id: str | None = Depends(get_viewer_id)) -> str:
    """Like ``get_viewer_id`` but an anonymous caller is an AuthorizationError."""
    if viewer_id is None:
        raise AuthorizationError()
    return viewer_id


async def ensure_no_access_token(request: Request, response: Response) -> None:
    """
    Guard for signup / login.

    A valid token means the caller is already signed in (ConflictError).
    A stale or forged token is cleared from the response and the request
    carries on as anonymous.  The request is flagged as well, so the error
    handlers clear the cookie when the call itself fails.
    """
    token = read_access_token(request)
    if token is None:
        return
    try:
        extract_user_id(token)
    except AuthorizationError:
        request.state.stale_access_token = True
        clear_access_token(response)
        return
    raise ConflictError()


def has_stale_access_token(request: Request) -> bool:
    return getattr(request.state, "stale_access_token", False)
