from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialfeed.database import get_session_factory
from socialfeed.dependencies import ensure_no_access_token
from socialfeed.schemas import LoginInput, SelfUserResponse, SignupInput
from socialfeed.security import clear_access_token, write_access_token
from socialfeed.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post(
    "/signup",
    status_code=201,
    response_model=SelfUserResponse,
    dependencies=[Depends(ensure_no_access_token)],
)
async def signup(
    data: SignupInput,
    response: Response,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        self_user, token = await auth_service.signup(session_factory, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="username already taken")
    write_access_token(response, token)
    return self_user

@router.post(
    "/login",
    response_model=SelfUserResponse,
    dependencies=[Depends(ensure_no_access_token)],
)
async def login(
    data: LoginInput,
    response: Response,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    self_user, token = await auth_service.login(session_factory, data)
    write_access_token(response, token)
    return self_user

@router.post("/logout", status_code=204)
async def logout(response: Response):
    clear_access_token(response)
