from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialfeed.database import get_session_factory
from socialfeed.dependencies import get_viewer_id
from socialfeed.schemas import SelfUserResponse
from socialfeed.services import auth_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.get("/me", response_model=SelfUserResponse | None)
async def get_self(
    viewer_id: str | None = Depends(get_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    if viewer_id is None:
        return None
    return await auth_service.get_self(session_factory, viewer_id)
