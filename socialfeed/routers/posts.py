from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialfeed.database import get_session_factory
from socialfeed.dependencies import require_viewer_id
from socialfeed.schemas import CreatePostInput, PostResponse
from socialfeed.services import post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])

@router.get("", response_model=list[PostResponse])
async def get_all_posts(
    viewer_id: str = Depends(require_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await post_service.get_all_posts(session_factory, viewer_id)

@router.get("/mine", response_model=list[PostResponse])
async def get_my_posts(
    viewer_id: str = Depends(require_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await post_service.get_my_posts(session_factory, viewer_id)

@router.post("", status_code=201, response_model=PostResponse)
async def create_post(
    data: CreatePostInput,
    viewer_id: str = Depends(require_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await post_service.create_post(session_factory, viewer_id, data)

@router.put("/{post_id}/like", response_model=PostResponse)
async def like_post(
    post_id: str,
    viewer_id: str = Depends(require_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    post = await post_service.like_post(session_factory, viewer_id, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post

@router.delete("/{post_id}/like", response_model=PostResponse)
async def unlike_post(
    post_id: str,
    viewer_id: str = Depends(require_viewer_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    post = await post_service.unlike_post(session_factory, viewer_id, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post
