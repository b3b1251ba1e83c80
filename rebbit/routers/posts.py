import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import CurrentUser, ensure_can_modify, get_active_user, get_current_user
from rebbit.schemas import MessageResponse, PopularTag, PostCreate, PostStateUpdate, PostUpdate
from rebbit.services import post_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


async def _authorize(db: AsyncSession, post_id: int, current: CurrentUser) -> None:
    exists, owner_id = await post_service.get_post_owner(db, post_id)
    if not exists:
        raise HTTPException(status_code=404, detail="Post not found")
    ensure_can_modify(current, owner_id)


@router.post("")
async def create_post(
    data: PostCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_active_user),
):
    return await post_service.create_post(db, current.id, data)


# Registered before /tags/{tag} so "popular" is not read as a tag name.
@router.get("/tags/popular", response_model=list[PopularTag])
async def popular_tags(db: AsyncSession = Depends(get_db)):
    return await post_service.get_popular_tags(db)


@router.get("/tags/{tag}")
async def posts_by_tag(tag: str, db: AsyncSession = Depends(get_db)):
    return await post_service.get_posts_by_tag(db, tag)


@router.get("")
async def list_posts(db: AsyncSession = Depends(get_db)):
    return await post_service.get_posts(db)


@router.get("/{post_id}")
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.put("/upvote/{post_id}")
async def upvote_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_active_user),
):
    post = await post_service.toggle_upvote(db, post_id, current.id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await _authorize(db, post_id, current)
    await post_service.delete_post(db, post_id)
    logger.info("Post %d deleted by user %d", post_id, current.id)
    return {"msg": "Post and comments deleted"}


@router.put("/state/{post_id}")
async def update_state(
    post_id: int,
    data: PostStateUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await _authorize(db, post_id, current)
    return await post_service.set_state(db, post_id, data.state)


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await _authorize(db, post_id, current)
    return await post_service.update_post(db, post_id, data)
