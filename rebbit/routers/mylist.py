from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import CurrentUser, get_current_user
from rebbit.models import Comment, Post
from rebbit.schemas import SavedTagsUpdate
from rebbit.services import saved_list_service

router = APIRouter(prefix="/api/mylist", tags=["mylist"])

LIST_NOT_FOUND = "List not found"


@router.get("")
async def get_my_list(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    saved = await saved_list_service.get_saved_list(db, current.id)
    if not saved:
        raise HTTPException(status_code=404, detail=LIST_NOT_FOUND)
    return saved


@router.put("/posts/{post_id}")
async def toggle_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    if not await saved_list_service.item_exists(db, Post, post_id):
        raise HTTPException(status_code=404, detail="Post not found")
    saved = await saved_list_service.toggle_item(db, current.id, Post, post_id)
    if not saved:
        raise HTTPException(status_code=404, detail=LIST_NOT_FOUND)
    return saved


@router.put("/comments/{comment_id}")
async def toggle_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    if not await saved_list_service.item_exists(db, Comment, comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")
    saved = await saved_list_service.toggle_item(db, current.id, Comment, comment_id)
    if not saved:
        raise HTTPException(status_code=404, detail=LIST_NOT_FOUND)
    return saved


@router.put("/tags")
async def set_tags(
    data: SavedTagsUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    saved = await saved_list_service.set_tags(db, current.id, data.tags)
    if not saved:
        raise HTTPException(status_code=404, detail=LIST_NOT_FOUND)
    return saved
