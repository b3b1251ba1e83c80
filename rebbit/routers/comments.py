from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import CurrentUser, ensure_can_modify, get_active_user, get_current_user
from rebbit.schemas import CommentCreate, CommentUpdate
from rebbit.services import comment_service

router = APIRouter(prefix="/api/comments", tags=["comments"])


async def _authorize(db: AsyncSession, comment_id: int, current: CurrentUser) -> None:
    exists, owner_id = await comment_service.get_comment_owner(db, comment_id)
    if not exists:
        raise HTTPException(status_code=404, detail="Comment not found")
    ensure_can_modify(current, owner_id)


@router.post("")
async def add_comment(
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_active_user),
):
    comment = await comment_service.add_comment(db, current.id, data)
    if not comment:
        raise HTTPException(status_code=404, detail="Post not found")
    return comment


# Registered before /{post_id} so "user" is not read as a post id.
@router.get("/user")
async def my_comments(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return await comment_service.get_comments_with_post_titles(db, current.id)


@router.get("/{post_id}")
async def list_comments(post_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.get_comments_for_post(db, post_id)


@router.put("/upvote/{comment_id}")
async def upvote_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_active_user),
):
    comment = await comment_service.toggle_upvote(db, comment_id, current.id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await _authorize(db, comment_id, current)
    return await comment_service.update_comment(db, comment_id, data.content)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await _authorize(db, comment_id, current)
    remaining = await comment_service.delete_comment(db, comment_id)
    return {"msg": "Comment deleted", "commentCount": remaining}
