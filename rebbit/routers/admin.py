import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import require_admin
from rebbit.errors import field_error
from rebbit.schemas import AdminUserUpdate, MessageResponse, UserResponse
from rebbit.services import comment_service, post_service, user_service

logger = logging.getLogger(__name__)

# Every route here sits behind the token check and the admin guard.
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/users", response_model=list[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    return await user_service.get_users(db)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, data: AdminUserUpdate, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user_model(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    other = await user_service.get_user_by_email(db, data.email)
    if other is not None and other.id != user.id:
        raise field_error("Email already in use")
    try:
        await user_service.update_user(db, user, pseudo=data.pseudo, email=data.email)
    except IntegrityError:
        raise field_error("Email already in use")
    return user_service.user_to_dict(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    if not await user_service.moderate_delete(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Admin removed user %d; posts archived, comments flagged", user_id)
    return {"msg": "User removed, their posts and comments were marked as deleted"}


@router.get("/users/{user_id}/posts")
async def get_user_posts(user_id: int, db: AsyncSession = Depends(get_db)):
    return await post_service.get_posts_by_user(db, user_id)


@router.get("/users/{user_id}/comments")
async def get_user_comments(user_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.get_comments_by_user(db, user_id)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    if await comment_service.delete_comment(db, comment_id) is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    return {"msg": "Comment deleted"}
