from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import CurrentUser, get_credentials, get_current_user
from rebbit.schemas import MessageResponse, PasswordUpdate, PseudoUpdate, UserIdsRequest, UserResponse
from rebbit.security import CredentialService
from rebbit.services import comment_service, post_service, user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/by-ids")
async def get_pseudos(data: UserIdsRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.get_pseudos(db, data.ids)


@router.get("/me", response_model=UserResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    user = await user_service.get_user(db, current.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/pseudo")
async def update_pseudo(
    data: PseudoUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    user = await user_service.get_user_model(db, current.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    await user_service.update_user(db, user, pseudo=data.pseudo)
    return {"msg": "Pseudo updated successfully", "pseudo": user.pseudo}


@router.put("/password", response_model=MessageResponse)
async def update_password(
    data: PasswordUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
    credentials: CredentialService = Depends(get_credentials),
):
    user = await user_service.get_user_model(db, current.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    password_hash = await credentials.hash_password_async(data.password)
    await user_service.update_user(db, user, password=password_hash)
    return {"msg": "Password updated successfully"}


@router.delete("", response_model=MessageResponse)
async def delete_me(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await user_service.delete_account(db, current.id)
    return {"msg": "Account deleted successfully"}


@router.get("/{user_id}/posts")
async def get_user_posts(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return await post_service.get_posts_by_user(db, user_id)


@router.get("/{user_id}/comments")
async def get_user_comments(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return await comment_service.get_comments_by_user(db, user_id)


@router.get("/{user_id}/upvotes")
async def get_user_upvotes(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return await user_service.get_upvote_history(db, user_id)
