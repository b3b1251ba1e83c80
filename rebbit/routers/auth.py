import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.dependencies import CurrentUser, get_credentials, get_current_user, get_mailer
from rebbit.errors import field_error
from rebbit.mailer import Mailer
from rebbit.schemas import (
    ChangeEmailRequest,
    ChangePasswordRequest,
    ChangePseudoRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from rebbit.security import CredentialService, InvalidToken
from rebbit.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def _current_user_model(db: AsyncSession, current: CurrentUser):
    user = await user_service.get_user_model(db, current.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/register", response_model=TokenResponse)
async def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credentials),
    mailer: Mailer = Depends(get_mailer),
):
    if await user_service.get_user_by_email(db, data.email):
        raise field_error("User already exists")

    password_hash = await credentials.hash_password_async(data.password)
    try:
        user = await user_service.create_user(db, data, password_hash)
    except IntegrityError:
        raise field_error("User already exists")

    logger.info("Registered user %d", user.id)
    background_tasks.add_task(mailer.send_registration, user.email, user.pseudo, user.name, user.surname)
    return {"token": credentials.issue_access_token(user.id, user.role), "pseudo": user.pseudo}


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credentials),
):
    user = await user_service.get_user_by_email(db, data.email)
    if user is None or not await credentials.verify_password_async(data.password, user.password):
        raise field_error("Invalid credentials")
    return {"token": credentials.issue_access_token(user.id, user.role), "pseudo": user.pseudo}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credentials),
    mailer: Mailer = Depends(get_mailer),
):
    user = await user_service.get_user_by_email(db, data.email)
    if user is None:
        raise field_error("User not found")

    token = credentials.issue_reset_token(user.id)
    background_tasks.add_task(mailer.send_password_reset, user.email, token)
    return {"msg": "Password reset email sent"}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credentials),
):
    try:
        user_id = credentials.read_reset_token(data.token)
    except InvalidToken:
        raise field_error("Invalid or expired token")

    user = await user_service.get_user_model(db, user_id)
    if user is None:
        raise field_error("User not found")

    password_hash = await credentials.hash_password_async(data.new_password)
    await user_service.update_user(db, user, password=password_hash)
    return {"msg": "Password reset successfully"}


@router.put("/change-email", response_model=MessageResponse)
async def change_email(
    data: ChangeEmailRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    user = await _current_user_model(db, current)
    other = await user_service.get_user_by_email(db, data.new_email)
    if other is not None and other.id != user.id:
        raise field_error("Email already in use")
    try:
        await user_service.update_user(db, user, email=data.new_email)
    except IntegrityError:
        raise field_error("Email already in use")
    return {"msg": "Email updated successfully"}


@router.get("/user", response_model=UserResponse)
async def get_user(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    user = await _current_user_model(db, current)
    return user_service.user_to_dict(user)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
    credentials: CredentialService = Depends(get_credentials),
):
    user = await _current_user_model(db, current)
    if not await credentials.verify_password_async(data.current_password, user.password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    password_hash = await credentials.hash_password_async(data.new_password)
    await user_service.update_user(db, user, password=password_hash)
    return {"msg": "Password changed successfully"}


@router.put("/change-pseudo", response_model=MessageResponse)
async def change_pseudo(
    data: ChangePseudoRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    user = await _current_user_model(db, current)
    await user_service.update_user(db, user, pseudo=data.new_pseudo)
    return {"msg": "Pseudo changed successfully"}


@router.delete("/delete-account", response_model=MessageResponse)
async def delete_account(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    await user_service.delete_account(db, current.id)
    logger.info("User %d deleted their account", current.id)
    return {"msg": "Account deleted successfully"}


@router.get("/generate-token")
async def generate_token(
    current: CurrentUser = Depends(get_current_user),
    credentials: CredentialService = Depends(get_credentials),
):
    return {"token": credentials.issue_access_token(current.id, current.role)}
