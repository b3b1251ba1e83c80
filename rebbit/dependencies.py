from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import get_db
from rebbit.mailer import Mailer
from rebbit.models import User
from rebbit.security import RESET_PURPOSE, CredentialService, InvalidToken


@dataclass(frozen=True)
class CurrentUser:
    """Identity attached to a request by :func:`get_current_user`."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_modify(self, owner_id: int | None) -> bool:
        """Owners and admins may mutate or delete a post or comment."""
        return self.is_admin or (owner_id is not None and owner_id == self.id)


def get_credentials(request: Request) -> CredentialService:
    return request.app.state.credentials


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


async def get_current_user(
    x_auth_token: str | None = Header(None),
    credentials: CredentialService = Depends(get_credentials),
) -> CurrentUser:
    """
    Stateless access control: every protected request presents a signed
    token in the ``x-auth-token`` header and is re-verified here.
    """
    if not x_auth_token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    try:
        claims = credentials.verify_token(x_auth_token)
    except InvalidToken:
        raise HTTPException(status_code=401, detail="Token is not valid")

    user = claims.get("user") or {}
    if claims.get("purpose") == RESET_PURPOSE or not isinstance(user.get("id"), int):
        raise HTTPException(status_code=401, detail="Token is not valid")
    return CurrentUser(id=user["id"], role=user.get("role") or "user")


async def get_active_user(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Like :func:`get_current_user`, but also requires the account to still
    exist.  Used by routes that store the caller's id on a new row.
    """
    if await db.scalar(select(User.id).where(User.id == current.id)) is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return current


async def require_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current.is_admin:
        raise HTTPException(status_code=403, detail="Access denied, admin only")
    return current


def ensure_can_modify(current: CurrentUser, owner_id: int | None) -> None:
    if not current.can_modify(owner_id):
        raise HTTPException(status_code=401, detail="User not authorized")
