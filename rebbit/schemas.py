from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Password = Annotated[str, StringConstraints(min_length=6)]
# Kept verbatim: surrounding spaces are part of a password.
RawRequiredStr = Annotated[str, StringConstraints(min_length=1)]
PostState = Literal["draft", "published", "archived"]


def split_tags(value: str | list[str]) -> list[str]:
    """
    Turn either a list of tags or a comma-joined string into a clean list.

    Each tag is trimmed and empty entries are dropped; case is preserved.
    """
    if isinstance(value, str):
        value = value.split(",")
    return [tag.strip() for tag in value if tag.strip()]


def normalize_tags(value: str | list[str]) -> list[str]:
    """Like :func:`split_tags` but lower-cased, as stored on posts."""
    return [tag.lower() for tag in split_tags(value)]


class RequestModel(BaseModel):
    """Request bodies use camelCase on the wire (``newPassword``, ``newEmail``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Auth ---

class RegisterRequest(RequestModel):
    pseudo: NonEmptyStr
    name: str | None = None
    surname: str | None = None
    email: EmailStr
    password: Password
    birthdate: date


class LoginRequest(RequestModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(RequestModel):
    email: EmailStr


class ResetPasswordRequest(RequestModel):
    token: NonEmptyStr
    new_password: Password


class ChangeEmailRequest(RequestModel):
    new_email: EmailStr


class ChangePasswordRequest(RequestModel):
    current_password: RawRequiredStr
    new_password: Password


class ChangePseudoRequest(RequestModel):
    new_pseudo: NonEmptyStr


class TokenResponse(BaseModel):
    token: str
    pseudo: str | None = None


# --- Users ---

class UserIdsRequest(RequestModel):
    ids: list[int]


class PseudoUpdate(RequestModel):
    pseudo: NonEmptyStr


class PasswordUpdate(RequestModel):
    password: Password


class AdminUserUpdate(RequestModel):
    pseudo: NonEmptyStr
    email: EmailStr


class UserResponse(BaseModel):
    id: int
    pseudo: str
    name: str | None = None
    surname: str | None = None
    email: str
    birthdate: date
    role: str
    date_created: str | None = None


# --- Posts ---

class PostCreate(RequestModel):
    title: NonEmptyStr
    content: NonEmptyStr
    tags: list[str] = Field(min_length=1)
    state: PostState
    images: list[str] = []

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        tags = normalize_tags(value)
        if not tags:
            raise ValueError("Tags are required")
        return tags


class PostUpdate(RequestModel):
    title: NonEmptyStr
    content: NonEmptyStr
    tags: list[str] | str
    state: PostState
    images: list[str] | None = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | str) -> list[str]:
        tags = normalize_tags(value)
        if not tags:
            raise ValueError("Tags are required")
        return tags


class PostStateUpdate(RequestModel):
    state: PostState


class PopularTag(BaseModel):
    name: str
    count: int


# --- Comments ---

class CommentCreate(RequestModel):
    post: int
    content: NonEmptyStr


class CommentUpdate(RequestModel):
    content: NonEmptyStr


# --- Saved list ---

class SavedTagsUpdate(RequestModel):
    tags: list[str] | str

    @field_validator("tags")
    @classmethod
    def _split_tags(cls, value: list[str] | str) -> list[str]:
        tags = split_tags(value)
        if not tags:
            raise ValueError("Tags are required")
        return tags


# --- Upload ---

class UploadResponse(BaseModel):
    fileNames: list[str]


class MessageResponse(BaseModel):
    msg: str
