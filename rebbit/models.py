from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rebbit.database import Base

ROLES = ("user", "admin")
POST_STATES = ("draft", "published", "archived")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Association tables: SavedList <-> Post, SavedList <-> Comment
# ---------------------------------------------------------------------------
saved_list_posts = Table(
    "saved_list_posts",
    Base.metadata,
    Column("saved_list_id", Integer, ForeignKey("saved_lists.id", ondelete="CASCADE"), primary_key=True),
    Column("post_id", Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
)

saved_list_comments = Table(
    "saved_list_comments",
    Base.metadata,
    Column("saved_list_id", Integer, ForeignKey("saved_lists.id", ondelete="CASCADE"), primary_key=True),
    Column("comment_id", Integer, ForeignKey("comments.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pseudo: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    surname: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(100), nullable=False)
    birthdate: Mapped[date] = mapped_column(Date, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    # Relationships — lazy="noload"; services load what they serialise
    posts: Mapped[List["Post"]] = relationship("Post", back_populates="user", lazy="noload")
    saved_list: Mapped[Optional["SavedList"]] = relationship(
        "SavedList", back_populates="owner", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    __table_args__ = (
        Index("ix_posts_user_id_date_created", "user_id", "date_created"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    date_edited: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Nullable so admin-deleted authors leave their archived posts behind
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    user: Mapped[Optional["User"]] = relationship("User", back_populates="posts", lazy="noload")
    tag_links: Mapped[List["PostTag"]] = relationship(
        "PostTag",
        back_populates="post",
        order_by="PostTag.id",
        cascade="all, delete-orphan",
        lazy="noload",
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="post",
        order_by="Comment.id.desc()",
        lazy="noload",
    )
    upvote_links: Mapped[List["Upvote"]] = relationship(
        "Upvote", back_populates="post", order_by="Upvote.id", lazy="noload"
    )

    @property
    def tags(self) -> list[str]:
        return [link.name for link in self.tag_links]


class PostTag(Base):
    """One tag occurrence on a post; ``id`` order is the tag order."""

    __tablename__ = "post_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    post: Mapped["Post"] = relationship("Post", back_populates="tag_links", lazy="noload")


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    date_edited: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    post: Mapped["Post"] = relationship("Post", back_populates="comments", lazy="noload")
    user: Mapped[Optional["User"]] = relationship("User", lazy="noload")
    upvote_links: Mapped[List["Upvote"]] = relationship(
        "Upvote", back_populates="comment", order_by="Upvote.id", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Upvote — one row per (user, post) or (user, comment); backs ``upvotedBy``
# ---------------------------------------------------------------------------
class Upvote(Base):
    __tablename__ = "upvotes"

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_upvotes_user_post"),
        UniqueConstraint("user_id", "comment_id", name="uq_upvotes_user_comment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    post_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True
    )
    comment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    post: Mapped[Optional["Post"]] = relationship("Post", back_populates="upvote_links", lazy="noload")
    comment: Mapped[Optional["Comment"]] = relationship(
        "Comment", back_populates="upvote_links", lazy="noload"
    )


# ---------------------------------------------------------------------------
# SavedList — exactly one per user
# ---------------------------------------------------------------------------
class SavedList(Base):
    __tablename__ = "saved_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    owner: Mapped["User"] = relationship("User", back_populates="saved_list", lazy="noload")
    posts: Mapped[List["Post"]] = relationship("Post", secondary=saved_list_posts, lazy="noload")
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", secondary=saved_list_comments, lazy="noload"
    )
