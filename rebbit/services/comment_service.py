"""
Comment service — comments on posts.

Comments carry a soft-delete flag set by admin moderation; flagged comments
stay in the table for audit but are left out of the public listing.
"""
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from rebbit.models import Comment, Post, saved_list_comments
from rebbit.schemas import CommentCreate
from rebbit.services import upvote_service
from rebbit.services.post_service import comment_to_dict


async def load_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.user), selectinload(Comment.upvote_links))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _list_comments(db: AsyncSession, *criteria) -> list[dict]:
    q = (
        select(Comment)
        .where(*criteria)
        .options(joinedload(Comment.user), selectinload(Comment.upvote_links))
        .order_by(Comment.date_created.desc(), Comment.id.desc())
    )
    result = await db.execute(q)
    return [comment_to_dict(c) for c in result.unique().scalars().all()]


async def get_comments_for_post(db: AsyncSession, post_id: int) -> list[dict]:
    """Visible comments on *post_id*, newest first."""
    return await _list_comments(db, Comment.post_id == post_id, Comment.is_deleted.is_(False))


async def get_comments_by_user(db: AsyncSession, user_id: int) -> list[dict]:
    return await _list_comments(db, Comment.user_id == user_id)


async def get_comments_with_post_titles(db: AsyncSession, user_id: int) -> list[dict]:
    """The caller's comments, each annotated with ``postTitle`` and ``postId``."""
    q = (
        select(Comment, Post.title)
        .join(Post, Comment.post_id == Post.id)
        .where(Comment.user_id == user_id)
        .options(selectinload(Comment.upvote_links))
        .order_by(Comment.date_created.desc(), Comment.id.desc())
    )
    result = await db.execute(q)
    comments = []
    for comment, title in result.all():
        data = comment_to_dict(comment)
        data["postTitle"] = title
        data["postId"] = comment.post_id
        comments.append(data)
    return comments


async def get_comment_owner(db: AsyncSession, comment_id: int) -> tuple[bool, int | None]:
    result = await db.execute(select(Comment.user_id).where(Comment.id == comment_id))
    row = result.first()
    if row is None:
        return False, None
    return True, row[0]


async def add_comment(db: AsyncSession, user_id: int, data: CommentCreate) -> dict | None:
    """
    Attach a new comment to ``data.post``.

    Returns None when the target post does not exist.
    """
    post_exists = await db.scalar(select(Post.id).where(Post.id == data.post))
    if post_exists is None:
        return None

    comment = Comment(post_id=data.post, user_id=user_id, content=data.content)
    db.add(comment)
    await db.flush()

    comment = await load_comment(db, comment.id)
    return comment_to_dict(comment)


async def update_comment(db: AsyncSession, comment_id: int, content: str) -> dict | None:
    comment = await load_comment(db, comment_id)
    if comment is None:
        return None
    comment.content = content
    comment.date_edited = datetime.now(timezone.utc)
    await db.flush()
    return comment_to_dict(comment)


async def delete_comment(db: AsyncSession, comment_id: int) -> int | None:
    """
    Hard-delete a comment.

    Returns the number of comments left on the parent post, or None when
    the comment does not exist.
    """
    post_id = await db.scalar(select(Comment.post_id).where(Comment.id == comment_id))
    if post_id is None:
        return None

    await upvote_service.delete_upvotes_for(db, Comment, [comment_id])
    await db.execute(
        delete(saved_list_comments).where(saved_list_comments.c.comment_id == comment_id)
    )
    await db.execute(
        delete(Comment)
        .where(Comment.id == comment_id)
        .execution_options(synchronize_session=False)
    )
    return await db.scalar(
        select(func.count()).select_from(Comment).where(Comment.post_id == post_id)
    )


async def toggle_upvote(db: AsyncSession, comment_id: int, user_id: int) -> dict | None:
    exists, _ = await get_comment_owner(db, comment_id)
    if not exists:
        return None
    await upvote_service.toggle_upvote(db, Comment, comment_id, user_id)
    comment = await load_comment(db, comment_id)
    return comment_to_dict(comment)
