"""
User service — accounts, profile changes and account deletion.

Two deletion paths exist:

- self-service (``delete_account``) hard-deletes the user's posts, their
  comments and everything attached to them;
- moderation (``moderate_delete``) keeps the user's posts and comments for
  audit, rewriting posts to a placeholder in the ``archived`` state and
  flagging comments ``is_deleted``.

Both withdraw the user's upvotes first so counters stay equal to the
number of upvote rows.  Password hashing is done by the caller through the
credential service; this module only stores hashes.
"""
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.models import Comment, Post, SavedList, Upvote, User, saved_list_comments, saved_list_posts
from rebbit.schemas import RegisterRequest
from rebbit.services import post_service, upvote_service

DELETED_POST_CONTENT = "Post deleted"
DELETED_COMMENT_CONTENT = "Comment deleted"

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance; the password hash never leaves here."""
    return {
        "id": user.id,
        "pseudo": user.pseudo,
        "name": user.name,
        "surname": user.surname,
        "email": user.email,
        "birthdate": user.birthdate.isoformat() if user.birthdate else None,
        "role": user.role,
        "date_created": post_service.isoformat(user.date_created),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user_model(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    user = await get_user_model(db, user_id)
    return user_to_dict(user) if user else None


async def get_users(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(User).order_by(User.id))
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_pseudos(db: AsyncSession, user_ids: list[int]) -> list[dict]:
    if not user_ids:
        return []
    result = await db.execute(
        select(User.id, User.pseudo).where(User.id.in_(user_ids)).order_by(User.id)
    )
    return [{"id": uid, "pseudo": pseudo} for uid, pseudo in result.all()]


async def get_upvote_history(db: AsyncSession, user_id: int) -> list[dict]:
    """Posts and comments *user_id* has upvoted, posts first."""
    posts = await db.execute(
        select(Post)
        .join(Upvote, Upvote.post_id == Post.id)
        .where(Upvote.user_id == user_id)
        .order_by(Upvote.id)
    )
    comments = await db.execute(
        select(Comment)
        .join(Upvote, Upvote.comment_id == Comment.id)
        .where(Upvote.user_id == user_id)
        .order_by(Upvote.id)
    )
    history = [
        {
            "type": "Post",
            "content": post.title,
            "date": post_service.isoformat(post.date_created),
            "postId": post.id,
        }
        for post in posts.scalars().all()
    ]
    history.extend(
        {
            "type": "Comment",
            "content": comment.content,
            "date": post_service.isoformat(comment.date_created),
            "postId": comment.post_id,
        }
        for comment in comments.scalars().all()
    )
    return history


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, data: RegisterRequest, password_hash: str) -> User:
    """
    Create a regular user together with their (empty) saved list.

    Email uniqueness is enforced by the unique constraint; the router
    pre-checks it to answer with a 400 and translates late integrity errors.
    """
    user = User(
        pseudo=data.pseudo,
        name=data.name,
        surname=data.surname,
        email=data.email,
        password=password_hash,
        birthdate=data.birthdate,
        role="user",
    )
    db.add(user)
    await db.flush()
    db.add(SavedList(user_id=user.id, tags=[]))
    await db.flush()
    return user


async def update_user(db: AsyncSession, user: User, **fields) -> User:
    for field, value in fields.items():
        setattr(user, field, value)
    await db.flush()
    return user


async def _delete_saved_list(db: AsyncSession, user_id: int) -> None:
    list_ids = select(SavedList.id).where(SavedList.user_id == user_id)
    await db.execute(delete(saved_list_posts).where(saved_list_posts.c.saved_list_id.in_(list_ids)))
    await db.execute(
        delete(saved_list_comments).where(saved_list_comments.c.saved_list_id.in_(list_ids))
    )
    await db.execute(
        delete(SavedList)
        .where(SavedList.user_id == user_id)
        .execution_options(synchronize_session=False)
    )


async def delete_account(db: AsyncSession, user_id: int) -> None:
    """Self-service deletion: the user's posts and comments go with them."""
    await upvote_service.withdraw_user_upvotes(db, user_id)

    owned_posts = select(Post.id).where(Post.user_id == user_id)
    await post_service.delete_posts(db, owned_posts)

    owned_comments = select(Comment.id).where(Comment.user_id == user_id)
    await upvote_service.delete_upvotes_for(db, Comment, owned_comments)
    await db.execute(
        delete(saved_list_comments).where(saved_list_comments.c.comment_id.in_(owned_comments))
    )
    await db.execute(
        delete(Comment)
        .where(Comment.user_id == user_id)
        .execution_options(synchronize_session=False)
    )

    await _delete_saved_list(db, user_id)
    await db.execute(
        delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
    )


async def moderate_delete(db: AsyncSession, user_id: int) -> bool:
    """
    Admin deletion: archive the user's posts and flag their comments.

    Returns False when the user does not exist.
    """
    exists = await db.scalar(select(User.id).where(User.id == user_id))
    if exists is None:
        return False

    await upvote_service.withdraw_user_upvotes(db, user_id)
    await db.execute(
        update(Post)
        .where(Post.user_id == user_id)
        .values(content=DELETED_POST_CONTENT, state="archived", user_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Comment)
        .where(Comment.user_id == user_id)
        .values(content=DELETED_COMMENT_CONTENT, is_deleted=True, user_id=None)
        .execution_options(synchronize_session=False)
    )
    await _delete_saved_list(db, user_id)
    await db.execute(
        delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
    )
    return True
