"""
Post service — business logic for the Post aggregate.

Design notes
------------
- Relationships are declared ``lazy="noload"``; every read goes through
  :func:`_post_options` so the author, tags and upvoters arrive in one
  joined query plus two ``selectinload`` round trips.
- Tags live in ``post_tags`` one row per occurrence.  Popular tags are an
  SQL ``GROUP BY`` over that table, ordered by count and then by first
  appearance (lowest row id), computed on every request.
- Deleting a post removes its comments, every upvote attached to the post
  or its comments, and saved-list references, in that order.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
from datetime import datetime, timezone

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from rebbit.models import Comment, Post, PostTag, saved_list_comments, saved_list_posts
from rebbit.schemas import PostCreate, PostUpdate
from rebbit.services import upvote_service

POPULAR_TAG_LIMIT = 10

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def author_to_dict(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "pseudo": user.pseudo}


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "post": comment.post_id,
        "user": author_to_dict(comment.user) if comment.user else comment.user_id,
        "content": comment.content,
        "date_created": isoformat(comment.date_created),
        "date_edited": isoformat(comment.date_edited),
        "upvotes": comment.upvotes,
        "upvotedBy": [u.user_id for u in comment.upvote_links],
        "isDeleted": comment.is_deleted,
    }


def post_to_dict(post: Post) -> dict:
    """Serialise a Post ORM instance to a plain dict (list view)."""
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "tags": post.tags,
        "state": post.state,
        "user": author_to_dict(post.user) if post.user else post.user_id,
        "date_created": isoformat(post.date_created),
        "date_edited": isoformat(post.date_edited),
        "upvotes": post.upvotes,
        "upvotedBy": [u.user_id for u in post.upvote_links],
        "images": list(post.images or []),
    }


def post_detail_to_dict(post: Post) -> dict:
    """Serialise a Post with its visible comments (detail view)."""
    data = post_to_dict(post)
    data["comments"] = [comment_to_dict(c) for c in post.comments if not c.is_deleted]
    return data


def _post_options(with_comments: bool = False) -> list:
    options = [
        joinedload(Post.user),
        selectinload(Post.tag_links),
        selectinload(Post.upvote_links),
    ]
    if with_comments:
        comments = selectinload(Post.comments)
        options.append(comments.joinedload(Comment.user))
        options.append(comments.selectinload(Comment.upvote_links))
    return options


async def load_post(db: AsyncSession, post_id: int, with_comments: bool = False) -> Post | None:
    """Fetch a post with its relationships, refreshing any stale identity-map copy."""
    q = (
        select(Post)
        .where(Post.id == post_id)
        .options(*_post_options(with_comments))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _list_posts(db: AsyncSession, *criteria) -> list[dict]:
    q = (
        select(Post)
        .options(*_post_options())
        .order_by(Post.date_created.desc(), Post.id.desc())
    )
    if criteria:
        q = q.where(*criteria)
    result = await db.execute(q)
    return [post_to_dict(p) for p in result.unique().scalars().all()]


def _tag_links(tags: list[str]) -> list[PostTag]:
    return [PostTag(name=name) for name in tags]


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(db: AsyncSession) -> list[dict]:
    """Return every post, newest first, with its author populated."""
    return await _list_posts(db)


async def get_posts_by_user(db: AsyncSession, user_id: int) -> list[dict]:
    return await _list_posts(db, Post.user_id == user_id)


async def get_posts_by_tag(db: AsyncSession, tag: str) -> list[dict]:
    tagged = select(PostTag.post_id).where(PostTag.name == tag)
    return await _list_posts(db, Post.id.in_(tagged))


async def get_popular_tags(db: AsyncSession, limit: int = POPULAR_TAG_LIMIT) -> list[dict]:
    """
    Return the *limit* most used tags as ``{"name", "count"}`` dicts.

    Ties keep the order in which the tags were first used.
    """
    count = func.count(PostTag.id)
    q = (
        select(PostTag.name, count.label("count"))
        .group_by(PostTag.name)
        .order_by(desc(count), func.min(PostTag.id))
        .limit(limit)
    )
    result = await db.execute(q)
    return [{"name": name, "count": n} for name, n in result.all()]


async def get_post(db: AsyncSession, post_id: int) -> dict | None:
    post = await load_post(db, post_id, with_comments=True)
    if post is None:
        return None
    return post_detail_to_dict(post)


async def get_post_owner(db: AsyncSession, post_id: int) -> tuple[bool, int | None]:
    """Return ``(exists, owner_id)`` for the ownership gate."""
    result = await db.execute(select(Post.user_id).where(Post.id == post_id))
    row = result.first()
    if row is None:
        return False, None
    return True, row[0]


async def create_post(db: AsyncSession, user_id: int, data: PostCreate) -> dict:
    post = Post(
        title=data.title,
        content=data.content,
        state=data.state,
        images=list(data.images),
        user_id=user_id,
    )
    post.tag_links = _tag_links(data.tags)
    db.add(post)
    await db.flush()

    post = await load_post(db, post.id)
    return post_to_dict(post)


async def update_post(db: AsyncSession, post_id: int, data: PostUpdate) -> dict | None:
    post = await load_post(db, post_id)
    if post is None:
        return None

    post.title = data.title
    post.content = data.content
    post.state = data.state
    if data.images is not None:
        post.images = list(data.images)
    post.tag_links = _tag_links(data.tags)
    post.date_edited = datetime.now(timezone.utc)
    await db.flush()

    post = await load_post(db, post_id)
    return post_to_dict(post)


async def set_state(db: AsyncSession, post_id: int, state: str) -> dict | None:
    post = await load_post(db, post_id)
    if post is None:
        return None
    post.state = state
    post.date_edited = datetime.now(timezone.utc)
    await db.flush()
    return post_to_dict(post)


async def toggle_upvote(db: AsyncSession, post_id: int, user_id: int) -> dict | None:
    exists, _ = await get_post_owner(db, post_id)
    if not exists:
        return None
    await upvote_service.toggle_upvote(db, Post, post_id, user_id)
    post = await load_post(db, post_id)
    return post_to_dict(post)


async def delete_posts(db: AsyncSession, post_ids) -> None:
    """Hard-delete posts with their comments, upvotes and saved-list references."""
    comment_ids = select(Comment.id).where(Comment.post_id.in_(post_ids))
    await upvote_service.delete_upvotes_for(db, Comment, comment_ids)
    await upvote_service.delete_upvotes_for(db, Post, post_ids)
    await db.execute(
        delete(saved_list_comments).where(saved_list_comments.c.comment_id.in_(comment_ids))
    )
    await db.execute(delete(saved_list_posts).where(saved_list_posts.c.post_id.in_(post_ids)))
    await db.execute(
        delete(Comment)
        .where(Comment.post_id.in_(post_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(PostTag)
        .where(PostTag.post_id.in_(post_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Post)
        .where(Post.id.in_(post_ids))
        .execution_options(synchronize_session=False)
    )


async def delete_post(db: AsyncSession, post_id: int) -> None:
    await delete_posts(db, [post_id])
