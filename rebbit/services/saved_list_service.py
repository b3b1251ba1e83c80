"""
Saved-list service — each user's personal list of posts, comments and tags.

Membership changes are toggles: saving an item already on the list removes
it.  Like upvotes, a toggle is a DELETE followed, when nothing was removed,
by an insert that ignores duplicate keys.
"""
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rebbit.database import insert_ignore
from rebbit.models import Comment, Post, SavedList, saved_list_comments, saved_list_posts

_MEMBERSHIP = {
    Post: (saved_list_posts, "post_id"),
    Comment: (saved_list_comments, "comment_id"),
}


def saved_list_to_dict(saved: SavedList) -> dict:
    return {
        "id": saved.id,
        "pseudo": saved.user_id,
        "posts": sorted(p.id for p in saved.posts),
        "comments": sorted(c.id for c in saved.comments),
        "tags": list(saved.tags or []),
    }


async def load_saved_list(db: AsyncSession, user_id: int) -> SavedList | None:
    q = (
        select(SavedList)
        .where(SavedList.user_id == user_id)
        .options(selectinload(SavedList.posts), selectinload(SavedList.comments))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def get_saved_list(db: AsyncSession, user_id: int) -> dict | None:
    saved = await load_saved_list(db, user_id)
    return saved_list_to_dict(saved) if saved else None


async def item_exists(db: AsyncSession, model, item_id: int) -> bool:
    return await db.scalar(select(model.id).where(model.id == item_id)) is not None


async def toggle_item(db: AsyncSession, user_id: int, model, item_id: int) -> dict | None:
    """
    Add or remove a post or comment on the user's list.

    Returns None when the user has no list.
    """
    list_id = await db.scalar(select(SavedList.id).where(SavedList.user_id == user_id))
    if list_id is None:
        return None

    table, column = _MEMBERSHIP[model]
    removed = await db.execute(
        delete(table).where(table.c.saved_list_id == list_id, table.c[column] == item_id)
    )
    if not removed.rowcount:
        await db.execute(insert_ignore(db, table).values(saved_list_id=list_id, **{column: item_id}))

    return await get_saved_list(db, user_id)


async def set_tags(db: AsyncSession, user_id: int, tags: list[str]) -> dict | None:
    saved = await load_saved_list(db, user_id)
    if saved is None:
        return None
    saved.tags = list(tags)
    await db.flush()
    return saved_list_to_dict(saved)
