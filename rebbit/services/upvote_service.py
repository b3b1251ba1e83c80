"""
Upvote service — the ``upvotedBy`` set of posts and comments.

Each upvote is one ``Upvote`` row, unique per (user, post) and per
(user, comment).  The denormalised ``upvotes`` counter on the target row is
only ever moved by an SQL-side ``upvotes ± 1`` and only when the matching
DELETE or insert-or-ignore actually touched a row, so the counter always
equals the number of upvote rows even when the same user fires several
toggles at once.
"""
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rebbit.database import insert_ignore
from rebbit.models import Comment, Post, Upvote

_TARGET_COLUMNS = {
    Post: Upvote.post_id,
    Comment: Upvote.comment_id,
}


async def _bump(db: AsyncSession, model, record_id: int, delta: int) -> None:
    await db.execute(
        update(model)
        .where(model.id == record_id)
        .values(upvotes=model.upvotes + delta)
        .execution_options(synchronize_session=False)
    )


async def add_upvote(db: AsyncSession, model, record_id: int, user_id: int) -> bool:
    """Record *user_id* as an upvoter; a no-op returning False when already present."""
    column = _TARGET_COLUMNS[model]
    result = await db.execute(
        insert_ignore(db, Upvote.__table__).values(user_id=user_id, **{column.key: record_id})
    )
    if not result.rowcount:
        return False
    await _bump(db, model, record_id, 1)
    return True


async def remove_upvote(db: AsyncSession, model, record_id: int, user_id: int) -> bool:
    """Withdraw *user_id*'s upvote; returns False when there was none."""
    column = _TARGET_COLUMNS[model]
    result = await db.execute(
        delete(Upvote)
        .where(Upvote.user_id == user_id, column == record_id)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return False
    await _bump(db, model, record_id, -1)
    return True


async def toggle_upvote(db: AsyncSession, model, record_id: int, user_id: int) -> bool:
    """
    Flip *user_id*'s upvote on the record.  Returns True when the user ends
    up among the upvoters.
    """
    if await remove_upvote(db, model, record_id, user_id):
        return False
    await add_upvote(db, model, record_id, user_id)
    return True


async def withdraw_user_upvotes(db: AsyncSession, user_id: int) -> None:
    """Drop every upvote cast by *user_id*, keeping counters in lockstep."""
    for model, column in _TARGET_COLUMNS.items():
        voted = select(column).where(Upvote.user_id == user_id, column.is_not(None))
        await db.execute(
            update(model)
            .where(model.id.in_(voted))
            .values(upvotes=model.upvotes - 1)
            .execution_options(synchronize_session=False)
        )
    await db.execute(
        delete(Upvote)
        .where(Upvote.user_id == user_id)
        .execution_options(synchronize_session=False)
    )


async def delete_upvotes_for(db: AsyncSession, model, record_ids) -> None:
    """Remove the upvote rows attached to the given posts or comments."""
    column = _TARGET_COLUMNS[model]
    await db.execute(
        delete(Upvote)
        .where(column.in_(record_ids))
        .execution_options(synchronize_session=False)
    )
