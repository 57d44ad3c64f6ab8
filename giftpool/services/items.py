import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from giftpool.core.errors import ConflictError, NotFoundError
from giftpool.models.models import Item

logger = logging.getLogger("giftpool.items")


async def lock_item(db: AsyncSession, item_id: int) -> Item:
    """Load an item for a contribution-set write.

    The row is selected FOR UPDATE, which serializes writers on PostgreSQL;
    SQLite ignores the clause and relies on the version token instead.
    """
    result = await db.execute(
        select(Item)
        .where(Item.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise NotFoundError("Item not found")
    return item


async def bump_contribution_version(db: AsyncSession, item: Item) -> int:
    """Advance the item's version token, failing if another writer got there first."""
    seen = item.contribution_version
    result = await db.execute(
        update(Item)
        .where(Item.id == item.id, Item.contribution_version == seen)
        .values(contribution_version=seen + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "Concurrent contribution write item_id=%s seen_version=%s",
            item.id,
            seen,
        )
        raise ConflictError("This gift was modified concurrently, please retry")
    set_committed_value(item, "contribution_version", seen + 1)
    return item.contribution_version
