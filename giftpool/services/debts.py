"""
Debt deriver and debt ledger.

Debts are derived state: the deriver rebuilds an item's debts from its
contributions whenever the advancer's side of the item changes, and the only
hand-applied mutation is settlement, which is one-way.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal
import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from giftpool.core.audit import audit_debts_recomputed, audit_debt_settled
from giftpool.core.config import settings
from giftpool.core.errors import AuthorizationError, NotFoundError
from giftpool.core.money import ZERO, to_money
from giftpool.models.models import Contribution, Debt, GiftList, Item
from giftpool.schemas.debt import ContributionShare, DebtPublic
from giftpool.services.items import lock_item
from giftpool.services.strategies import AdvancerReimbursementStrategy

logger = logging.getLogger("giftpool.debts")


def build_shares(item: Item, contributions: Sequence[Contribution]) -> list[ContributionShare]:
    """Describe an item's contributions for a debt strategy.

    ``contributions`` must have ``user`` loaded.
    """
    return [
        ContributionShare(
            user_id=c.user_id,
            user_name=c.user.name,
            amount=c.amount,
            item_id=item.id,
            item_title=item.title,
            has_advanced=item.advancer_user_id == c.user_id,
        )
        for c in contributions
    ]


def serialize_debt(debt: Debt) -> DebtPublic:
    item = debt.item
    return DebtPublic(
        id=debt.id,
        item_id=debt.item_id,
        item_title=item.title if item else None,
        event_id=item.gift_list.event_id if item and item.gift_list else None,
        from_user_id=debt.from_user_id,
        from_user_name=debt.from_user.name if debt.from_user else None,
        to_user_id=debt.to_user_id,
        to_user_name=debt.to_user.name if debt.to_user else None,
        amount=debt.amount,
        is_settled=debt.is_settled,
        settled_at=debt.settled_at,
        created_at=debt.created_at,
    )


def _debt_load_options():
    return (
        selectinload(Debt.item).selectinload(Item.gift_list),
        selectinload(Debt.from_user),
        selectinload(Debt.to_user),
    )


async def _load_item_contributions(db: AsyncSession, item_id: int) -> list[Contribution]:
    result = await db.execute(
        select(Contribution)
        .options(selectinload(Contribution.user))
        .where(Contribution.item_id == item_id)
        .order_by(Contribution.created_at, Contribution.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _reconcile(
    db: AsyncSession,
    item_id: int,
    existing: Sequence[Debt],
    desired: dict[tuple[int, int], Decimal],
) -> tuple[int, int, int]:
    """Diff the item's debts against ``desired``.

    Settled rows are never touched. Whatever a pair still owes on top of what it
    already settled lives in a single open row, which is created, resized or
    removed as needed.
    """
    created = updated = removed = 0
    settled: dict[tuple[int, int], Decimal] = {}
    open_debts: dict[tuple[int, int], Debt] = {}
    for debt in existing:
        key = (debt.from_user_id, debt.to_user_id)
        if debt.is_settled:
            settled[key] = settled.get(key, ZERO) + debt.amount
        else:
            open_debts[key] = debt

    for key in sorted(desired.keys() | open_debts.keys()):
        outstanding = to_money(desired.get(key, ZERO) - settled.get(key, ZERO))
        debt = open_debts.get(key)
        if outstanding <= ZERO:
            if debt is not None:
                await db.delete(debt)
                removed += 1
        elif debt is None:
            from_user_id, to_user_id = key
            db.add(
                Debt(
                    item_id=item_id,
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                    amount=outstanding,
                    is_settled=False,
                )
            )
            created += 1
        elif debt.amount != outstanding:
            debt.amount = outstanding
            updated += 1
    return created, updated, removed


async def _replace(
    db: AsyncSession,
    item_id: int,
    existing: Sequence[Debt],
    desired: dict[tuple[int, int], Decimal],
) -> tuple[int, int, int]:
    await db.execute(delete(Debt).where(Debt.item_id == item_id))
    for (from_user_id, to_user_id), amount in desired.items():
        db.add(
            Debt(
                item_id=item_id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                amount=amount,
                is_settled=False,
            )
        )
    return len(desired), 0, len(existing)


async def recompute_debts(db: AsyncSession, item_id: int, mode: str | None = None) -> None:
    """Rebuild the debts of one item from its advancer and contributions.

    Items without an advancer are left untouched. All changes for the item
    commit in a single transaction.
    """
    mode = mode or settings.debt_recompute_mode
    try:
        item = await lock_item(db, item_id)
        contributions = await _load_item_contributions(db, item_id)
        shares = build_shares(item, contributions)
        if not any(share.has_advanced for share in shares):
            logger.debug("recompute_debts: item_id=%s has no advancer, skipping", item_id)
            await db.commit()
            return

        desired = {
            (debtor.user_id, creditor.user_id): amount
            for debtor, creditor, amount in AdvancerReimbursementStrategy().compute_item(shares)
        }
        existing_result = await db.execute(
            select(Debt)
            .where(Debt.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        existing = list(existing_result.scalars().all())

        if mode == "replace":
            created, updated, removed = await _replace(db, item_id, existing, desired)
        else:
            created, updated, removed = await _reconcile(db, item_id, existing, desired)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Debts recomputed item_id=%s mode=%s created=%s updated=%s removed=%s",
        item_id,
        mode,
        created,
        updated,
        removed,
    )
    audit_debts_recomputed(item_id, created, updated, removed, mode)


async def void_unsettled_debts(db: AsyncSession, item_id: int) -> int:
    """Remove an item's open debts, e.g. once its advancer has left."""
    try:
        result = await db.execute(
            delete(Debt).where(Debt.item_id == item_id, Debt.is_settled.is_(False))
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Unsettled debts voided item_id=%s count=%s", item_id, result.rowcount)
    return result.rowcount


async def get_my_debts(db: AsyncSession, user_id: int, event_id: int | None = None) -> list[DebtPublic]:
    """Debts the user owes or is owed, optionally limited to one event."""
    query = (
        select(Debt)
        .options(*_debt_load_options())
        .where(or_(Debt.from_user_id == user_id, Debt.to_user_id == user_id))
        .order_by(Debt.created_at.desc(), Debt.id.desc())
        .execution_options(populate_existing=True)
    )
    if event_id is not None:
        query = (
            query.join(Item, Debt.item_id == Item.id)
            .join(GiftList, Item.list_id == GiftList.id)
            .where(GiftList.event_id == event_id)
        )
    result = await db.execute(query)
    return [serialize_debt(debt) for debt in result.scalars().all()]


async def settle_debt(db: AsyncSession, debt_id: int, user_id: int) -> DebtPublic:
    """Mark a debt as settled. Only its debtor or creditor may do so."""
    result = await db.execute(
        select(Debt)
        .options(*_debt_load_options())
        .where(Debt.id == debt_id)
        .execution_options(populate_existing=True)
    )
    debt = result.scalar_one_or_none()
    if not debt:
        raise NotFoundError("Debt not found")

    if user_id not in (debt.from_user_id, debt.to_user_id):
        logger.info("settle_debt: user_id=%s is not a party to debt_id=%s", user_id, debt_id)
        raise AuthorizationError("You are not allowed to settle this debt")

    if debt.is_settled:
        return serialize_debt(debt)

    try:
        debt.is_settled = True
        debt.settled_at = datetime.now(timezone.utc)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    audit_debt_settled(user_id, debt.id, debt.item_id, debt.amount)
    return serialize_debt(debt)
