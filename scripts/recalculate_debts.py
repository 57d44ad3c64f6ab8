"""
Recompute persisted debts for every gift that has an advancer.

Dry-run by default: prints the current debts and the debts each advancer
implies. Pass --execute to run the debt deriver for real.
"""
import argparse
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from giftpool.core.logger import configure_logging
from giftpool.db import session as db_session
from giftpool.models.models import Contribution, Debt, Item
from giftpool.services.debts import build_shares, recompute_debts
from giftpool.services.strategies import AdvancerReimbursementStrategy

logger = logging.getLogger("giftpool.scripts")


async def run(execute: bool, item_id: int | None = None) -> int:
    """Returns the number of items whose debts were (or would be) recomputed."""
    async with db_session.get_db() as db:
        debts_result = await db.execute(
            select(Debt).options(
                selectinload(Debt.item),
                selectinload(Debt.from_user),
                selectinload(Debt.to_user),
            )
        )
        existing = debts_result.scalars().all()
        print(f"current debts: {len(existing)}")
        for debt in existing:
            state = "settled" if debt.is_settled else "open"
            print(f"  - {debt.from_user.name} -> {debt.to_user.name}: {debt.amount} ({debt.item.title}) {state}")

        query = (
            select(Item)
            .options(selectinload(Item.contributions).selectinload(Contribution.user))
            .where(Item.advancer_user_id.is_not(None))
            .order_by(Item.id)
        )
        if item_id is not None:
            query = query.where(Item.id == item_id)
        items = (await db.execute(query)).scalars().all()
        print(f"items with an advancer: {len(items)}")

        strategy = AdvancerReimbursementStrategy()
        for item in items:
            contributions = sorted(item.contributions, key=lambda c: (c.created_at, c.id))
            print(f"\nitem {item.id} \"{item.title}\"")
            for debtor, creditor, amount in strategy.compute_item(build_shares(item, contributions)):
                print(f"  {debtor.user_name} -> {creditor.user_name}: {amount}")

        if not execute:
            print("\ndry-run: nothing changed, pass --execute to apply")
            return len(items)

        for item in items:
            await recompute_debts(db, item.id)
        logger.info("Recomputed debts for %d item(s)", len(items))
        print(f"\nrecomputed debts for {len(items)} item(s)")
        return len(items)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--execute", action="store_true", help="apply changes instead of a dry run")
    parser.add_argument("--item-id", type=int, default=None)
    args = parser.parse_args()
    configure_logging()
    asyncio.run(_main(args.execute, args.item_id))


async def _main(execute: bool, item_id: int | None) -> None:
    try:
        await run(execute, item_id)
    finally:
        await db_session.dispose_engine()


if __name__ == "__main__":
    main()
