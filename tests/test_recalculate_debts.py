from decimal import Decimal

from sqlalchemy import func, select, update

from giftpool.models.models import Contribution, Debt, Item
from scripts import recalculate_debts


async def _seed_without_debts(db, world):
    """Contributions written directly, as left behind before debts were derived."""
    db.add_all([
        Contribution(
            item_id=world.item.id,
            user_id=world.alice.id,
            amount=Decimal("20"),
            total_price=Decimal("50"),
            contribution_type="PARTIAL",
        ),
        Contribution(
            item_id=world.item.id,
            user_id=world.bob.id,
            amount=Decimal("30"),
            total_price=Decimal("50"),
            contribution_type="PARTIAL",
        ),
    ])
    await db.execute(update(Item).where(Item.id == world.item.id).values(advancer_user_id=world.alice.id))
    await db.commit()


async def _debt_count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Debt.id)))
        return result.scalar_one()


class TestRecalculateDebts:
    async def test_dry_run_changes_nothing(self, db, world, session_factory, capsys):
        await _seed_without_debts(db, world)

        processed = await recalculate_debts.run(execute=False)

        assert processed == 1
        assert await _debt_count(session_factory) == 0
        out = capsys.readouterr().out
        assert "Bob -> Alice: 30.00" in out
        assert "dry-run" in out

    async def test_execute_creates_debts(self, db, world, session_factory):
        await _seed_without_debts(db, world)

        await recalculate_debts.run(execute=True)

        assert await _debt_count(session_factory) == 1

    async def test_item_filter(self, db, world, session_factory):
        await _seed_without_debts(db, world)

        processed = await recalculate_debts.run(execute=True, item_id=world.second_item.id)

        assert processed == 0
        assert await _debt_count(session_factory) == 0
