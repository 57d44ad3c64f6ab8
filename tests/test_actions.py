"""
Action boundary: every outcome comes back as a success/failure envelope.
"""
from decimal import Decimal

from giftpool.actions import contributions as contribution_actions
from giftpool.actions import debts as debt_actions
from giftpool.actions.base import GENERIC_ERROR
from giftpool.services import contributions as contribution_service


class TestContributionActions:
    async def test_upsert_success(self, world):
        result = await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=20, total_price=50, has_advanced=True
        )

        assert result.success is True
        assert result.data.amount == Decimal("20")
        assert result.data.has_advanced is True
        assert result.data.user_name == "Alice"

    async def test_overfunded_is_reported(self, world):
        await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=50, total_price=50
        )

        result = await contribution_actions.upsert_contribution(world.bob.id, world.item.id, "PARTIAL")

        assert result.success is False
        assert result.error == "This gift is already fully funded"

    async def test_full_takeover_conflict_is_reported(self, world):
        await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=10, total_price=50
        )

        result = await contribution_actions.upsert_contribution(
            world.bob.id, world.item.id, "FULL", total_price=50
        )

        assert result.success is False
        assert "bought in full" in result.error

    async def test_invalid_input_is_reported(self, world):
        result = await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=-1, total_price=50
        )

        assert result.success is False
        assert result.error.startswith("amount:")

    async def test_unknown_contribution_type_is_reported(self, world):
        result = await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "HALF", amount=1, total_price=50
        )

        assert result.success is False
        assert result.error.startswith("contribution_type:")

    async def test_missing_item_is_reported(self, world):
        result = await contribution_actions.delete_contribution(world.alice.id, 9999)

        assert result.success is False
        assert result.error == "Item not found"

    async def test_unexpected_errors_are_hidden(self, world, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("connection string leaked: postgres://secret")

        monkeypatch.setattr(contribution_service, "get_user_contributions", explode)

        result = await contribution_actions.get_user_contributions(world.alice.id)

        assert result.success is False
        assert result.error == GENERIC_ERROR
        assert "secret" not in result.error

    async def test_delete_and_list(self, world):
        await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=10, total_price=50
        )
        await contribution_actions.upsert_contribution(
            world.alice.id, world.second_item.id, "FULL", total_price=30
        )

        deleted = await contribution_actions.delete_contribution(world.alice.id, world.item.id)
        listed = await contribution_actions.get_user_contributions(world.alice.id)

        assert deleted.success is True
        assert deleted.data is None
        assert [c.item_title for c in listed.data] == ["Headphones"]

    async def test_preview_strategies(self, world):
        await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=20, total_price=50, has_advanced=True
        )
        await contribution_actions.upsert_contribution(world.bob.id, world.item.id, "PARTIAL")

        equal_split = await contribution_actions.preview_debts(world.bob.id)
        advancer = await contribution_actions.preview_debts(world.bob.id, strategy="advancer")
        legacy = await contribution_actions.preview_debts(world.bob.id, strategy="legacy_pairwise")
        unknown = await contribution_actions.preview_debts(world.bob.id, strategy="lottery")

        assert [(d.from_user, d.to_user, d.amount) for d in equal_split.data.debts] == [
            ("Alice", "Bob", Decimal("5.00"))
        ]
        assert [(d.from_user, d.to_user, d.amount) for d in advancer.data.debts] == [
            ("Bob", "Alice", Decimal("30.00"))
        ]
        assert legacy.data.debts == []
        assert legacy.data.strategy == "legacy_pairwise"
        assert unknown.success is False
        assert unknown.error == "Unknown debt strategy: lottery"


class TestDebtActions:
    async def _debt_id(self, world) -> int:
        await contribution_actions.upsert_contribution(
            world.alice.id, world.item.id, "PARTIAL", amount=20, total_price=50, has_advanced=True
        )
        await contribution_actions.upsert_contribution(world.bob.id, world.item.id, "PARTIAL")
        result = await debt_actions.get_my_debts(world.bob.id)
        assert result.success is True
        return result.data[0].id

    async def test_settle_by_party(self, world):
        debt_id = await self._debt_id(world)

        result = await debt_actions.settle_debt(world.bob.id, debt_id)

        assert result.success is True
        assert result.data.is_settled is True

    async def test_settle_by_outsider_is_refused(self, world):
        debt_id = await self._debt_id(world)

        result = await debt_actions.settle_debt(world.carol.id, debt_id)

        assert result.success is False
        assert result.error == "You are not allowed to settle this debt"

    async def test_event_filter(self, world):
        await self._debt_id(world)

        christmas = await debt_actions.get_my_debts(world.alice.id, world.christmas.id)
        birthday = await debt_actions.get_my_debts(world.alice.id, world.birthday.id)

        assert len(christmas.data) == 1
        assert birthday.data == []
