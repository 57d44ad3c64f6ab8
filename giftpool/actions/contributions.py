from decimal import Decimal

from giftpool.actions.base import run_action
from giftpool.schemas.contribution import ContributionPublic, ContributionUpsert, ContributionWithItem
from giftpool.schemas.debt import DebtPreview
from giftpool.schemas.result import ActionFailure, ActionSuccess
from giftpool.services import contributions as contribution_service
from giftpool.services.strategies import get_strategy


async def upsert_contribution(
    user_id: int,
    item_id: int,
    contribution_type: str,
    amount: Decimal | float | None = None,
    total_price: Decimal | float | None = None,
    note: str | None = None,
    has_advanced: bool | None = None,
) -> ActionSuccess[ContributionPublic] | ActionFailure:
    async def operation(db):
        payload = ContributionUpsert(
            contribution_type=contribution_type,
            amount=amount,
            total_price=total_price,
            note=note,
            has_advanced=has_advanced,
        )
        return await contribution_service.upsert_contribution(db, item_id, user_id, payload)

    return await run_action("upsert_contribution", operation)


async def delete_contribution(user_id: int, item_id: int) -> ActionSuccess[None] | ActionFailure:
    async def operation(db):
        await contribution_service.delete_by_item_id(db, item_id, user_id)

    return await run_action("delete_contribution", operation)


async def get_user_contributions(user_id: int) -> ActionSuccess[list[ContributionWithItem]] | ActionFailure:
    async def operation(db):
        return await contribution_service.get_user_contributions(db, user_id)

    return await run_action("get_user_contributions", operation)


async def preview_debts(user_id: int, strategy: str = "equal_split") -> ActionSuccess[DebtPreview] | ActionFailure:
    """Display-only debts under the chosen strategy.

    ``equal_split``, ``legacy_pairwise`` (the historical debts page) or ``advancer``.
    """
    async def operation(db):
        return await contribution_service.preview_debts(db, user_id, get_strategy(strategy))

    return await run_action("preview_debts", operation)
