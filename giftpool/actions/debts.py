from giftpool.actions.base import run_action
from giftpool.schemas.debt import DebtPublic
from giftpool.schemas.result import ActionFailure, ActionSuccess
from giftpool.services import debts as debt_service


async def get_my_debts(user_id: int, event_id: int | None = None) -> ActionSuccess[list[DebtPublic]] | ActionFailure:
    async def operation(db):
        return await debt_service.get_my_debts(db, user_id, event_id)

    return await run_action("get_my_debts", operation)


async def settle_debt(user_id: int, debt_id: int) -> ActionSuccess[DebtPublic] | ActionFailure:
    async def operation(db):
        return await debt_service.settle_debt(db, debt_id, user_id)

    return await run_action("settle_debt", operation)
