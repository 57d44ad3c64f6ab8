from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class DebtPublic(BaseModel):
    id: int
    item_id: int
    item_title: str | None = None
    event_id: int | None = None
    from_user_id: int
    from_user_name: str | None = None
    to_user_id: int
    to_user_name: str | None = None
    amount: Decimal
    is_settled: bool
    settled_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ContributionShare(BaseModel):
    """One contributor's stake in one item, as fed to a debt strategy."""

    user_id: int
    user_name: str
    amount: Decimal
    item_id: int
    item_title: str
    has_advanced: bool = False


class DebtItemRef(BaseModel):
    item_id: int
    item_title: str


class PairwiseDebt(BaseModel):
    """Computed, unpersisted obligation: ``from_user`` owes ``to_user``."""

    from_user_id: int
    from_user: str
    to_user_id: int
    to_user: str
    amount: Decimal
    items: list[DebtItemRef] = Field(default_factory=list)


class DebtPreview(BaseModel):
    strategy: str
    debts: list[PairwiseDebt]
    contributor_count: int
