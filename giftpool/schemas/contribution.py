from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from giftpool.models.models import ContributionTypeEnum


class ContributionUpsert(BaseModel):
    contribution_type: ContributionTypeEnum
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12)
    total_price: Decimal | None = Field(default=None, gt=0, max_digits=12)
    note: str | None = Field(default=None, max_length=500)
    has_advanced: bool | None = None

    @field_validator("note")
    @classmethod
    def _note_strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class ContributionPublic(BaseModel):
    id: int
    item_id: int
    user_id: int
    user_name: str | None = None
    user_email: str | None = None
    amount: Decimal
    total_price: Decimal | None
    contribution_type: ContributionTypeEnum
    has_advanced: bool = False
    note: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContributionWithItem(ContributionPublic):
    item_title: str
    list_id: int
    list_title: str
    event_id: int
    event_title: str
