from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as StrEnumBase

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftpool.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContributionTypeEnum(str, StrEnumBase):
    FULL = "FULL"
    PARTIAL = "PARTIAL"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    contributions: Mapped[list["Contribution"]] = relationship(back_populates="user")


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    lists: Mapped[list["GiftList"]] = relationship(back_populates="event")


class GiftList(Base):
    __tablename__ = "gift_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    owner: Mapped[User] = relationship()
    event: Mapped[Event] = relationship(back_populates="lists")
    items: Mapped[list["Item"]] = relationship(back_populates="gift_list", cascade="all, delete-orphan")


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    list_id: Mapped[int] = mapped_column(ForeignKey("gift_lists.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # The one contributor who paid the full price upfront; others reimburse them.
    advancer_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    # Incremented on every write to this item's contribution set.
    contribution_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    gift_list: Mapped[GiftList] = relationship(back_populates="items")
    advancer: Mapped[User | None] = relationship(foreign_keys=[advancer_user_id])
    contributions: Mapped[list["Contribution"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
    )
    debts: Mapped[list["Debt"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
    )


class Contribution(Base):
    __tablename__ = "contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    contribution_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ContributionTypeEnum.PARTIAL.value
    )
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    item: Mapped[Item] = relationship(back_populates="contributions")
    user: Mapped[User] = relationship(back_populates="contributions")

    __table_args__ = (
        UniqueConstraint("item_id", "user_id", name="uq_contributions_item_user"),
        CheckConstraint("amount >= 0", name="ck_contributions_amount_non_negative"),
    )


class Debt(Base):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    from_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    to_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    item: Mapped[Item] = relationship(back_populates="debts")
    from_user: Mapped[User] = relationship(foreign_keys=[from_user_id])
    to_user: Mapped[User] = relationship(foreign_keys=[to_user_id])

    __table_args__ = (
        # One open debt per pair; settled rows for the same pair accumulate.
        Index(
            "uq_debts_item_from_to_open",
            "item_id",
            "from_user_id",
            "to_user_id",
            unique=True,
            sqlite_where=text("is_settled = 0"),
            postgresql_where=text("NOT is_settled"),
        ),
        CheckConstraint("amount >= 0", name="ck_debts_amount_non_negative"),
    )
