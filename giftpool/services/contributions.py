from decimal import Decimal
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from giftpool.core.audit import AuditAction, audit_contribution_action, audit_log
from giftpool.core.config import settings
from giftpool.core.errors import ConflictError, OverfundedError, ValidationError
from giftpool.core.money import ZERO, format_money, to_money
from giftpool.models.models import Contribution, ContributionTypeEnum, GiftList, Item, User
from giftpool.schemas.contribution import ContributionPublic, ContributionUpsert, ContributionWithItem
from giftpool.schemas.debt import DebtPreview
from giftpool.services.debts import build_shares, recompute_debts, void_unsettled_debts
from giftpool.services.items import bump_contribution_version, lock_item
from giftpool.services.strategies import DebtStrategy

logger = logging.getLogger("giftpool.contributions")


def _serialize_contribution(
    contribution: Contribution,
    user: User | None,
    advancer_user_id: int | None,
) -> ContributionPublic:
    return ContributionPublic(
        id=contribution.id,
        item_id=contribution.item_id,
        user_id=contribution.user_id,
        user_name=user.name if user else None,
        user_email=user.email if user else None,
        amount=contribution.amount,
        total_price=contribution.total_price,
        contribution_type=contribution.contribution_type,
        has_advanced=advancer_user_id == contribution.user_id,
        note=contribution.note,
        created_at=contribution.created_at,
        updated_at=contribution.updated_at,
    )


def _resolve_total_price(
    requested: Decimal | None,
    established: Decimal | None,
    others: list[Contribution],
) -> Decimal | None:
    if requested is None:
        return established
    requested = to_money(requested)
    if established is None or not others:
        # Nobody else depends on the price yet, so the caller may (re)set it.
        return requested
    if abs(requested - established) > settings.funding_tolerance:
        raise ValidationError(
            f"The total price of this gift is already set to {format_money(established)}"
        )
    return established


def _apply_advancer(item: Item, user_id: int, payload: ContributionUpsert) -> AuditAction | None:
    """Move the item's advancer according to the upsert; the only writer of ``advancer_user_id``."""
    if payload.contribution_type == ContributionTypeEnum.FULL:
        if item.advancer_user_id == user_id:
            item.advancer_user_id = None
            return AuditAction.ADVANCER_CLEAR
        return None

    if payload.has_advanced is True:
        if item.advancer_user_id not in (None, user_id):
            raise ConflictError("Another participant has already advanced the payment for this gift")
        if item.advancer_user_id != user_id:
            item.advancer_user_id = user_id
            return AuditAction.ADVANCER_ASSIGN
    elif payload.has_advanced is False and item.advancer_user_id == user_id:
        item.advancer_user_id = None
        return AuditAction.ADVANCER_CLEAR
    return None


async def _sync_debts(
    db: AsyncSession,
    item_id: int,
    advancer_user_id: int | None,
    advancer_cleared: bool,
) -> None:
    """Bring the item's debts in line with a committed contribution write.

    Best-effort: the contribution stays saved if this fails, and the debts catch
    up on the item's next write or a run of ``scripts/recalculate_debts.py``.
    """
    try:
        if advancer_user_id is not None:
            await recompute_debts(db, item_id)
        elif advancer_cleared:
            await void_unsettled_debts(db, item_id)
    except Exception:
        logger.exception("Debt update failed after contribution write item_id=%s", item_id)
        audit_log(AuditAction.DEBTS_RECOMPUTE, details={"item_id": item_id}, success=False)


async def upsert_contribution(
    db: AsyncSession,
    item_id: int,
    user_id: int,
    payload: ContributionUpsert,
) -> ContributionPublic:
    """Create or update ``user_id``'s contribution to an item.

    Validation and write share one transaction per item: the item row is
    locked, and its contribution version is bumped so a concurrent writer
    that validated against the same state fails with ``ConflictError``.
    Once committed, the item's debts are recomputed if it has an advancer, or
    their open part voided if this write took the advancer flag away. A debt
    update failure is logged and does not fail the call.
    """
    try:
        item = await lock_item(db, item_id)
        existing_result = await db.execute(
            select(Contribution)
            .where(Contribution.item_id == item_id)
            .order_by(Contribution.created_at, Contribution.id)
            .execution_options(populate_existing=True)
        )
        existing = list(existing_result.scalars().all())

        own = next((c for c in existing if c.user_id == user_id), None)
        others = [c for c in existing if c.user_id != user_id]
        others_total = sum((c.amount for c in others), ZERO)
        established_price = next(
            (c.total_price for c in existing if c.total_price is not None), None
        )
        total_price = _resolve_total_price(payload.total_price, established_price, others)

        if payload.contribution_type == ContributionTypeEnum.FULL:
            if others:
                raise ConflictError(
                    "Other participants already contribute to this gift, it cannot be bought in full"
                )
            if total_price is None:
                raise ValidationError("Total price is required to buy a gift in full")
            amount = total_price
        else:
            if any(c.contribution_type == ContributionTypeEnum.FULL.value for c in others):
                raise ConflictError("This gift is already being bought in full by another participant")
            if total_price is None:
                raise ValidationError("Total price is required for the first contribution")
            if payload.amount is None:
                amount = total_price - others_total
                if amount <= ZERO:
                    raise OverfundedError("This gift is already fully funded")
            else:
                amount = to_money(payload.amount)
                if amount <= ZERO:
                    raise ValidationError("Amount must be positive")

        if others_total + amount > total_price + settings.funding_tolerance:
            raise OverfundedError(
                f"Total contributions cannot exceed {format_money(total_price)}"
            )

        advancer_change = _apply_advancer(item, user_id, payload)

        if own is None:
            contribution = Contribution(
                item_id=item_id,
                user_id=user_id,
                amount=amount,
                total_price=total_price,
                contribution_type=payload.contribution_type.value,
                note=payload.note,
            )
            db.add(contribution)
        else:
            contribution = own
            contribution.amount = amount
            contribution.total_price = total_price
            contribution.contribution_type = payload.contribution_type.value
            contribution.note = payload.note

        await bump_contribution_version(db, item)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Contribution %s item_id=%s user_id=%s type=%s amount=%s total_price=%s",
        "updated" if own else "created",
        item_id,
        user_id,
        payload.contribution_type.value,
        amount,
        total_price,
    )
    audit_contribution_action(
        AuditAction.CONTRIBUTION_UPSERT,
        user_id=user_id,
        item_id=item_id,
        amount=amount,
        details={"type": payload.contribution_type.value, "total_price": total_price},
    )
    if advancer_change:
        audit_contribution_action(advancer_change, user_id=user_id, item_id=item_id)

    advancer_user_id = item.advancer_user_id
    await _sync_debts(
        db,
        item_id,
        advancer_user_id,
        advancer_cleared=advancer_change == AuditAction.ADVANCER_CLEAR,
    )

    await db.refresh(contribution)
    user = await db.get(User, user_id)
    return _serialize_contribution(contribution, user, advancer_user_id)


async def delete_by_item_id(db: AsyncSession, item_id: int, user_id: int) -> None:
    """Withdraw ``user_id``'s contribution to an item, if any.

    Existing debts are only revisited when ``recompute_debts_on_withdrawal``
    is enabled.
    """
    try:
        item = await lock_item(db, item_id)
        result = await db.execute(
            select(Contribution).where(
                Contribution.item_id == item_id,
                Contribution.user_id == user_id,
            )
        )
        contribution = result.scalar_one_or_none()
        if contribution is None:
            await db.commit()
            logger.info("No contribution to withdraw item_id=%s user_id=%s", item_id, user_id)
            return

        was_advancer = item.advancer_user_id == user_id
        if was_advancer:
            item.advancer_user_id = None
        amount = contribution.amount
        await db.delete(contribution)
        await bump_contribution_version(db, item)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Contribution withdrawn item_id=%s user_id=%s amount=%s was_advancer=%s",
        item_id,
        user_id,
        amount,
        was_advancer,
    )
    audit_contribution_action(
        AuditAction.CONTRIBUTION_WITHDRAW,
        user_id=user_id,
        item_id=item_id,
        amount=amount,
    )
    if was_advancer:
        audit_contribution_action(AuditAction.ADVANCER_CLEAR, user_id=user_id, item_id=item_id)

    if settings.recompute_debts_on_withdrawal:
        if was_advancer:
            await void_unsettled_debts(db, item_id)
        else:
            await recompute_debts(db, item_id)


async def get_user_contributions(db: AsyncSession, user_id: int) -> list[ContributionWithItem]:
    result = await db.execute(
        select(Contribution)
        .options(
            selectinload(Contribution.user),
            selectinload(Contribution.item)
            .selectinload(Item.gift_list)
            .selectinload(GiftList.event),
        )
        .where(Contribution.user_id == user_id)
        .order_by(Contribution.created_at.desc(), Contribution.id.desc())
    )
    contributions = []
    for c in result.scalars().all():
        public = _serialize_contribution(c, c.user, c.item.advancer_user_id)
        contributions.append(
            ContributionWithItem(
                **public.model_dump(),
                item_title=c.item.title,
                list_id=c.item.gift_list.id,
                list_title=c.item.gift_list.title,
                event_id=c.item.gift_list.event.id,
                event_title=c.item.gift_list.event.title,
            )
        )
    return contributions


async def preview_debts(db: AsyncSession, user_id: int, strategy: DebtStrategy) -> DebtPreview:
    """Compute, without persisting, the user's debts on every item they contribute to.

    All co-contributions on those items are fed to ``strategy``; only the
    resulting debts the user is a party to are returned.
    """
    shared_items = select(Contribution.item_id).where(Contribution.user_id == user_id)
    result = await db.execute(
        select(Contribution)
        .options(selectinload(Contribution.user), selectinload(Contribution.item))
        .where(Contribution.item_id.in_(shared_items))
        .order_by(Contribution.item_id, Contribution.created_at, Contribution.id)
    )

    by_item: dict[int, list[Contribution]] = {}
    for c in result.scalars().all():
        by_item.setdefault(c.item_id, []).append(c)

    shares = []
    for contributions in by_item.values():
        shares.extend(build_shares(contributions[0].item, contributions))

    debts = [
        debt
        for debt in strategy.compute(shares)
        if user_id in (debt.from_user_id, debt.to_user_id)
    ]
    return DebtPreview(
        strategy=strategy.name,
        debts=debts,
        contributor_count=len({share.user_id for share in shares}),
    )
