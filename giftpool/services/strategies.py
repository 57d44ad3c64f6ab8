"""
Debt strategies: turn per-item contribution shares into pairwise obligations.

The models coexist and are deliberately not reconciled with each other:

* ``AdvancerReimbursementStrategy`` - one contributor advanced the full price,
  every other contributor owes them exactly what they pledged. This is the
  model behind the persisted debt ledger.
* ``LegacyPairwiseStrategy`` - the equal-split heuristic of the historical
  debts page, behind ``calculate_debts``. Contributors below the even share
  are paired with each other.
* ``EqualSplitStrategy`` - the item's cost is split evenly between its
  contributors; whoever paid less than the even share owes whoever paid more.

Only the first is persisted; the others are computed on demand for display.
Callers pick one explicitly; the same contributions can yield different
obligations under each.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import ClassVar

from giftpool.core.errors import ValidationError
from giftpool.core.money import CENT, ZERO, to_money
from giftpool.schemas.debt import ContributionShare, DebtItemRef, PairwiseDebt


class DebtStrategy(ABC):
    name: ClassVar[str]

    @abstractmethod
    def compute_item(
        self, shares: Sequence[ContributionShare]
    ) -> list[tuple[ContributionShare, ContributionShare, Decimal]]:
        """Return ``(debtor, creditor, amount)`` triples for a single item."""

    def compute(self, contributions: Iterable[ContributionShare]) -> list[PairwiseDebt]:
        """Compute debts over a flat contribution list spanning any number of items.

        Obligations between the same two users are summed across items, and
        each contributing item is listed on the resulting debt.
        """
        by_item: dict[int, list[ContributionShare]] = {}
        for share in contributions:
            by_item.setdefault(share.item_id, []).append(share)

        debts: dict[tuple[int, int], PairwiseDebt] = {}
        for item_id, shares in by_item.items():
            for debtor, creditor, amount in self.compute_item(shares):
                key = (debtor.user_id, creditor.user_id)
                debt = debts.get(key)
                if debt is None:
                    debt = PairwiseDebt(
                        from_user_id=debtor.user_id,
                        from_user=debtor.user_name,
                        to_user_id=creditor.user_id,
                        to_user=creditor.user_name,
                        amount=ZERO,
                    )
                    debts[key] = debt
                debt.amount += amount
                debt.items.append(DebtItemRef(item_id=item_id, item_title=shares[0].item_title))

        result = []
        for debt in debts.values():
            debt.amount = to_money(debt.amount)
            if debt.amount > CENT:
                result.append(debt)
        return result


class AdvancerReimbursementStrategy(DebtStrategy):
    name = "advancer"

    def compute_item(self, shares):
        advancer = next((s for s in shares if s.has_advanced), None)
        if advancer is None:
            return []
        return [
            (share, advancer, to_money(share.amount))
            for share in shares
            if share.user_id != advancer.user_id and share.amount > ZERO
        ]


class EqualSplitStrategy(DebtStrategy):
    name = "equal_split"

    def owed_to(self, share: ContributionShare, per_person: Decimal) -> Decimal:
        """How much ``share``'s contributor is owed; creditors need more than a cent."""
        return share.amount - per_person

    def compute_item(self, shares):
        if len(shares) <= 1:
            return []

        total = sum((s.amount for s in shares), ZERO)
        per_person = total / len(shares)

        triples = []
        for creditor in shares:
            owed_amount = self.owed_to(creditor, per_person)
            if owed_amount <= CENT:
                continue
            for debtor in shares:
                if debtor.user_id == creditor.user_id:
                    continue
                debtor_owes = per_person - debtor.amount
                if debtor_owes > ZERO:
                    triples.append((debtor, creditor, min(debtor_owes, owed_amount)))
        return triples


class LegacyPairwiseStrategy(EqualSplitStrategy):
    """Pairing of the historical debts page, kept as it was.

    A contributor more than a cent *below* the even share is treated as owed,
    and every other contributor below the even share owes them
    ``min(their shortfall, the owed contributor's shortfall)``.
    """

    name = "legacy_pairwise"

    def owed_to(self, share, per_person):
        return per_person - share.amount


STRATEGIES: dict[str, type[DebtStrategy]] = {
    AdvancerReimbursementStrategy.name: AdvancerReimbursementStrategy,
    EqualSplitStrategy.name: EqualSplitStrategy,
    LegacyPairwiseStrategy.name: LegacyPairwiseStrategy,
}


def get_strategy(name: str) -> DebtStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValidationError(f"Unknown debt strategy: {name}") from None


def calculate_debts(contributions: Iterable[ContributionShare]) -> list[PairwiseDebt]:
    """Legacy pairwise debts for display, over a flat contribution list."""
    return LegacyPairwiseStrategy().compute(contributions)
