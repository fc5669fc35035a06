"""Card inventories for card-based bidding variants."""

from collections import Counter
from itertools import combinations
from typing import Iterable

from pydantic import BaseModel

from payola_engine.data.models import VariantRules
from payola_engine.errors import AmountMismatch, CardNotAvailable, TooManyCards


class CardInventory(BaseModel):
    """Cards a player holds and has spent.

    Every card ever issued is in exactly one of `remaining` and `spent`.
    """

    remaining: list[int] = []
    spent: list[int] = []

    @property
    def remaining_value(self) -> int:
        return sum(self.remaining)

    @property
    def issued(self) -> Counter:
        """Multiset of all cards ever issued."""
        return Counter(self.remaining) + Counter(self.spent)

    def issue(self, cards: Iterable[int]) -> None:
        """Deal cards to the player."""
        new = list(cards)
        if any(c <= 0 for c in new):
            raise ValueError(f"Card denominations must be positive: {new}")
        self.remaining = sorted(self.remaining + new)

    def check_selection(
        self, cards: Iterable[int], amount: int, max_cards: int | None = None
    ) -> None:
        """Validate a card selection for a bid of `amount`."""
        chosen = list(cards)
        if max_cards is not None and len(chosen) > max_cards:
            raise TooManyCards(
                f"At most {max_cards} card(s) this round, got {len(chosen)}"
            )
        missing = Counter(chosen) - Counter(self.remaining)
        if missing:
            raise CardNotAvailable(f"Cards not available: {sorted(missing.elements())}")
        if sum(chosen) != amount:
            raise AmountMismatch(f"Cards add up to {sum(chosen)}, bid is {amount}")

    def spend(self, cards: Iterable[int]) -> None:
        """Move cards from `remaining` to `spent`."""
        chosen = list(cards)
        missing = Counter(chosen) - Counter(self.remaining)
        if missing:
            raise CardNotAvailable(f"Cards not available: {sorted(missing.elements())}")
        left = Counter(self.remaining) - Counter(chosen)
        self.remaining = sorted(left.elements())
        self.spent = self.spent + chosen


def max_cards_for_round(rules: VariantRules, round_number: int) -> int | None:
    """Card cap per bid: one on the first map, two after, unlimited in the last round."""
    if round_number >= rules.total_rounds:
        return None
    if round_number <= rules.rounds_per_map:
        return 1
    return 2


def find_card_combination(
    remaining: Iterable[int], amount: int, max_cards: int | None = None
) -> list[int] | None:
    """Cards adding up exactly to `amount`, preferring fewer cards."""
    if amount == 0:
        return []
    cards = sorted(remaining)
    limit = len(cards) if max_cards is None else min(max_cards, len(cards))
    for size in range(1, limit + 1):
        for combo in combinations(cards, size):
            if sum(combo) == amount:
                return list(combo)
    return None


def spendable_amounts(remaining: Iterable[int], max_cards: int | None = None) -> list[int]:
    """All bid amounts reachable with a legal card selection (including 0)."""
    cards = sorted(remaining)
    limit = len(cards) if max_cards is None else min(max_cards, len(cards))
    res = {0}
    for size in range(1, limit + 1):
        for combo in combinations(cards, size):
            res.add(sum(combo))
    return sorted(res)
