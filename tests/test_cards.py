"""
Tests for card inventories in the card-based variants.
"""

from collections import Counter
from random import Random

import pytest

from payola_engine.data import rule_book
from payola_engine.data.models import GameMode
from payola_engine.errors import AmountMismatch, CardNotAvailable, TooManyCards
from payola_engine.game.cards import (
    CardInventory,
    find_card_combination,
    max_cards_for_round,
    spendable_amounts,
)


def fresh():
    return CardInventory(remaining=[1, 2, 3, 4, 5])


class TestInventory:

    def test_spend_moves_card(self):
        inv = fresh()
        inv.spend([3])
        assert inv.remaining == [1, 2, 4, 5]
        assert inv.spent == [3]
        assert inv.remaining_value == 12

    def test_spent_card_not_available(self):
        inv = fresh()
        inv.spend([3])
        with pytest.raises(CardNotAvailable):
            inv.check_selection([3], 3)
        with pytest.raises(CardNotAvailable):
            inv.spend([3])

    def test_duplicate_card_in_selection(self):
        with pytest.raises(CardNotAvailable):
            fresh().check_selection([2, 2], 4)

    def test_amount_mismatch(self):
        with pytest.raises(AmountMismatch):
            fresh().check_selection([2, 3], 6)

    def test_too_many_cards(self):
        with pytest.raises(TooManyCards):
            fresh().check_selection([1, 2], 3, max_cards=1)

    def test_valid_selection(self):
        fresh().check_selection([2, 5], 7, max_cards=2)
        fresh().check_selection([], 0, max_cards=1)

    def test_top_up(self):
        inv = fresh()
        inv.spend([1, 5])
        inv.issue([1, 2, 3, 4, 5])
        assert inv.remaining == [1, 2, 2, 3, 3, 4, 4, 5]
        assert inv.issued == Counter([1, 2, 3, 4, 5] * 2)

    def test_bad_denomination(self):
        with pytest.raises(ValueError):
            fresh().issue([0])

    def test_conservation(self):
        rng = Random(5)
        inv = fresh()
        dealt = Counter([1, 2, 3, 4, 5])
        for step in range(30):
            if step == 10:
                inv.issue([1, 2, 3, 4, 5])
                dealt.update([1, 2, 3, 4, 5])
            if inv.remaining and rng.random() < 0.6:
                inv.spend([rng.choice(inv.remaining)])
            assert inv.issued == dealt
            assert sorted(inv.remaining + inv.spent) == sorted(dealt.elements())


class TestCardLimits:

    def test_four_player_cards(self):
        rules = rule_book.get(GameMode.MULTI_MAP, "4B")
        assert max_cards_for_round(rules, 1) == 1
        assert max_cards_for_round(rules, 5) == 1
        assert max_cards_for_round(rules, 6) == 2
        assert max_cards_for_round(rules, 9) == 2
        assert max_cards_for_round(rules, 10) is None

    def test_short_maps(self):
        rules = rule_book.get(GameMode.MULTI_MAP, "5A")
        assert max_cards_for_round(rules, 4) == 1
        assert max_cards_for_round(rules, 5) == 2
        assert max_cards_for_round(rules, 8) is None


class TestCombinations:

    def test_prefers_fewer_cards(self):
        assert find_card_combination([1, 2, 3, 4, 5], 5) == [5]
        assert find_card_combination([1, 2, 3, 4, 5], 7, 2) == [2, 5]

    def test_cap(self):
        assert find_card_combination([1, 2, 3, 4, 5], 7, 1) is None
        assert find_card_combination([1, 2, 3, 4, 5], 15) == [1, 2, 3, 4, 5]

    def test_zero(self):
        assert find_card_combination([], 0) == []

    def test_spendable_amounts(self):
        assert spendable_amounts([1, 2, 5], 1) == [0, 1, 2, 5]
        assert spendable_amounts([1, 2, 5]) == [0, 1, 2, 3, 5, 6, 7, 8]
