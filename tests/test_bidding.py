"""
Tests for bid totals, winner determination and payments.
"""

from random import Random

import pytest

from payola_engine.data.models import Song, TieRule
from payola_engine.game.bidding import (
    bid_is_payable,
    bribe_need,
    determine_winner,
    payable_amounts,
    song_totals,
)
from payola_engine.game.state import Bid, TieBreak

A, B, C, D = Song.A, Song.B, Song.C, Song.D


def bid(player, song, amount, rnd=1):
    return Bid(game_id="g", player_id=player, round=rnd, game_round=1, song=song, amount=amount)


def winners_over_seeds(totals, n=200, **kwargs):
    return {determine_winner(totals, Random(seed), **kwargs)[0] for seed in range(n)}


class TestTotals:

    def test_sums_per_song(self):
        bids = [bid("p1", A, 5), bid("p2", A, 2), bid("p3", C, 1)]
        assert song_totals(bids, [A, B, C]) == {A: 7, B: 0, C: 1}

    def test_unavailable_song_ignored(self):
        assert song_totals([bid("p1", D, 4)], [A, B]) == {A: 0, B: 0}

    def test_bribe_need(self):
        assert bribe_need({A: 5, B: 3, C: 0}, C) == 6
        assert bribe_need({A: 5, B: 3, C: 0}, A) == 1


class TestWinner:

    def test_unique_maximum(self):
        assert determine_winner({A: 5, B: 3, C: 0}, Random(0)) == (A, TieBreak.NONE)

    def test_all_tied_is_random(self):
        totals = {A: 4, B: 4, C: 4}
        assert winners_over_seeds(totals) == {A, B, C}
        assert determine_winner(totals, Random(1))[1] == TieBreak.RANDOM

    def test_two_songs_tied(self):
        assert winners_over_seeds({A: 0, B: 0}) == {A, B}

    def test_three_songs_two_tied(self):
        assert determine_winner({A: 10, B: 10, C: 6}, Random(0)) == (C, TieBreak.ELIMINATION)

    def test_four_songs_three_tied(self):
        assert determine_winner({A: 5, B: 5, C: 5, D: 1}, Random(0)) == (D, TieBreak.ELIMINATION)

    def test_four_songs_two_tied(self):
        totals = {A: 10, B: 10, C: 7, D: 3}
        assert determine_winner(totals, Random(0)) == (C, TieBreak.SECOND_HIGHEST)

    def test_four_songs_two_tied_and_rest_tied(self):
        assert winners_over_seeds({A: 10, B: 10, C: 2, D: 2}) == {C, D}

    def test_wheel_rule(self):
        totals = {A: 10, B: 3, C: 10, D: 7}
        assert winners_over_seeds(totals, tie_rule=TieRule.WHEEL) == {A, C}


class TestPayments:

    def test_lost_promise_is_free(self):
        assert not bid_is_payable(bid("p1", A, 5), B)
        assert bid_is_payable(bid("p1", A, 5), A)

    def test_bribes_always_pay(self):
        assert bid_is_payable(bid("p1", C, 6, rnd=2), A)

    def test_payable_amounts(self):
        bids = [bid("p1", A, 5), bid("p2", B, 3), bid("p3", C, 6, rnd=2)]
        assert payable_amounts(bids, C) == {"p3": 6}
        assert payable_amounts(bids, A) == {"p1": 5, "p3": 6}

    @pytest.mark.parametrize("seed", range(10))
    def test_never_pay_more_than_bid(self, seed):
        rng = Random(seed)
        bids = [
            bid(f"p{i}", rng.choice([A, B, C]), rng.randint(0, 10), rnd=rng.choice([1, 2]))
            for i in range(5)
        ]
        winner, _ = determine_winner(song_totals(bids, [A, B, C]), rng)
        paid = payable_amounts(bids, winner)
        assert sum(paid.values()) <= sum(b.amount for b in bids)
        for b in bids:
            assert paid.get(b.player_id, 0) <= b.amount
