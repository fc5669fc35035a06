"""Bid aggregation, winner determination and payments."""

from random import Random
from typing import Iterable, Sequence

from payola_engine.data.models import Song, TieRule
from payola_engine.game.state import Bid, TieBreak


def song_totals(bids: Iterable[Bid], songs: Sequence[Song]) -> dict[Song, int]:
    """Sum of bids per available song."""
    res = {song: 0 for song in songs}
    for bid in bids:
        if bid.song in res:
            res[bid.song] += bid.amount
    return res


def bribe_need(totals: dict[Song, int], song: Song) -> int:
    """Exact bribe that puts `song` one ahead of the current leader."""
    return max(totals.values()) - totals[song] + 1


def determine_winner(
    totals: dict[Song, int],
    rng: Random,
    *,
    tie_rule: TieRule = TieRule.SECOND_HIGHEST,
) -> tuple[Song, TieBreak]:
    """Winning song, and how any tie was broken.

    - Unique maximum wins.
    - All available songs tied: random.
    - Three songs, two tied: the third song wins.
    - Four songs, three tied: the fourth song wins.
    - Four songs, two tied: the best of the other two songs wins (or, with the
      wheel rule, a random one of the tied pair).
    """
    songs = sorted(totals, key=lambda s: s.value)
    best = max(totals.values())
    leaders = [s for s in songs if totals[s] == best]
    if len(leaders) == 1:
        return leaders[0], TieBreak.NONE
    others = [s for s in songs if s not in leaders]
    if not others:
        return rng.choice(leaders), TieBreak.RANDOM
    if len(others) == 1:
        return others[0], TieBreak.ELIMINATION
    if len(songs) == 4 and tie_rule == TieRule.SECOND_HIGHEST:
        runner_up = max(totals[s] for s in others)
        cands = [s for s in others if totals[s] == runner_up]
        if len(cands) == 1:
            return cands[0], TieBreak.SECOND_HIGHEST
        return rng.choice(cands), TieBreak.RANDOM
    return rng.choice(leaders), TieBreak.RANDOM


def bid_is_payable(bid: Bid, winning_song: Song) -> bool:
    """Bribes always pay; promises only pay when their song won."""
    return bid.round == 2 or bid.song == winning_song


def payable_amounts(bids: Iterable[Bid], winning_song: Song) -> dict[str, int]:
    """Amount owed per player."""
    res: dict[str, int] = {}
    for bid in bids:
        if bid_is_payable(bid, winning_song):
            res[bid.player_id] = res.get(bid.player_id, 0) + bid.amount
    return res
