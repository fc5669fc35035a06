"""End-game scoring."""

import logging
from collections import Counter
from typing import Iterable, Sequence

from pydantic import BaseModel

from payola_engine.data.models import STAR_TYPES, HexType
from payola_engine.map.layout import MapLayout
from payola_engine.map.tokens import InfluenceToken, controlling_players, influence_by_hex

logger = logging.getLogger(__name__)

STAR_POINTS = {0: 0, 1: 10, 2: 25, 3: 45, 4: 70, 5: 100}
AUTO_WIN_STARS = len(STAR_TYPES)

HOUSEHOLD_POINTS: dict[int, list[int]] = {
    2: [50],
    3: [50, 20],
    4: [50, 20],
    5: [50, 30, 20],
    6: [50, 30, 20],
}


def star_points(unique_stars: int) -> int:
    """Points for the number of distinct star categories controlled.

    Six categories is an auto-win. The 100 reported for it is a display cap
    only: ranking goes by the `auto_win` flag, not by this value.
    """
    return STAR_POINTS[min(max(unique_stars, 0), max(STAR_POINTS))]


def tally_symbols(
    layout: MapLayout,
    tokens: Iterable[InfluenceToken],
    player_ids: Sequence[str],
) -> dict[str, Counter]:
    """Symbols each player controls on a map."""
    res: dict[str, Counter] = {pid: Counter() for pid in player_ids}
    influence = influence_by_hex(tokens)
    for tile in layout.hexes:
        if tile.is_hub:
            continue
        per_player = {
            pid: val for pid, val in influence.get(tile.coordinate, {}).items() if pid in res
        }
        for pid in controlling_players(per_player):
            res[pid].update(tile.types)
    return res


def power_hub_points(
    layout: MapLayout, tokens: Iterable[InfluenceToken], player_ids: Sequence[str]
) -> dict[str, int]:
    """Influence of each player in the power hub."""
    res = {pid: 0 for pid in player_ids}
    hub = layout.power_hub
    if hub is None:
        return res
    influence = influence_by_hex(tokens).get(hub.coordinate, {})
    for pid, val in influence.items():
        if pid in res:
            res[pid] += val
    return res


def household_points(households: dict[str, int], player_count: int) -> dict[str, int]:
    """Split the household prizes. Tied players pool the ranks they occupy."""
    schedule = HOUSEHOLD_POINTS.get(player_count, HOUSEHOLD_POINTS[6])
    res = {pid: 0 for pid in households}
    ordered = sorted(households.items(), key=lambda kv: -kv[1])
    rank = 0
    while rank < len(ordered):
        count = ordered[rank][1]
        group = [pid for pid, val in ordered if val == count]
        pool = sum(schedule[i] for i in range(rank, rank + len(group)) if i < len(schedule))
        for pid in group:
            res[pid] = pool // len(group)
        rank += len(group)
    return res


class PlayerScore(BaseModel):
    """Final score breakdown of one player."""

    player_id: str
    symbols: dict[HexType, int] = {}
    unique_stars: list[HexType] = []
    star_points: int = 0
    households: int = 0
    household_points: int = 0
    power_hub_vp: int = 0
    leftover_vp: int = 0
    total: int = 0
    auto_win: bool = False
    rank: int = 0


class FinalResults(BaseModel):
    """Final standings."""

    scores: list[PlayerScore]

    @property
    def winners(self) -> list[str]:
        return [s.player_id for s in self.scores if s.rank == 1]

    def for_player(self, player_id: str) -> PlayerScore:
        """Get score by player id."""
        for score in self.scores:
            if score.player_id == player_id:
                return score
        raise KeyError(player_id)


def score_game(
    maps: Sequence[tuple[MapLayout, Sequence[InfluenceToken]]],
    leftovers: dict[str, int],
) -> FinalResults:
    """Score a finished game.

    `maps` holds every map played with its tokens, `leftovers` the unspent
    currency (or card value) of each player, in seat order.
    """
    player_ids = list(leftovers)
    symbols: dict[str, Counter] = {pid: Counter() for pid in player_ids}
    hub_vp = {pid: 0 for pid in player_ids}
    for layout, tokens in maps:
        for pid, cnt in tally_symbols(layout, tokens, player_ids).items():
            symbols[pid].update(cnt)
        for pid, val in power_hub_points(layout, tokens, player_ids).items():
            hub_vp[pid] += val

    houses = {pid: symbols[pid][HexType.HOUSEHOLDS] for pid in player_ids}
    house_pts = household_points(houses, len(player_ids))

    scores: list[PlayerScore] = []
    for pid in player_ids:
        stars = [st for st in STAR_TYPES if symbols[pid][st] > 0]
        s_pts = star_points(len(stars))
        total = hub_vp[pid] + s_pts + house_pts[pid] + leftovers[pid]
        scores.append(
            PlayerScore(
                player_id=pid,
                symbols=dict(symbols[pid]),
                unique_stars=stars,
                star_points=s_pts,
                households=houses[pid],
                household_points=house_pts[pid],
                power_hub_vp=hub_vp[pid],
                leftover_vp=leftovers[pid],
                total=total,
                auto_win=len(stars) >= AUTO_WIN_STARS,
            )
        )

    scores.sort(key=lambda s: (not s.auto_win, -s.total))
    prev: tuple[bool, int] | None = None
    for i, score in enumerate(scores):
        key = (score.auto_win, score.total)
        score.rank = scores[i - 1].rank if key == prev else i + 1
        prev = key
    logger.info(f"Final standings: {[(s.player_id, s.total) for s in scores]}")
    return FinalResults(scores=scores)


def map_symbols(
    layout: MapLayout, tokens: Iterable[InfluenceToken], player_ids: Sequence[str]
) -> dict[str, dict[HexType, int]]:
    """Symbols per player on one map, in plain dicts for storage."""
    return {pid: dict(cnt) for pid, cnt in tally_symbols(layout, tokens, player_ids).items()}
