"""Token placement rules."""

from random import Random
from typing import Iterable, Sequence

from pydantic import BaseModel

from payola_engine.data.models import PLAYER_TOKEN_TYPES, HexType, Orientation, TokenType
from payola_engine.errors import (
    EdgeNotHighlighted,
    EdgeOccupied,
    InsufficientEdges,
    TurnMismatch,
)
from payola_engine.map.hexes import HexEdge
from payola_engine.map.layout import MapLayout
from payola_engine.map.tokens import resolve_token_values


class Reward(BaseModel):
    """Immediate payout for placing next to a hub."""

    victory_points: int = 0
    currency: int = 0

    def __bool__(self) -> bool:
        return bool(self.victory_points or self.currency)


def select_highlighted(
    edges: Iterable[str], occupied: Iterable[str], count: int, rng: Random
) -> list[str]:
    """Random sample of unoccupied edges."""
    taken = set(occupied)
    free = sorted(e for e in edges if e not in taken)
    if len(free) < count:
        raise InsufficientEdges(f"Need {count} free edges, only {len(free)} left")
    return rng.sample(free, count)


def validate_placement(
    edge_id: str,
    acting_player: str,
    expected_player: str | None,
    highlighted: Iterable[str],
    placed: Iterable[str],
) -> None:
    """Raise if the placement is not allowed."""
    if expected_player is None or acting_player != expected_player:
        raise TurnMismatch(f"Not {acting_player}'s turn (expected {expected_player})")
    if edge_id not in set(highlighted):
        raise EdgeNotHighlighted(f"Edge {edge_id} is not highlighted this round")
    if edge_id in set(placed):
        raise EdgeOccupied(f"Edge {edge_id} already has a token")


def immediate_reward(
    edge: HexEdge, token_type: TokenType, orientation: Orientation, layout: MapLayout
) -> Reward | None:
    """Payout for a token touching the power hub or the money hub."""
    values = resolve_token_values(edge, token_type, orientation)
    reward = Reward()
    for coord in edge.hexes:
        tile = layout.tile_at(coord)
        if tile is None or values[coord] == 0:
            continue
        if tile.primary_type == HexType.POWER_HUB:
            reward.victory_points += values[coord]
        elif tile.primary_type == HexType.MONEY_HUB:
            reward.currency += values[coord]
    return reward if reward else None


def random_placement(
    free_edges: Sequence[str], rng: Random
) -> tuple[str, TokenType, Orientation]:
    """Uniform random edge, token type and orientation."""
    if not free_edges:
        raise InsufficientEdges("No highlighted edge left to place on")
    return (
        rng.choice(list(free_edges)),
        rng.choice(PLAYER_TOKEN_TYPES),
        rng.choice(list(Orientation)),
    )


def final_placement_order(ranked_players: Sequence[str], schedule: Sequence[int], free: int) -> list[str]:
    """Turn order of the final placement.

    Players place in rank order, one token per pass, until each has used the
    tokens of their rank. Truncated to the free edges.
    """
    quota = dict(zip(ranked_players, schedule))
    res: list[str] = []
    for n_pass in range(max(schedule, default=0)):
        for pid in ranked_players:
            if quota.get(pid, 0) > n_pass:
                res.append(pid)
    return res[:free]
