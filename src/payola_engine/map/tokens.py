"""Influence tokens and how their values land on hexes."""

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel

from payola_engine.data.models import Orientation, TokenType
from payola_engine.map.hexes import HexCoord, HexEdge


class InfluenceToken(BaseModel):
    """Token placed on an edge. Immutable once placed."""

    model_config = {"frozen": True}

    id: str
    game_id: str
    player_id: str
    round_number: int
    map_number: int = 1
    edge_id: str
    token_type: TokenType
    orientation: Orientation

    @property
    def edge(self) -> HexEdge:
        return HexEdge.parse(self.edge_id)

    @property
    def is_blank(self) -> bool:
        return self.token_type is TokenType.BLANK


def resolve_token_values(
    edge: HexEdge, token_type: TokenType, orientation: Orientation
) -> dict[HexCoord, int]:
    """Influence each of the edge's hexes receives from a token.

    Orientation A puts the first printed value on the first (canonical) hex.
    Rising edges are drawn mirrored, so their values are swapped back.
    """
    first, second = token_type.values
    swap = (orientation is Orientation.B) != edge.needs_flip
    if swap:
        first, second = second, first
    return {edge.hex1: first, edge.hex2: second}


def token_value_on(token: InfluenceToken, coord: HexCoord) -> int:
    """Value of a token on one of its hexes (0 if the token does not touch it)."""
    edge = token.edge
    if coord not in edge.hexes:
        return 0
    return resolve_token_values(edge, token.token_type, token.orientation)[coord]


def hex_influence(coord: HexCoord, tokens: Iterable[InfluenceToken]) -> dict[str, int]:
    """Total influence per player on a hex.

    Players with only zero-valued tokens on the hex still appear, with 0.
    """
    res: dict[str, int] = defaultdict(int)
    for token in tokens:
        edge = token.edge
        if coord in edge.hexes:
            values = resolve_token_values(edge, token.token_type, token.orientation)
            res[token.player_id] += values[coord]
    return dict(res)


def influence_by_hex(tokens: Iterable[InfluenceToken]) -> dict[HexCoord, dict[str, int]]:
    """Influence per player for every hex touched by any token."""
    res: dict[HexCoord, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for token in tokens:
        values = resolve_token_values(token.edge, token.token_type, token.orientation)
        for coord, val in values.items():
            res[coord][token.player_id] += val
    return {coord: dict(per_player) for coord, per_player in res.items()}


def controlling_players(influence: dict[str, int], exclude: Iterable[str] = ()) -> list[str]:
    """Players with maximal influence, even when that maximum is 0. Ties share control."""
    skip = set(exclude)
    scores = {pid: val for pid, val in influence.items() if pid not in skip}
    if not scores:
        return []
    best = max(scores.values())
    return sorted(pid for pid, val in scores.items() if val == best)
