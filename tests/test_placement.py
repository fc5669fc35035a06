"""
Tests for highlighting, placement checks, hub rewards and the final placement order.
"""

from random import Random

import pytest

from payola_engine.data.models import HexType, Orientation, TokenType
from payola_engine.errors import (
    EdgeNotHighlighted,
    EdgeOccupied,
    InsufficientEdges,
    TurnMismatch,
)
from payola_engine.game.placement import (
    final_placement_order,
    immediate_reward,
    random_placement,
    select_highlighted,
    validate_placement,
)
from payola_engine.map.hexes import HexCoord, HexEdge
from payola_engine.map.layout import MapLayout


def h(q, r):
    return HexCoord(root=(q, r))


def hub_layout():
    """Power hub at the origin, money hub east of it, households north."""
    return MapLayout.build(
        {
            h(0, 0): [HexType.POWER_HUB],
            h(1, 0): [HexType.MONEY_HUB],
            h(0, 1): [HexType.HOUSEHOLDS],
        },
        player_count=3,
    )


class TestHighlight:

    def test_sample_is_free_and_distinct(self):
        edges = [f"e{i}" for i in range(10)]
        picked = select_highlighted(edges, ["e0", "e1"], 5, Random(0))
        assert len(set(picked)) == 5
        assert not {"e0", "e1"} & set(picked)

    def test_reproducible(self):
        edges = [f"e{i}" for i in range(10)]
        assert select_highlighted(edges, [], 4, Random(9)) == select_highlighted(
            edges, [], 4, Random(9)
        )

    def test_not_enough_edges(self):
        with pytest.raises(InsufficientEdges):
            select_highlighted(["a", "b", "c"], ["a"], 3, Random(0))


class TestValidate:

    def test_ok(self):
        validate_placement("e1", "p1", "p1", ["e1", "e2"], [])

    def test_wrong_turn(self):
        with pytest.raises(TurnMismatch):
            validate_placement("e1", "p2", "p1", ["e1"], [])
        with pytest.raises(TurnMismatch):
            validate_placement("e1", "p2", None, ["e1"], [])

    def test_not_highlighted(self):
        with pytest.raises(EdgeNotHighlighted):
            validate_placement("e3", "p1", "p1", ["e1", "e2"], [])

    def test_occupied(self):
        with pytest.raises(EdgeOccupied):
            validate_placement("e1", "p1", "p1", ["e1", "e2"], ["e1"])


class TestReward:

    def test_power_hub_gives_vp(self):
        layout = hub_layout()
        edge = HexEdge.between(h(0, 0), h(0, 1))
        reward = immediate_reward(edge, TokenType.THREE_ONE, Orientation.A, layout)
        assert reward.victory_points == 3
        assert reward.currency == 0

    def test_both_hubs(self):
        layout = hub_layout()
        edge = HexEdge.between(h(0, 0), h(1, 0))
        reward = immediate_reward(edge, TokenType.TWO_TWO, Orientation.B, layout)
        assert (reward.victory_points, reward.currency) == (2, 2)

    def test_zero_side_on_hub(self):
        layout = hub_layout()
        edge = HexEdge.between(h(0, 0), h(0, 1))
        assert immediate_reward(edge, TokenType.FOUR_ZERO, Orientation.B, layout) is None

    def test_money_hub_on_rising_edge(self):
        layout = hub_layout()
        edge = HexEdge.between(h(0, 1), h(1, 0))
        # rising edge: orientation A puts the first value on the second hex
        reward = immediate_reward(edge, TokenType.ONE_THREE, Orientation.A, layout)
        assert (reward.victory_points, reward.currency) == (0, 1)


class TestRandomPlacement:

    def test_choice_is_legal(self):
        edge_id, ttype, orient = random_placement(["a", "b"], Random(2))
        assert edge_id in ("a", "b")
        assert ttype != TokenType.BLANK
        assert orient in Orientation

    def test_no_edges(self):
        with pytest.raises(InsufficientEdges):
            random_placement([], Random(0))


class TestFinalOrder:

    def test_round_robin_in_rank_order(self):
        order = final_placement_order(["c", "a", "b"], [2, 2, 2], 6)
        assert order == ["c", "a", "b", "c", "a", "b"]

    def test_uneven_schedule(self):
        ranked = ["p1", "p2", "p3", "p4", "p5"]
        order = final_placement_order(ranked, [2, 2, 2, 1, 1], 8)
        assert order == ["p1", "p2", "p3", "p4", "p5", "p1", "p2", "p3"]

    def test_truncated_to_free_edges(self):
        assert final_placement_order(["a", "b"], [2, 2], 3) == ["a", "b", "a"]
