"""
Tests for map generation and the fixed fallback layouts.
"""

from random import Random

import pytest

from payola_engine.data import fallback_layouts
from payola_engine.data.models import SUPPORTED_MAP_SIZES, HexType
from payola_engine.errors import ConfigurationError, UnsupportedMapSize
from payola_engine.map.generator import (
    DOUBLE_SYMBOL_EDGES,
    MapGenerator,
    find_dead_ends,
    generate_map,
    hex_type_distribution,
)
from payola_engine.map.hexes import HexCoord, all_edges, count_neighbors
from payola_engine.map.layout import MapLayout


def h(q, r):
    return HexCoord(root=(q, r))


def is_connected(cells):
    cells = set(cells)
    start = next(iter(cells))
    seen = {start}
    todo = [start]
    while todo:
        cur = todo.pop()
        for nb in cur.neighbors:
            if nb in cells and nb not in seen:
                seen.add(nb)
                todo.append(nb)
    return seen == cells


# 2x2 rhombus (5 edges) plus a pendant touching only one of its tiles
RHOMBUS_WITH_PENDANT = {h(0, 0), h(1, 0), h(0, 1), h(1, 1), h(2, -1)}


class TestRegionRules:

    def test_pendant_shape_has_target_edges(self):
        assert len(all_edges(RHOMBUS_WITH_PENDANT)) == 6

    def test_pendant_is_dead_end(self):
        assert find_dead_ends(RHOMBUS_WITH_PENDANT) == [h(2, -1)]
        assert not MapGenerator().is_acceptable(RHOMBUS_WITH_PENDANT)

    def test_rhombus_is_acceptable(self):
        assert MapGenerator().is_acceptable({h(0, 0), h(1, 0), h(0, 1), h(1, 1)})

    def test_grown_regions_never_have_dead_ends(self):
        gen = MapGenerator()
        grown = 0
        for seed in range(200):
            cells = gen.grow_region(6, Random(seed))
            if cells is None:
                continue
            grown += 1
            assert len(all_edges(cells)) == 6
            assert find_dead_ends(cells) == []
        assert grown > 0


class TestGenerate:

    @pytest.mark.parametrize("size", SUPPORTED_MAP_SIZES)
    def test_exact_edge_count(self, size):
        for seed in range(3):
            layout = generate_map(size, player_count=4, seed=seed)
            assert len(layout.edges) == size
            assert len(set(layout.edges)) == size
            assert layout.map_type == f"NYC{size}"
            assert all(tile.edge_count >= 2 for tile in layout.hexes)
            assert is_connected(layout.coords)

    def test_edges_are_between_map_tiles(self):
        layout = generate_map(30, player_count=4, seed=7)
        for edge_id in layout.edges:
            edge = layout.edge(edge_id)
            assert edge.hex1 in layout.coords and edge.hex2 in layout.coords

    def test_seed_is_reproducible(self):
        a = generate_map(24, player_count=6, seed=42)
        b = generate_map(24, player_count=6, seed=42)
        assert a == b

    def test_one_power_hub(self):
        layout = generate_map(36, player_count=3, seed=1)
        assert len(layout.tiles_of_type(HexType.POWER_HUB)) == 1
        assert len(layout.tiles_of_type(HexType.MONEY_HUB)) == 1

    def test_no_money_hub(self):
        layout = generate_map(20, player_count=4, money_hub=False, seed=1)
        assert layout.money_hub is None
        assert layout.power_hub is not None

    def test_large_map_has_two_of_each_star(self):
        layout = generate_map(48, player_count=5, classical_stars=True, seed=3)
        for star in (HexType.JAZZ_STAR, HexType.CLASSICAL_STAR):
            assert len(layout.tiles_of_type(star)) == 2

    def test_bonus_households_on_busy_tiles(self):
        layout = generate_map(48, player_count=6, seed=5)
        for tile in layout.hexes:
            busy = tile.edge_count >= DOUBLE_SYMBOL_EDGES and not tile.is_hub
            assert (len(tile.types) == 2) == busy
            if busy:
                assert tile.types[1] == HexType.HOUSEHOLDS

    def test_unsupported_size(self):
        with pytest.raises(UnsupportedMapSize):
            generate_map(17, player_count=3)
        with pytest.raises(ValueError):
            generate_map(100, player_count=3)

    def test_fallback_when_growth_fails(self, monkeypatch):
        monkeypatch.setattr(MapGenerator, "grow_region", lambda self, target, rng: None)
        layout = MapGenerator().generate(25, player_count=5, seed=0)
        assert len(layout.edges) == 25
        assert layout.coords == set(fallback_layouts.closest(25).hexes)

    def test_serialization_round_trip(self):
        layout = generate_map(18, player_count=3, seed=11)
        assert MapLayout.model_validate_json(layout.model_dump_json()) == layout


class TestFallbackLayouts:

    def test_one_per_size(self):
        assert sorted(lyo.edges for lyo in fallback_layouts.root) == list(SUPPORTED_MAP_SIZES)

    @pytest.mark.parametrize("lyo", fallback_layouts.root, ids=lambda lyo: str(lyo.edges))
    def test_shape(self, lyo):
        cells = set(lyo.hexes)
        assert len(all_edges(cells)) == lyo.edges
        assert all(count_neighbors(c, cells) >= 2 for c in cells)
        assert is_connected(cells)


class TestTypeDistribution:

    def test_small_map(self):
        types = hex_type_distribution(9, 15)
        assert types.count(HexType.POWER_HUB) == 1
        assert types.count(HexType.MONEY_HUB) == 1
        assert types.count(HexType.HOUSEHOLDS) == 2
        assert len(types) == 9

    def test_large_map_with_classical(self):
        types = hex_type_distribution(24, 48, classical_stars=True)
        assert types.count(HexType.ROCK_STAR) == 2
        assert types.count(HexType.CLASSICAL_STAR) == 2
        assert types.count(HexType.HOUSEHOLDS) == 24 - 14

    def test_too_many_specials(self):
        with pytest.raises(ConfigurationError):
            hex_type_distribution(5, 8)
