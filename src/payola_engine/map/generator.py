"""Random map generation."""

import logging
from random import Random

from pydantic import BaseModel

from payola_engine.data import fallback_layouts
from payola_engine.data.models import (
    BASIC_STARS,
    SUPPORTED_MAP_SIZES,
    FallbackLayouts,
    HexType,
)
from payola_engine.errors import ConfigurationError, UnsupportedMapSize
from payola_engine.map.hexes import ORIGIN, HexCoord, count_neighbors
from payola_engine.map.layout import MapLayout
from payola_engine.settings import EngineSettings, default_settings

logger = logging.getLogger(__name__)

LARGE_MAP_EDGES = 30
"""From this size on, maps carry two copies of each basic star."""

DOUBLE_SYMBOL_EDGES = 5
"""Non-hub tiles with at least this many edges carry a bonus households symbol."""


def find_dead_ends(cells: set[HexCoord]) -> list[HexCoord]:
    """Cells reachable through exactly one edge."""
    return sorted(c for c in cells if count_neighbors(c, cells) == 1)


def hex_type_distribution(
    n_tiles: int,
    n_edges: int,
    *,
    money_hub: bool = True,
    classical_stars: bool = False,
) -> list[HexType]:
    """Multiset of primary tile types for a map (not shuffled)."""
    specials = [HexType.POWER_HUB]
    if money_hub:
        specials.append(HexType.MONEY_HUB)
    copies = 2 if n_edges >= LARGE_MAP_EDGES else 1
    specials += [star for star in BASIC_STARS for _ in range(copies)]
    if classical_stars:
        specials += [HexType.CLASSICAL_STAR] * 2
    if len(specials) > n_tiles:
        raise ConfigurationError(
            f"Map with {n_tiles} tiles cannot hold {len(specials)} special tiles"
        )
    return specials + [HexType.HOUSEHOLDS] * (n_tiles - len(specials))


class MapGenerator(BaseModel):
    """Map generator, growing random connected regions to an exact edge count."""

    settings: EngineSettings = default_settings
    fallbacks: FallbackLayouts = fallback_layouts

    def grow_region(self, target: int, rng: Random) -> set[HexCoord] | None:
        """Single growth attempt. Returns `None` if the attempt failed."""
        cells: set[HexCoord] = {ORIGIN}
        frontier: list[HexCoord] = list(ORIGIN.neighbors)
        n_edges = 0
        while frontier:
            coord = frontier.pop(rng.randrange(len(frontier)))
            n_edges += count_neighbors(coord, cells)
            cells.add(coord)
            for nb in coord.neighbors:
                if nb not in cells and nb not in frontier:
                    frontier.append(nb)
            if len(frontier) > self.settings.frontier_cap:
                frontier.sort(key=lambda c: (c.manhattan, c.root))
                del frontier[self.settings.frontier_keep :]
            if n_edges >= target:
                if n_edges == target and self.is_acceptable(cells):
                    return cells
                return None
        return None

    def is_acceptable(self, cells: set[HexCoord]) -> bool:
        """Whether a finished region obeys the tile rules."""
        return len(find_dead_ends(cells)) == 0

    def generate_region(self, target: int, rng: Random) -> set[HexCoord]:
        """Grow a region with exactly `target` edges, or use the fixed layout."""
        for attempt in range(self.settings.max_generation_attempts):
            cells = self.grow_region(target, rng)
            if cells is not None:
                logger.debug(f"Grew {target}-edge map on attempt {attempt + 1}")
                return cells
        else:
            lyo = self.fallbacks.closest(target)
            logger.warning(
                f"No {target}-edge map after {self.settings.max_generation_attempts}"
                f" attempts, using fixed {lyo.edges}-edge layout."
            )
            return set(lyo.hexes)

    def assign_types(
        self,
        cells: set[HexCoord],
        rng: Random,
        *,
        money_hub: bool = True,
        classical_stars: bool = False,
    ) -> dict[HexCoord, list[HexType]]:
        """Shuffle the type multiset over the cells."""
        n_edges = sum(count_neighbors(c, cells) for c in cells) // 2
        types = hex_type_distribution(
            len(cells), n_edges, money_hub=money_hub, classical_stars=classical_stars
        )
        rng.shuffle(types)
        res: dict[HexCoord, list[HexType]] = {}
        for coord, htype in zip(sorted(cells), types):
            symbols = [htype]
            if not htype.is_hub and count_neighbors(coord, cells) >= DOUBLE_SYMBOL_EDGES:
                symbols.append(HexType.HOUSEHOLDS)
            res[coord] = symbols
        return res

    def generate(
        self,
        target: int,
        *,
        player_count: int,
        money_hub: bool = True,
        classical_stars: bool = False,
        total_rounds: int | None = None,
        seed: int | None = None,
        rng: Random | None = None,
    ) -> MapLayout:
        """Generate a complete map layout."""
        if target not in SUPPORTED_MAP_SIZES:
            raise UnsupportedMapSize(
                f"Unsupported map size {target}, expected one of {SUPPORTED_MAP_SIZES}"
            )
        if rng is None:
            rng = Random(seed)
        cells = self.generate_region(target, rng)
        cell_types = self.assign_types(
            cells, rng, money_hub=money_hub, classical_stars=classical_stars
        )
        return MapLayout.build(
            cell_types, player_count=player_count, total_rounds=total_rounds
        )


default_generator = MapGenerator()


def generate_map(
    target: int,
    *,
    player_count: int,
    money_hub: bool = True,
    classical_stars: bool = False,
    total_rounds: int | None = None,
    seed: int | None = None,
    rng: Random | None = None,
) -> MapLayout:
    """Generate a map with the default generator."""
    return default_generator.generate(
        target,
        player_count=player_count,
        money_hub=money_hub,
        classical_stars=classical_stars,
        total_rounds=total_rounds,
        seed=seed,
        rng=rng,
    )
