"""Generated map layout."""

from math import ceil

from typing_extensions import Annotated
from pydantic import BaseModel, Field, model_validator

from payola_engine.data.models import HexType
from payola_engine.errors import InvalidEdgeId
from payola_engine.map.hexes import HexCoord, HexEdge, all_edges, count_neighbors


class HexTile(BaseModel):
    """A hex on the map, with its symbol(s)."""

    model_config = {"frozen": True}

    coordinate: HexCoord
    types: Annotated[list[HexType], Field(min_length=1, max_length=2)]
    id: str
    edge_count: Annotated[int, Field(ge=0, le=6)]

    @property
    def primary_type(self) -> HexType:
        return self.types[0]

    @property
    def is_hub(self) -> bool:
        return self.primary_type.is_hub


class MapLayout(BaseModel):
    """Map layout: tiles and the edges between them.

    Created once per map and never changed afterwards.
    """

    model_config = {"frozen": True}

    map_type: str
    player_count: int
    hexes: list[HexTile]
    edges: list[str]
    total_rounds: int

    @model_validator(mode="after")
    def _chk_consistency(self) -> "MapLayout":
        """Ensure edges and edge counts are exactly those implied by the hexes."""
        cells = {tile.coordinate for tile in self.hexes}
        if len(cells) != len(self.hexes):
            raise ValueError("Duplicate hex coordinates in layout")
        expected = {edge.id for edge in all_edges(cells)}
        if set(self.edges) != expected or len(self.edges) != len(expected):
            raise ValueError("Edge list does not match the hexes")
        for tile in self.hexes:
            if tile.edge_count != count_neighbors(tile.coordinate, cells):
                raise ValueError(f"Wrong edge count for {tile.id}")
        return self

    @property
    def coords(self) -> set[HexCoord]:
        return {tile.coordinate for tile in self.hexes}

    @property
    def edge_total(self) -> int:
        return len(self.edges)

    def tile_at(self, coord: HexCoord) -> HexTile | None:
        """Tile at a coordinate, if any."""
        for tile in self.hexes:
            if tile.coordinate == coord:
                return tile
        return None

    def tiles_of_type(self, hex_type: HexType) -> list[HexTile]:
        """Tiles whose primary symbol is the given type."""
        return [tile for tile in self.hexes if tile.primary_type == hex_type]

    @property
    def power_hub(self) -> HexTile | None:
        found = self.tiles_of_type(HexType.POWER_HUB)
        return found[0] if found else None

    @property
    def money_hub(self) -> HexTile | None:
        found = self.tiles_of_type(HexType.MONEY_HUB)
        return found[0] if found else None

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self.edges

    def edge(self, edge_id: str) -> HexEdge:
        """Parse an edge id, ensuring it belongs to this map."""
        if edge_id not in self.edges:
            raise InvalidEdgeId(f"Edge {edge_id!r} is not on map {self.map_type}")
        return HexEdge.parse(edge_id)

    @classmethod
    def build(
        cls,
        cell_types: dict[HexCoord, list[HexType]],
        *,
        player_count: int,
        total_rounds: int | None = None,
    ) -> "MapLayout":
        """Build a layout from typed cells, deriving edges and edge counts."""
        cells = set(cell_types)
        edges = [edge.id for edge in all_edges(cells)]
        tiles = [
            HexTile(
                coordinate=coord,
                types=cell_types[coord],
                id=coord.id,
                edge_count=count_neighbors(coord, cells),
            )
            for coord in sorted(cells)
        ]
        if total_rounds is None:
            total_rounds = default_total_rounds(len(edges), player_count)
        return cls(
            map_type=f"NYC{len(edges)}",
            player_count=player_count,
            hexes=tiles,
            edges=edges,
            total_rounds=total_rounds,
        )


def default_total_rounds(n_edges: int, player_count: int) -> int:
    """Round count for a stand-alone map."""
    return max(ceil(n_edges / (6 + player_count)), 3)
