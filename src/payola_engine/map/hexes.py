"""Hexagonal grid: coordinates, edges, vertices and pixel projection."""

import re
from enum import Enum
from math import cos, radians, sin, sqrt
from typing import Any, Iterable, Literal

from typing_extensions import Annotated
from pydantic import BaseModel, Field, RootModel, computed_field, model_validator

from payola_engine.errors import InvalidEdgeId


class HexCoord(RootModel[tuple[int, int]]):
    """Hex coordinate, using axial coordinates for flat-top hexes.

    https://www.redblobgames.com/grids/hexagons/#coordinates-axial
    """

    model_config = {"frozen": True}

    root: tuple[int, int]

    @property
    def q(self) -> int:
        """First 'q' coordinate."""
        return self.root[0]

    @property
    def r(self) -> int:
        """Second 'r' coordinate."""
        return self.root[1]

    @property
    def s(self) -> int:
        """Implied third 's' coordinate (cube coordinates)."""
        return -(self.q + self.r)

    @property
    def id(self) -> str:
        """Hex id, as stored with tiles."""
        return f"hex_{self.q}_{self.r}"

    @model_validator(mode="before")
    @classmethod
    def _drop_third_coord(cls, data: Any) -> Any:
        """Accept cube coordinates, if they are balanced."""
        if isinstance(data, (list, tuple)) and len(data) == 3:
            q, r, s = data
            if q + r + s != 0:
                raise ValueError(f"Imbalanced hex coords: sum({q}, {r}, {s}) != 0")
            return (q, r)
        return data

    # Comparison operations

    def __eq__(self, rhs: object) -> bool:
        if isinstance(rhs, HexCoord):
            return self.root == rhs.root
        return NotImplemented

    def __ne__(self, rhs: object) -> bool:
        if isinstance(rhs, HexCoord):
            return self.root != rhs.root
        return NotImplemented

    def __lt__(self, rhs: "HexCoord") -> bool:
        if isinstance(rhs, HexCoord):
            return self.root < rhs.root
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.root)

    def __repr__(self) -> str:
        return f"HexCoord({self.q}, {self.r})"

    # Vector operations

    def __add__(self, rhs: "HexCoord") -> "HexCoord":
        """Add this delta to a coordinate (or another delta)."""
        if isinstance(rhs, HexCoord):
            return HexCoord(root=(self.q + rhs.q, self.r + rhs.r))
        return NotImplemented

    def __sub__(self, rhs: "HexCoord") -> "HexCoord":
        """Difference between coordinates."""
        if isinstance(rhs, HexCoord):
            return HexCoord(root=(self.q - rhs.q, self.r - rhs.r))
        return NotImplemented

    def __neg__(self) -> "HexCoord":
        """Coordinate negation."""
        return HexCoord(root=(-self.q, -self.r))

    # Neighbors

    @property
    def neighbors(self) -> list["HexCoord"]:
        """Get direct neighbors of this cell.

        https://www.redblobgames.com/grids/hexagons/#neighbors
        """
        return [self + vec for vec in HEX_UNIT_VECTORS]

    def is_adjacent(self, other: "HexCoord") -> bool:
        """Whether the two cells share a side."""
        return (other - self) in HEX_UNIT_VECTORS

    @property
    def vector_length(self) -> int:
        """Length of the coord as a vector (i.e. distance from center).

        https://www.redblobgames.com/grids/hexagons/#distances
        """
        return max(abs(self.q), abs(self.r), abs(self.s))

    @property
    def manhattan(self) -> int:
        """Axial 'Manhattan' distance from the origin, used to keep maps compact."""
        return abs(self.q) + abs(self.r)

    @classmethod
    def nearest_hex(cls, qf: float, rf: float) -> "HexCoord":
        """Nearest coordinates.

        https://www.redblobgames.com/grids/hexagons/#rounding
        """
        sf = -(qf + rf)
        q = round(qf)
        r = round(rf)
        s = round(sf)

        qd = abs(q - qf)
        rd = abs(r - rf)
        sd = abs(s - sf)

        if (qd > rd) and (qd > sd):
            q = -(r + s)
        elif rd > sd:
            r = -(q + s)
        return cls(root=(q, r))


HEX_UNIT_VECTORS = tuple(
    HexCoord(root=_tup) for _tup in [(1, 0), (-1, 0), (1, -1), (0, -1), (0, 1), (-1, 1)]
)
"""Neighbor offsets in axial coordinates (flat-top)."""

ORIGIN = HexCoord(root=(0, 0))


def count_neighbors(coord: HexCoord, cells: Iterable[HexCoord]) -> int:
    """Number of in-map neighbors of a cell."""
    present = cells if isinstance(cells, (set, frozenset, dict)) else set(cells)
    return sum(1 for nb in coord.neighbors if nb in present)


# Edges

EDGE_ID_REGEX = re.compile(r"^e_(-?\d+)_(-?\d+)_(-?\d+)_(-?\d+)$")


class EdgeDirection(str, Enum):
    """Direction class of the side shared by two hexes."""

    HORIZONTAL = "HORIZONTAL"  # hexes stacked vertically
    RISING = "RISING"  # delta (+1, -1), token values are flipped
    FALLING = "FALLING"  # delta (+1, 0)


EDGE_ROTATION: dict[EdgeDirection, int] = {
    EdgeDirection.HORIZONTAL: 0,
    EdgeDirection.RISING: 60,
    EdgeDirection.FALLING: -60,
}


class HexEdge(BaseModel):
    """Side shared by two adjacent hexes.

    The pair is stored in canonical order (lower `(q, r)` first), so both hexes
    produce the same edge.
    """

    model_config = {"frozen": True}

    hex1: HexCoord
    hex2: HexCoord

    @model_validator(mode="before")
    @classmethod
    def _sort_pair(cls, data: Any) -> Any:
        """Canonicalize the hex order."""
        if isinstance(data, dict) and "hex1" in data and "hex2" in data:
            a = HexCoord.model_validate(data["hex1"])
            b = HexCoord.model_validate(data["hex2"])
            if b < a:
                a, b = b, a
            return {"hex1": a, "hex2": b}
        return data

    @model_validator(mode="after")
    def _check_adjacent(self) -> "HexEdge":
        """Ensure the hexes actually share a side."""
        if not self.hex1.is_adjacent(self.hex2):
            raise ValueError(f"Hexes are not adjacent: {self.hex1!r}, {self.hex2!r}")
        return self

    @classmethod
    def between(cls, a: HexCoord, b: HexCoord) -> "HexEdge":
        """Edge between two adjacent hexes, in any order."""
        return cls(hex1=a, hex2=b)

    @classmethod
    def parse(cls, edge_id: str) -> "HexEdge":
        """Parse an edge id string."""
        match = EDGE_ID_REGEX.match(edge_id) if isinstance(edge_id, str) else None
        if match is None:
            raise InvalidEdgeId(f"Malformed edge id: {edge_id!r}")
        q1, r1, q2, r2 = (int(x) for x in match.groups())
        a = HexCoord(root=(q1, r1))
        b = HexCoord(root=(q2, r2))
        if not a.is_adjacent(b):
            raise InvalidEdgeId(f"Edge id joins non-adjacent hexes: {edge_id!r}")
        return cls.between(a, b)

    @property
    def id(self) -> str:
        """Canonical edge id."""
        return f"e_{self.hex1.q}_{self.hex1.r}_{self.hex2.q}_{self.hex2.r}"

    @property
    def hexes(self) -> tuple[HexCoord, HexCoord]:
        """Both hexes, canonical order."""
        return (self.hex1, self.hex2)

    @property
    def direction(self) -> EdgeDirection:
        """Direction class of this edge."""
        delta = self.hex2 - self.hex1
        if delta.q == 0:
            return EdgeDirection.HORIZONTAL
        if delta.root == (1, -1):
            return EdgeDirection.RISING
        return EdgeDirection.FALLING

    @property
    def needs_flip(self) -> bool:
        """Whether token values land on the opposite hexes for this edge."""
        return self.direction is EdgeDirection.RISING

    @property
    def rotation(self) -> int:
        """Rotation (degrees) of a token drawn on this edge."""
        return EDGE_ROTATION[self.direction]

    def other(self, coord: HexCoord) -> HexCoord:
        """The hex on the other side of the edge."""
        if coord == self.hex1:
            return self.hex2
        if coord == self.hex2:
            return self.hex1
        raise ValueError(f"{coord!r} is not on edge {self.id}")


def edge_id(a: HexCoord, b: HexCoord) -> str:
    """Canonical edge id between two adjacent hexes."""
    return HexEdge.between(a, b).id


def all_edges(cells: Iterable[HexCoord]) -> list[HexEdge]:
    """All shared sides among the given cells (boundary sides excluded), sorted."""
    present = set(cells)
    res: set[HexEdge] = set()
    for coord in present:
        for nb in coord.neighbors:
            if nb in present:
                res.add(HexEdge.between(coord, nb))
    return sorted(res, key=lambda e: (e.hex1.root, e.hex2.root))


# Vertices

CORNER_NEIGHBORS: tuple[tuple[HexCoord, HexCoord], ...] = tuple(
    (HexCoord(root=a), HexCoord(root=b))
    for a, b in [
        ((1, -1), (1, 0)),
        ((1, 0), (0, 1)),
        ((0, 1), (-1, 1)),
        ((-1, 1), (-1, 0)),
        ((-1, 0), (0, -1)),
        ((0, -1), (1, -1)),
    ]
)
"""For each corner of a flat-top hex, the offsets of the two other hexes at that corner."""

VERTEX_ID_REGEX = re.compile(r"^v_(-?\d+)_(-?\d+)_([0-5])$")


class HexVertex(BaseModel):
    """Corner where three hexes meet, stored relative to the lowest of them."""

    model_config = {"frozen": True}

    hex: HexCoord
    corner: Annotated[int, Field(ge=0, le=5)]

    @model_validator(mode="after")
    def _check_canonical(self) -> "HexVertex":
        """Ensure the owning hex is the lowest hex at this corner."""
        if min(self.hexes) != self.hex:
            raise ValueError(f"Vertex not in canonical form: {self.id}")
        return self

    @classmethod
    def at(cls, coord: HexCoord, corner: int) -> "HexVertex":
        """Vertex at the given corner of a hex, in canonical form."""
        a, b = CORNER_NEIGHBORS[corner]
        group = {coord, coord + a, coord + b}
        owner = min(group)
        for j, (aj, bj) in enumerate(CORNER_NEIGHBORS):
            if {owner, owner + aj, owner + bj} == group:
                return cls(hex=owner, corner=j)
        raise ValueError(f"No corner of {owner!r} matches {group!r}")  # pragma: no cover

    @classmethod
    def parse(cls, vertex_id: str) -> "HexVertex":
        """Parse a vertex id string."""
        match = VERTEX_ID_REGEX.match(vertex_id)
        if match is None:
            raise ValueError(f"Malformed vertex id: {vertex_id!r}")
        q, r, corner = (int(x) for x in match.groups())
        return cls.at(HexCoord(root=(q, r)), corner)

    @property
    def id(self) -> str:
        return f"v_{self.hex.q}_{self.hex.r}_{self.corner}"

    @property
    def hexes(self) -> list[HexCoord]:
        """The three hexes meeting at this vertex, sorted."""
        a, b = CORNER_NEIGHBORS[self.corner]
        return sorted([self.hex, self.hex + a, self.hex + b])


def hex_vertices(coord: HexCoord) -> list[HexVertex]:
    """All six corners of a hex."""
    return [HexVertex.at(coord, i) for i in range(6)]


# Pixel projection

XYCoord = tuple[float, float]


class HexProjection(BaseModel):
    """Conversion between hex cells and pixel coordinates."""

    model_config = {"frozen": True}

    top_style: Literal["flat", "pointy"] = "flat"
    scale: Annotated[float, Field(gt=0, description="Size of a hexagon side.")] = 1.0
    invert_y: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def basis_qr_to_xy(self) -> tuple[tuple[float, float], tuple[float, float]]:
        """Matrix converting QR to XY coords."""
        y_sign = -1 if self.invert_y else 1
        if self.top_style == "flat":
            (qx, qy) = (1.5, sqrt(3) / 2 * y_sign)
            (rx, ry) = (0.0, sqrt(3) * y_sign)
        else:  # pointy
            (qx, qy) = (sqrt(3), 0.0)
            (rx, ry) = (sqrt(3) / 2, 1.5 * y_sign)
        return ((qx, qy), (rx, ry))

    def cell_to_xy(self, hexcoord: HexCoord) -> XYCoord:
        """Center of a hex in XY coordinates.

        https://www.redblobgames.com/grids/hexagons/#hex-to-pixel
        """
        ((qx, qy), (rx, ry)) = self.basis_qr_to_xy
        xi = (hexcoord.q * qx + hexcoord.r * rx) * self.scale
        yi = (hexcoord.q * qy + hexcoord.r * ry) * self.scale
        return xi, yi

    def edge_to_xy(self, edge: HexEdge) -> XYCoord:
        """Midpoint of an edge (between the two hex centers)."""
        x1, y1 = self.cell_to_xy(edge.hex1)
        x2, y2 = self.cell_to_xy(edge.hex2)
        return (x1 + x2) / 2, (y1 + y2) / 2

    def vertex_to_xy(self, vertex: HexVertex) -> XYCoord:
        """Position of a vertex."""
        cx, cy = self.cell_to_xy(vertex.hex)
        angle = 60 * vertex.corner - (30 if self.top_style == "pointy" else 0)
        y_sign = -1 if self.invert_y else 1
        return (
            cx + self.scale * cos(radians(angle)),
            cy + self.scale * sin(radians(angle)) * y_sign,
        )

    def xy_to_cell(self, xi: float, yi: float) -> HexCoord:
        """Nearest cell to a pixel.

        https://www.redblobgames.com/grids/hexagons/#pixel-to-hex
        """
        y_sign = -1 if self.invert_y else 1
        if self.top_style == "flat":
            (xq, yq) = (2.0 / 3, 0.0)
            (xr, yr) = (-1.0 / 3, sqrt(3) / 3 * y_sign)
        else:
            (xq, yq) = (sqrt(3) / 3, -1.0 / 3 * y_sign)
            (xr, yr) = (0.0, 2.0 / 3 * y_sign)
        qi = (xi * xq + yi * yq) / self.scale
        ri = (xi * xr + yi * yr) / self.scale
        return HexCoord.nearest_hex(qi, ri)
