"""Data models for the static game data."""

from enum import Enum
from typing import Iterator

from typing_extensions import Annotated
from pydantic import BaseModel, Field, RootModel, model_validator

from payola_engine.errors import UnknownVariant
from payola_engine.map.hexes import HexCoord, all_edges, count_neighbors


class HexType(str, Enum):
    """Symbol printed on a hex tile."""

    HOUSEHOLDS = "households"
    BLUES_STAR = "bluesStar"
    COUNTRY_STAR = "countryStar"
    JAZZ_STAR = "jazzStar"
    ROCK_STAR = "rockStar"
    POP_STAR = "popStar"
    CLASSICAL_STAR = "classicalStar"
    POWER_HUB = "powerHub"
    MONEY_HUB = "moneyHub"

    @property
    def is_star(self) -> bool:
        return self in STAR_TYPES

    @property
    def is_hub(self) -> bool:
        return self in (HexType.POWER_HUB, HexType.MONEY_HUB)


BASIC_STARS = (
    HexType.BLUES_STAR,
    HexType.COUNTRY_STAR,
    HexType.JAZZ_STAR,
    HexType.ROCK_STAR,
    HexType.POP_STAR,
)
STAR_TYPES = BASIC_STARS + (HexType.CLASSICAL_STAR,)


class Song(str, Enum):
    """Bid target."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"


class TokenType(str, Enum):
    """Dual-valued influence token."""

    FOUR_ZERO = "4/0"
    THREE_ONE = "3/1"
    TWO_TWO = "2/2"
    ONE_THREE = "1/3"
    BLANK = "0/0"

    @property
    def values(self) -> tuple[int, int]:
        """The two influence values printed on the token."""
        first, second = self.value.split("/")
        return int(first), int(second)


PLAYER_TOKEN_TYPES = (
    TokenType.FOUR_ZERO,
    TokenType.THREE_ONE,
    TokenType.TWO_TWO,
    TokenType.ONE_THREE,
)


class Orientation(str, Enum):
    """Which way round a token is placed on its edge."""

    A = "A"
    B = "B"


class GameMode(str, Enum):
    """Overall game flow."""

    STANDARD = "standard"
    POTS = "pots"
    MULTI_MAP = "multi_map"


class TieRule(str, Enum):
    """How a two-way tie is broken in a four-song game."""

    SECOND_HIGHEST = "second_highest"
    WHEEL = "wheel"


NPC_LETTER = "X"
PLAYER_LETTERS = "ABCDEF"

SUPPORTED_MAP_SIZES = (15, 18, 20, 24, 25, 30, 36, 48)


class VariantRules(BaseModel):
    """Rule record for one mode/variant."""

    mode: GameMode
    variant: str
    player_count: Annotated[int, Field(ge=3, le=6)]
    songs: dict[Song, str]
    tokens_per_round: Annotated[int, Field(ge=1)]
    rounds_per_map: Annotated[int, Field(ge=1)]
    maps: Annotated[int, Field(ge=1, le=2)] = 1
    map_edges: int
    starting_currency: int = 30
    card_based: bool = False
    starting_cards: list[int] = []
    top_up_cards: list[int] = []
    money_hub: bool = True
    classical_stars: bool = False
    npc_tokens: Annotated[int, Field(ge=0)] = 0
    tie_rule: TieRule = TieRule.SECOND_HIGHEST
    final_placement: list[int] = []

    @property
    def total_rounds(self) -> int:
        """Bidding rounds over the whole game."""
        return self.rounds_per_map * self.maps

    @property
    def available_songs(self) -> list[Song]:
        """Songs players can bid on, in order."""
        return sorted(self.songs.keys(), key=lambda s: s.value)

    @property
    def letters(self) -> str:
        """Player letters used by the patterns."""
        return PLAYER_LETTERS[: self.player_count]

    @property
    def uses_npc_letter(self) -> bool:
        return any(NPC_LETTER in pat for pat in self.songs.values())

    @property
    def has_npc(self) -> bool:
        """Whether the game carries the synthetic NPC participant."""
        return self.npc_tokens > 0 or self.uses_npc_letter

    @model_validator(mode="after")
    def _chk_patterns(self) -> "VariantRules":
        """Ensure patterns match the token quota and the player letters."""
        if len(self.songs) < 2:
            raise ValueError(f"{self.key}: at least two songs are required")
        allowed = set(self.letters) | {NPC_LETTER}
        for song, pat in self.songs.items():
            if len(pat) != self.tokens_per_round:
                raise ValueError(
                    f"{self.key}: song {song.value} has {len(pat)} turns,"
                    f" expected {self.tokens_per_round}"
                )
            bad = set(pat) - allowed
            if bad:
                raise ValueError(f"{self.key}: unknown letters {sorted(bad)}")
        return self

    @model_validator(mode="after")
    def _chk_edge_budget(self) -> "VariantRules":
        """Ensure every edge of each map is filled exactly."""
        if self.map_edges not in SUPPORTED_MAP_SIZES:
            raise ValueError(f"{self.key}: unsupported map size {self.map_edges}")
        placed = (
            self.tokens_per_round * self.rounds_per_map
            + self.npc_tokens
            + sum(self.final_placement)
        )
        if placed != self.map_edges:
            raise ValueError(
                f"{self.key}: {placed} tokens per map for {self.map_edges} edges"
            )
        if self.final_placement and len(self.final_placement) != self.player_count:
            raise ValueError(f"{self.key}: final placement schedule per player")
        if self.card_based and not self.starting_cards:
            raise ValueError(f"{self.key}: card variant without starting cards")
        return self

    @property
    def key(self) -> str:
        return f"{self.mode.value}/{self.variant}"


class RuleBook(RootModel[list[VariantRules]]):
    """All rule records."""

    root: list[VariantRules]

    def __iter__(self) -> Iterator[VariantRules]:  # type: ignore[override]
        return iter(self.root)

    @model_validator(mode="after")
    def _chk_unique(self) -> "RuleBook":
        """Ensure each mode/variant is defined once."""
        keys = [r.key for r in self.root]
        dupes = {k for k in keys if keys.count(k) > 1}
        if dupes:
            raise ValueError(f"Duplicate rule records: {sorted(dupes)}")
        return self

    def variants_for(self, mode: GameMode) -> list[str]:
        """Variant labels defined for a mode."""
        return [r.variant for r in self.root if r.mode == mode]

    def get(self, mode: GameMode, variant: str) -> VariantRules:
        """Get the rule record for a mode and variant label."""
        for rules in self.root:
            if rules.mode == mode and rules.variant == variant:
                return rules
        raise UnknownVariant(f"No rules for mode {mode.value!r}, variant {variant!r}")

    def __getitem__(self, key: tuple[GameMode, str]) -> VariantRules:
        """Get a rule record (dict style)."""
        try:
            return self.get(*key)
        except UnknownVariant as uv:
            raise KeyError(key) from uv


class FallbackLayout(BaseModel):
    """Hand-authored map used when random growth keeps failing."""

    edges: int
    hexes: list[HexCoord]

    @model_validator(mode="after")
    def _chk_shape(self) -> "FallbackLayout":
        """Ensure the layout has the declared edge count and no dead ends."""
        cells = set(self.hexes)
        if len(cells) != len(self.hexes):
            raise ValueError(f"Layout {self.edges}: duplicate hexes")
        n_edges = len(all_edges(cells))
        if n_edges != self.edges:
            raise ValueError(f"Layout {self.edges}: has {n_edges} edges")
        for coord in self.hexes:
            if count_neighbors(coord, cells) < 2:
                raise ValueError(f"Layout {self.edges}: {coord!r} has too few edges")
        return self


class FallbackLayouts(RootModel[list[FallbackLayout]]):
    """Fallback layouts, one per supported size."""

    root: list[FallbackLayout]

    def closest(self, edges: int) -> FallbackLayout:
        """Layout whose size is closest to the requested edge count."""
        return min(self.root, key=lambda lyo: (abs(lyo.edges - edges), lyo.edges))
