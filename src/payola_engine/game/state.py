"""Game state records."""

from datetime import datetime, timezone
from enum import Enum

from typing_extensions import Annotated
from pydantic import BaseModel, Field

from payola_engine.data import rule_book
from payola_engine.data.models import GameMode, HexType, Song, VariantRules
from payola_engine.errors import MissingPrecursorState, UnknownPlayer
from payola_engine.game.cards import CardInventory
from payola_engine.game.patterns import NPC_PLAYER_ID
from payola_engine.game.scoring import FinalResults
from payola_engine.map.layout import MapLayout
from payola_engine.map.tokens import InfluenceToken

MIN_PLAYERS = 3
MAX_PLAYERS = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStatus(str, Enum):
    """Phase of the game."""

    LOBBY = "LOBBY"
    ROUND1 = "ROUND1"
    ROUND2 = "ROUND2"
    RESULTS = "RESULTS"
    TOKEN_PLACEMENT = "TOKEN_PLACEMENT"
    FIRST_MAP_COMPLETED = "FIRST_MAP_COMPLETED"
    FINAL_PLACEMENT = "FINAL_PLACEMENT"
    FINISHED = "FINISHED"


BIDDING_STATUSES = (GameStatus.ROUND1, GameStatus.ROUND2)
PLACEMENT_STATUSES = (GameStatus.TOKEN_PLACEMENT, GameStatus.FINAL_PLACEMENT)


class Player(BaseModel):
    """Seat at the table."""

    id: str
    name: str
    seat: int
    is_ai: bool = False
    currency: int = 0
    victory_points: int = 0
    cards: CardInventory | None = None

    @property
    def spendable(self) -> int:
        """Largest amount the player could bid."""
        if self.cards is not None:
            return self.cards.remaining_value
        return self.currency


class Bid(BaseModel):
    """A bid. Promise bids are round 1, bribes round 2."""

    model_config = {"frozen": True}

    game_id: str
    player_id: str
    round: Annotated[int, Field(ge=1, le=2)]
    game_round: int
    song: Song
    amount: Annotated[int, Field(ge=0)]
    cards: list[int] | None = None


class TieBreak(str, Enum):
    """How the winning song was decided."""

    NONE = "none"
    ELIMINATION = "elimination"
    SECOND_HIGHEST = "second_highest"
    RANDOM = "random"


class BidResolution(BaseModel):
    """Outcome of one round of bidding."""

    game_round: int
    song_totals: dict[Song, int]
    winning_song: Song
    tie_break: TieBreak = TieBreak.NONE
    payments: dict[str, int] = {}
    spent_cards: dict[str, list[int]] = {}


class MapRecord(BaseModel):
    """Archived map of a multi-map game."""

    map_number: int
    layout: MapLayout
    tokens: list[InfluenceToken]
    symbols: dict[str, dict[HexType, int]] = {}


class GameState(BaseModel):
    """Everything about one game."""

    id: str
    mode: GameMode = GameMode.STANDARD
    variant: str | None = None
    status: GameStatus = GameStatus.LOBBY
    version: int = 0
    seed: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    players: list[Player] = []
    round_number: int = 0
    map_number: int = 0
    map_layout: MapLayout | None = None

    turn_orders: dict[Song, list[str]] = {}
    highlighted_edges: list[str] = []
    current_turn_order: list[str] = []
    current_turn_index: int = 0
    placement_deadline: datetime | None = None
    winning_song: Song | None = None

    bids: list[Bid] = []
    resolutions: list[BidResolution] = []
    tokens: list[InfluenceToken] = []
    first_map: MapRecord | None = None
    final_results: FinalResults | None = None

    # Rules

    @property
    def rules(self) -> VariantRules:
        """Rule record of this game (only once a variant is set)."""
        if self.variant is None:
            raise MissingPrecursorState(f"Game {self.id} has no variant yet")
        return rule_book.get(self.mode, self.variant)

    @property
    def layout(self) -> MapLayout:
        """Current map, which must exist."""
        if self.map_layout is None:
            raise MissingPrecursorState(f"Game {self.id} has no map")
        return self.map_layout

    @property
    def is_final_round(self) -> bool:
        return self.round_number >= self.rules.total_rounds

    @property
    def is_last_round_of_map(self) -> bool:
        return self.round_number > 0 and self.round_number % self.rules.rounds_per_map == 0

    # Players

    @property
    def player_ids(self) -> list[str]:
        return [p.id for p in sorted(self.players, key=lambda p: p.seat)]

    def get_player(self, player_id: str) -> Player:
        """Get player by id."""
        for player in self.players:
            if player.id == player_id:
                return player
        raise UnknownPlayer(f"No player {player_id!r} in game {self.id}")

    def is_automated(self, player_id: str) -> bool:
        """Whether the engine acts for this participant."""
        if player_id == NPC_PLAYER_ID:
            return True
        return self.get_player(player_id).is_ai

    # Bids

    def round_bids(self, bidding_round: int, game_round: int | None = None) -> list[Bid]:
        """Bids of one bidding round (of the current game round by default)."""
        if game_round is None:
            game_round = self.round_number
        return [
            b for b in self.bids if b.game_round == game_round and b.round == bidding_round
        ]

    def find_bid(self, player_id: str, bidding_round: int) -> Bid | None:
        for bid in self.round_bids(bidding_round):
            if bid.player_id == player_id:
                return bid
        return None

    @property
    def zero_promisers(self) -> list[str]:
        """Players who promised 0 this round, and so may bribe."""
        return [b.player_id for b in self.round_bids(1) if b.amount == 0]

    @property
    def expected_bidders(self) -> list[str]:
        """Players who still owe a bid in the current bidding round."""
        if self.status == GameStatus.ROUND1:
            done = {b.player_id for b in self.round_bids(1)}
            return [pid for pid in self.player_ids if pid not in done]
        if self.status == GameStatus.ROUND2:
            done = {b.player_id for b in self.round_bids(2)}
            return [pid for pid in self.zero_promisers if pid not in done]
        return []

    @property
    def last_resolution(self) -> BidResolution | None:
        for res in reversed(self.resolutions):
            if res.game_round == self.round_number:
                return res
        return None

    # Tokens

    @property
    def map_tokens(self) -> list[InfluenceToken]:
        """Tokens on the current map."""
        return [t for t in self.tokens if t.map_number == self.map_number]

    @property
    def placed_edges(self) -> set[str]:
        return {t.edge_id for t in self.map_tokens}

    @property
    def free_highlighted_edges(self) -> list[str]:
        placed = self.placed_edges
        return [e for e in self.highlighted_edges if e not in placed]

    @property
    def current_player_id(self) -> str | None:
        """Whose turn it is to place, if anyone."""
        if self.status not in PLACEMENT_STATUSES:
            return None
        if self.current_turn_index >= len(self.current_turn_order):
            return None
        return self.current_turn_order[self.current_turn_index]

    @property
    def placement_done(self) -> bool:
        return self.current_turn_index >= len(self.current_turn_order)

    def tokens_placed_by(self, player_id: str) -> int:
        return sum(1 for t in self.tokens if t.player_id == player_id)

    @property
    def map_complete(self) -> bool:
        return self.placed_edges >= set(self.layout.edges)
