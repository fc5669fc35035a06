"""Game storage."""

import logging
from abc import ABC, abstractmethod

from payola_engine.errors import ConcurrentModification, DuplicateGame, GameNotFound
from payola_engine.game.state import GameState

logger = logging.getLogger(__name__)


class GameRepository(ABC):
    """Where games are kept between requests."""

    @abstractmethod
    def create(self, state: GameState) -> None:
        """Store a new game."""

    @abstractmethod
    def load(self, game_id: str) -> GameState:
        """Load a game, raising `GameNotFound` if it does not exist."""

    @abstractmethod
    def save(self, state: GameState, *, expected_version: int) -> None:
        """Replace a game, if the stored version is still `expected_version`."""


class InMemoryGameRepository(GameRepository):
    """Games kept as serialized JSON in a dict."""

    def __init__(self, games: dict[str, str] = {}):
        self.games = dict(games)

    def create(self, state: GameState) -> None:
        if state.id in self.games:
            raise DuplicateGame(f"Game {state.id} already exists")
        self.games[state.id] = state.model_dump_json()

    def load(self, game_id: str) -> GameState:
        try:
            raw = self.games[game_id]
        except KeyError as ke:
            raise GameNotFound(game_id) from ke
        return GameState.model_validate_json(raw)

    def save(self, state: GameState, *, expected_version: int) -> None:
        stored = self.load(state.id)
        if stored.version != expected_version:
            raise ConcurrentModification(
                f"Game {state.id} is at version {stored.version}, expected {expected_version}"
            )
        self.games[state.id] = state.model_dump_json()
        logger.debug(f"Saved game {state.id} at version {state.version}")
