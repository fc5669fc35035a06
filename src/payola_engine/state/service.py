"""Request-level operations on stored games."""

import logging
from datetime import datetime
from random import Random
from typing import Any, Callable
from uuid import uuid4

from payola_engine.data.models import GameMode, Orientation, Song, TokenType
from payola_engine.errors import ConcurrentModification, UnknownPlayer
from payola_engine.game.engine import Action, GameEngine, Outcome
from payola_engine.game.state import GameState, GameStatus, utcnow
from payola_engine.game.views import player_view
from payola_engine.state.repository import GameRepository, InMemoryGameRepository

logger = logging.getLogger(__name__)

MAX_SAVE_ATTEMPTS = 3

Clock = Callable[[], datetime]


class GameService:
    """Loads a game, applies an engine operation, stores it, runs automation."""

    def __init__(
        self,
        repository: GameRepository | None = None,
        engine: GameEngine | None = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository if repository is not None else InMemoryGameRepository()
        self.engine = engine if engine is not None else GameEngine()
        self.clock = clock

    @staticmethod
    def rng_for(state: GameState) -> Random:
        """Random source for an operation; reproducible for seeded games."""
        if state.seed is None:
            return Random()
        return Random(f"{state.seed}:{state.version}")

    def _mutate(self, game_id: str, op: Callable[[GameState], Outcome]) -> Outcome:
        """Apply `op` to the stored game, retrying if someone else saved first."""
        for attempt in range(MAX_SAVE_ATTEMPTS):
            state = self.repository.load(game_id)
            out = op(state)
            if not out.changed:
                return out
            try:
                self.repository.save(out.state, expected_version=state.version)
            except ConcurrentModification:
                logger.warning(f"Game {game_id}: concurrent update, retry {attempt + 1}")
                continue
            return out
        raise ConcurrentModification(f"Game {game_id}: gave up after {MAX_SAVE_ATTEMPTS} tries")

    def _continue(self, state: GameState) -> GameState:
        """Run pending automated moves. Never fails the calling request."""
        out, done = self.engine.run_automation(
            state, rng=self.rng_for(state), now=self.clock()
        )
        if not out.changed:
            return state
        try:
            self.repository.save(out.state, expected_version=state.version)
        except ConcurrentModification:
            logger.info(f"Game {state.id}: automation superseded by another request")
            return self.repository.load(state.id)
        if not done:
            logger.info(f"Game {state.id}: automation left moves pending")
        return out.state

    # Lobby

    def create_game(
        self,
        *,
        mode: GameMode | str = GameMode.STANDARD,
        variant: str | None = None,
        seed: int | None = None,
        game_id: str | None = None,
    ) -> GameState:
        """Open a new lobby."""
        state = self.engine.create_game(
            game_id or uuid4().hex, mode=mode, variant=variant, seed=seed, now=self.clock()
        )
        self.repository.create(state)
        logger.info(f"Created game {state.id} ({state.mode.value})")
        return state

    def join_game(self, game_id: str, player_id: str, name: str) -> GameState:
        return self._mutate(
            game_id,
            lambda st: self.engine.add_player(st, player_id, name, now=self.clock()),
        ).state

    def add_ai_player(self, game_id: str, name: str | None = None) -> GameState:
        """Seat a computer player."""

        def op(st: GameState) -> Outcome:
            n_ai = sum(1 for p in st.players if p.is_ai) + 1
            return self.engine.add_player(
                st, f"ai_{n_ai}", name or f"Bot {n_ai}", is_ai=True, now=self.clock()
            )

        return self._mutate(game_id, op).state

    # Game flow

    def start_game(self, game_id: str, variant: str | None = None) -> GameState:
        """Start with the seated players, optionally choosing the variant."""

        def op(st: GameState) -> Outcome:
            if variant is not None and st.status == GameStatus.LOBBY:
                st = st.model_copy(update={"variant": variant})
            return self.engine.advance(
                st, Action.START, rng=self.rng_for(st), now=self.clock()
            )

        out = self._mutate(game_id, op)
        return self._continue(out.state)

    def advance(self, game_id: str, action: Action | str) -> GameState:
        out = self._mutate(
            game_id,
            lambda st: self.engine.advance(st, action, rng=self.rng_for(st), now=self.clock()),
        )
        if out.state.status == GameStatus.FINISHED:
            return out.state
        return self._continue(out.state)

    def submit_bid(
        self,
        game_id: str,
        player_id: str,
        song: Song | str,
        amount: int,
        cards: list[int] | None = None,
    ) -> GameState:
        out = self._mutate(
            game_id,
            lambda st: self.engine.submit_bid(
                st, player_id, song, amount, cards, rng=self.rng_for(st), now=self.clock()
            ),
        )
        return self._continue(out.state)

    def place_token(
        self,
        game_id: str,
        player_id: str,
        edge_id: str,
        token_type: TokenType | str,
        orientation: Orientation | str,
    ) -> Outcome:
        """Place a token; the outcome carries any immediate reward."""
        out = self._mutate(
            game_id,
            lambda st: self.engine.place_token(
                st,
                player_id,
                edge_id,
                token_type,
                orientation,
                rng=self.rng_for(st),
                now=self.clock(),
            ),
        )
        return Outcome(self._continue(out.state), changed=out.changed, reward=out.reward)

    def auto_place(self, game_id: str) -> Outcome:
        """Act for the current AI/NPC, or for a human who ran out of time."""
        out = self._mutate(
            game_id,
            lambda st: self.engine.auto_place(st, rng=self.rng_for(st), now=self.clock()),
        )
        return Outcome(self._continue(out.state), changed=out.changed, reward=out.reward)

    def check_timeouts(self, game_id: str) -> GameState:
        out = self._mutate(
            game_id,
            lambda st: self.engine.check_timeouts(st, rng=self.rng_for(st), now=self.clock()),
        )
        return self._continue(out.state)

    def get_state(self, game_id: str, viewer_id: str | None = None) -> dict[str, Any]:
        """Filtered snapshot. Overdue and automated moves are played first."""
        state = self.repository.load(game_id)
        if state.status not in (GameStatus.LOBBY, GameStatus.FINISHED):
            state = self._continue(state)
        if viewer_id is not None and viewer_id not in state.player_ids:
            raise UnknownPlayer(f"{viewer_id} is not seated in game {game_id}")
        return player_view(state, viewer_id)
