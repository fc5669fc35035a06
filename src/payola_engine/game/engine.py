"""Game progression: phase transitions, bidding, placement and automation.

Every public method takes a state and returns an `Outcome` with a new state;
the state passed in is never modified. Phase transitions are looked up in
`TRANSITIONS` by `(status, action)`; actions that do not apply to the current
status are no-ops, so repeated or concurrent triggers are harmless.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from random import Random
from typing import Callable

from pydantic import BaseModel

from payola_engine.data import rule_book
from payola_engine.data.models import GameMode, Orientation, Song, TokenType
from payola_engine.errors import (
    AmountMismatch,
    CardNotAvailable,
    DuplicateBid,
    DuplicatePlayer,
    InsufficientEdges,
    InsufficientFunds,
    InvalidBribe,
    InvalidPlayerCount,
    InvalidToken,
    LobbyFull,
    MissingPrecursorState,
    NotEligibleToBid,
    PhaseClosed,
    UnknownAction,
    UnknownSong,
    UnknownVariant,
)
from payola_engine.game import ai
from payola_engine.game.bidding import (
    bid_is_payable,
    bribe_need,
    determine_winner,
    song_totals,
)
from payola_engine.game.cards import CardInventory, find_card_combination, max_cards_for_round
from payola_engine.game.patterns import NPC_PLAYER_ID, build_turn_orders
from payola_engine.game.placement import (
    Reward,
    final_placement_order,
    immediate_reward,
    random_placement,
    select_highlighted,
    validate_placement,
)
from payola_engine.game.scoring import map_symbols, score_game
from payola_engine.game.state import (
    BIDDING_STATUSES,
    MAX_PLAYERS,
    MIN_PLAYERS,
    PLACEMENT_STATUSES,
    Bid,
    BidResolution,
    GameState,
    GameStatus,
    MapRecord,
    Player,
    utcnow,
)
from payola_engine.map.generator import MapGenerator, default_generator
from payola_engine.map.layout import MapLayout
from payola_engine.map.tokens import InfluenceToken
from payola_engine.settings import EngineSettings, default_settings

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Advance keywords."""

    START = "start"
    NEXT_ROUND = "nextRound"
    START_TOKEN_PLACEMENT = "startTokenPlacement"
    COMPLETE_TOKEN_PLACEMENT = "completeTokenPlacement"
    START_SECOND_MAP = "startSecondMap"
    FINISH = "finish"


@dataclass
class Outcome:
    """Result of an engine operation."""

    state: GameState
    changed: bool = True
    reward: Reward | None = None


class GameEngine(BaseModel):
    """Rules engine."""

    settings: EngineSettings = default_settings
    generator: MapGenerator = default_generator

    # Lobby

    def create_game(
        self,
        game_id: str,
        *,
        mode: GameMode | str = GameMode.STANDARD,
        variant: str | None = None,
        seed: int | None = None,
        now: datetime | None = None,
    ) -> GameState:
        """New game in the lobby."""
        mode = GameMode(mode)
        if variant is not None and variant not in rule_book.variants_for(mode):
            raise UnknownVariant(f"No variant {variant!r} for mode {mode.value!r}")
        now = now or utcnow()
        return GameState(
            id=game_id, mode=mode, variant=variant, seed=seed, created_at=now, updated_at=now
        )

    def add_player(
        self,
        state: GameState,
        player_id: str,
        name: str,
        *,
        is_ai: bool = False,
        now: datetime | None = None,
    ) -> Outcome:
        """Seat a player in the lobby."""
        if state.status != GameStatus.LOBBY:
            raise PhaseClosed("Players can only join in the lobby")
        if player_id == NPC_PLAYER_ID or player_id in state.player_ids:
            raise DuplicatePlayer(f"Player id {player_id!r} is taken")
        if len(state.players) >= MAX_PLAYERS:
            raise LobbyFull(f"At most {MAX_PLAYERS} players")
        new = state.model_copy(deep=True)
        seat = max((p.seat for p in new.players), default=-1) + 1
        new.players.append(Player(id=player_id, name=name, seat=seat, is_ai=is_ai))
        self._touch(new, now or utcnow())
        return Outcome(new)

    # Phase transitions

    def advance(
        self,
        state: GameState,
        action: Action | str,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """Apply an advance keyword. Inapplicable actions are silent no-ops."""
        try:
            action = Action(action)
        except ValueError as ve:
            raise UnknownAction(f"Unknown action: {action!r}") from ve
        rng = rng or Random()
        now = now or utcnow()

        if action == Action.FINISH:
            handler: Handler | None = GameEngine._finish_early
        else:
            handler = TRANSITIONS.get((state.status, action))
        if handler is None:
            logger.debug(f"Game {state.id}: {action.value} ignored in {state.status.value}")
            return Outcome(state, changed=False)

        new = state.model_copy(deep=True)
        if not handler(self, new, rng, now):
            return Outcome(state, changed=False)
        self._touch(new, now)
        return Outcome(new)

    def _start(self, state: GameState, rng: Random, now: datetime) -> bool:
        n_players = len(state.players)
        if not MIN_PLAYERS <= n_players <= MAX_PLAYERS:
            raise InvalidPlayerCount(
                f"Need {MIN_PLAYERS}-{MAX_PLAYERS} players, have {n_players}"
            )
        variant = state.variant or str(n_players)
        rules = rule_book.get(state.mode, variant)
        if rules.player_count != n_players:
            raise InvalidPlayerCount(
                f"Variant {rules.key} is for {rules.player_count} players, have {n_players}"
            )
        state.variant = variant
        for player in state.players:
            player.currency = rules.starting_currency
            player.victory_points = 0
            player.cards = (
                CardInventory(remaining=sorted(rules.starting_cards))
                if rules.card_based
                else None
            )
        state.map_number = 1
        state.map_layout = self._new_map(state, rng)
        self._begin_round(state, 1, rng)
        logger.info(
            f"Game {state.id} started: {rules.key}, {state.layout.map_type},"
            f" {rules.total_rounds} rounds"
        )
        return True

    def _new_map(self, state: GameState, rng: Random) -> MapLayout:
        rules = state.rules
        return self.generator.generate(
            rules.map_edges,
            player_count=rules.player_count,
            money_hub=rules.money_hub,
            classical_stars=rules.classical_stars,
            total_rounds=rules.rounds_per_map,
            rng=rng,
        )

    def _begin_round(self, state: GameState, round_number: int, rng: Random) -> None:
        """Open bidding for a round: new turn orders and highlighted edges."""
        rules = state.rules
        state.round_number = round_number
        state.status = GameStatus.ROUND1
        state.winning_song = None
        state.turn_orders = build_turn_orders(rules, state.player_ids, rng)
        count = rules.tokens_per_round
        if rules.npc_tokens and state.is_last_round_of_map:
            count += rules.npc_tokens
        state.highlighted_edges = select_highlighted(
            state.layout.edges, state.placed_edges, count, rng
        )
        state.current_turn_order = []
        state.current_turn_index = 0
        state.placement_deadline = None
        logger.info(f"Game {state.id}: round {round_number} bidding opened")

    def _start_token_placement(self, state: GameState, rng: Random, now: datetime) -> bool:
        if state.winning_song is None:
            raise MissingPrecursorState(f"Game {state.id}: no winning song")
        if not state.highlighted_edges:
            raise MissingPrecursorState(f"Game {state.id}: no highlighted edges")
        state.current_turn_order = list(state.turn_orders[state.winning_song])
        state.current_turn_index = 0
        state.status = GameStatus.TOKEN_PLACEMENT
        state.placement_deadline = self._deadline(now)
        logger.info(
            f"Game {state.id}: placement for song {state.winning_song.value},"
            f" order {state.current_turn_order}"
        )
        if state.placement_done:
            self._complete_token_placement(state, rng, now)
        return True

    def _complete_token_placement(self, state: GameState, rng: Random, now: datetime) -> bool:
        if not state.placement_done:
            logger.debug(f"Game {state.id}: placement still running")
            return False
        state.placement_deadline = None
        if state.status == GameStatus.FINAL_PLACEMENT:
            self._finish(state)
            return True

        rules = state.rules
        if rules.npc_tokens and state.is_last_round_of_map:
            self._npc_backfill(state)

        if rules.mode == GameMode.MULTI_MAP and state.is_last_round_of_map:
            if state.map_number == 1:
                self._close_first_map(state)
            else:
                self._finish(state)
        elif rules.mode == GameMode.POTS and state.is_final_round:
            self._enter_final_placement(state, now)
        elif state.is_final_round or state.map_complete:
            self._finish(state)
        else:
            self._begin_round(state, state.round_number + 1, rng)
        return True

    def _npc_backfill(self, state: GameState) -> None:
        """Blank NPC tokens on the highlighted edges nobody used."""
        leftover = state.free_highlighted_edges
        for edge_id in leftover:
            self._add_token(state, NPC_PLAYER_ID, edge_id, TokenType.BLANK, Orientation.A)
        if leftover:
            logger.info(f"Game {state.id}: NPC filled {len(leftover)} edge(s)")

    def _close_first_map(self, state: GameState) -> None:
        layout = state.layout
        tokens = state.map_tokens
        state.first_map = MapRecord(
            map_number=state.map_number,
            layout=layout,
            tokens=tokens,
            symbols=map_symbols(layout, tokens, state.player_ids),
        )
        state.status = GameStatus.FIRST_MAP_COMPLETED
        state.highlighted_edges = []
        state.current_turn_order = []
        state.current_turn_index = 0
        state.winning_song = None
        logger.info(f"Game {state.id}: first map completed after round {state.round_number}")

    def _start_second_map(self, state: GameState, rng: Random, now: datetime) -> bool:
        if state.first_map is None:
            raise MissingPrecursorState(f"Game {state.id}: first map was not archived")
        rules = state.rules
        state.map_number = 2
        state.map_layout = self._new_map(state, rng)
        for player in state.players:
            if player.cards is not None:
                player.cards.issue(rules.top_up_cards)
        self._begin_round(state, state.round_number + 1, rng)
        logger.info(f"Game {state.id}: second map {state.layout.map_type} started")
        return True

    def _enter_final_placement(self, state: GameState, now: datetime) -> None:
        """Last placement, richest players first."""
        placed = state.placed_edges
        free = [e for e in state.layout.edges if e not in placed]
        ranked = sorted(
            state.players,
            key=lambda p: (-p.spendable, state.tokens_placed_by(p.id), p.seat),
        )
        order = final_placement_order(
            [p.id for p in ranked], state.rules.final_placement, len(free)
        )
        state.status = GameStatus.FINAL_PLACEMENT
        state.highlighted_edges = free
        state.current_turn_order = order
        state.current_turn_index = 0
        state.winning_song = None
        state.placement_deadline = self._deadline(now)
        logger.info(f"Game {state.id}: final placement, order {order}")
        if not order:
            self._finish(state)

    def _finish_early(self, state: GameState, rng: Random, now: datetime) -> bool:
        if state.status == GameStatus.FINISHED:
            return False
        self._finish(state)
        return True

    def _finish(self, state: GameState) -> None:
        state.status = GameStatus.FINISHED
        state.placement_deadline = None
        state.highlighted_edges = []
        if state.map_layout is None:
            logger.info(f"Game {state.id} finished before it started")
            return
        maps: list[tuple[MapLayout, list[InfluenceToken]]] = []
        if state.first_map is not None:
            maps.append((state.first_map.layout, state.first_map.tokens))
        if state.first_map is None or state.map_number != state.first_map.map_number:
            maps.append((state.layout, state.map_tokens))
        leftovers = {}
        for pid in state.player_ids:
            player = state.get_player(pid)
            leftovers[pid] = player.spendable
        state.final_results = score_game(maps, leftovers)
        logger.info(f"Game {state.id} finished, winners {state.final_results.winners}")

    # Bidding

    def submit_bid(
        self,
        state: GameState,
        player_id: str,
        song: Song | str,
        amount: int,
        cards: list[int] | None = None,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """Record a promise (ROUND1) or bribe (ROUND2) bid."""
        if state.status not in BIDDING_STATUSES:
            raise PhaseClosed(f"Bidding is closed ({state.status.value})")
        rules = state.rules
        try:
            song = Song(song)
        except ValueError as ve:
            raise UnknownSong(f"Unknown song: {song!r}") from ve
        if song not in rules.songs:
            raise UnknownSong(f"Song {song.value} is not available in {rules.key}")

        new = state.model_copy(deep=True)
        player = new.get_player(player_id)
        bidding_round = 1 if new.status == GameStatus.ROUND1 else 2
        if new.find_bid(player_id, bidding_round) is not None:
            raise DuplicateBid(f"{player_id} already bid in bidding round {bidding_round}")
        if bidding_round == 2 and player_id not in new.zero_promisers:
            raise NotEligibleToBid("Only players who promised 0 may bribe")
        if amount < 0:
            raise AmountMismatch("Bid amount cannot be negative")
        if amount > player.spendable:
            raise InsufficientFunds(f"{player_id} can spend at most {player.spendable}")

        if player.cards is not None:
            cap = max_cards_for_round(rules, new.round_number)
            if cards is None:
                cards = find_card_combination(player.cards.remaining, amount, cap)
                if cards is None:
                    raise AmountMismatch(f"No card selection adds up to {amount}")
            player.cards.check_selection(cards, amount, cap)
        elif cards:
            raise CardNotAvailable("This game is played with currency, not cards")
        else:
            cards = None

        if bidding_round == 2 and len(new.zero_promisers) == 1 and amount != 0:
            need = bribe_need(song_totals(new.round_bids(1), rules.available_songs), song)
            if amount != need:
                raise InvalidBribe(f"Sole briber must bid 0 or exactly {need} on {song.value}")

        new.bids.append(
            Bid(
                game_id=new.id,
                player_id=player_id,
                round=bidding_round,
                game_round=new.round_number,
                song=song,
                amount=amount,
                cards=cards,
            )
        )
        logger.debug(f"Game {new.id}: {player_id} bid {amount} on {song.value}")
        self._check_bids_complete(new, rng or Random())
        self._touch(new, now or utcnow())
        return Outcome(new)

    def _check_bids_complete(self, state: GameState, rng: Random) -> None:
        """Move on once the last expected bid is in."""
        if state.expected_bidders:
            return
        if state.status == GameStatus.ROUND1 and state.zero_promisers:
            state.status = GameStatus.ROUND2
            logger.info(f"Game {state.id}: bribes open for {state.zero_promisers}")
            return
        self._resolve_bids(state, rng)

    def _resolve_bids(self, state: GameState, rng: Random) -> None:
        rules = state.rules
        bids = state.round_bids(1) + state.round_bids(2)
        totals = song_totals(bids, rules.available_songs)
        winner, how = determine_winner(totals, rng, tie_rule=rules.tie_rule)
        payments: dict[str, int] = {}
        spent: dict[str, list[int]] = {}
        for bid in bids:
            if bid.amount == 0 or not bid_is_payable(bid, winner):
                continue
            player = state.get_player(bid.player_id)
            if player.cards is not None:
                chosen = list(bid.cards or [])
                player.cards.spend(chosen)
                spent[player.id] = spent.get(player.id, []) + chosen
                paid = sum(chosen)
            else:
                paid = min(bid.amount, player.currency)
                player.currency -= paid
            payments[player.id] = payments.get(player.id, 0) + paid
        state.resolutions.append(
            BidResolution(
                game_round=state.round_number,
                song_totals=totals,
                winning_song=winner,
                tie_break=how,
                payments=payments,
                spent_cards=spent,
            )
        )
        state.winning_song = winner
        state.status = GameStatus.RESULTS
        logger.info(
            f"Game {state.id}: round {state.round_number} won by {winner.value}"
            f" ({how.value}), totals {dict((s.value, v) for s, v in totals.items())}"
        )

    # Placement

    def place_token(
        self,
        state: GameState,
        player_id: str,
        edge_id: str,
        token_type: TokenType | str,
        orientation: Orientation | str,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """Place the acting player's token on a highlighted edge."""
        if state.status not in PLACEMENT_STATUSES:
            raise PhaseClosed(f"No placement in {state.status.value}")
        try:
            token_type = TokenType(token_type)
            orientation = Orientation(orientation)
        except ValueError as ve:
            raise InvalidToken(f"Bad token: {token_type!r} {orientation!r}") from ve
        if (token_type == TokenType.BLANK) != (player_id == NPC_PLAYER_ID):
            raise InvalidToken(f"{player_id} cannot place a {token_type.value} token")
        validate_placement(
            edge_id,
            player_id,
            state.current_player_id,
            state.highlighted_edges,
            state.placed_edges,
        )
        rng = rng or Random()
        now = now or utcnow()
        new = state.model_copy(deep=True)
        reward = self._add_token(new, player_id, edge_id, token_type, orientation)
        new.current_turn_index += 1
        if new.placement_done:
            self._complete_token_placement(new, rng, now)
        else:
            new.placement_deadline = self._deadline(now)
        self._touch(new, now)
        return Outcome(new, reward=reward)

    def _add_token(
        self,
        state: GameState,
        player_id: str,
        edge_id: str,
        token_type: TokenType,
        orientation: Orientation,
    ) -> Reward | None:
        edge = state.layout.edge(edge_id)
        state.tokens.append(
            InfluenceToken(
                id=f"tok_{len(state.tokens) + 1}",
                game_id=state.id,
                player_id=player_id,
                round_number=state.round_number,
                map_number=state.map_number,
                edge_id=edge_id,
                token_type=token_type,
                orientation=orientation,
            )
        )
        if player_id == NPC_PLAYER_ID:
            return None
        reward = immediate_reward(edge, token_type, orientation, state.layout)
        if reward is not None:
            player = state.get_player(player_id)
            player.victory_points += reward.victory_points
            player.currency += reward.currency
            logger.debug(f"Game {state.id}: {player_id} earned {reward!r}")
        return reward

    def auto_place(
        self,
        state: GameState,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """Place for the current AI/NPC, or for a human whose time ran out."""
        pid = state.current_player_id
        if pid is None:
            return Outcome(state, changed=False)
        rng = rng or Random()
        now = now or utcnow()
        free = state.free_highlighted_edges
        if not free:
            raise InsufficientEdges(f"Game {state.id}: no highlighted edge left for {pid}")
        if pid == NPC_PLAYER_ID:
            edge_id, token_type, orientation = rng.choice(free), TokenType.BLANK, Orientation.A
        elif state.get_player(pid).is_ai:
            edge_id, token_type, orientation = ai.choose_placement(state, pid, rng)
        elif state.placement_deadline is not None and now >= state.placement_deadline:
            logger.info(f"Game {state.id}: {pid} timed out, placing at random")
            edge_id, token_type, orientation = random_placement(free, rng)
        else:
            return Outcome(state, changed=False)
        return self.place_token(
            state, pid, edge_id, token_type, orientation, rng=rng, now=now
        )

    def check_timeouts(
        self,
        state: GameState,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """Random placement for a human player whose time ran out."""
        pid = state.current_player_id
        now = now or utcnow()
        if pid is None or state.is_automated(pid):
            return Outcome(state, changed=False)
        if state.placement_deadline is None or now < state.placement_deadline:
            return Outcome(state, changed=False)
        return self.auto_place(state, rng=rng, now=now)

    # Automation

    def run_automation(
        self,
        state: GameState,
        *,
        rng: Random | None = None,
        now: datetime | None = None,
    ) -> tuple[Outcome, bool]:
        """Play every pending automated move.

        Returns the outcome and whether nothing automated is left pending.
        Failures are logged and stop the loop; the state reached so far is kept.
        """
        rng = rng or Random()
        now = now or utcnow()
        current = state
        changed = False
        for _ in range(self.settings.max_automation_steps):
            try:
                step = self._automation_step(current, rng, now)
            except Exception:
                logger.exception(f"Game {state.id}: automated move failed")
                return Outcome(current, changed=changed), False
            if step is None:
                return Outcome(current, changed=changed), True
            current = step.state
            changed = True
        logger.warning(f"Game {state.id}: automation stopped after the step limit")
        return Outcome(current, changed=changed), False

    def _automation_step(self, state: GameState, rng: Random, now: datetime) -> Outcome | None:
        if state.status in BIDDING_STATUSES:
            for pid in state.expected_bidders:
                if state.get_player(pid).is_ai:
                    song, amount, cards = ai.choose_bid(state, pid, rng)
                    return self.submit_bid(state, pid, song, amount, cards, rng=rng, now=now)
            return None
        if state.status in PLACEMENT_STATUSES:
            if state.placement_done:
                out = self.advance(
                    state, Action.COMPLETE_TOKEN_PLACEMENT, rng=rng, now=now
                )
            else:
                out = self.auto_place(state, rng=rng, now=now)
            return out if out.changed else None
        return None

    # Helpers

    def _deadline(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.settings.placement_timeout)

    @staticmethod
    def _touch(state: GameState, now: datetime) -> None:
        state.version += 1
        state.updated_at = now


Handler = Callable[[GameEngine, GameState, Random, datetime], bool]

TRANSITIONS: dict[tuple[GameStatus, Action], Handler] = {
    (GameStatus.LOBBY, Action.START): GameEngine._start,
    (GameStatus.RESULTS, Action.START_TOKEN_PLACEMENT): GameEngine._start_token_placement,
    (GameStatus.RESULTS, Action.NEXT_ROUND): GameEngine._start_token_placement,
    (GameStatus.TOKEN_PLACEMENT, Action.NEXT_ROUND): GameEngine._complete_token_placement,
    (
        GameStatus.TOKEN_PLACEMENT,
        Action.COMPLETE_TOKEN_PLACEMENT,
    ): GameEngine._complete_token_placement,
    (GameStatus.FINAL_PLACEMENT, Action.NEXT_ROUND): GameEngine._complete_token_placement,
    (
        GameStatus.FINAL_PLACEMENT,
        Action.COMPLETE_TOKEN_PLACEMENT,
    ): GameEngine._complete_token_placement,
    (GameStatus.FIRST_MAP_COMPLETED, Action.START_SECOND_MAP): GameEngine._start_second_map,
}
"""Phase transition table: `(status, action) -> handler`."""
