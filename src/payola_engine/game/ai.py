"""Computer players."""

import logging
from random import Random

from payola_engine.data.models import PLAYER_TOKEN_TYPES, HexType, Orientation, Song, TokenType
from payola_engine.errors import InsufficientEdges
from payola_engine.game.bidding import bribe_need, song_totals
from payola_engine.game.cards import find_card_combination, max_cards_for_round, spendable_amounts
from payola_engine.game.state import GameState, GameStatus
from payola_engine.map.tokens import influence_by_hex, resolve_token_values

logger = logging.getLogger(__name__)

MAX_CASUAL_BID = 10


def preferred_songs(state: GameState, player_id: str) -> list[Song]:
    """Songs that give the player the most placements."""
    counts = {
        song: order.count(player_id) for song, order in state.turn_orders.items()
    }
    if not counts:
        return list(state.rules.available_songs)
    best = max(counts.values())
    return sorted((s for s, c in counts.items() if c == best), key=lambda s: s.value)


def _affordable(state: GameState, player_id: str, amount: int) -> tuple[int, list[int] | None]:
    """Largest legal amount not above `amount`, with the cards to pay it."""
    player = state.get_player(player_id)
    if player.cards is None:
        return max(0, min(amount, player.currency)), None
    cap = max_cards_for_round(state.rules, state.round_number)
    options = [a for a in spendable_amounts(player.cards.remaining, cap) if a <= amount]
    best = max(options, default=0)
    return best, find_card_combination(player.cards.remaining, best, cap)


def _exact(state: GameState, player_id: str, amount: int) -> tuple[bool, list[int] | None]:
    """Whether the player can pay exactly `amount`."""
    player = state.get_player(player_id)
    if player.cards is None:
        return 0 <= amount <= player.currency, None
    cap = max_cards_for_round(state.rules, state.round_number)
    cards = find_card_combination(player.cards.remaining, amount, cap)
    return cards is not None, cards


def choose_bid(
    state: GameState, player_id: str, rng: Random
) -> tuple[Song, int, list[int] | None]:
    """Pick song, amount and cards for the current bidding round."""
    player = state.get_player(player_id)
    song = rng.choice(preferred_songs(state, player_id))
    budget = player.spendable

    if state.status == GameStatus.ROUND2:
        totals = song_totals(state.round_bids(1), state.rules.available_songs)
        if len(state.zero_promisers) == 1:
            need = bribe_need(totals, song)
            ok, cards = _exact(state, player_id, need)
            if need > 0 and ok and rng.random() < 0.5:
                return song, need, cards
            return song, 0, [] if player.cards is not None else None
        target = max(totals.values()) + 1 if rng.random() < 0.5 else 0
        amount, cards = _affordable(state, player_id, target)
        return song, amount, cards

    if state.is_final_round:
        target = budget
    elif budget <= 0 or rng.random() < 0.5:
        target = 0
    else:
        target = rng.randint(1, min(budget, MAX_CASUAL_BID))
    amount, cards = _affordable(state, player_id, target)
    return song, amount, cards


def choose_placement(
    state: GameState, player_id: str, rng: Random
) -> tuple[str, TokenType, Orientation]:
    """Greedy placement: hub payouts first, then contested tiles."""
    layout = state.layout
    influence = influence_by_hex(state.map_tokens)
    best_score = None
    best: list[tuple[str, TokenType, Orientation]] = []
    for edge_id in state.free_highlighted_edges:
        edge = layout.edge(edge_id)
        for token_type in PLAYER_TOKEN_TYPES:
            for orientation in Orientation:
                values = resolve_token_values(edge, token_type, orientation)
                score = 0.0
                for coord, val in values.items():
                    tile = layout.tile_at(coord)
                    if tile is None or val == 0:
                        continue
                    if tile.primary_type == HexType.POWER_HUB:
                        score += val * 1.5
                    elif tile.primary_type == HexType.MONEY_HUB:
                        score += val
                    else:
                        here = influence.get(coord, {})
                        mine = here.get(player_id, 0)
                        rival = max(
                            (v for pid, v in here.items() if pid != player_id), default=0
                        )
                        if mine > rival:
                            score += val * 0.25  # already ahead
                        elif mine + val > rival:
                            score += val * len(tile.types)
                        else:
                            score += val * 0.1
                if best_score is None or score > best_score:
                    best_score = score
                    best = [(edge_id, token_type, orientation)]
                elif score == best_score:
                    best.append((edge_id, token_type, orientation))
    if not best:
        raise InsufficientEdges(f"No highlighted edge left for {player_id}")
    choice = rng.choice(best)
    logger.debug(f"AI {player_id} places {choice[1].value}{choice[2].value} on {choice[0]}")
    return choice
