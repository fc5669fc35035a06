"""What each participant is allowed to see."""

from typing import Any

from payola_engine.game.state import GameState, GameStatus

HIDDEN_BID_FIELDS = ("song", "amount", "cards")


def _visible_bidding_rounds(state: GameState) -> set[int]:
    """Bidding rounds of the current game round whose bids are public."""
    if state.status == GameStatus.ROUND1:
        return set()
    if state.status == GameStatus.ROUND2:
        return {1}
    return {1, 2}


def player_view(state: GameState, viewer_id: str | None = None) -> dict[str, Any]:
    """State snapshot filtered for a player (or a spectator, with `None`).

    Other players' bids of the running round are reduced to "submitted" until
    they are resolved; other players' remaining cards are reported as a count.
    """
    data = state.model_dump(mode="json", exclude={"seed"})
    visible = _visible_bidding_rounds(state)

    bids = []
    for bid in data["bids"]:
        hidden = (
            bid["game_round"] == state.round_number
            and bid["round"] not in visible
            and bid["player_id"] != viewer_id
        )
        if hidden:
            bid = {k: v for k, v in bid.items() if k not in HIDDEN_BID_FIELDS}
            bid["submitted"] = True
        bids.append(bid)
    data["bids"] = bids

    for player in data["players"]:
        cards = player.get("cards")
        if cards is not None and player["id"] != viewer_id:
            player["cards"] = {"remaining_count": len(cards["remaining"]), "spent": cards["spent"]}

    data["current_player_id"] = state.current_player_id
    data["expected_bidders"] = state.expected_bidders
    data["viewer_id"] = viewer_id
    return data
