"""
Tests for the service layer: storage, automation on requests, and player views.
"""

from datetime import datetime, timedelta, timezone

import pytest

from payola_engine.errors import (
    ConcurrentModification,
    DuplicateGame,
    GameNotFound,
    UnknownPlayer,
)
from payola_engine.game import ai
from payola_engine.game.engine import Action
from payola_engine.game.state import GameState, GameStatus
from payola_engine.game.views import player_view
from payola_engine.state.repository import InMemoryGameRepository
from payola_engine.state.service import GameService

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def make_service():
    clock = FakeClock()
    return GameService(InMemoryGameRepository(), clock=clock), clock


def lobby(service, n_humans=3, n_ai=0, **kwargs):
    st = service.create_game(seed=7, game_id="g1", **kwargs)
    for i in range(1, n_humans + 1):
        service.join_game(st.id, f"p{i}", f"Player {i}")
    for _ in range(n_ai):
        service.add_ai_player(st.id)
    return st.id


class TestRepository:

    def test_round_trip(self):
        service, _ = make_service()
        gid = lobby(service)
        st = service.start_game(gid)
        again = GameState.model_validate_json(st.model_dump_json())
        assert again == st
        assert service.repository.load(gid) == st

    def test_missing_game(self):
        with pytest.raises(GameNotFound):
            InMemoryGameRepository().load("nope")

    def test_duplicate_game(self):
        repo = InMemoryGameRepository()
        repo.create(GameState(id="g"))
        with pytest.raises(DuplicateGame):
            repo.create(GameState(id="g"))

    def test_stale_save_rejected(self):
        repo = InMemoryGameRepository()
        repo.create(GameState(id="g"))
        first = repo.load("g")
        repo.save(first.model_copy(update={"version": 1}), expected_version=0)
        with pytest.raises(ConcurrentModification):
            repo.save(first.model_copy(update={"version": 1}), expected_version=0)

    def test_repositories_do_not_share_games(self):
        a = InMemoryGameRepository()
        a.create(GameState(id="g"))
        with pytest.raises(GameNotFound):
            InMemoryGameRepository().load("g")


class TestService:

    def test_versions_increase(self):
        service, _ = make_service()
        gid = lobby(service)
        v0 = service.repository.load(gid).version
        service.start_game(gid)
        assert service.repository.load(gid).version == v0 + 1

    def test_start_with_variant(self):
        service, _ = make_service()
        gid = lobby(service, mode="multi_map")
        st = service.start_game(gid, variant="3A")
        assert st.variant == "3A"
        assert len(st.layout.edges) == 15

    def test_computer_players_bid_after_human(self):
        service, _ = make_service()
        gid = lobby(service, n_humans=1, n_ai=2)
        st = service.start_game(gid)
        assert st.expected_bidders == ["p1"]
        st = service.submit_bid(gid, "p1", "A", 1)
        assert st.status == GameStatus.RESULTS
        assert service.repository.load(gid).status == GameStatus.RESULTS

    def test_broken_computer_player_does_not_fail_request(self, monkeypatch):
        def broken(state, pid, rng):
            raise KeyError("bad lookup")

        monkeypatch.setattr(ai, "choose_bid", broken)
        service, _ = make_service()
        gid = lobby(service, n_humans=1, n_ai=2)
        st = service.start_game(gid)
        assert st.status == GameStatus.ROUND1
        stored = service.repository.load(gid)
        assert stored.status == GameStatus.ROUND1
        assert stored.bids == []

        st = service.submit_bid(gid, "p1", "A", 1)
        assert st.status == GameStatus.ROUND1
        assert [b.player_id for b in service.repository.load(gid).bids] == ["p1"]

    def test_ai_names(self):
        service, _ = make_service()
        gid = lobby(service, n_humans=1, n_ai=2)
        st = service.repository.load(gid)
        assert [p.id for p in st.players] == ["p1", "ai_1", "ai_2"]
        assert all(p.is_ai for p in st.players[1:])

    def test_timeout_on_read(self):
        service, clock = make_service()
        gid = lobby(service)
        service.start_game(gid)
        for pid in ("p1", "p2", "p3"):
            service.submit_bid(gid, pid, "A", 1)
        st = service.advance(gid, Action.NEXT_ROUND)
        assert st.status == GameStatus.TOKEN_PLACEMENT
        first = st.current_player_id

        service.get_state(gid, "p1")
        assert service.repository.load(gid).tokens == []

        clock.advance(91)
        view = service.get_state(gid, "p1")
        stored = service.repository.load(gid)
        assert len(stored.tokens) == 1
        assert stored.tokens[0].player_id == first
        assert len(view["tokens"]) == 1

    def test_check_timeouts(self):
        service, clock = make_service()
        gid = lobby(service)
        service.start_game(gid)
        for pid in ("p1", "p2", "p3"):
            service.submit_bid(gid, pid, "A", 1)
        service.advance(gid, Action.NEXT_ROUND)
        assert service.check_timeouts(gid).tokens == []
        clock.advance(120)
        assert len(service.check_timeouts(gid).tokens) == 1

    def test_place_token_reports_reward(self):
        service, _ = make_service()
        gid = lobby(service)
        service.start_game(gid)
        for pid in ("p1", "p2", "p3"):
            service.submit_bid(gid, pid, "A", 1)
        st = service.advance(gid, "startTokenPlacement")
        out = service.place_token(
            gid, st.current_player_id, st.highlighted_edges[0], "2/2", "A"
        )
        assert out.changed
        assert len(out.state.tokens) == 1

    def test_unseated_viewer(self):
        service, _ = make_service()
        gid = lobby(service)
        with pytest.raises(UnknownPlayer):
            service.get_state(gid, "stranger")

    def test_spectator_view(self):
        service, _ = make_service()
        gid = lobby(service)
        view = service.get_state(gid)
        assert view["viewer_id"] is None
        assert view["status"] == "LOBBY"


class TestViews:

    def setup_game(self):
        service, _ = make_service()
        gid = lobby(service)
        service.start_game(gid)
        return service, gid

    def test_promises_hidden_until_round_closes(self):
        service, gid = self.setup_game()
        service.submit_bid(gid, "p1", "A", 4)
        mine = service.get_state(gid, "p1")["bids"][0]
        theirs = service.get_state(gid, "p2")["bids"][0]
        assert mine["amount"] == 4
        assert theirs["submitted"] is True
        assert "amount" not in theirs and "song" not in theirs
        assert theirs["player_id"] == "p1"

    def test_bribes_hidden_promises_shown(self):
        service, gid = self.setup_game()
        service.submit_bid(gid, "p1", "A", 4)
        service.submit_bid(gid, "p2", "B", 0)
        service.submit_bid(gid, "p3", "A", 0)
        service.submit_bid(gid, "p2", "B", 1)
        view = service.get_state(gid, "p3")
        assert view["status"] == "ROUND2"
        promises = [b for b in view["bids"] if b["round"] == 1]
        bribes = [b for b in view["bids"] if b["round"] == 2]
        assert [b["amount"] for b in promises] == [4, 0, 0]
        assert len(bribes) == 1 and "amount" not in bribes[0]

    def test_everything_shown_after_resolution(self):
        service, gid = self.setup_game()
        for pid in ("p1", "p2", "p3"):
            service.submit_bid(gid, pid, "B", 2)
        view = service.get_state(gid, "p1")
        assert view["status"] == "RESULTS"
        assert all(b["amount"] == 2 for b in view["bids"])

    def test_seed_not_shown(self):
        service, gid = self.setup_game()
        view = service.get_state(gid, "p1")
        assert "seed" not in view
        assert "seed" not in service.get_state(gid)
        assert service.repository.load(gid).seed == 7

    def test_other_players_cards_counted(self):
        service, _ = make_service()
        gid = lobby(service, n_humans=4, mode="multi_map")
        st = service.start_game(gid, variant="4B")
        view = player_view(st, "p1")
        mine, other = view["players"][0], view["players"][1]
        assert mine["cards"]["remaining"] == [1, 2, 3, 4, 5]
        assert other["cards"] == {"remaining_count": 5, "spent": []}
