"""Authority: token attribution, seats, turn assertion and event fan-out."""

from __future__ import annotations

import pytest

from conftest import drain
from pirates.errors import MatchmakingError, NotInGame, OutOfTurn, UnknownSession, WrongPhase
from pirates.match import Phase
from pirates.registry import PlayerStatus


def start_battle(auth, p1, p2) -> None:
    auth.place_randomly(p1.token)
    auth.confirm_placement(p1.token)
    auth.place_randomly(p2.token)
    auth.confirm_placement(p2.token)


def test_game_creation_notifies_both(in_game) -> None:
    auth, p1, p2 = in_game
    assert len(auth.games) == 1
    game = next(iter(auth.games.values()))
    assert game.seats == {p1.id: 1, p2.id: 2}
    assert p1.status is PlayerStatus.IN_GAME and p2.status is PlayerStatus.IN_GAME

    types = [e["type"] for e in drain(p1)]
    assert types[:3] == ["match_proposal", "match_result", "game_created"]
    assert types[3] == "placement_update"
    created = [e for e in drain(p2) if e["type"] == "game_created"]
    assert created[0]["seat"] == 2
    assert created[0]["opponent"]["id"] == p1.id


def test_requests_are_attributed_by_token(in_game) -> None:
    auth, p1, p2 = in_game
    with pytest.raises(UnknownSession):
        auth.attack("forged", 0, 0)
    outsider = auth.connect("Outsider")
    with pytest.raises(NotInGame):
        auth.attack(outsider.token, 0, 0)
    with pytest.raises(OutOfTurn):
        auth.place_randomly(p2.token)  # player 1 places first


def test_battle_events_are_ordered(in_game) -> None:
    auth, p1, p2 = in_game
    start_battle(auth, p1, p2)
    drain(p1)
    drain(p2)

    view = auth.view(p1.token)
    assert view["phase"] == Phase.BATTLE.value and view["your_turn"]
    assert len(view["own_rows"]) == 10

    result = auth.attack(p1.token, 0, 0, turn=0)
    assert result.target == (0, 0)
    events = drain(p2)
    assert [e["type"] for e in events] == ["opponent_action", "turn_started"]
    assert events[1]["your_turn"] is True
    assert [e["type"] for e in drain(p1)] == ["action_result", "turn_started"]


def test_stale_turn_is_rejected(in_game) -> None:
    auth, p1, p2 = in_game
    start_battle(auth, p1, p2)
    auth.attack(p1.token, 0, 0, turn=0)
    with pytest.raises(OutOfTurn):
        auth.attack(p2.token, 0, 0, turn=0)
    auth.attack(p2.token, 0, 0, turn=1)


def test_forfeit_ends_game_and_frees_players(in_game) -> None:
    auth, p1, p2 = in_game
    start_battle(auth, p1, p2)
    drain(p1)
    drain(p2)
    auth.forfeit(p2.token)
    over = [e for e in drain(p1) if e["type"] == "game_over"]
    assert over and over[0]["you_won"] is True and over[0]["reason"] == "forfeit"
    assert auth.games == {}
    assert p1.status is PlayerStatus.ONLINE and p1.game_id is None
    with pytest.raises(NotInGame):
        auth.attack(p1.token, 0, 0)


def test_disconnect_forfeits_running_game(in_game) -> None:
    auth, p1, p2 = in_game
    drain(p1)
    auth.disconnect(p2.token)
    assert auth.registry.get_by_id(p2.id) is None
    assert any(e["type"] == "game_over" and e["you_won"] for e in drain(p1))
    assert p1.status is PlayerStatus.ONLINE


def test_queue_and_challenge_guards(authority) -> None:
    a = authority.connect("a")
    b = authority.connect("b")
    status = authority.join_queue(a.token)
    assert status == {"in_queue": True, "position": 1, "total": 1}
    assert a.status is PlayerStatus.IN_QUEUE
    assert [p["id"] for p in authority.list_players(b.token)] == []
    authority.leave_queue(a.token)
    assert a.status is PlayerStatus.ONLINE
    assert [p["id"] for p in authority.list_players(b.token)] == [a.id]
    with pytest.raises(MatchmakingError):
        authority.challenge(a.token, "missing")


def test_declined_challenge_reports_reason(authority) -> None:
    a = authority.connect("a")
    b = authority.connect("b")
    proposal = authority.challenge(a.token, b.id)
    reply = authority.respond(b.token, proposal.id, False)
    assert reply["status"] == "rejected"
    results = [e for e in drain(a) if e["type"] == "match_result"]
    assert results == [{"type": "match_result", "match_id": proposal.id, "accepted": False, "reason": "opponent_declined"}]


def test_actions_after_game_over_fail(in_game) -> None:
    auth, p1, p2 = in_game
    game = next(iter(auth.games.values()))
    auth.forfeit(p1.token)
    assert game.match.phase is Phase.VICTORY
    with pytest.raises(NotInGame):
        auth.forfeit(p1.token)
    with pytest.raises(WrongPhase):
        game.match.forfeit(1)
