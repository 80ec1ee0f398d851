from __future__ import annotations

import json

from pirates.grid import CellState
from pirates.match import Phase
from pirates.powers import PowerKind, grant
from pirates.snapshot import match_from_dict, match_to_dict, parse_cell_token, player_view


def test_snapshot_survives_json_and_restores(battle_match) -> None:
    m = battle_match
    m.attack(1, 0, 0)
    m.attack(2, 9, 9)
    grant(m.players[1].powers, PowerKind.SONAR)

    data = match_to_dict(m)
    assert match_to_dict(m) == data  # taking a snapshot does not consume ship ids
    restored = match_from_dict(json.loads(json.dumps(data)))

    assert match_to_dict(restored) == data
    assert restored.phase is Phase.BATTLE
    assert restored.turn == 2
    assert restored.players[2].grid == m.players[2].grid
    assert restored.players[2].fleet[0].hit_count == 1
    assert restored.next_ship_id() == m.next_ship_id()

    # The restored match keeps playing with the same rules.
    result = restored.use_power(1, PowerKind.SONAR, 0, 5)
    assert result.ships_detected >= 1


def test_cell_tokens() -> None:
    assert parse_cell_token("empty").state is CellState.EMPTY
    cell = parse_cell_token("revealed:4")
    assert (cell.state, cell.ship_id) == (CellState.REVEALED, 4)


def test_player_view_hides_unhit_enemy_ships(battle_match) -> None:
    m = battle_match
    grant(m.players[1].powers, PowerKind.SONAR)
    m.attack(1, 1, 0)
    m.attack(2, 9, 9)
    m.use_power(1, PowerKind.SONAR, 0, 5)

    view = player_view(m, 1)
    target = [tok for row in view["target_grid"] for tok in row]
    own = [tok for row in view["own_grid"] for tok in row]
    assert not any(tok.startswith("occupied") for tok in target)
    assert any(tok.startswith("revealed") for tok in target)
    assert view["target_grid"][0][1].startswith("hit")
    assert sum(tok.startswith("occupied") for tok in own) == 17
    assert view["you"] == 1 and view["your_turn"] is False
    assert len(view["opponent_fleet"]) == 5
    assert view["powers"] == []
    json.dumps(view)
