"""Plain-dict (JSON compatible) snapshots of match state.

Grids are stored row by row as compact tokens: ``"empty"``, ``"miss"`` or
``"<state>:<ship id>"`` (e.g. ``"occupied:3"``).  ``player_view`` produces
the fog-of-war projection a client is allowed to see.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List

from .engine import AttackResult
from .fleet import PlacedShip, template_by_name
from .grid import Cell, CellState, Coord, Grid
from .match import PLAYERS, Match, Phase, PlayerState, opponent
from .powers import ActivePower, Orientation, PowerGrant, PowerKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cells & grids
# ---------------------------------------------------------------------------


def cell_token(cell: Cell) -> str:
    if cell.ship_id is None:
        return cell.state.value
    return f"{cell.state.value}:{cell.ship_id}"


def parse_cell_token(token: str) -> Cell:
    state, _, ship = token.partition(":")
    return Cell(CellState(state), int(ship) if ship else None)


def grid_to_rows(grid: Grid) -> List[List[str]]:
    return [[cell_token(cell) for cell in row] for row in grid.rows()]


def grid_from_rows(rows: List[List[str]]) -> Grid:
    """Rebuild a grid verbatim; restoring skips the transition checks."""
    grid = Grid(len(rows))
    for y, row in enumerate(rows):
        if len(row) != grid.size:
            raise ValueError(f"row {y} has {len(row)} cells, expected {grid.size}")
        for x, token in enumerate(row):
            grid._rows[y][x] = parse_cell_token(token)
    return grid


# ---------------------------------------------------------------------------
# Ships, powers, results
# ---------------------------------------------------------------------------


def ship_to_dict(ship: PlacedShip) -> Dict[str, Any]:
    return {
        "id": ship.id,
        "name": ship.name,
        "size": ship.size,
        "power": ship.power.value,
        "cells": [list(c) for c in ship.cells],
        "hit_count": ship.hit_count,
        "sunk": ship.sunk,
    }


def ship_from_dict(data: Dict[str, Any]) -> PlacedShip:
    return PlacedShip(
        id=int(data["id"]),
        name=data["name"],
        size=int(data["size"]),
        power=PowerKind(data["power"]),
        cells=tuple(Coord(int(x), int(y)) for x, y in data["cells"]),
        hit_count=int(data.get("hit_count", 0)),
    )


def powers_to_list(powers: List[PowerGrant]) -> List[Dict[str, str]]:
    return [{"kind": p.kind.value, "name": p.display_name} for p in powers]


def powers_from_list(items: List[Dict[str, str]]) -> List[PowerGrant]:
    return [PowerGrant.of(PowerKind(item["kind"])) for item in items]


def result_to_dict(result: AttackResult) -> Dict[str, Any]:
    return {
        "kind": result.kind.value,
        "target": list(result.target),
        "hit": result.hit,
        "hits": result.hits,
        "sunk": [{"id": s.id, "name": s.name, "power": s.power.value} for s in result.sunk_ships],
        "granted": [g.kind.value for g in result.granted],
        "power": result.power_used.value if result.power_used else None,
        "ships_detected": result.ships_detected,
        "cells_revealed": result.cells_revealed,
        "cells": [[c.x, c.y, state.value] for c, state in result.cells],
        "message": result.message,
    }


# ---------------------------------------------------------------------------
# Whole match
# ---------------------------------------------------------------------------


def _player_to_dict(state: PlayerState) -> Dict[str, Any]:
    return {
        "grid": grid_to_rows(state.grid),
        "fleet": [ship_to_dict(s) for s in state.fleet],
        "powers": powers_to_list(state.powers),
    }


def match_to_dict(match: Match) -> Dict[str, Any]:
    # Peek at the id counter without consuming a value.
    next_id, match._ids = _peek(match._ids)
    active = match.active_power
    return {
        "phase": match.phase.value,
        "current_player": match.current_player,
        "winner": match.winner,
        "win_reason": match.win_reason,
        "turn": match.turn,
        "next_ship_id": next_id,
        "size": match.size,
        "ships": [t.name for t in match.ships],
        "active_power": (
            {"kind": active.kind.value, "orientation": active.orientation.value, "player": active.player}
            if active
            else None
        ),
        "players": {str(p): _player_to_dict(match.players[p]) for p in PLAYERS},
    }


def _peek(counter: itertools.count) -> tuple[int, itertools.count]:
    value = next(counter)
    return value, itertools.count(value)


def match_from_dict(data: Dict[str, Any]) -> Match:
    """Inverse of :func:`match_to_dict`; subscribers are not restored."""
    ships = tuple(template_by_name(name) for name in data["ships"])
    match = Match(size=int(data["size"]), ships=ships)
    match.phase = Phase(data["phase"])
    match.current_player = int(data["current_player"])
    match.winner = data.get("winner")
    match.win_reason = data.get("win_reason")
    match.turn = int(data.get("turn", 0))
    match._ids = itertools.count(int(data["next_ship_id"]))
    active = data.get("active_power")
    if active:
        match.active_power = ActivePower(
            PowerKind(active["kind"]), Orientation(active["orientation"]), active.get("player")
        )
    for p in PLAYERS:
        raw = data["players"][str(p)]
        match.players[p] = PlayerState(
            grid=grid_from_rows(raw["grid"]),
            fleet=[ship_from_dict(s) for s in raw["fleet"]],
            powers=powers_from_list(raw["powers"]),
        )
    logger.debug("restored match phase=%s turn=%d", match.phase.value, match.turn)
    return match


# ---------------------------------------------------------------------------
# Fog of war
# ---------------------------------------------------------------------------


def _masked_token(cell: Cell) -> str:
    if cell.state is CellState.OCCUPIED:
        return CellState.EMPTY.value
    return cell_token(cell)


def player_view(match: Match, player: int) -> Dict[str, Any]:
    """What *player* may see: their own board in full, the opponent's masked."""
    me = match.player(player)
    other = match.player(opponent(player))
    return {
        "you": player,
        "phase": match.phase.value,
        "current_player": match.current_player,
        "your_turn": match.current_player == player and match.phase is Phase.BATTLE,
        "turn": match.turn,
        "winner": match.winner,
        "win_reason": match.win_reason,
        "own_grid": grid_to_rows(me.grid),
        "target_grid": [[_masked_token(cell) for cell in row] for row in other.grid.rows()],
        "fleet": [ship_to_dict(s) for s in me.fleet],
        "powers": powers_to_list(me.powers),
        "opponent_fleet": [{"name": s.name, "size": s.size, "sunk": s.sunk} for s in other.fleet],
        "opponent_powers": len(other.powers),
    }
