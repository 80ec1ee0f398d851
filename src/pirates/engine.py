"""Attack resolution: the normal shot, the four powers, and victory.

Every operation acts on the *defender's* grid, fleet and power inventory and
returns an :class:`AttackResult`.  Shared sink/credit rule: when a hit brings
a ship's ``hit_count`` to its size, all of its cells become ``SUNK``, the
ship is listed once in ``sunk_ships`` and the defender is granted the
ship's power as compensation.

Out-of-bounds targets raise :class:`IllegalTarget` before anything changes.
A normal shot on a settled cell is not an error: it returns a result whose
``kind`` is ``ALREADY_PLAYED`` and callers must not advance the turn.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from typing_extensions import assert_never

from .errors import IllegalTarget, PowerUnavailable
from .fleet import PlacedShip, find_ship
from .grid import MISS, Cell, CellState, Coord, Grid
from .powers import Orientation, PowerGrant, PowerKind, grant, holds, power_targets, take_power
from . import config as _cfg

logger = logging.getLogger(__name__)


class ResultKind(str, enum.Enum):
    MISS = "miss"
    HIT = "hit"
    SUNK = "sunk"
    ALREADY_PLAYED = "already_played"
    INSTAKILL = "instakill"
    INSTAKILL_WASTED = "instakill_wasted"
    INSTAKILL_MISSED = "instakill_missed"
    TRIPLE = "triple"
    KRAKEN = "kraken"
    SONAR_CONTACT = "sonar_contact"
    SONAR_CLEAR = "sonar_clear"


@dataclass(slots=True)
class AttackResult:
    kind: ResultKind
    target: Coord
    hits: int = 0
    sunk_ships: List[PlacedShip] = field(default_factory=list)
    granted: List[PowerGrant] = field(default_factory=list)
    power_used: PowerKind | None = None
    ships_detected: int = 0
    cells_revealed: int = 0
    # Final state of every cell this call changed, in the order touched.
    cells: List[tuple[Coord, CellState]] = field(default_factory=list)

    @property
    def hit(self) -> bool:
        return self.hits > 0

    @property
    def noop(self) -> bool:
        return self.kind is ResultKind.ALREADY_PLAYED

    @property
    def message(self) -> str:
        return describe(self)


def describe(result: AttackResult) -> str:
    """Human-readable one-liner for logs and text clients."""
    k = result.kind
    names = ", ".join(s.name for s in result.sunk_ships)
    if k is ResultKind.ALREADY_PLAYED:
        return "Cell already played"
    if k is ResultKind.MISS:
        return "Miss"
    if k is ResultKind.HIT:
        return "Hit"
    if k is ResultKind.SUNK:
        return f"Sunk {names}"
    if k is ResultKind.INSTAKILL:
        return f"Fatal Blow! {names} destroyed"
    if k is ResultKind.INSTAKILL_WASTED:
        return "Fatal Blow wasted on a cell already played"
    if k is ResultKind.INSTAKILL_MISSED:
        return "Fatal Blow missed"
    if k in (ResultKind.TRIPLE, ResultKind.KRAKEN):
        label = "Triple Shot" if k is ResultKind.TRIPLE else "Kraken"
        text = f"{label}: {result.hits} hit(s)"
        return f"{text}, sunk {names}" if names else text
    if k is ResultKind.SONAR_CONTACT:
        return f"Sonar: {result.ships_detected} ship(s) detected ({result.cells_revealed} cells)"
    if k is ResultKind.SONAR_CLEAR:
        return "Sonar: no ship detected in this area"
    assert_never(k)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _check_target(grid: Grid, target: tuple[int, int]) -> Coord:
    coord = Coord(*target)
    if not grid.in_bounds(coord):
        raise IllegalTarget(f"({coord.x}, {coord.y}) is outside the {grid.size}x{grid.size} grid")
    return coord


def _touch(touched: list[Coord], coord: Coord) -> None:
    if coord not in touched:
        touched.append(coord)


def _finish(result: AttackResult, grid: Grid, touched: list[Coord]) -> AttackResult:
    result.cells = [(c, grid[c].state) for c in touched]
    return result


def _sink(
    grid: Grid,
    ship: PlacedShip,
    opponent_powers: List[PowerGrant],
    result: AttackResult,
    touched: list[Coord],
) -> None:
    if any(s.id == ship.id for s in result.sunk_ships):
        return
    for c in ship.cells:
        grid._write(c, Cell(CellState.SUNK, ship.id))
        _touch(touched, c)
    result.sunk_ships.append(ship)
    result.granted.append(grant(opponent_powers, ship.power))
    logger.debug("ship %s id=%d sunk; defender granted %s", ship.name, ship.id, ship.power.value)


def _strike(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    coord: Coord,
    result: AttackResult,
    touched: list[Coord],
) -> None:
    """Hit the unhit ship cell at *coord* and apply the sink/credit rule."""
    cell = grid[coord]
    ship = find_ship(fleet, cell.ship_id)
    grid._write(coord, Cell(CellState.HIT, ship.id))
    _touch(touched, coord)
    ship.hit_count += 1
    result.hits += 1
    if ship.hit_count == ship.size:
        _sink(grid, ship, opponent_powers, result, touched)


def _barrage(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    targets: Sequence[Coord],
    result: AttackResult,
) -> AttackResult:
    touched: list[Coord] = []
    for c in targets:
        cell = grid[c]
        if cell.has_unhit_ship:
            _strike(grid, fleet, opponent_powers, c, result, touched)
        elif not cell.settled:
            grid._write(c, MISS)
            _touch(touched, c)
    return _finish(result, grid, touched)


# ---------------------------------------------------------------------------
# Public attacks
# ---------------------------------------------------------------------------


def normal_attack(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
) -> AttackResult:
    """Fire a single shot at *target*."""
    coord = _check_target(grid, target)
    cell = grid[coord]
    if cell.settled:
        return AttackResult(ResultKind.ALREADY_PLAYED, coord)

    result = AttackResult(ResultKind.MISS, coord)
    touched: list[Coord] = []
    if cell.has_unhit_ship:
        _strike(grid, fleet, opponent_powers, coord, result, touched)
        result.kind = ResultKind.SUNK if result.sunk_ships else ResultKind.HIT
    else:
        grid._write(coord, MISS)
        _touch(touched, coord)
    logger.debug("normal attack at %s -> %s", coord, result.kind.value)
    return _finish(result, grid, touched)


def instakill(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
) -> AttackResult:
    """Sink the whole ship under *target* if the cell is an unhit ship cell."""
    coord = _check_target(grid, target)
    cell = grid[coord]
    result = AttackResult(ResultKind.INSTAKILL, coord, power_used=PowerKind.INSTAKILL)
    touched: list[Coord] = []

    if cell.has_unhit_ship:
        ship = find_ship(fleet, cell.ship_id)
        for c in ship.cells:
            if grid[c].has_unhit_ship:
                grid._write(c, Cell(CellState.HIT, ship.id))
                _touch(touched, c)
                result.hits += 1
        ship.hit_count = ship.size
        _sink(grid, ship, opponent_powers, result, touched)
    elif cell.settled:
        result.kind = ResultKind.INSTAKILL_WASTED
    else:
        grid._write(coord, MISS)
        _touch(touched, coord)
        result.kind = ResultKind.INSTAKILL_MISSED
    return _finish(result, grid, touched)


def triple(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
    orientation: Orientation | None = None,
) -> AttackResult:
    """Three aligned shots centred on *target*."""
    if orientation is None:
        raise IllegalTarget("Triple Shot needs an orientation (H or V)")
    coord = _check_target(grid, target)
    targets = power_targets(coord, PowerKind.TRIPLE, orientation, grid.size)
    result = AttackResult(ResultKind.TRIPLE, coord, power_used=PowerKind.TRIPLE)
    return _barrage(grid, fleet, opponent_powers, targets, result)


def kraken(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
) -> AttackResult:
    """Strike *target* and its four orthogonal neighbours."""
    coord = _check_target(grid, target)
    targets = power_targets(coord, PowerKind.KRAKEN, None, grid.size)
    result = AttackResult(ResultKind.KRAKEN, coord, power_used=PowerKind.KRAKEN)
    return _barrage(grid, fleet, opponent_powers, targets, result)


def sonar(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
    *,
    sonar_radius: int = _cfg.SONAR_RADIUS,
) -> AttackResult:
    """Reveal unhit ship cells in the sonar sweep; untouched water becomes Miss.

    Sonar never damages, so it never sinks and never grants a power.
    """
    coord = _check_target(grid, target)
    targets = power_targets(coord, PowerKind.SONAR, None, grid.size, sonar_radius=sonar_radius)
    result = AttackResult(ResultKind.SONAR_CLEAR, coord, power_used=PowerKind.SONAR)
    touched: list[Coord] = []
    detected: set[int] = set()
    for c in targets:
        cell = grid[c]
        if cell.has_unhit_ship:
            grid._write(c, Cell(CellState.REVEALED, cell.ship_id))
            _touch(touched, c)
            result.cells_revealed += 1
            detected.add(cell.ship_id)
        elif cell.state is CellState.EMPTY:
            grid._write(c, MISS)
            _touch(touched, c)
    result.ships_detected = len(detected)
    if detected:
        result.kind = ResultKind.SONAR_CONTACT
    return _finish(result, grid, touched)


def activate_power(
    powers: List[PowerGrant],
    kind: PowerKind,
    grid: Grid,
    fleet: Sequence[PlacedShip],
    opponent_powers: List[PowerGrant],
    target: tuple[int, int],
    orientation: Orientation | None = None,
) -> AttackResult:
    """Spend one grant of *kind* from *powers* and resolve it against the defender.

    Nothing is mutated when the grant is missing, the target is off the
    board, or a directional power has no orientation.
    """
    if not holds(powers, kind):
        raise PowerUnavailable(f"No {kind.display_name} power available")
    _check_target(grid, target)
    if kind.directional and orientation is None:
        raise IllegalTarget(f"{kind.display_name} needs an orientation (H or V)")

    take_power(powers, kind)
    logger.debug("power %s activated at %s", kind.value, tuple(target))
    if kind is PowerKind.INSTAKILL:
        return instakill(grid, fleet, opponent_powers, target)
    elif kind is PowerKind.TRIPLE:
        return triple(grid, fleet, opponent_powers, target, orientation)
    elif kind is PowerKind.SONAR:
        return sonar(grid, fleet, opponent_powers, target)
    elif kind is PowerKind.KRAKEN:
        return kraken(grid, fleet, opponent_powers, target)
    else:
        assert_never(kind)


def check_victory(fleet: Sequence[PlacedShip]) -> bool:
    """True iff the fleet is non-empty and every ship is sunk.

    An empty fleet is not a defeat: a player who has placed nothing has not
    lost anything, and battle only starts once both fleets are complete.
    """
    return bool(fleet) and all(ship.hit_count == ship.size for ship in fleet)
