"""Ship catalog and placement validation.

Contains:
 - the immutable ship catalog (one template per name, each granting a power)
 - ``ship_footprint`` / ``can_place`` for legality checks
 - ``place_ship`` which writes a validated ship onto a grid and its fleet
 - ``place_fleet_randomly`` for the "skip manual placement" path

Ships may touch each other; only bounds and overlap are enforced.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterator, List, Sequence

from .errors import InvalidPlacement
from .grid import Cell, CellState, Coord, Grid
from .powers import POWER_DESCRIPTIONS, PowerKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ShipTemplate:
    name: str
    size: int
    power: PowerKind
    letter: str

    @property
    def power_name(self) -> str:
        return self.power.display_name

    @property
    def power_description(self) -> str:
        return POWER_DESCRIPTIONS[self.power]


# Standard roster, largest first. Both size-3 hulls grant the same power.
SHIPS: tuple[ShipTemplate, ...] = (
    ShipTemplate("Galleon", 5, PowerKind.KRAKEN, "G"),
    ShipTemplate("Frigate", 4, PowerKind.SONAR, "F"),
    ShipTemplate("Brig", 3, PowerKind.TRIPLE, "B"),
    ShipTemplate("Corvette", 3, PowerKind.TRIPLE, "C"),
    ShipTemplate("Longboat", 2, PowerKind.INSTAKILL, "L"),
)

SHIP_LETTERS = {t.name: t.letter for t in SHIPS}


def template_by_name(name: str, ships: Sequence[ShipTemplate] = SHIPS) -> ShipTemplate:
    """Case-insensitive catalog lookup; raise InvalidPlacement for unknown names."""
    for template in ships:
        if template.name.lower() == name.strip().lower():
            return template
    raise InvalidPlacement(f"Unknown ship {name!r}")


@dataclass(slots=True)
class PlacedShip:
    """A ship on a player's grid. ``hit_count`` is only changed by the engine."""

    id: int
    name: str
    size: int
    power: PowerKind
    cells: tuple[Coord, ...]
    hit_count: int = 0

    @property
    def sunk(self) -> bool:
        return self.hit_count >= self.size

    @property
    def horizontal(self) -> bool:
        return len(self.cells) < 2 or self.cells[1].x != self.cells[0].x

    @property
    def power_name(self) -> str:
        return self.power.display_name

    @property
    def power_description(self) -> str:
        return POWER_DESCRIPTIONS[self.power]


def ship_footprint(start: tuple[int, int], size: int, horizontal: bool) -> list[Coord]:
    """Return the *size* cells a ship covers from *start*, in order."""
    x, y = start
    if horizontal:
        return [Coord(x + i, y) for i in range(size)]
    return [Coord(x, y + i) for i in range(size)]


def can_place(grid: Grid, start: tuple[int, int], size: int, horizontal: bool) -> bool:
    """Return True if every footprint cell is on the board and Empty."""
    return all(
        grid.in_bounds(c) and grid[c].state is CellState.EMPTY
        for c in ship_footprint(start, size, horizontal)
    )


def is_ship_placed(fleet: Sequence[PlacedShip], name: str) -> bool:
    return any(s.name == name for s in fleet)


def is_placement_complete(fleet: Sequence[PlacedShip], ships: Sequence[ShipTemplate] = SHIPS) -> bool:
    """A fleet is complete once it holds one ship of every template."""
    return len(fleet) == len(ships)


def remaining_templates(fleet: Sequence[PlacedShip], ships: Sequence[ShipTemplate] = SHIPS) -> list[ShipTemplate]:
    return [t for t in ships if not is_ship_placed(fleet, t.name)]


def check_placement(
    grid: Grid,
    fleet: Sequence[PlacedShip],
    template: ShipTemplate,
    start: tuple[int, int],
    horizontal: bool,
) -> None:
    """Raise InvalidPlacement unless *template* may go at *start*."""
    if is_ship_placed(fleet, template.name):
        raise InvalidPlacement(f"{template.name} is already placed")
    if not can_place(grid, start, template.size, horizontal):
        raise InvalidPlacement(f"Cannot place {template.name} at {tuple(start)}: overlap or out of bounds")


def place_ship(
    grid: Grid,
    fleet: List[PlacedShip],
    template: ShipTemplate,
    start: tuple[int, int],
    horizontal: bool,
    *,
    ship_id: int,
) -> PlacedShip:
    """Validate and place *template* at *start*; raise InvalidPlacement without mutating on failure."""
    check_placement(grid, fleet, template, start, horizontal)

    cells = tuple(ship_footprint(start, template.size, horizontal))
    for c in cells:
        grid._write(c, Cell(CellState.OCCUPIED, ship_id))
    ship = PlacedShip(ship_id, template.name, template.size, template.power, cells)
    fleet.append(ship)
    logger.debug("placed %s id=%d at %s horizontal=%s", template.name, ship_id, cells[0], horizontal)
    return ship


def place_fleet_randomly(
    grid: Grid,
    fleet: List[PlacedShip],
    ids: Iterator[int],
    rng: random.Random | None = None,
    ships: Sequence[ShipTemplate] = SHIPS,
) -> list[PlacedShip]:
    """Randomly position every template not yet in *fleet* without collisions."""
    rng = rng or random.Random()
    placed: list[PlacedShip] = []
    for template in remaining_templates(fleet, ships):
        options = [
            (c, horizontal)
            for c in grid.coords()
            for horizontal in (True, False)
            if can_place(grid, c, template.size, horizontal)
        ]
        if not options:
            raise InvalidPlacement(f"No room left for {template.name}")
        start, horizontal = rng.choice(options)
        placed.append(place_ship(grid, fleet, template, start, horizontal, ship_id=next(ids)))
    return placed


def reset_fleet(grid: Grid, fleet: List[PlacedShip]) -> None:
    """Clear a player's board and fleet; only meaningful before battle."""
    grid._clear()
    fleet.clear()


def find_ship(fleet: Sequence[PlacedShip], ship_id: int) -> PlacedShip:
    for ship in fleet:
        if ship.id == ship_id:
            return ship
    raise KeyError(ship_id)
