"""Grid model: a square board of tagged cells.

Each cell is one of ``EMPTY``, ``OCCUPIED``, ``HIT``, ``SUNK``, ``MISS`` or
``REVEALED``; every state except ``EMPTY`` and ``MISS`` may carry the id of
the ship it belongs to.  The board only ever moves forward:

    EMPTY    -> OCCUPIED | MISS
    OCCUPIED -> HIT | REVEALED
    REVEALED -> HIT | REVEALED (ship)  /  MISS (no ship)
    HIT      -> SUNK

``HIT``, ``SUNK`` and ``MISS`` are settled: nothing re-resolves them.  The
only writer is :meth:`Grid._write`, used by placement and the attack engine.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterator, NamedTuple

from . import config as _cfg
from .errors import IllegalTransition

logger = logging.getLogger(__name__)


class Coord(NamedTuple):
    """Zero-based board coordinate; ``x`` is the column, ``y`` the row."""

    x: int
    y: int


class CellState(str, enum.Enum):
    EMPTY = "empty"
    OCCUPIED = "occupied"
    HIT = "hit"
    SUNK = "sunk"
    MISS = "miss"
    REVEALED = "revealed"


SETTLED = frozenset({CellState.HIT, CellState.SUNK, CellState.MISS})

_ALLOWED: dict[CellState, frozenset[CellState]] = {
    CellState.EMPTY: frozenset({CellState.OCCUPIED, CellState.MISS}),
    CellState.OCCUPIED: frozenset({CellState.HIT, CellState.REVEALED}),
    CellState.REVEALED: frozenset({CellState.HIT, CellState.REVEALED, CellState.MISS}),
    CellState.HIT: frozenset({CellState.SUNK}),
    CellState.SUNK: frozenset(),
    CellState.MISS: frozenset(),
}


@dataclass(frozen=True, slots=True)
class Cell:
    """Immutable cell value."""

    state: CellState = CellState.EMPTY
    ship_id: int | None = None

    @property
    def settled(self) -> bool:
        """True once the cell is Hit, Sunk or Miss."""
        return self.state in SETTLED

    @property
    def has_unhit_ship(self) -> bool:
        """True for an Occupied cell or a Revealed cell that carries a ship."""
        return self.ship_id is not None and self.state in (CellState.OCCUPIED, CellState.REVEALED)


EMPTY = Cell()
MISS = Cell(CellState.MISS)


class Grid:
    """Square board of :class:`Cell` values addressed by ``(x, y)``."""

    def __init__(self, size: int = _cfg.BOARD_SIZE):
        """Initialise an all-Empty *size*×*size* grid."""
        if size <= 0:
            raise ValueError("grid size must be positive")
        self.size = size
        self._rows: list[list[Cell]] = [[EMPTY for _ in range(size)] for _ in range(size)]

    def in_bounds(self, coord: tuple[int, int]) -> bool:
        x, y = coord
        return 0 <= x < self.size and 0 <= y < self.size

    def __getitem__(self, coord: tuple[int, int]) -> Cell:
        x, y = coord
        if not self.in_bounds(coord):
            raise IndexError(f"({x}, {y}) is outside a {self.size}x{self.size} grid")
        return self._rows[y][x]

    def coords(self) -> Iterator[Coord]:
        """Yield every coordinate row by row."""
        for y in range(self.size):
            for x in range(self.size):
                yield Coord(x, y)

    def rows(self) -> list[list[Cell]]:
        """Return a copy of the cell matrix, indexed ``[y][x]``."""
        return [list(row) for row in self._rows]

    def count(self, state: CellState) -> int:
        return sum(1 for row in self._rows for cell in row if cell.state is state)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.size == other.size and self._rows == other._rows

    def __repr__(self) -> str:
        return f"Grid(size={self.size})"

    # ------------------------------------------------------------------
    # Internal writer used by placement and the attack engine
    # ------------------------------------------------------------------
    def _write(self, coord: tuple[int, int], cell: Cell) -> None:
        current = self[coord]
        if cell.state not in _ALLOWED[current.state]:
            raise IllegalTransition(f"{current.state.value} -> {cell.state.value} at {tuple(coord)}")
        if cell.state is CellState.MISS and current.ship_id is not None:
            raise IllegalTransition(f"cannot mark ship cell {tuple(coord)} as miss")
        x, y = coord
        self._rows[y][x] = cell

    def _clear(self) -> None:
        """Reset every cell to Empty (placement reset only)."""
        self._rows = [[EMPTY for _ in range(self.size)] for _ in range(self.size)]


def empty_grid(size: int = _cfg.BOARD_SIZE) -> Grid:
    """Return an all-Empty grid of side *size*."""
    return Grid(size)
