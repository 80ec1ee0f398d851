"""Power catalog, grant inventory and targeting geometry."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List

from typing_extensions import assert_never

from . import config as _cfg
from .errors import PowerUnavailable
from .grid import Coord

logger = logging.getLogger(__name__)


class PowerKind(str, enum.Enum):
    """Closed set of special attacks a sunk ship can grant."""

    INSTAKILL = "instakill"
    TRIPLE = "triple"
    SONAR = "sonar"
    KRAKEN = "kraken"

    @property
    def display_name(self) -> str:
        return POWER_NAMES[self]

    @property
    def directional(self) -> bool:
        """True when the power needs an orientation to aim."""
        return self is PowerKind.TRIPLE


POWER_NAMES = {
    PowerKind.INSTAKILL: "Fatal Blow",
    PowerKind.TRIPLE: "Triple Shot",
    PowerKind.SONAR: "Sonar",
    PowerKind.KRAKEN: "Kraken",
}

POWER_DESCRIPTIONS = {
    PowerKind.INSTAKILL: "A shot that hits sinks the whole ship at once",
    PowerKind.TRIPLE: "Fires 3 aligned shots (horizontal or vertical)",
    PowerKind.SONAR: "Reveals ships along a wide cross around the target",
    PowerKind.KRAKEN: "Strikes the target and its 4 neighbours",
}


class Orientation(str, enum.Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def parse(cls, raw: str) -> "Orientation":
        """Accept 'H'/'V' or the full names, case-insensitively."""
        key = raw.strip().upper()
        if key in ("H", "HORIZONTAL"):
            return cls.HORIZONTAL
        if key in ("V", "VERTICAL"):
            return cls.VERTICAL
        raise ValueError(f"Orientation must be H or V, got {raw!r}")


@dataclass(frozen=True, slots=True)
class PowerGrant:
    """One banked use of a power."""

    kind: PowerKind
    display_name: str

    @classmethod
    def of(cls, kind: PowerKind) -> "PowerGrant":
        return cls(kind, kind.display_name)


@dataclass(frozen=True, slots=True)
class ActivePower:
    """Power selected for the next shot, with its aiming orientation."""

    kind: PowerKind
    orientation: Orientation = Orientation.HORIZONTAL
    player: int | None = None  # seat that armed it


# ---------------------------------------------------------------------------
# Inventory helpers
# ---------------------------------------------------------------------------


def grant(powers: List[PowerGrant], kind: PowerKind) -> PowerGrant:
    """Append a fresh grant of *kind* to *powers* and return it."""
    new = PowerGrant.of(kind)
    powers.append(new)
    logger.debug("granted power %s (inventory size=%d)", kind.value, len(powers))
    return new


def holds(powers: List[PowerGrant], kind: PowerKind) -> bool:
    return any(p.kind is kind for p in powers)


def take_power(powers: List[PowerGrant], kind: PowerKind) -> PowerGrant:
    """Remove exactly one grant of *kind*; raise PowerUnavailable if none is held."""
    for idx, p in enumerate(powers):
        if p.kind is kind:
            return powers.pop(idx)
    raise PowerUnavailable(f"No {kind.display_name} power available")


# ---------------------------------------------------------------------------
# Targeting
# ---------------------------------------------------------------------------


def raw_targets(
    origin: tuple[int, int],
    kind: PowerKind,
    orientation: Orientation | None = None,
    *,
    sonar_radius: int = _cfg.SONAR_RADIUS,
) -> list[Coord]:
    """Return the affected cells of *kind* at *origin* before bounds filtering."""
    x, y = origin
    cells = [Coord(x, y)]
    if kind is PowerKind.INSTAKILL:
        pass
    elif kind is PowerKind.TRIPLE:
        if orientation is Orientation.VERTICAL:
            cells += [Coord(x, y - 1), Coord(x, y + 1)]
        else:
            cells += [Coord(x - 1, y), Coord(x + 1, y)]
    elif kind is PowerKind.KRAKEN:
        cells += [Coord(x - 1, y), Coord(x + 1, y), Coord(x, y - 1), Coord(x, y + 1)]
    elif kind is PowerKind.SONAR:
        for i in range(1, sonar_radius + 1):
            cells += [Coord(x - i, y), Coord(x + i, y), Coord(x, y - i), Coord(x, y + i)]
        cells += [Coord(x - 1, y - 1), Coord(x + 1, y - 1), Coord(x - 1, y + 1), Coord(x + 1, y + 1)]
    else:
        assert_never(kind)
    return cells


def power_targets(
    origin: tuple[int, int],
    kind: PowerKind,
    orientation: Orientation | None = None,
    size: int = _cfg.BOARD_SIZE,
    *,
    sonar_radius: int = _cfg.SONAR_RADIUS,
) -> list[Coord]:
    """Affected cells of *kind* at *origin*, clipped to a *size*×*size* board."""
    return [
        c
        for c in raw_targets(origin, kind, orientation, sonar_radius=sonar_radius)
        if 0 <= c.x < size and 0 <= c.y < size
    ]
