"""Match state machine for one two-player game.

A :class:`Match` owns both players' grids, fleets and power inventories and
is the only place where phase and turn change::

    WELCOME -> PLACEMENT -> BATTLE -> VICTORY

Placement is sequential: player 1 places and confirms, then player 2; once
player 2 confirms the battle starts with player 1.  In battle every resolved
attack or power increments ``turn``, then either ends the match (the
opponent's fleet is destroyed) or hands the turn to the opponent.  A normal
shot on an already played cell raises :class:`AlreadyResolved` and leaves
everything, including the turn, untouched.

The same object drives the local two-seat loop and the networked authority;
only the caller's way of deciding *which* player is acting differs.
"""

from __future__ import annotations

import enum
import itertools
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from . import config as _cfg
from . import engine
from .errors import AlreadyResolved, InvalidPlacement, OutOfTurn, PowerUnavailable, WrongPhase
from .events import Category, Event
from .fleet import (
    SHIPS,
    PlacedShip,
    ShipTemplate,
    check_placement,
    is_placement_complete,
    place_fleet_randomly,
    place_ship,
    reset_fleet,
    template_by_name,
)
from .grid import Grid, empty_grid
from .powers import ActivePower, Orientation, PowerGrant, PowerKind, holds

logger = logging.getLogger(__name__)

PLAYERS = (1, 2)


class Phase(str, enum.Enum):
    WELCOME = "welcome"
    PLACEMENT = "placement"
    BATTLE = "battle"
    VICTORY = "victory"


def opponent(player: int) -> int:
    """Return the other seat: 1 <-> 2."""
    if player == 1:
        return 2
    if player == 2:
        return 1
    raise ValueError(f"Unknown player {player!r}")


@dataclass(slots=True)
class PlayerState:
    grid: Grid
    fleet: List[PlacedShip] = field(default_factory=list)
    powers: List[PowerGrant] = field(default_factory=list)


class Match:
    """Phase/turn coordinator composing grid, fleet, powers and engine."""

    def __init__(
        self,
        *,
        size: int = _cfg.BOARD_SIZE,
        ships: Sequence[ShipTemplate] = SHIPS,
        rng: random.Random | None = None,
    ):
        self.size = size
        self.ships = tuple(ships)
        self.phase = Phase.WELCOME
        self.current_player = 1
        self.players: Dict[int, PlayerState] = {p: PlayerState(empty_grid(size)) for p in PLAYERS}
        self.active_power: ActivePower | None = None
        self.winner: int | None = None
        self.win_reason: str | None = None
        # Number of resolved battle actions; lets remote callers assert which turn they act on.
        self.turn = 0
        self._ids = itertools.count(1)
        self._rng = rng or random.Random()
        self._subs: List[Callable[[Event], None]] = []

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Allow external components (authority/logger/UI) to receive match events."""
        self._subs.append(cb)

    def _emit(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:
                # A misbehaving subscriber must not corrupt the match
                logger.exception("Match subscriber failed on %s", ev.type)

    # -------------------- queries --------------------
    def player(self, player: int) -> PlayerState:
        if player not in self.players:
            raise ValueError(f"Unknown player {player!r}")
        return self.players[player]

    def placement_complete(self, player: int) -> bool:
        return is_placement_complete(self.player(player).fleet, self.ships)

    @property
    def is_over(self) -> bool:
        return self.phase is Phase.VICTORY

    def next_ship_id(self) -> int:
        return next(self._ids)

    # -------------------- guards --------------------
    def _require_phase(self, *phases: Phase) -> None:
        if self.phase not in phases:
            wanted = "/".join(p.value for p in phases)
            raise WrongPhase(f"Not allowed during {self.phase.value} (needs {wanted})")

    def _require_turn(self, player: int) -> None:
        self.player(player)
        if player != self.current_player:
            raise OutOfTurn(f"Not your turn – player {self.current_player} is playing")

    # -------------------- placement --------------------
    def start(self) -> None:
        """Leave the welcome screen; player 1 starts placing."""
        self._require_phase(Phase.WELCOME)
        self.phase = Phase.PLACEMENT
        self.current_player = 1
        logger.debug("match started – placement for player 1")
        self._emit(Event(Category.PLACEMENT, "placement_started", {"player": 1}))

    def place_ship(self, player: int, name: str, x: int, y: int, horizontal: bool) -> PlacedShip:
        self._require_phase(Phase.PLACEMENT)
        self._require_turn(player)
        state = self.player(player)
        template = template_by_name(name, self.ships)
        # Validate before drawing so a rejected placement does not consume a ship id.
        check_placement(state.grid, state.fleet, template, (x, y), horizontal)
        return place_ship(state.grid, state.fleet, template, (x, y), horizontal, ship_id=self.next_ship_id())

    def place_randomly(self, player: int) -> list[PlacedShip]:
        """Fill in every ship the player has not placed yet."""
        self._require_phase(Phase.PLACEMENT)
        self._require_turn(player)
        state = self.player(player)
        return place_fleet_randomly(state.grid, state.fleet, self._ids, self._rng, self.ships)

    def reset_placement(self, player: int) -> None:
        self._require_phase(Phase.PLACEMENT)
        self._require_turn(player)
        state = self.player(player)
        reset_fleet(state.grid, state.fleet)
        self._emit(Event(Category.PLACEMENT, "placement_reset", {"player": player}))

    def confirm_placement(self, player: int) -> None:
        self._require_phase(Phase.PLACEMENT)
        self._require_turn(player)
        if not self.placement_complete(player):
            missing = len(self.ships) - len(self.player(player).fleet)
            raise InvalidPlacement(f"Fleet incomplete – {missing} ship(s) left to place")

        self._emit(Event(Category.PLACEMENT, "placement_confirmed", {"player": player}))
        if player == 1:
            self.current_player = 2
            self._emit(Event(Category.PLACEMENT, "placement_started", {"player": 2}))
            return
        self.phase = Phase.BATTLE
        self.current_player = 1
        logger.debug("both fleets confirmed – battle begins")
        self._emit(Event(Category.MATCH, "battle_started", {"player": 1}))
        self._emit_turn_started()

    # -------------------- battle --------------------
    def select_power(
        self, player: int, kind: PowerKind, orientation: Orientation = Orientation.HORIZONTAL
    ) -> ActivePower:
        """Arm a held power for the next :meth:`fire`."""
        self._require_phase(Phase.BATTLE)
        self._require_turn(player)
        if not holds(self.player(player).powers, kind):
            raise PowerUnavailable(f"No {kind.display_name} power available")
        self.active_power = ActivePower(kind, orientation, player)
        return self.active_power

    def clear_power(self, player: int) -> None:
        self._require_phase(Phase.BATTLE)
        self._require_turn(player)
        self.active_power = None

    def fire(self, player: int, x: int, y: int) -> engine.AttackResult:
        """Shoot with the armed power if any, else a normal attack."""
        armed = self._armed_by(player)
        if armed is not None:
            return self.use_power(player, armed.kind, x, y, armed.orientation)
        return self.attack(player, x, y)

    def attack(self, player: int, x: int, y: int) -> engine.AttackResult:
        self._require_phase(Phase.BATTLE)
        self._require_turn(player)
        defender = self.player(opponent(player))
        result = engine.normal_attack(defender.grid, defender.fleet, defender.powers, (x, y))
        if result.noop:
            raise AlreadyResolved(f"({x}, {y}) was already played")
        self._after_action(player, result, "attack")
        return result

    def use_power(
        self,
        player: int,
        kind: PowerKind,
        x: int,
        y: int,
        orientation: Orientation | None = None,
    ) -> engine.AttackResult:
        self._require_phase(Phase.BATTLE)
        self._require_turn(player)
        armed = self._armed_by(player)
        if orientation is None and armed is not None and armed.kind is kind:
            orientation = armed.orientation
        attacker = self.player(player)
        defender = self.player(opponent(player))
        result = engine.activate_power(
            attacker.powers, kind, defender.grid, defender.fleet, defender.powers, (x, y), orientation
        )
        self._after_action(player, result, "power")
        return result

    def forfeit(self, player: int) -> None:
        """Concede; the opponent wins immediately."""
        self._require_phase(Phase.PLACEMENT, Phase.BATTLE)
        self.player(player)
        logger.info("player %d forfeits", player)
        self._conclude(opponent(player), reason="forfeit")

    # -------------------- internal --------------------
    def _armed_by(self, player: int) -> ActivePower | None:
        armed = self.active_power
        if armed is None or armed.player != player:
            return None
        return armed

    def _after_action(self, player: int, result: engine.AttackResult, kind: str) -> None:
        self.turn += 1
        # An armed power never outlives the turn it was selected in.
        self.active_power = None
        logger.debug("turn %d: player %d %s -> %s", self.turn, player, kind, result.kind.value)
        self._emit(Event(Category.TURN, kind, {"player": player, "result": result, "turn": self.turn}))
        if engine.check_victory(self.player(opponent(player)).fleet):
            self._conclude(player, reason="fleet destroyed")
            return
        self.current_player = opponent(player)
        self._emit_turn_started()

    def _emit_turn_started(self) -> None:
        self._emit(Event(Category.TURN, "turn_started", {"player": self.current_player, "turn": self.turn}))

    def _conclude(self, winner: int, *, reason: str) -> None:
        self.phase = Phase.VICTORY
        self.winner = winner
        self.win_reason = reason
        self.current_player = winner
        self.active_power = None
        logger.debug("match over: player %d wins (%s)", winner, reason)
        self._emit(Event(Category.MATCH, "game_over", {"winner": winner, "reason": reason, "turn": self.turn}))
