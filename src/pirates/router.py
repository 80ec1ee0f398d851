"""Translate internal Match events into per-seat wire payloads.

The router lives *outside* Match so that translation rules are declared
in a single place and can evolve without touching core game logic.  It is also
straight-forward to unit-test by feeding synthetic Event objects.

Payloads are pushed to the players' outboxes while the match lock is held,
so each player observes events in the order the match produced them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping

from .events import Category, Event
from .match import opponent
from .snapshot import result_to_dict

logger = logging.getLogger(__name__)

# seat -> callable delivering one payload to that seat's player
Deliver = Callable[[int, Dict[str, Any]], None]


class EventRouter:
    """Game-scoped helper that converts `Event` → per-seat payloads."""

    def __init__(self, game_id: str, deliver: Deliver, names: Mapping[int, str] | None = None) -> None:
        self.game_id = game_id
        self._deliver = deliver
        self._names = dict(names or {})

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, ev: Event) -> None:  # Match calls router(event)
        try:
            self.dispatch(ev)
        except Exception:  # noqa: BLE001
            logger.exception("Event routing failed for %s", ev)

    # ------------------------------------------------------------------
    # Internal dispatch
    # ------------------------------------------------------------------
    def dispatch(self, ev: Event) -> None:
        cat = ev.category
        if cat is Category.PLACEMENT:
            self._handle_placement(ev)
        elif cat is Category.TURN:
            self._handle_turn(ev)
        elif cat is Category.MATCH:
            self._handle_match(ev)
        else:  # pragma: no cover – unknown category
            logger.debug("Ignoring event %s", ev)

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _handle_placement(self, ev: Event) -> None:
        t = ev.type
        player = ev.payload["player"]
        if t == "placement_started":
            state = "placing"
        elif t == "placement_confirmed":
            state = "confirmed"
        elif t == "placement_reset":
            # Only the placing player cares; their board view is refreshed on demand.
            return
        else:
            logger.debug("Unhandled PLACEMENT event: %s", ev)
            return
        for seat in (1, 2):
            self._send(
                seat,
                {
                    "type": "placement_update",
                    "player": player,
                    "state": state,
                    "your_turn": state == "placing" and seat == player,
                },
            )

    def _handle_turn(self, ev: Event) -> None:
        t = ev.type
        if t == "turn_started":
            player = ev.payload["player"]
            for seat in (1, 2):
                self._send(
                    seat,
                    {"type": "turn_started", "player": player, "turn": ev.payload["turn"], "your_turn": seat == player},
                )
        elif t in ("attack", "power"):
            attacker = ev.payload["player"]
            body = {"action": t, "player": attacker, "turn": ev.payload["turn"], **result_to_dict(ev.payload["result"])}
            self._send(attacker, {"type": "action_result", **body})
            self._send(opponent(attacker), {"type": "opponent_action", **body})
        else:
            logger.debug("Unhandled TURN event: %s", ev)

    def _handle_match(self, ev: Event) -> None:
        t = ev.type
        if t == "battle_started":
            self._broadcast({"type": "battle_started", "player": ev.payload["player"]})
        elif t == "game_over":
            winner = ev.payload["winner"]
            logger.info(
                "Game %s over – %s won by %s",
                self.game_id,
                self._names.get(winner, f"P{winner}"),
                ev.payload["reason"],
            )
            for seat in (1, 2):
                self._send(
                    seat,
                    {
                        "type": "game_over",
                        "winner": winner,
                        "reason": ev.payload["reason"],
                        "turn": ev.payload["turn"],
                        "you_won": seat == winner,
                    },
                )
        else:
            logger.debug("Unhandled MATCH event: %s", ev)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _broadcast(self, obj: Dict[str, Any]) -> None:
        for seat in (1, 2):
            self._send(seat, obj)

    def _send(self, seat: int, obj: Dict[str, Any]) -> None:
        self._deliver(seat, {"game_id": self.game_id, **obj})
