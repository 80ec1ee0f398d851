"""Lightweight event model used by Match to decouple game logic from transport.

The goal is to emit strongly-typed events that the authority can translate
into wire payloads and other subscribers (e.g. logging or a local UI loop)
can consume without parsing free-text strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict


class Category(Enum):
    """High-level event categories."""

    PLACEMENT = auto()  # placement start / confirm / reset
    TURN = auto()  # per-turn lifecycle (turn started, attack, power)
    MATCH = auto()  # start of battle, game over, forfeit


@dataclass(slots=True)
class Event:
    """Immutable event emitted by Match."""

    category: Category
    type: str  # finer-grained identifier, e.g. "attack", "power", "game_over"
    payload: Dict[str, Any]
