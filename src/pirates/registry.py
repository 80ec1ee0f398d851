"""Connected-player registry.

Every client that says ``HELLO`` becomes a :class:`Player` with a random
UUID, a 32-byte hex session token used to attribute later requests, and a
bounded outbox the server's writer thread drains.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import queue
import secrets
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import config as _cfg
from .errors import UnknownSession

logger = logging.getLogger(__name__)

PIRATE_PREFIXES = (
    "Captain",
    "Buccaneer",
    "Sailor",
    "Corsair",
    "Freebooter",
    "Cabin Boy",
    "Quartermaster",
    "Topman",
    "Helmsman",
    "Gunner",
)

PIRATE_SUFFIXES = (
    "Blackbeard",
    "the Red",
    "One-Eye",
    "the Terrible",
    "of the Caribbean",
    "of the Kraken",
    "the Merciless",
    "the Lucky",
    "Gold-Tooth",
    "the Sly",
    "Scarface",
    "the Fearless",
    "of the High Seas",
    "the Avenger",
    "the Mysterious",
)


def generate_pirate_name() -> str:
    return f"{secrets.choice(PIRATE_PREFIXES)} {secrets.choice(PIRATE_SUFFIXES)}"


def generate_session_token() -> str:
    return secrets.token_hex(32)


class PlayerStatus(str, enum.Enum):
    ONLINE = "online"
    IN_QUEUE = "in_queue"
    IN_GAME = "in_game"


@dataclass(slots=True)
class Player:
    id: str
    display_name: str
    token: str
    status: PlayerStatus = PlayerStatus.ONLINE
    game_id: Optional[str] = None
    outbox: "queue.Queue[Optional[Dict[str, Any]]]" = field(
        default_factory=lambda: queue.Queue(maxsize=_cfg.OUTBOX_SIZE)
    )

    def push(self, event: Dict[str, Any]) -> bool:
        """Queue *event* for delivery; drop it (and say so) when the outbox is full."""
        try:
            self.outbox.put_nowait(event)
        except queue.Full:
            logger.warning("Outbox full for %s – dropping %s event", self.id, event.get("type"))
            return False
        return True

    def close(self) -> None:
        """Wake the writer with the end-of-stream sentinel, evicting if needed."""
        while True:
            try:
                self.outbox.put_nowait(None)
                return
            except queue.Full:
                with contextlib.suppress(queue.Empty):
                    self.outbox.get_nowait()

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.display_name, "status": self.status.value}


class Registry:
    """Thread-safe id/token index of connected players."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._players: Dict[str, Player] = {}
        self._by_token: Dict[str, Player] = {}

    def register(self, display_name: str | None = None) -> Player:
        name = (display_name or "").strip() or generate_pirate_name()
        player = Player(id=str(uuid.uuid4()), display_name=name, token=generate_session_token())
        with self._lock:
            self._players[player.id] = player
            self._by_token[player.token] = player
        logger.info("Registered %s (%s)", name, player.id)
        return player

    def get_by_id(self, player_id: str) -> Optional[Player]:
        with self._lock:
            return self._players.get(player_id)

    def get_by_token(self, token: str | None) -> Optional[Player]:
        if not token:
            return None
        with self._lock:
            return self._by_token.get(token)

    def require(self, token: str | None) -> Player:
        player = self.get_by_token(token)
        if player is None:
            raise UnknownSession("Invalid or missing session token")
        return player

    def set_status(self, player_id: str, status: PlayerStatus) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player.status = status

    def available_players(self) -> List[Player]:
        with self._lock:
            return [p for p in self._players.values() if p.status is PlayerStatus.ONLINE]

    def remove(self, player_id: str) -> None:
        with self._lock:
            player = self._players.pop(player_id, None)
            if player is None:
                return
            self._by_token.pop(player.token, None)
        player.close()
        logger.info("Removed %s (%s)", player.display_name, player_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)
