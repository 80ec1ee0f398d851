"""Authoritative game service mediating remote players.

The :class:`Authority` owns the player registry, the matchmaker and every
running game.  Each request carries a session token; the authority resolves
the player, their game and seat, takes the game's lock and only then calls
into :class:`~pirates.match.Match`.  Match events flow through an
:class:`~pirates.router.EventRouter` into the players' outboxes while the
lock is still held, which keeps per-player event order identical to the
order of state changes.
"""

from __future__ import annotations

import contextlib
import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from . import config as _cfg
from .engine import AttackResult
from .errors import MatchmakingError, NotInGame, OutOfTurn
from .events import Category, Event
from .fleet import PlacedShip
from .io_utils import grid_rows
from .match import Match, opponent
from .matchmaker import Matchmaker, Proposal
from .powers import Orientation, PowerKind
from .registry import Player, PlayerStatus, Registry
from .router import EventRouter
from .snapshot import player_view

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class Game:
    id: str
    match: Match
    seats: Dict[str, int]  # player id -> seat (1 or 2)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def player_at(self, seat: int) -> str:
        for pid, s in self.seats.items():
            if s == seat:
                return pid
        raise KeyError(seat)


class Authority:
    def __init__(
        self,
        registry: Registry | None = None,
        matchmaker: Matchmaker | None = None,
        *,
        rng: random.Random | None = None,
        size: int = _cfg.BOARD_SIZE,
    ) -> None:
        self.registry = registry or Registry()
        self.matchmaker = matchmaker or Matchmaker()
        self.games: Dict[str, Game] = {}
        self._games_lock = threading.Lock()
        self._rng = rng
        self._size = size

        self.matchmaker.on_match_proposed = self._on_match_proposed
        self.matchmaker.on_match_result = self._on_match_result
        self.matchmaker.on_game_created = self._on_game_created

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        self.matchmaker.start()

    def stop(self) -> None:
        self.matchmaker.stop()

    # ------------------------------------------------------------------
    # Session & lobby
    # ------------------------------------------------------------------
    def connect(self, display_name: str | None = None) -> Player:
        return self.registry.register(display_name)

    def disconnect(self, token: str) -> None:
        """Forget a player: forfeit any running game, leave queue and proposals."""
        player = self.registry.get_by_token(token)
        if player is None:
            return
        game = self._game_of(player)
        if game is not None:
            with game.lock:
                if not game.match.is_over and player.id in game.seats:
                    game.match.forfeit(game.seats[player.id])
        self.matchmaker.leave_queue(player.id)
        proposal = self.matchmaker.pending_for(player.id)
        if proposal is not None:
            # an expired proposal has already been settled for both sides
            with contextlib.suppress(MatchmakingError):
                self.matchmaker.respond(proposal.id, player.id, False)
        self.registry.remove(player.id)

    def join_queue(self, token: str) -> Dict[str, Any]:
        player = self.registry.require(token)
        self._require_idle(player)
        position, total = self.matchmaker.join_queue(player.id)
        self.registry.set_status(player.id, PlayerStatus.IN_QUEUE)
        return {"in_queue": True, "position": position, "total": total}

    def leave_queue(self, token: str) -> Dict[str, Any]:
        player = self.registry.require(token)
        self.matchmaker.leave_queue(player.id)
        if player.status is PlayerStatus.IN_QUEUE:
            self.registry.set_status(player.id, PlayerStatus.ONLINE)
        return {"in_queue": False}

    def list_players(self, token: str) -> List[Dict[str, str]]:
        me = self.registry.require(token)
        return [p.to_dict() for p in self.registry.available_players() if p.id != me.id]

    def challenge(self, token: str, target_id: str) -> Proposal:
        player = self.registry.require(token)
        self._require_idle(player)
        target = self.registry.get_by_id(target_id)
        if target is None:
            raise MatchmakingError(f"No such player {target_id}")
        self._require_idle(target)
        return self.matchmaker.challenge(player.id, target.id)

    def respond(self, token: str, match_id: str, accepted: bool) -> Dict[str, Any]:
        player = self.registry.require(token)
        proposal = self.matchmaker.respond(match_id, player.id, accepted)
        return {
            "match_id": proposal.id,
            "status": proposal.status.value,
            "accepted": accepted,
            "game_id": proposal.game_id,
        }

    # ------------------------------------------------------------------
    # Game intents
    # ------------------------------------------------------------------
    def place_ship(self, token: str, name: str, x: int, y: int, horizontal: bool) -> PlacedShip:
        return self._act(token, lambda m, seat: m.place_ship(seat, name, x, y, horizontal))

    def place_randomly(self, token: str) -> List[PlacedShip]:
        return self._act(token, lambda m, seat: m.place_randomly(seat))

    def reset_placement(self, token: str) -> None:
        self._act(token, lambda m, seat: m.reset_placement(seat))

    def confirm_placement(self, token: str) -> None:
        self._act(token, lambda m, seat: m.confirm_placement(seat))

    def attack(self, token: str, x: int, y: int, *, turn: int | None = None) -> AttackResult:
        return self._act(token, lambda m, seat: m.attack(seat, x, y), turn=turn)

    def use_power(
        self,
        token: str,
        kind: PowerKind,
        x: int,
        y: int,
        orientation: Orientation | None = None,
        *,
        turn: int | None = None,
    ) -> AttackResult:
        return self._act(token, lambda m, seat: m.use_power(seat, kind, x, y, orientation), turn=turn)

    def forfeit(self, token: str) -> None:
        self._act(token, lambda m, seat: m.forfeit(seat))

    def view(self, token: str) -> Dict[str, Any]:
        _player, game, seat = self._resolve(token)
        with game.lock:
            match = game.match
            me = match.player(seat)
            other = match.player(opponent(seat))
            return {
                "game_id": game.id,
                **player_view(match, seat),
                "own_rows": grid_rows(me.grid, me.fleet, reveal=True),
                "target_rows": grid_rows(other.grid),
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_idle(self, player: Player) -> None:
        if player.status is PlayerStatus.IN_GAME:
            raise MatchmakingError(f"{player.display_name} is already in a game")

    def _game_of(self, player: Player) -> Optional[Game]:
        if player.game_id is None:
            return None
        with self._games_lock:
            return self.games.get(player.game_id)

    def _resolve(self, token: str) -> Tuple[Player, Game, int]:
        player = self.registry.require(token)
        game = self._game_of(player)
        if game is None or player.id not in game.seats:
            raise NotInGame("You are not in a game")
        return player, game, game.seats[player.id]

    def _act(self, token: str, fn: Callable[[Match, int], T], *, turn: int | None = None) -> T:
        player, game, seat = self._resolve(token)
        with game.lock:
            if turn is not None and turn != game.match.turn:
                raise OutOfTurn(f"Stale turn {turn}; the match is at turn {game.match.turn}")
            return fn(game.match, seat)

    # ------------------------------------------------------------------
    # Matchmaker callbacks
    # ------------------------------------------------------------------
    def _on_match_proposed(self, player_id: str, proposal: Proposal) -> None:
        player = self.registry.get_by_id(player_id)
        opponent = self.registry.get_by_id(proposal.opponent_of(player_id))
        if player is None or opponent is None:
            return
        player.push(
            {
                "type": "match_proposal",
                "match_id": proposal.id,
                "opponent": opponent.to_dict(),
                "you_initiated": proposal.initiated_by == player_id,
                "timeout": self.matchmaker.match_timeout,
            }
        )

    def _on_match_result(self, player_id: str, proposal: Proposal) -> None:
        player = self.registry.get_by_id(player_id)
        if player is None:
            return
        if player.status is PlayerStatus.IN_QUEUE and not self.matchmaker.is_in_queue(player_id):
            self.registry.set_status(player_id, PlayerStatus.ONLINE)
        player.push(
            {
                "type": "match_result",
                "match_id": proposal.id,
                "accepted": proposal.status.value == "accepted",
                "reason": proposal.rejection_reason,
            }
        )

    def _on_game_created(self, player1_id: str, player2_id: str, game_id: str) -> None:
        p1 = self.registry.get_by_id(player1_id)
        p2 = self.registry.get_by_id(player2_id)
        if p1 is None or p2 is None:
            logger.warning("Game %s not created – a player left", game_id)
            return

        match = Match(size=self._size, rng=self._rng)
        game = Game(id=game_id, match=match, seats={p1.id: 1, p2.id: 2})
        router = EventRouter(game_id, self._deliverer(game), names={1: p1.display_name, 2: p2.display_name})
        match.subscribe(router)
        match.subscribe(lambda ev: self._on_match_event(game, ev))

        with self._games_lock:
            self.games[game_id] = game
        for player, seat, other in ((p1, 1, p2), (p2, 2, p1)):
            player.game_id = game_id
            self.registry.set_status(player.id, PlayerStatus.IN_GAME)
            player.push({"type": "game_created", "game_id": game_id, "seat": seat, "opponent": other.to_dict()})
        logger.info("Game %s created: %s vs %s", game_id, p1.display_name, p2.display_name)

        with game.lock:
            match.start()

    def _deliverer(self, game: Game) -> Callable[[int, Dict[str, Any]], None]:
        def deliver(seat: int, payload: Dict[str, Any]) -> None:
            player = self.registry.get_by_id(game.player_at(seat))
            if player is not None:
                player.push(payload)

        return deliver

    def _on_match_event(self, game: Game, ev: Event) -> None:
        if ev.category is not Category.MATCH or ev.type != "game_over":
            return
        with self._games_lock:
            self.games.pop(game.id, None)
        for pid in game.seats:
            player = self.registry.get_by_id(pid)
            if player is not None and player.game_id == game.id:
                player.game_id = None
                self.registry.set_status(pid, PlayerStatus.ONLINE)

