import itertools
import logging
import random
import socket
from typing import Any, Callable, List, Tuple

import pytest

from pirates.authority import Authority
from pirates.common import PacketType, pack, recv_pkt
from pirates.fleet import SHIPS, place_ship, template_by_name
from pirates.grid import Grid, empty_grid
from pirates.match import Match
from pirates.matchmaker import Matchmaker
from pirates.registry import Player
from pirates.server import ClientConnection

# Suppress INFO & DEBUG logs from server threads during tests
logging.basicConfig(level=logging.WARNING)


def place_standard_fleet(match: Match, player: int) -> None:
    """Ship *i* of the catalog goes horizontally at column 0, row 2*i."""
    for i, template in enumerate(SHIPS):
        match.place_ship(player, template.name, 0, 2 * i, True)


def setup_battle(match: Match) -> Match:
    match.start()
    for player in (1, 2):
        place_standard_fleet(match, player)
        match.confirm_placement(player)
    return match


def drain(player: Player) -> List[dict]:
    """Pop everything currently queued in a player's outbox."""
    out = []
    while not player.outbox.empty():
        out.append(player.outbox.get_nowait())
    return out


@pytest.fixture
def grid() -> Grid:
    return empty_grid()


@pytest.fixture
def board_factory() -> Callable[..., Tuple[Grid, list, list]]:
    """Build ``(grid, fleet, defender_powers)`` from ``(name, x, y, horizontal)`` specs."""

    def _factory(*specs):
        g = empty_grid()
        fleet: list = []
        ids = itertools.count(1)
        for name, x, y, horizontal in specs:
            place_ship(g, fleet, template_by_name(name), (x, y), horizontal, ship_id=next(ids))
        return g, fleet, []

    return _factory


@pytest.fixture
def battle_match() -> Match:
    """A match in battle phase with both players on the standard layout."""
    return setup_battle(Match(rng=random.Random(7)))


@pytest.fixture
def authority() -> Authority:
    # Matchmaker thread is not started; tests drive pairing explicitly.
    return Authority(matchmaker=Matchmaker(match_timeout=30), rng=random.Random(3))


@pytest.fixture
def in_game(authority: Authority) -> Tuple[Authority, Player, Player]:
    """Two registered players who accepted a challenge and sit in one game."""
    p1 = authority.connect("Anne Bonny")
    p2 = authority.connect("Mary Read")
    proposal = authority.challenge(p1.token, p2.id)
    authority.respond(p1.token, proposal.id, True)
    authority.respond(p2.token, proposal.id, True)
    return authority, p1, p2


class TestClient:
    """Simple client wrapper for integration tests over the framed protocol."""

    __test__ = False  # not a test class

    def __init__(self, sock: socket.socket, timeout: float = 5.0) -> None:
        self.sock = sock
        self.sock.settimeout(timeout)
        self.rfile = sock.makefile("rb")
        self._seq = itertools.count()
        self.pending: List[Tuple[PacketType, Any]] = []

    def send(self, msg: str) -> None:
        """Send a framed GAME packet with the given command line."""
        self.sock.sendall(pack(PacketType.GAME, next(self._seq), {"msg": msg.strip()}))

    def expect(self, kind: str) -> dict:
        """Return the first message of *kind* ("error" for ERROR packets), keeping the others."""
        for i, (ptype, obj) in enumerate(self.pending):
            if self._kind(ptype, obj) == kind:
                del self.pending[i]
                return obj
        while True:
            ptype, _seq, obj = recv_pkt(self.rfile)
            if self._kind(ptype, obj) == kind:
                return obj
            self.pending.append((ptype, obj))

    @staticmethod
    def _kind(ptype: PacketType, obj: Any) -> str:
        if ptype is PacketType.ERROR:
            return "error"
        return obj.get("type", "") if isinstance(obj, dict) else ""

    def close(self) -> None:
        """Close the underlying socket."""
        self.rfile.close()
        self.sock.close()


@pytest.fixture
def client_factory(authority: Authority):
    """Factory that attaches a ClientConnection to a socketpair and returns the client end."""
    clients: List[TestClient] = []

    def _factory() -> TestClient:
        srv, cli = socket.socketpair()
        ClientConnection(srv, authority).start()
        client = TestClient(cli)
        clients.append(client)
        return client

    yield _factory
    for c in clients:
        c.close()
