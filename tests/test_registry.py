from __future__ import annotations

import queue
import string

import pytest

from pirates.errors import UnknownSession
from pirates.registry import Player, PlayerStatus, Registry


def test_register_generates_identity() -> None:
    reg = Registry()
    p = reg.register()
    assert " " in p.display_name
    assert len(p.token) == 64 and set(p.token) <= set(string.hexdigits)
    assert p.status is PlayerStatus.ONLINE
    assert reg.get_by_id(p.id) is p
    assert reg.get_by_token(p.token) is p
    assert reg.register("Grace O'Malley").display_name == "Grace O'Malley"
    assert len(reg) == 2


def test_require_unknown_token() -> None:
    reg = Registry()
    with pytest.raises(UnknownSession):
        reg.require(None)
    with pytest.raises(UnknownSession):
        reg.require("deadbeef")


def test_available_players_only_online() -> None:
    reg = Registry()
    a, b, c = reg.register("a"), reg.register("b"), reg.register("c")
    reg.set_status(b.id, PlayerStatus.IN_GAME)
    reg.set_status(c.id, PlayerStatus.IN_QUEUE)
    assert [p.id for p in reg.available_players()] == [a.id]


def test_full_outbox_drops_events() -> None:
    p = Player(id="x", display_name="x", token="t", outbox=queue.Queue(maxsize=2))
    assert p.push({"type": "one"})
    assert p.push({"type": "two"})
    assert not p.push({"type": "three"})
    assert p.outbox.get_nowait() == {"type": "one"}


def test_remove_closes_outbox() -> None:
    reg = Registry()
    p = reg.register("gone")
    for i in range(200):
        p.push({"type": "spam", "i": i})
    reg.remove(p.id)
    assert reg.get_by_token(p.token) is None
    items = []
    while not p.outbox.empty():
        items.append(p.outbox.get_nowait())
    assert items[-1] is None
    reg.remove(p.id)  # idempotent
