# io_utils.py
"""
Low-level helpers shared by the server connection handlers
–––––––––––––––––––––––––––––––––––––––––––––––––––––––––––
• send()       – frame + flush arbitrary payloads, reporting a dead peer
• grid_rows()  – Grid → [". . G G …", …] helper (ships optionally revealed)
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Dict, List, Sequence

from .common import PacketType, send_pkt
from .fleet import SHIP_LETTERS, PlacedShip
from .grid import CellState, Grid

logger = logging.getLogger(__name__)

# Cell glyphs for text clients; occupied cells show the ship's letter when revealed.
GLYPHS = {
    CellState.EMPTY: ".",
    CellState.MISS: "o",
    CellState.HIT: "X",
    CellState.SUNK: "#",
    CellState.REVEALED: "?",
}


def send(w: BinaryIO, seq: int, ptype: PacketType = PacketType.GAME, *, msg: str | None = None, obj: Any | None = None) -> bool:
    logger.debug("send() start – ptype=%s seq=%d msg=%r", ptype, seq, msg)
    payload = obj if obj is not None else {"msg": msg}
    try:
        send_pkt(w, ptype, seq, payload)  # type: ignore[arg-type]
        return True
    except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError, ValueError):
        # peer closed or reset during send, or our side already closed the stream
        return False
    except OSError:
        logger.exception("send() failed – seq=%d ptype=%s", seq, ptype)
        return False


def grid_rows(grid: Grid, fleet: Sequence[PlacedShip] = (), *, reveal: bool = False) -> List[str]:
    letters: Dict[int, str] = {s.id: SHIP_LETTERS.get(s.name, s.name[:1].upper()) for s in fleet}
    rows: list[str] = []
    for row in grid.rows():
        glyphs = []
        for cell in row:
            if cell.state is CellState.OCCUPIED:
                glyphs.append(letters.get(cell.ship_id, "S") if reveal else ".")
            else:
                glyphs.append(GLYPHS[cell.state])
        rows.append(" ".join(glyphs))
    return rows
