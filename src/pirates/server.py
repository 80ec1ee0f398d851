"""Threaded TCP front-end for the game authority.

Each accepted connection gets a :class:`ClientConnection` with one reader
thread (parses framed text commands and answers them) and, once the client
has said ``HELLO``, one writer thread draining that player's outbox.  Both
threads share the connection's sequence counter under a write lock.
"""

from __future__ import annotations

import argparse
import contextlib
import itertools
import logging
import os
import signal
import socket
import sys
import threading
from typing import Any, Dict, Optional

from . import config as _cfg
from .authority import Authority
from .commands import (
    BoardCommand,
    ChallengeCommand,
    Command,
    CommandParseError,
    ConfirmCommand,
    FireCommand,
    HelloCommand,
    LeaveCommand,
    PlaceCommand,
    PlayersCommand,
    PowerCommand,
    QueueCommand,
    QuitCommand,
    RandomCommand,
    ResetCommand,
    RespondCommand,
    parse_command,
)
from .common import FrameError, IncompleteError, PacketType, enable_encryption, recv_pkt
from .errors import PiratesError
from .io_utils import send as io_send
from .registry import Player
from .replay import ReplayWindow
from .snapshot import result_to_dict, ship_to_dict

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

# Initialize module-level logger
logger = logging.getLogger(__name__)

# Connection ids for log lines only
_conn_counter = itertools.count(1)


class ClientConnection:
    """One connected client: framed command reader plus outbox writer."""

    def __init__(self, sock: socket.socket, authority: Authority) -> None:
        self.sock = sock
        self.authority = authority
        self.cid = next(_conn_counter)
        self.rfile = sock.makefile("rb")
        self.wfile = sock.makefile("wb")
        self.player: Optional[Player] = None
        self._window = ReplayWindow()
        self._seq = itertools.count()
        self._wlock = threading.Lock()
        self._closed = threading.Event()
        self._writer: Optional[threading.Thread] = None

    @property
    def token(self) -> Optional[str]:
        return self.player.token if self.player else None

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------
    def start(self) -> threading.Thread:
        t = threading.Thread(target=self.serve, name=f"conn-{self.cid}", daemon=True)
        t.start()
        return t

    def serve(self) -> None:
        """Reader loop: runs until QUIT, EOF or a broken stream."""
        logger.info("[conn %d] connected", self.cid)
        try:
            while not self._closed.is_set():
                try:
                    ptype, _seq, obj = recv_pkt(self.rfile, self._window)
                except IncompleteError:
                    break
                except FrameError as exc:
                    logger.warning("[conn %d] framing error: %s", self.cid, exc)
                    break
                except OSError:
                    break
                if ptype is not PacketType.GAME:
                    continue
                line = obj.get("msg", "") if isinstance(obj, dict) else str(obj or "")
                if not self.handle_line(line):
                    break
        finally:
            self.close()

    def _writer_loop(self, player: Player) -> None:
        while True:
            event = player.outbox.get()
            if event is None or self._closed.is_set():
                return
            if not self.send(event):
                return

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def handle_line(self, line: str) -> bool:
        """Parse and execute one command line; False means the client is done."""
        logger.debug("[conn %d] <- %r", self.cid, line)
        try:
            cmd = parse_command(line)
        except CommandParseError as exc:
            self.send_error("parse", str(exc))
            return True
        try:
            reply = self.dispatch(cmd)
        except PiratesError as exc:
            logger.warning("[conn %d] rejected %s: %s", self.cid, type(cmd).__name__, exc)
            self.send_error(exc.code, str(exc))
            return True
        if reply is None:
            self.send({"type": "bye"})
            return False
        self.send(reply)
        return True

    def dispatch(self, cmd: Command) -> Optional[Dict[str, Any]]:  # noqa: C901 – flat command table
        auth = self.authority
        token = self.token
        if isinstance(cmd, HelloCommand):
            if self.player is not None:
                return {"type": "welcome", "player": self.player.to_dict(), "token": self.player.token}
            self.player = auth.connect(cmd.name)
            self._writer = threading.Thread(
                target=self._writer_loop, args=(self.player,), name=f"conn-{self.cid}-writer", daemon=True
            )
            self._writer.start()
            return {"type": "welcome", "player": self.player.to_dict(), "token": self.player.token}
        if isinstance(cmd, QuitCommand):
            return None
        if isinstance(cmd, QueueCommand):
            return {"type": "queue_status", **auth.join_queue(token)}
        if isinstance(cmd, LeaveCommand):
            return {"type": "queue_status", **auth.leave_queue(token)}
        if isinstance(cmd, PlayersCommand):
            return {"type": "players", "players": auth.list_players(token)}
        if isinstance(cmd, ChallengeCommand):
            proposal = auth.challenge(token, cmd.target_id)
            return {"type": "challenge_sent", "match_id": proposal.id, "target": cmd.target_id}
        if isinstance(cmd, RespondCommand):
            return {"type": "match_response", **auth.respond(token, cmd.match_id, cmd.accepted)}
        if isinstance(cmd, PlaceCommand):
            ship = auth.place_ship(token, cmd.ship, cmd.x, cmd.y, cmd.horizontal)
            return {"type": "placed", "ships": [ship_to_dict(ship)]}
        if isinstance(cmd, RandomCommand):
            ships = auth.place_randomly(token)
            return {"type": "placed", "ships": [ship_to_dict(s) for s in ships]}
        if isinstance(cmd, ResetCommand):
            auth.reset_placement(token)
            return {"type": "ok", "cmd": "RESET"}
        if isinstance(cmd, ConfirmCommand):
            auth.confirm_placement(token)
            return {"type": "ok", "cmd": "CONFIRM"}
        if isinstance(cmd, FireCommand):
            result = auth.attack(token, cmd.x, cmd.y, turn=cmd.turn)
            return {"type": "ok", "cmd": "FIRE", "result": result_to_dict(result)}
        if isinstance(cmd, PowerCommand):
            result = auth.use_power(token, cmd.kind, cmd.x, cmd.y, cmd.orientation, turn=cmd.turn)
            return {"type": "ok", "cmd": "POWER", "result": result_to_dict(result)}
        if isinstance(cmd, BoardCommand):
            return {"type": "board", **auth.view(token)}
        raise CommandParseError(f"Unsupported command {cmd!r}")  # pragma: no cover

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def send(self, obj: Dict[str, Any], ptype: PacketType = PacketType.GAME) -> bool:
        with self._wlock:
            ok = io_send(self.wfile, next(self._seq), ptype, obj=obj)
        if not ok:
            logger.debug("[conn %d] peer gone while sending %s", self.cid, obj.get("type"))
        return ok

    def send_error(self, code: str, text: str) -> bool:
        return self.send({"code": code, "msg": f"ERR {code} {text}"}, PacketType.ERROR)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        if self.player is not None:
            # Removing the player also wakes the writer with the end sentinel.
            self.authority.disconnect(self.player.token)
        for f in (self.rfile, self.wfile):
            with contextlib.suppress(OSError):
                f.close()
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        with contextlib.suppress(OSError):
            self.sock.close()
        logger.info("[conn %d] closed", self.cid)


class PiratesServer:
    """Accept loop handing every client to its own :class:`ClientConnection`."""

    def __init__(self, host: str = HOST, port: int = PORT, authority: Authority | None = None) -> None:
        self.host = host
        self.port = port
        self.authority = authority or Authority()
        self._sock: Optional[socket.socket] = None
        self._stopping = threading.Event()

    def bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.host, self.port))
        sock.listen()
        self.port = sock.getsockname()[1]
        self._sock = sock
        return sock

    def serve_forever(self) -> None:
        sock = self._sock or self.bind()
        self.authority.start()
        logger.info("Pirates server listening on %s:%d", self.host, self.port)
        try:
            while not self._stopping.is_set():
                try:
                    conn, addr = sock.accept()
                except OSError:
                    break
                logger.debug("Accepted connection from %s:%d", *addr[:2])
                ClientConnection(conn, self.authority).start()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        if self._stopping.is_set():
            return
        self._stopping.set()
        self.authority.stop()
        if self._sock is not None:
            with contextlib.suppress(OSError):
                self._sock.close()


def main() -> None:  # pragma: no cover – side-effect entrypoint
    """Run the authoritative server until SIGINT/SIGTERM."""

    parser = argparse.ArgumentParser(description="Pirates battle server")
    parser.add_argument("--host", default=HOST, help=f"Bind address (default {HOST}).")
    parser.add_argument("--port", type=int, default=PORT, help=f"TCP port (default {PORT}).")
    parser.add_argument(
        "--key",
        default=None,
        help="AES-GCM frame key as hex (16/24/32 bytes); defaults to PIRATES_KEY.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity.",
    )
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output.",
    )

    args = parser.parse_args()

    if args.debug:
        os.environ["PIRATES_DEBUG"] = "1"

    # Determine log level from CLI flags:
    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.key:
        enable_encryption(bytes.fromhex(args.key))

    server = PiratesServer(args.host, args.port)

    # install graceful shutdown handler
    def _shutdown(signum, frame):
        # ensure the "C" echo doesn't get stuck on our log line
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    server.serve_forever()


if __name__ == "__main__":  # pragma: no cover
    main()
