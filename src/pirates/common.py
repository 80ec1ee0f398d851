"""Low-level packet framing utilities.

Frame layout (24-byte header + sealed JSON payload):
0-1  : 0xB0A7       magic bytes
2    : version (1)
3    : PacketType (enum)
4-7  : seq u32 (big-endian)
8-19 : AES-GCM nonce
20-23: len u32 (ciphertext + tag length)
24-  : AES-GCM ciphertext of the UTF-8 JSON payload
"""

from __future__ import annotations

import enum
import json
import logging
from io import BufferedReader, BufferedWriter
from typing import Any, Final, Tuple

from cryptography.exceptions import InvalidTag

from . import config as _cfg
from .encryption import HEADER_STRUCT, MAX_PAYLOAD, MAGIC as _MAGIC, VERSION as _VERSION
from .encryption import enable_encryption, pack as aead_pack, unpack as aead_unpack
from .replay import ReplayWindow

logger = logging.getLogger(__name__)

MAGIC: Final[int] = _MAGIC
VERSION: Final[int] = _VERSION

# Largest ciphertext a header may announce: payload cap plus the 16-byte GCM tag
MAX_FRAME_BODY: Final[int] = MAX_PAYLOAD + 16

# Default AES key (for compatible calls to enable_encryption)
DEFAULT_KEY = _cfg.DEFAULT_KEY


class PacketType(int, enum.Enum):
    """Enumerate wire-protocol packet categories."""

    GAME = 0  # commands, replies and match events
    ERROR = 1  # rejection of a client request: {"code", "msg"}


class FrameError(Exception):
    """Base for framing problems."""


class IncompleteError(FrameError):
    """Raised when the stream closes before a full frame could be read."""


# ---------------------------------------------------------------------------
# Public pack / unpack
# ---------------------------------------------------------------------------


def pack(ptype: PacketType, seq: int, obj: Any) -> bytes:
    """Serialize *obj* as JSON and seal it into one AEAD frame."""
    payload = json.dumps(obj).encode()
    return aead_pack(int(ptype), seq, payload)


def unpack(frame: bytes) -> Tuple[PacketType, int, Any]:
    """Open one complete frame and return ``(ptype, seq, obj)``."""
    try:
        magic, version, pval, seq, plaintext = aead_unpack(frame)
    except InvalidTag:
        raise FrameError("AEAD authentication failed") from None
    if magic != MAGIC or version != VERSION:
        raise FrameError("magic/version mismatch")
    try:
        ptype = PacketType(pval)
    except ValueError:
        raise FrameError(f"unknown packet type {pval}") from None
    try:
        obj = json.loads(plaintext)
    except ValueError:
        raise FrameError("payload is not valid JSON") from None
    return ptype, seq, obj


# ---------------------------------------------------------------------------
# Convenience wrappers for file-like objects
# ---------------------------------------------------------------------------


def send_pkt(w: BufferedWriter, ptype: PacketType, seq: int, obj: Any) -> None:
    """Write a single framed packet to buffered writer *w* and flush."""
    w.write(pack(ptype, seq, obj))
    w.flush()


def recv_pkt(r: BufferedReader, window: ReplayWindow | None = None) -> Tuple[PacketType, int, Any]:
    """Blocking helper that returns the next `(ptype, seq, obj)` tuple from *r*.

    Frames that fail authentication are dropped, as are replayed or too-old
    sequence numbers when a *window* is given.
    """
    header_len = HEADER_STRUCT.size
    while True:
        header = r.read(header_len)
        if len(header) < header_len:
            raise IncompleteError("Incomplete header")
        magic, _version, _ptype, _seq, _nonce, length = HEADER_STRUCT.unpack(header)
        if magic != MAGIC:
            raise FrameError(f"bad magic 0x{magic:04X}")
        if length > MAX_FRAME_BODY:
            raise FrameError(f"declared length {length} exceeds {MAX_FRAME_BODY}")
        ciphertext = r.read(length)
        if len(ciphertext) < length:
            raise IncompleteError("Incomplete payload")
        try:
            ptype, seq, obj = unpack(header + ciphertext)
        except FrameError as exc:
            logger.warning("Dropping frame: %s", exc)
            continue
        if window is not None and not window.validate(seq):
            logger.debug("Dropping replayed frame seq=%d", seq)
            continue
        return ptype, seq, obj


__all__ = [
    "PacketType",
    "FrameError",
    "IncompleteError",
    "enable_encryption",
    "pack",
    "unpack",
    "send_pkt",
    "recv_pkt",
]
