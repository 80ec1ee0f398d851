import struct
from io import BytesIO

import pytest

import pirates.common as common
import pirates.encryption as encryption
from pirates.common import FrameError, IncompleteError, PacketType, pack, recv_pkt, send_pkt, unpack
from pirates.replay import ReplayWindow


def test_pack_unpack_roundtrip():
    obj = {"type": "opponent_action", "cells": [[1, 2, "hit"]], "sunk": []}
    ptype, seq, out = unpack(pack(PacketType.GAME, 12345, obj))
    assert (ptype, seq, out) == (PacketType.GAME, 12345, obj)


def test_header_fields():
    data = pack(PacketType.ERROR, 7, {"code": "parse"})
    magic, version, ptype, seq, nonce, length = encryption.HEADER_STRUCT.unpack(data[:24])
    assert magic == common.MAGIC == 0xB0A7
    assert version == common.VERSION
    assert ptype == PacketType.ERROR.value
    assert seq == 7
    assert len(nonce) == 12
    assert length == len(data) - 24
    # Payload is sealed, not plain JSON.
    assert b"parse" not in data


def test_tampered_ciphertext_raises_FrameError():
    data = bytearray(pack(PacketType.GAME, 0, {"x": 1}))
    data[-1] ^= 0xFF
    with pytest.raises(FrameError):
        unpack(bytes(data))


def test_version_mismatch_raises_FrameError():
    data = pack(PacketType.GAME, 0, {"x": 1})
    # The header is not authenticated, so only the version check catches this.
    bad = data[:2] + struct.pack(">B", 9) + data[3:]
    with pytest.raises(FrameError):
        unpack(bad)


def test_wrong_key_raises_FrameError():
    data = pack(PacketType.GAME, 0, {"x": 1})
    original = encryption.current_key()
    encryption.enable_encryption(bytes(32))
    try:
        with pytest.raises(FrameError):
            unpack(data)
    finally:
        encryption.enable_encryption(original)


def test_enable_encryption_rejects_bad_key_length():
    with pytest.raises(ValueError):
        encryption.enable_encryption(b"short")


def test_send_and_recv_over_stream():
    buf = BytesIO()
    send_pkt(buf, PacketType.GAME, 1, {"msg": "FIRE A1"})
    send_pkt(buf, PacketType.GAME, 2, {"msg": "QUIT"})
    buf.seek(0)
    assert recv_pkt(buf)[2] == {"msg": "FIRE A1"}
    assert recv_pkt(buf)[2] == {"msg": "QUIT"}
    with pytest.raises(IncompleteError):
        recv_pkt(buf)


def test_incomplete_payload_raises_IncompleteError():
    data = pack(PacketType.GAME, 0, {"x": 1})
    with pytest.raises(IncompleteError):
        recv_pkt(BytesIO(data[:-3]))


def test_recv_drops_replayed_and_forged_frames():
    first = pack(PacketType.GAME, 1, {"n": 1})
    forged = bytearray(pack(PacketType.GAME, 2, {"n": 2}))
    forged[-1] ^= 0x01
    third = pack(PacketType.GAME, 3, {"n": 3})
    stream = BytesIO(first + first + bytes(forged) + third)
    window = ReplayWindow()
    assert recv_pkt(stream, window)[2] == {"n": 1}
    assert recv_pkt(stream, window)[2] == {"n": 3}


def test_replay_window():
    w = ReplayWindow(window_size=4)
    assert w.validate(10)
    assert not w.validate(10)
    assert w.validate(8)  # late but inside the window
    assert not w.validate(6)  # too old
    assert w.check(11)


class _RecordingReader(BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.asked: list[int] = []

    def read(self, size=-1):
        self.asked.append(size)
        return super().read(size)


def test_oversized_length_is_rejected_before_reading():
    header = encryption.HEADER_STRUCT.pack(common.MAGIC, common.VERSION, 0, 1, bytes(12), 0xFFFFFFFF)
    stream = _RecordingReader(header + b"x" * 64)
    with pytest.raises(FrameError):
        recv_pkt(stream)
    assert max(stream.asked) <= encryption.MAX_PAYLOAD + 16


def test_largest_allowed_length_is_still_read():
    header = encryption.HEADER_STRUCT.pack(common.MAGIC, common.VERSION, 0, 1, bytes(12), common.MAX_FRAME_BODY)
    # Announced size is within the cap, so the reader just runs out of bytes.
    with pytest.raises(IncompleteError):
        recv_pkt(BytesIO(header + b"x" * 10))
