# encryption abstraction module

import os
import struct

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from . import config as _cfg

# AEAD header format: magic (2 bytes), version (1 byte), packet type (1 byte), sequence (4 bytes), nonce (12 bytes), length (4 bytes)
HEADER_STRUCT = struct.Struct(">HBBI12sI")

MAGIC = 0xB0A7
VERSION = 1

# Reject excessively large payloads (>1 MiB); a full match snapshot is a few KiB
MAX_PAYLOAD = 1024 * 1024

_secret_key: bytes = _cfg.DEFAULT_KEY


def enable_encryption(key: bytes) -> None:
    """Set the symmetric encryption key for AEAD operations"""
    global _secret_key
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 16/24/32 bytes")
    _secret_key = key


def current_key() -> bytes:
    return _secret_key


def pack(ptype: int, seq: int, payload: bytes) -> bytes:
    """AEAD pack: header + ciphertext+tag"""
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload too large: {len(payload)} bytes")
    nonce = os.urandom(12)
    ciphertext = AESGCM(_secret_key).encrypt(nonce, payload, None)
    header = HEADER_STRUCT.pack(MAGIC, VERSION, ptype, seq, nonce, len(ciphertext))
    return header + ciphertext


def unpack(frame: bytes) -> tuple[int, int, int, int, bytes]:
    """AEAD unpack: returns (magic, version, ptype, seq, plaintext)

    Raises ``cryptography.exceptions.InvalidTag`` when the frame was tampered
    with or sealed under another key.
    """
    header_size = HEADER_STRUCT.size
    magic, version, ptype, seq, nonce, length = HEADER_STRUCT.unpack(frame[:header_size])
    ciphertext = frame[header_size : header_size + length]
    plaintext = AESGCM(_secret_key).decrypt(nonce, ciphertext, None)
    return magic, version, ptype, seq, plaintext
