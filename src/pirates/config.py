"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
authority server runs with sensible defaults, while the automated
test-suite can shrink timeouts or move ports if necessary.
"""

from __future__ import annotations

import os

# ===========================================================================
# Game Constants
# ===========================================================================
# PIRATES_BOARD_SIZE: Defines the width and height of the game board.
#   Defaults to 10 (for a 10x10 grid).
#   Example: export PIRATES_BOARD_SIZE=12
BOARD_SIZE: int = int(os.getenv("PIRATES_BOARD_SIZE", "10"))

# PIRATES_SONAR_RADIUS: How far each of the four sonar rays extends from the
#   probed cell. The four diagonal neighbours are always swept as well.
#   Defaults to 5 (23 in-bounds cells when probing (5,5) on a 10x10 board).
#   Example: export PIRATES_SONAR_RADIUS=3
SONAR_RADIUS: int = int(os.getenv("PIRATES_SONAR_RADIUS", "5"))


# ===========================================================================
# Network Defaults
# ===========================================================================
# PIRATES_HOST: Default host address for the server to bind to.
#   Defaults to "127.0.0.1".
#   Example: export PIRATES_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("PIRATES_HOST", "127.0.0.1")

# PIRATES_PORT: Default port for the server to listen on.
#   Defaults to 61437.
#   Example: export PIRATES_PORT=5001
DEFAULT_PORT: int = int(os.getenv("PIRATES_PORT", "61437"))


# ===========================================================================
# Matchmaking
# ===========================================================================
# PIRATES_MATCH_TIMEOUT: seconds a proposed match waits for both players to accept.
#   Defaults to 30 seconds. Example: export PIRATES_MATCH_TIMEOUT=10
MATCH_TIMEOUT: float = float(os.getenv("PIRATES_MATCH_TIMEOUT", "30"))

# PIRATES_AUTO_MATCH_INTERVAL: seconds between two automatic pairing passes
#   over the waiting queue. Defaults to 0.5.
AUTO_MATCH_INTERVAL: float = float(os.getenv("PIRATES_AUTO_MATCH_INTERVAL", "0.5"))

# PIRATES_OUTBOX_SIZE: maximum number of undelivered events buffered per player.
#   Events beyond this bound are dropped. Defaults to 100.
OUTBOX_SIZE: int = int(os.getenv("PIRATES_OUTBOX_SIZE", "100"))


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# PIRATES_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
#   Example: export PIRATES_DEBUG=1
DEBUG: bool = os.getenv("PIRATES_DEBUG", "0") == "1"


# ===========================================================================
# Cryptography Defaults
# ===========================================================================
# PIRATES_KEY: AES-GCM key for frame encryption as a hex string (16/24/32 bytes).
# Defaults to "00112233445566778899AABBCCDDEEFF".
DEFAULT_KEY_HEX: str = os.getenv("PIRATES_KEY", "00112233445566778899AABBCCDDEEFF")
DEFAULT_KEY: bytes = bytes.fromhex(DEFAULT_KEY_HEX)
