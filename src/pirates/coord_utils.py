import re
from typing import Tuple

from . import config as _cfg

_LAST_ROW = chr(ord("A") + _cfg.BOARD_SIZE - 1)

# Regex for valid coordinates A1–J10 on the default 10x10 board
COORD_RE = re.compile(rf"^[A-{_LAST_ROW}]([1-9][0-9]*)$")


def coord_to_xy(coord: str) -> Tuple[int, int]:
    """
    Convert a coordinate like 'A1' through 'J10' to zero-based (x, y).

    The letter selects the row (y) and the number the column (x + 1).
    """
    text = coord.strip().upper()
    m = COORD_RE.match(text)
    if not m or not 1 <= int(m.group(1)) <= _cfg.BOARD_SIZE:
        raise ValueError(f"Invalid coordinate: {coord}")
    y = ord(text[0]) - ord("A")
    x = int(m.group(1)) - 1
    return x, y


def format_coord(x: int, y: int) -> str:
    """
    Convert zero-based (x, y) to coordinate string like 'A1'.
    """
    return f"{chr(ord('A') + y)}{x + 1}"
