from dataclasses import dataclass
from typing import Optional, Union

from .coord_utils import coord_to_xy
from .powers import Orientation, PowerKind


class CommandParseError(Exception):
    """Raised when a line cannot be parsed as a valid command."""


@dataclass(frozen=True)
class HelloCommand:
    name: Optional[str] = None


@dataclass(frozen=True)
class QueueCommand:
    pass


@dataclass(frozen=True)
class LeaveCommand:
    pass


@dataclass(frozen=True)
class PlayersCommand:
    pass


@dataclass(frozen=True)
class ChallengeCommand:
    target_id: str


@dataclass(frozen=True)
class RespondCommand:
    match_id: str
    accepted: bool


@dataclass(frozen=True)
class PlaceCommand:
    ship: str
    x: int
    y: int
    horizontal: bool


@dataclass(frozen=True)
class RandomCommand:
    pass


@dataclass(frozen=True)
class ResetCommand:
    pass


@dataclass(frozen=True)
class ConfirmCommand:
    pass


@dataclass(frozen=True)
class FireCommand:
    x: int
    y: int
    turn: Optional[int] = None


@dataclass(frozen=True)
class PowerCommand:
    kind: PowerKind
    x: int
    y: int
    orientation: Optional[Orientation] = None
    turn: Optional[int] = None


@dataclass(frozen=True)
class BoardCommand:
    pass


@dataclass(frozen=True)
class QuitCommand:
    pass


Command = Union[
    HelloCommand,
    QueueCommand,
    LeaveCommand,
    PlayersCommand,
    ChallengeCommand,
    RespondCommand,
    PlaceCommand,
    RandomCommand,
    ResetCommand,
    ConfirmCommand,
    FireCommand,
    PowerCommand,
    BoardCommand,
    QuitCommand,
]

# Verbs that take no argument at all
_BARE = {
    "QUEUE": QueueCommand,
    "LEAVE": LeaveCommand,
    "PLAYERS": PlayersCommand,
    "RANDOM": RandomCommand,
    "RESET": ResetCommand,
    "CONFIRM": ConfirmCommand,
    "BOARD": BoardCommand,
    "QUIT": QuitCommand,
}

_POWER_ALIASES = {
    "INSTAKILL": PowerKind.INSTAKILL,
    "FATAL": PowerKind.INSTAKILL,
    "TRIPLE": PowerKind.TRIPLE,
    "SONAR": PowerKind.SONAR,
    "KRAKEN": PowerKind.KRAKEN,
}


def _coord(raw: str):
    try:
        return coord_to_xy(raw)
    except ValueError:
        raise CommandParseError(f"Invalid coordinate: {raw}") from None


def _orientation(raw: str) -> Orientation:
    try:
        return Orientation.parse(raw)
    except ValueError as exc:
        raise CommandParseError(str(exc)) from None


def _turn(raw: str) -> int:
    # Optional trailing "#<n>" asserts the turn the client believes it is playing.
    if not raw.startswith("#") or not raw[1:].isdigit():
        raise CommandParseError(f"Invalid turn marker: {raw} (expected #<n>)")
    return int(raw[1:])


def parse_command(line: str) -> Command:
    if line is None:
        raise CommandParseError("No command to parse")
    raw = line.strip()
    if not raw:
        raise CommandParseError("Empty command")
    parts = raw.split()
    verb = parts[0].upper()
    args = parts[1:]

    if verb in _BARE:
        if args:
            raise CommandParseError(f"{verb} takes no arguments")
        return _BARE[verb]()
    elif verb == "HELLO":
        name = raw.split(maxsplit=1)[1].strip() if args else None
        return HelloCommand(name=name)
    elif verb == "CHALLENGE":
        if len(args) != 1:
            raise CommandParseError("CHALLENGE requires a player id")
        return ChallengeCommand(target_id=args[0])
    elif verb in ("ACCEPT", "DECLINE"):
        if len(args) != 1:
            raise CommandParseError(f"{verb} requires a match id")
        return RespondCommand(match_id=args[0], accepted=verb == "ACCEPT")
    elif verb == "PLACE":
        if len(args) != 3:
            raise CommandParseError("PLACE requires <ship> <coord> <H|V>")
        x, y = _coord(args[1])
        horizontal = _orientation(args[2]) is Orientation.HORIZONTAL
        return PlaceCommand(ship=args[0], x=x, y=y, horizontal=horizontal)
    elif verb == "FIRE":
        if not args or len(args) > 2:
            raise CommandParseError("FIRE requires a coordinate")
        x, y = _coord(args[0])
        turn = _turn(args[1]) if len(args) == 2 else None
        return FireCommand(x=x, y=y, turn=turn)
    elif verb == "POWER":
        if len(args) < 2:
            raise CommandParseError("POWER requires <kind> <coord> [H|V]")
        kind = _POWER_ALIASES.get(args[0].upper())
        if kind is None:
            raise CommandParseError(f"Unknown power: {args[0]}")
        x, y = _coord(args[1])
        orientation = None
        turn = None
        for extra in args[2:]:
            if extra.startswith("#") and turn is None:
                turn = _turn(extra)
            elif orientation is None:
                orientation = _orientation(extra)
            else:
                raise CommandParseError(f"Unexpected argument: {extra}")
        return PowerCommand(kind=kind, x=x, y=y, orientation=orientation, turn=turn)
    else:
        raise CommandParseError(f"Unknown command: {raw}")
