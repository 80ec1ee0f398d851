import pytest

from pirates.commands import (
    BoardCommand,
    ChallengeCommand,
    CommandParseError,
    FireCommand,
    HelloCommand,
    PlaceCommand,
    PowerCommand,
    QueueCommand,
    QuitCommand,
    RespondCommand,
    parse_command,
)
from pirates.powers import Orientation, PowerKind


def test_hello_with_and_without_name():
    assert parse_command("HELLO") == HelloCommand(name=None)
    assert parse_command("hello  Calico Jack ") == HelloCommand(name="Calico Jack")


def test_bare_verbs():
    assert isinstance(parse_command("queue"), QueueCommand)
    assert isinstance(parse_command("BOARD"), BoardCommand)
    assert isinstance(parse_command("QUIT"), QuitCommand)
    with pytest.raises(CommandParseError):
        parse_command("QUIT now")


def test_challenge_and_responses():
    assert parse_command("CHALLENGE abc-123") == ChallengeCommand(target_id="abc-123")
    assert parse_command("ACCEPT m1") == RespondCommand(match_id="m1", accepted=True)
    assert parse_command("decline m1") == RespondCommand(match_id="m1", accepted=False)
    with pytest.raises(CommandParseError):
        parse_command("ACCEPT")


def test_place_command():
    cmd = parse_command("PLACE galleon B3 V")
    assert cmd == PlaceCommand(ship="galleon", x=2, y=1, horizontal=False)
    with pytest.raises(CommandParseError):
        parse_command("PLACE galleon B3 X")
    with pytest.raises(CommandParseError):
        parse_command("PLACE galleon B3")


def test_fire_valid_A1():
    cmd = parse_command("FIRE A1")
    assert isinstance(cmd, FireCommand)
    assert (cmd.x, cmd.y, cmd.turn) == (0, 0, None)


def test_fire_valid_J10_with_turn():
    cmd = parse_command("fire j10 #7")
    assert (cmd.x, cmd.y, cmd.turn) == (9, 9, 7)


@pytest.mark.parametrize("line", ["FIRE K1", "FIRE A11", "FIRE A0", "FIRE", "FIRE A1 7"])
def test_fire_invalid(line):
    with pytest.raises(CommandParseError):
        parse_command(line)


def test_power_command():
    assert parse_command("POWER triple E5 h") == PowerCommand(
        kind=PowerKind.TRIPLE, x=4, y=4, orientation=Orientation.HORIZONTAL
    )
    assert parse_command("POWER fatal A1 #3") == PowerCommand(kind=PowerKind.INSTAKILL, x=0, y=0, turn=3)
    assert parse_command("POWER sonar F6").orientation is None
    with pytest.raises(CommandParseError):
        parse_command("POWER laser A1")
    with pytest.raises(CommandParseError):
        parse_command("POWER triple A1 H V")


def test_unknown_command():
    with pytest.raises(CommandParseError):
        parse_command("CHAT hello there")


def test_empty_line():
    with pytest.raises(CommandParseError):
        parse_command("    ")
