"""Rejection taxonomy shared by the rules engine, the match and the authority.

Every error is recoverable: the caller gets the exception, state is left
untouched, and the client may retry with corrected input.  The ``code``
attribute is the stable identifier sent on the wire (``ERR <code> <text>``).
"""

from __future__ import annotations


class PiratesError(Exception):
    """Base for every rule or session rejection."""

    code = "error"


class InvalidPlacement(PiratesError):
    """Ship out of bounds, overlapping, already placed, or fleet incomplete."""

    code = "invalid_placement"


class IllegalTarget(PiratesError):
    """Attack coordinate out of bounds or directional power without orientation."""

    code = "illegal_target"


class AlreadyResolved(PiratesError):
    """Normal attack on a cell that is already Hit, Sunk or Miss."""

    code = "already_resolved"


class PowerUnavailable(PiratesError):
    """Activating a power the player does not hold."""

    code = "power_unavailable"


class OutOfTurn(PiratesError):
    """Action from a player who is not current, or with a stale turn number."""

    code = "out_of_turn"


class WrongPhase(PiratesError):
    """Action not allowed in the current match phase."""

    code = "wrong_phase"


class UnknownSession(PiratesError):
    code = "unknown_session"


class NotInGame(PiratesError):
    code = "not_in_game"


class MatchmakingError(PiratesError):
    code = "matchmaking"


class IllegalTransition(RuntimeError):
    """A grid write would break the monotonic cell invariant.

    Raised only by engine bugs; never reported to clients as a rule error.
    """
