"""Lobby queue, direct challenges and match proposals.

A *proposal* pairs two players who must both accept within
``MATCH_TIMEOUT`` seconds before a game is created.  Proposals come from a
direct :meth:`Matchmaker.challenge` or from the automatic pairing of the
first two queued players.

Callbacks run synchronously on the calling thread *after* the matchmaker's
lock is released, so they may call back into the matchmaker.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from . import config as _cfg
from .errors import MatchmakingError

logger = logging.getLogger(__name__)


class ProposalStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


@dataclass(slots=True)
class QueueEntry:
    player_id: str
    joined_at: float


@dataclass(slots=True)
class Proposal:
    id: str
    player1_id: str
    player2_id: str
    initiated_by: Optional[str]
    expires_at: float
    status: ProposalStatus = ProposalStatus.PENDING
    responses: Dict[str, bool] = field(default_factory=dict)
    game_id: Optional[str] = None

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    @property
    def rejection_reason(self) -> str:
        if self.status is ProposalStatus.REJECTED:
            return "opponent_declined"
        if self.status is ProposalStatus.EXPIRED:
            return "timeout"
        return ""


OnMatchProposed = Callable[[str, Proposal], None]
OnMatchResult = Callable[[str, Proposal], None]
OnGameCreated = Callable[[str, str, str], None]

_Notice = Tuple[Callable[..., None], tuple]


class Matchmaker:
    def __init__(
        self,
        match_timeout: float = _cfg.MATCH_TIMEOUT,
        *,
        interval: float = _cfg.AUTO_MATCH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.match_timeout = match_timeout
        self.interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._queue: List[QueueEntry] = []
        self._proposals: Dict[str, Proposal] = {}
        self._player_proposal: Dict[str, str] = {}

        self.on_match_proposed: Optional[OnMatchProposed] = None
        self.on_match_result: Optional[OnMatchResult] = None
        self.on_game_created: Optional[OnGameCreated] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    def join_queue(self, player_id: str) -> Tuple[int, int]:
        """Append *player_id* (idempotent) and return ``(position, total)``."""
        with self._lock:
            for i, entry in enumerate(self._queue):
                if entry.player_id == player_id:
                    return i + 1, len(self._queue)
            self._queue.append(QueueEntry(player_id, self._clock()))
            logger.debug("%s joined the queue (%d waiting)", player_id, len(self._queue))
            return len(self._queue), len(self._queue)

    def leave_queue(self, player_id: str) -> None:
        with self._lock:
            self._remove_from_queue(player_id)

    def is_in_queue(self, player_id: str) -> bool:
        with self._lock:
            return any(e.player_id == player_id for e in self._queue)

    def queue_position(self, player_id: str) -> Tuple[int, int]:
        """1-based position, or 0 when not queued, plus the queue length."""
        with self._lock:
            for i, entry in enumerate(self._queue):
                if entry.player_id == player_id:
                    return i + 1, len(self._queue)
            return 0, len(self._queue)

    def _remove_from_queue(self, player_id: str) -> None:
        self._queue = [e for e in self._queue if e.player_id != player_id]

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------
    def challenge(self, challenger_id: str, target_id: str) -> Proposal:
        with self._lock:
            if challenger_id == target_id:
                raise MatchmakingError("Cannot challenge yourself")
            if challenger_id in self._player_proposal:
                raise MatchmakingError("Challenger already has a pending match")
            if target_id in self._player_proposal:
                raise MatchmakingError("Target already has a pending match")
            proposal = self._propose(challenger_id, target_id, initiated_by=challenger_id)
            self._remove_from_queue(challenger_id)
            self._remove_from_queue(target_id)
            notices = self._proposed_notices(proposal)
        self._notify(notices)
        return proposal

    def respond(self, proposal_id: str, player_id: str, accepted: bool) -> Proposal:
        """Record one player's answer; both accepts create a game."""
        notices: List[_Notice] = []
        try:
            with self._lock:
                proposal = self._proposals.get(proposal_id)
                if proposal is None:
                    raise MatchmakingError("Match not found")
                if not proposal.involves(player_id):
                    raise MatchmakingError("Player not part of this match")
                if proposal.status is not ProposalStatus.PENDING:
                    raise MatchmakingError("Match is no longer pending")
                if self._clock() > proposal.expires_at:
                    self._finish(proposal, ProposalStatus.EXPIRED, notices)
                    raise MatchmakingError("Match has expired")

                proposal.responses[player_id] = accepted
                if not accepted:
                    self._finish(proposal, ProposalStatus.REJECTED, notices)
                elif all(proposal.responses.get(p) for p in (proposal.player1_id, proposal.player2_id)):
                    proposal.game_id = str(uuid.uuid4())
                    self._finish(proposal, ProposalStatus.ACCEPTED, notices)
                    if self.on_game_created is not None:
                        notices.append(
                            (self.on_game_created, (proposal.player1_id, proposal.player2_id, proposal.game_id))
                        )
                return proposal
        finally:
            self._notify(notices)

    def pending_for(self, player_id: str) -> Optional[Proposal]:
        with self._lock:
            pid = self._player_proposal.get(player_id)
            proposal = self._proposals.get(pid) if pid else None
            if proposal is None or proposal.status is not ProposalStatus.PENDING:
                return None
            return proposal

    def _propose(self, p1: str, p2: str, *, initiated_by: Optional[str]) -> Proposal:
        proposal = Proposal(
            id=str(uuid.uuid4()),
            player1_id=p1,
            player2_id=p2,
            initiated_by=initiated_by,
            expires_at=self._clock() + self.match_timeout,
        )
        self._proposals[proposal.id] = proposal
        self._player_proposal[p1] = proposal.id
        self._player_proposal[p2] = proposal.id
        logger.info("Proposed match %s: %s vs %s", proposal.id, p1, p2)
        return proposal

    def _proposed_notices(self, proposal: Proposal) -> List[_Notice]:
        if self.on_match_proposed is None:
            return []
        return [(self.on_match_proposed, (pid, proposal)) for pid in (proposal.player1_id, proposal.player2_id)]

    def _finish(self, proposal: Proposal, status: ProposalStatus, notices: List[_Notice]) -> None:
        proposal.status = status
        self._proposals.pop(proposal.id, None)
        self._player_proposal.pop(proposal.player1_id, None)
        self._player_proposal.pop(proposal.player2_id, None)
        logger.info("Match %s %s", proposal.id, status.value)
        if self.on_match_result is not None:
            notices.extend((self.on_match_result, (pid, proposal)) for pid in (proposal.player1_id, proposal.player2_id))

    def _notify(self, notices: List[_Notice]) -> None:
        for cb, args in notices:
            try:
                cb(*args)
            except Exception:
                logger.exception("Matchmaker callback %s failed", getattr(cb, "__name__", cb))

    # ------------------------------------------------------------------
    # Background pairing
    # ------------------------------------------------------------------
    def tick(self) -> None:
        """One pass: pair the head of the queue, then expire stale proposals."""
        notices: List[_Notice] = []
        with self._lock:
            if len(self._queue) >= 2:
                first, second = self._queue[0], self._queue[1]
                if first.player_id not in self._player_proposal and second.player_id not in self._player_proposal:
                    self._queue = self._queue[2:]
                    proposal = self._propose(first.player_id, second.player_id, initiated_by=None)
                    notices.extend(self._proposed_notices(proposal))
            now = self._clock()
            for proposal in list(self._proposals.values()):
                if proposal.status is ProposalStatus.PENDING and now > proposal.expires_at:
                    self._finish(proposal, ProposalStatus.EXPIRED, notices)
        self._notify(notices)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="matchmaker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval * 4 + 1)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.tick()
