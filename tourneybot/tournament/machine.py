"""
Tournament state machine: the single writer of the TournamentRecord.

States: idle → registering → in_progress → completed, with reset returning
to idle from anywhere.  Events (create, join, declare_winner, reset) are
applied one at a time under a single lock that spans the whole
read-check-mutate step.  Each step builds a new record and commits it with
one assignment, so a rejected event leaves the previous record untouched.

Subscribers are told about every committed change after the lock is
released; they must not call back into the machine expecting the same
snapshot, and any I/O they do happens outside the critical section.
"""

from __future__ import annotations

import logging
import random
import threading
from contextlib import suppress
from dataclasses import replace
from typing import Callable

from tourneybot.config import ByePolicy
from tourneybot.tournament.base import (
    BYE,
    NoActiveMatchForPlayer,
    NoActiveTournament,
    Player,
    RegistrationClosed,
    Round,
    TournamentAlreadyActive,
    TournamentDetails,
    TournamentStatus,
)
from tourneybot.tournament.events import (
    ChangeReason,
    MatchRecorded,
    RoundAdvanced,
    RoundOutcome,
    SnapshotChangedEvent,
    TournamentWon,
)
from tourneybot.tournament.pairing import ShuffleSource, generate_round
from tourneybot.tournament.session import TournamentRecord, TournamentSession
from tourneybot.tournament.snapshot import TournamentSnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SnapshotChangedEvent], None]

_ACTIVE = (TournamentStatus.REGISTERING, TournamentStatus.IN_PROGRESS)


class TournamentStateMachine:
    """Validates and applies tournament events against a session's record."""

    def __init__(
        self,
        session: TournamentSession,
        *,
        rng: ShuffleSource | None = None,
        bye_policy: ByePolicy = "auto_advance",
        min_players: int = 2,
        freeze_roster: bool = True,
    ) -> None:
        if min_players < 2:
            raise ValueError("min_players must be >= 2")
        self._session = session
        self._rng = rng or random.Random()
        self.bye_policy = bye_policy
        self.min_players = min_players
        self.freeze_roster = freeze_roster
        self._lock = threading.Lock()
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    @property
    def session(self) -> TournamentSession:
        return self._session

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> TournamentSnapshot:
        # Committed records are replaced, never edited, so no lock is needed.
        return self._session.record.to_snapshot()

    def create(self, details: TournamentDetails) -> None:
        """Open registration for a new tournament."""
        with self._lock:
            record = self._session.record
            if record.status in _ACTIVE:
                raise TournamentAlreadyActive(
                    f"Tournament {record.details.name!r} is already "
                    f"{record.status.value}; reset it first."
                )
            new = TournamentRecord(
                status=TournamentStatus.REGISTERING,
                details=details,
                version=record.version + 1,
            )
            self._session.replace(new)

        logger.info(
            "Tournament %r created (prize=%r, entry fee=%r)",
            details.name,
            details.prize,
            details.entry_fee,
        )
        self._notify("created", new)

    def join(self, player: Player) -> bool:
        """
        Add player to the roster.  Returns False when the id is already
        registered (a repeat join is a no-op, not an error).

        When the roster reaches min_players and no round exists yet, round 1
        is generated and the tournament moves to in_progress.
        """
        with self._lock:
            record = self._require_active()
            if player.id in record.roster:
                logger.debug("Ignoring repeat join for %r", player)
                return False
            if record.status is TournamentStatus.IN_PROGRESS and self.freeze_roster:
                raise RegistrationClosed(
                    f"Registration for {record.details.name!r} closed when round 1 started."
                )

            roster = {**record.roster, player.id: player}
            changes: dict = {"roster": roster, "version": record.version + 1}
            reason: ChangeReason = "joined"
            if not record.current_round and len(roster) >= self.min_players:
                changes.update(
                    status=TournamentStatus.IN_PROGRESS,
                    current_round=self._pair(list(roster.values())),
                    round_number=1,
                )
                reason = "round_started"
            new = replace(record, **changes)
            self._session.replace(new)

        logger.info("%s joined %r (%d registered)", player.display_name, new.details.name, len(roster))
        if reason == "round_started":
            logger.info("Round 1 started with %d matches", len(new.current_round))
        self._notify(reason, new)
        return True

    def declare_winner(self, player: Player) -> RoundOutcome:
        """
        Record player as the winner of their open match in the current round.

        Raises:
            NoActiveTournament: nothing is registering or in progress.
            NoActiveMatchForPlayer: player has no unresolved match right now.
        """
        with self._lock:
            record = self._require_active()
            index = _find_open_match(record.current_round, player)
            if index is None:
                logger.info("Rejected winner %r: no open match", player)
                raise NoActiveMatchForPlayer(player)

            open_match = record.current_round[index]
            decided = open_match.with_winner(open_match.occupant(player))
            current = record.current_round[:index] + (decided,) + record.current_round[index + 1:]
            version = record.version + 1

            outcome: RoundOutcome
            reason: ChangeReason
            if not all(m.is_resolved for m in current):
                new = replace(record, current_round=current, version=version)
                outcome = MatchRecorded(match=decided, round_number=record.round_number)
                reason = "match_recorded"
            else:
                winners = _round_winners(current)
                if len(winners) == 1:
                    champion = winners[0]
                    new = replace(
                        record,
                        status=TournamentStatus.COMPLETED,
                        current_round=current,
                        champion=champion,
                        version=version,
                    )
                    outcome = TournamentWon(champion=champion, final_match=decided)
                    reason = "tournament_won"
                else:
                    next_round = self._pair(winners)
                    new = replace(
                        record,
                        current_round=next_round,
                        round_number=record.round_number + 1,
                        completed_rounds=record.completed_rounds + (current,),
                        version=version,
                    )
                    outcome = RoundAdvanced(
                        completed_round=current,
                        new_round=next_round,
                        round_number=new.round_number,
                    )
                    reason = "round_advanced"
            self._session.replace(new)

        logger.info(
            "Match %d of round %d: %s beat %s",
            decided.match_id,
            record.round_number,
            decided.winner.display_name,
            decided.opponent_of(player).display_name,
        )
        match outcome:
            case RoundAdvanced():
                logger.info(
                    "Round %d complete; round %d has %d matches",
                    record.round_number,
                    outcome.round_number,
                    len(outcome.new_round),
                )
            case TournamentWon():
                logger.info("%s won %r", outcome.champion.display_name, new.details.name)
        self._notify(reason, new)
        return outcome

    def reset(self) -> None:
        """Discard the tournament, whatever state it is in."""
        with self._lock:
            record = self._session.record
            if record.status is TournamentStatus.IDLE:
                return
            new = TournamentRecord(version=record.version + 1)
            self._session.replace(new)

        logger.info("Tournament %r reset from %s", record.details.name, record.status.value)
        self._notify("reset", new)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    def _require_active(self) -> TournamentRecord:
        record = self._session.record
        if record.status not in _ACTIVE:
            raise NoActiveTournament("There is no active tournament.")
        return record

    def _pair(self, contestants: list[Player]) -> Round:
        return generate_round(contestants, self._rng, bye_policy=self.bye_policy)

    def _notify(self, reason: ChangeReason, record: TournamentRecord) -> None:
        event = SnapshotChangedEvent(reason=reason, snapshot=record.to_snapshot())
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Snapshot listener %r failed on %s", listener, reason)


def _find_open_match(rnd: Round, player: Player) -> int | None:
    for i, match in enumerate(rnd):
        if not match.is_resolved and match.contains(player):
            return i
    return None


def _round_winners(rnd: Round) -> list[Player]:
    """Distinct non-BYE winners, in match order."""
    winners: dict[str, Player] = {}
    for match in rnd:
        if match.winner is not None and match.winner is not BYE:
            winners.setdefault(match.winner.id, match.winner)
    return list(winners.values())
