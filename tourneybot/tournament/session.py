"""
The owned tournament record and the session that holds it.

A process runs at most one tournament, but that tournament lives inside an
explicitly constructed TournamentSession that is passed to the state machine
(and to whatever hosts it) rather than in module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tourneybot.tournament.base import (
    Player,
    Round,
    TournamentDetails,
    TournamentStatus,
)
from tourneybot.tournament.snapshot import TournamentSnapshot


@dataclass
class TournamentRecord:
    """Canonical mutable state.  Only TournamentStateMachine writes to it."""

    status: TournamentStatus = TournamentStatus.IDLE
    details: TournamentDetails | None = None
    # Insertion-ordered and unique by id: dict keys keep join order.
    roster: dict[str, Player] = field(default_factory=dict)
    current_round: Round = ()
    champion: Player | None = None
    round_number: int = 0
    completed_rounds: tuple[Round, ...] = ()
    version: int = 0   # bumped on every committed change

    def to_snapshot(self) -> TournamentSnapshot:
        return TournamentSnapshot(
            status=self.status,
            details=self.details,
            roster=tuple(self.roster.values()),
            current_round=self.current_round,
            champion=self.champion,
            round_number=self.round_number,
            completed_rounds=self.completed_rounds,
            version=self.version,
        )


class TournamentSession:
    """Holds the single live TournamentRecord for one host process."""

    def __init__(self) -> None:
        self._record = TournamentRecord()

    @property
    def record(self) -> TournamentRecord:
        return self._record

    def replace(self, record: TournamentRecord) -> None:
        self._record = record
