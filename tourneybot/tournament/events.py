"""
Tournament event dataclasses: the shared language between the state machine
and its collaborators (web adapter, chat bot, tests).

RoundOutcome is what declare_winner() returns.  SnapshotChangedEvent is what
subscribers receive after any transition that changes the tournament.
All events are frozen and safe to pass across threads and async boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from tourneybot.tournament.base import Match, Player, Round

if TYPE_CHECKING:
    from tourneybot.tournament.snapshot import TournamentSnapshot


ChangeReason = Literal[
    "created",
    "joined",
    "round_started",
    "match_recorded",
    "round_advanced",
    "tournament_won",
    "reset",
]


@dataclass(frozen=True)
class MatchRecorded:
    """A winner was set; other matches in the round are still open."""

    match: Match
    round_number: int


@dataclass(frozen=True)
class RoundAdvanced:
    """The last open match of a round was decided and the next round is paired."""

    completed_round: Round
    new_round: Round
    round_number: int   # number of new_round


@dataclass(frozen=True)
class TournamentWon:
    """Only one player is left standing."""

    champion: Player
    final_match: Match


# Union type for type-safe pattern matching in consumers
RoundOutcome = MatchRecorded | RoundAdvanced | TournamentWon


@dataclass(frozen=True)
class SnapshotChangedEvent:
    reason: ChangeReason
    snapshot: TournamentSnapshot
    timestamp: datetime = field(default_factory=datetime.now)
