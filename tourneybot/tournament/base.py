"""
Tournament abstractions: shared value types and the error taxonomy.

Everything here is immutable.  The state machine builds new Match / Round
values instead of editing old ones, which is what makes every operation
all-or-nothing: a rejected event simply never commits its new values.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union


class TournamentStatus(str, Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# --------------------------------------------------------------------------- #
# Errors                                                                       #
# --------------------------------------------------------------------------- #

class TournamentError(Exception):
    """Base class for every rejected tournament operation."""

    kind = "TournamentError"


class TournamentAlreadyActive(TournamentError):
    kind = "TournamentAlreadyActive"


class NoActiveTournament(TournamentError):
    kind = "NoActiveTournament"


class NoActiveMatchForPlayer(TournamentError):
    kind = "NoActiveMatchForPlayer"

    def __init__(self, player: Player) -> None:
        self.player = player
        super().__init__(
            f"No unresolved match in the current round for {player.display_name!r} "
            f"(id={player.id!r}). They may have already won, or been eliminated."
        )


class InsufficientContestants(TournamentError):
    kind = "InsufficientContestants"

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"A round needs at least 2 contestants, got {count}.")


class RegistrationClosed(TournamentError):
    kind = "RegistrationClosed"


class InvalidInput(TournamentError, ValueError):
    """Malformed player or tournament details at the boundary."""

    kind = "InvalidInput"


# --------------------------------------------------------------------------- #
# Bracket occupants                                                            #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class Player:
    """A registered contestant.  Identity is the id; display_name may collide."""

    id: str
    display_name: str = field(compare=False)

    @classmethod
    def from_payload(cls, payload: object) -> Player:
        """Build a Player from untrusted input (a chat event, a JSON body)."""
        if not isinstance(payload, Mapping):
            raise InvalidInput(f"Player must be a mapping, got {type(payload).__name__}")
        raw_id = payload.get("id")
        name = payload.get("display_name")
        # Chat platforms hand out numeric ids; keep them opaque strings.
        if isinstance(raw_id, int) and not isinstance(raw_id, bool):
            raw_id = str(raw_id)
        if not isinstance(raw_id, str) or not raw_id.strip():
            raise InvalidInput("Player.id must be a non-empty string")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Player.display_name must be a non-empty string")
        return cls(id=raw_id.strip(), display_name=name.strip())

    def __repr__(self) -> str:
        return f"Player({self.id!r}, {self.display_name!r})"


class ByeSlot:
    """Sentinel occupant meaning "no opponent".  Use the BYE instance."""

    _instance: ByeSlot | None = None

    id = None
    display_name = "BYE"

    def __new__(cls) -> ByeSlot:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "BYE"

    def __reduce__(self) -> str:
        return "BYE"


BYE = ByeSlot()

Occupant = Union[Player, ByeSlot]


@dataclass(frozen=True)
class Match:
    """One pairing in a round.  winner, once set, is slot_a or slot_b."""

    match_id: int
    slot_a: Occupant
    slot_b: Occupant
    winner: Occupant | None = None

    def __post_init__(self) -> None:
        if self.winner is not None and self.winner not in (self.slot_a, self.slot_b):
            raise ValueError(
                f"Match {self.match_id}: winner {self.winner!r} is not in this match"
            )

    @property
    def is_resolved(self) -> bool:
        return self.winner is not None

    @property
    def has_bye(self) -> bool:
        return self.slot_a is BYE or self.slot_b is BYE

    def contains(self, player: Player) -> bool:
        return player in (self.slot_a, self.slot_b)

    def occupant(self, player: Player) -> Player:
        """Return the slot object for player (the roster's copy, not the caller's)."""
        return self.slot_a if self.slot_a == player else self.slot_b  # type: ignore[return-value]

    def opponent_of(self, player: Player) -> Occupant:
        return self.slot_b if self.slot_a == player else self.slot_a

    def with_winner(self, winner: Occupant) -> Match:
        return replace(self, winner=winner)


# One bracket layer; match_id runs 1..len(round).
Round = tuple[Match, ...]


@dataclass(frozen=True)
class TournamentDetails:
    name: str
    prize: str
    entry_fee: str = "None"

    @classmethod
    def from_payload(cls, payload: object) -> TournamentDetails:
        if not isinstance(payload, Mapping):
            raise InvalidInput(f"Details must be a mapping, got {type(payload).__name__}")
        name = payload.get("name")
        prize = payload.get("prize")
        entry_fee = payload.get("entry_fee")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Tournament name is required")
        if not isinstance(prize, str) or not prize.strip():
            raise InvalidInput("Tournament prize is required")
        if entry_fee is not None and not isinstance(entry_fee, str):
            raise InvalidInput("Entry fee must be a string when provided")
        return cls(
            name=name.strip(),
            prize=prize.strip(),
            entry_fee=(entry_fee or "").strip() or "None",
        )
