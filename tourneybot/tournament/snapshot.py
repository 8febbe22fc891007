"""
Read-only projection of tournament state for presentation.

The snapshot is built from tuples and frozen dataclasses, so a renderer can
hold on to it (or hand it to another thread) while the state machine keeps
applying events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tourneybot.tournament.base import (
    BYE,
    Match,
    Occupant,
    Player,
    Round,
    TournamentDetails,
    TournamentStatus,
)


@dataclass(frozen=True)
class TournamentSnapshot:
    status: TournamentStatus
    details: TournamentDetails | None
    roster: tuple[Player, ...]
    current_round: Round
    champion: Player | None
    round_number: int = 0
    completed_rounds: tuple[Round, ...] = ()
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in (TournamentStatus.REGISTERING, TournamentStatus.IN_PROGRESS)

    @property
    def pending_matches(self) -> tuple[Match, ...]:
        return tuple(m for m in self.current_round if not m.is_resolved)


def snapshot_to_json(snapshot: TournamentSnapshot) -> dict[str, Any]:
    """Convert a snapshot to JSON-safe dicts (BYE becomes {"bye": true, ...})."""
    details = snapshot.details
    return {
        "status": snapshot.status.value,
        "details": (
            {"name": details.name, "prize": details.prize, "entry_fee": details.entry_fee}
            if details
            else None
        ),
        "roster": [occupant_to_json(p) for p in snapshot.roster],
        "round_number": snapshot.round_number,
        "current_round": _round_json(snapshot.current_round),
        "completed_rounds": [_round_json(r) for r in snapshot.completed_rounds],
        "champion": occupant_to_json(snapshot.champion) if snapshot.champion else None,
        "version": snapshot.version,
    }


def match_to_json(match: Match) -> dict[str, Any]:
    return {
        "match_id": match.match_id,
        "slot_a": occupant_to_json(match.slot_a),
        "slot_b": occupant_to_json(match.slot_b),
        "winner": occupant_to_json(match.winner) if match.winner is not None else None,
    }


def _round_json(rnd: Round) -> list[dict[str, Any]]:
    return [match_to_json(m) for m in rnd]


def occupant_to_json(occupant: Occupant) -> dict[str, Any]:
    if occupant is BYE:
        return {"id": None, "display_name": BYE.display_name, "bye": True}
    return {"id": occupant.id, "display_name": occupant.display_name, "bye": False}
