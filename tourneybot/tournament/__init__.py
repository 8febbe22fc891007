"""
Tournament package: the single-elimination core.

create_state_machine() is the single entry point for wiring a state machine
from configuration.  Collaborators (web adapter, chat bot) talk only to the
TournamentStateMachine it returns and to the snapshots it publishes.
"""

from __future__ import annotations

import random

from tourneybot.config import TournamentConfig
from tourneybot.tournament.base import (
    BYE,
    ByeSlot,
    InsufficientContestants,
    InvalidInput,
    Match,
    NoActiveMatchForPlayer,
    NoActiveTournament,
    Occupant,
    Player,
    RegistrationClosed,
    Round,
    TournamentAlreadyActive,
    TournamentDetails,
    TournamentError,
    TournamentStatus,
)
from tourneybot.tournament.events import (
    MatchRecorded,
    RoundAdvanced,
    RoundOutcome,
    SnapshotChangedEvent,
    TournamentWon,
)
from tourneybot.tournament.machine import SnapshotListener, TournamentStateMachine
from tourneybot.tournament.pairing import (
    ShuffleSource,
    generate_round,
    next_power_of_two,
    round_count,
)
from tourneybot.tournament.session import TournamentRecord, TournamentSession
from tourneybot.tournament.snapshot import TournamentSnapshot, snapshot_to_json

__all__ = [
    # Value types
    "BYE",
    "ByeSlot",
    "Match",
    "Occupant",
    "Player",
    "Round",
    "TournamentDetails",
    "TournamentStatus",
    # Errors
    "TournamentError",
    "TournamentAlreadyActive",
    "NoActiveTournament",
    "NoActiveMatchForPlayer",
    "InsufficientContestants",
    "RegistrationClosed",
    "InvalidInput",
    # Events
    "MatchRecorded",
    "RoundAdvanced",
    "RoundOutcome",
    "SnapshotChangedEvent",
    "TournamentWon",
    # Pairing
    "ShuffleSource",
    "generate_round",
    "next_power_of_two",
    "round_count",
    # State
    "SnapshotListener",
    "TournamentRecord",
    "TournamentSession",
    "TournamentSnapshot",
    "TournamentStateMachine",
    "snapshot_to_json",
    # Factory
    "create_state_machine",
]


def create_state_machine(
    config: TournamentConfig,
    session: TournamentSession | None = None,
    rng: ShuffleSource | None = None,
) -> TournamentStateMachine:
    """
    Build a TournamentStateMachine from the tournament section of config.yaml.

    Args:
        config:  bye policy, min players, roster freezing and optional seed
        session: the owned tournament handle; a fresh one when omitted
        rng:     shuffle source; defaults to random.Random(config.seed)
    """
    return TournamentStateMachine(
        session or TournamentSession(),
        rng=rng or random.Random(config.seed),
        bye_policy=config.bye_policy,
        min_players=config.min_players,
        freeze_roster=config.freeze_roster,
    )
