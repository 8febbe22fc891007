"""
Pairing generator for single-elimination rounds.

Rules:
- Contestants are shuffled with the injected randomness source, then padded
  with BYEs up to the next power of two.
- Slot i faces slot n-1-i ("outer pairs with inner").  This only guarantees
  that every slot is paired exactly once; it is not competitive seeding.
- Bye handling (configurable):
    "auto_advance"  a player facing a BYE is recorded as the winner at once.
    "manual"        the match stays pending until a winner is declared.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Protocol

from tourneybot.config import ByePolicy
from tourneybot.tournament.base import (
    BYE,
    InsufficientContestants,
    InvalidInput,
    Match,
    Occupant,
    Player,
    Round,
)


class ShuffleSource(Protocol):
    """Anything with random.Random's shuffle(); tests pass fixed orderings."""

    def shuffle(self, x: list) -> None:
        ...  # pragma: no cover


def generate_round(
    contestants: Sequence[Player],
    rng: ShuffleSource | None = None,
    *,
    bye_policy: ByePolicy = "auto_advance",
) -> Round:
    """
    Build one balanced round from contestants.

    Raises:
        InsufficientContestants: fewer than 2 contestants.  A lone survivor is
            the champion, which the caller handles instead of pairing.
        InvalidInput: the same player id appears twice.
    """
    if len(contestants) < 2:
        raise InsufficientContestants(len(contestants))
    if len({p.id for p in contestants}) != len(contestants):
        raise InvalidInput("Each contestant may occupy only one bracket slot")

    permuted: list[Occupant] = list(contestants)
    (rng or random.Random()).shuffle(permuted)

    slots = next_power_of_two(len(permuted))
    permuted.extend([BYE] * (slots - len(permuted)))

    matches: list[Match] = []
    for i in range(slots // 2):
        slot_a = permuted[i]
        slot_b = permuted[slots - 1 - i]
        matches.append(
            Match(
                match_id=i + 1,
                slot_a=slot_a,
                slot_b=slot_b,
                winner=_bye_winner(slot_a, slot_b) if bye_policy == "auto_advance" else None,
            )
        )
    return tuple(matches)


def next_power_of_two(n: int) -> int:
    return 1 << (max(n, 2) - 1).bit_length()


def round_count(n: int) -> int:
    """Number of rounds a bracket of n contestants takes to produce a champion."""
    if n <= 1:
        return 0
    return (n - 1).bit_length()


def _bye_winner(slot_a: Occupant, slot_b: Occupant) -> Occupant | None:
    if slot_b is BYE:
        return slot_a
    if slot_a is BYE:
        return slot_b
    return None
