"""
Tests for the pairing generator: slot counts, BYE padding, the
outer-pairs-with-inner layout, and both bye policies.  A fixed shuffle source
keeps bracket layouts exact.
"""

from __future__ import annotations

import random

import pytest

from tourneybot.tournament import (
    BYE,
    InsufficientContestants,
    InvalidInput,
    Player,
    generate_round,
    next_power_of_two,
    round_count,
)


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

NAMES = [
    "Alpha", "Bravo", "Charlie", "Delta",
    "Echo", "Foxtrot", "Golf", "Hotel",
    "India", "Juliet", "Kilo", "Lima",
    "Mike", "November", "Oscar", "Papa",
    "Quebec",
]


def make_players(n: int) -> list[Player]:
    return [Player(id=f"u{i + 1}", display_name=NAMES[i]) for i in range(n)]


class KeepOrder:
    """Shuffle source that leaves the list untouched."""

    def shuffle(self, x: list) -> None:
        pass


class ReverseOrder:
    def shuffle(self, x: list) -> None:
        x.reverse()


def slots(rnd) -> list:
    return [s for m in rnd for s in (m.slot_a, m.slot_b)]


# --------------------------------------------------------------------------- #
# Sizes                                                                        #
# --------------------------------------------------------------------------- #

class TestSizes:
    def test_next_power_of_two(self):
        assert next_power_of_two(1) == 2
        assert next_power_of_two(2) == 2
        assert next_power_of_two(3) == 4
        assert next_power_of_two(4) == 4
        assert next_power_of_two(5) == 8
        assert next_power_of_two(8) == 8
        assert next_power_of_two(9) == 16

    def test_round_count(self):
        assert round_count(0) == 0
        assert round_count(1) == 0
        assert round_count(2) == 1
        assert round_count(3) == 2
        assert round_count(4) == 2
        assert round_count(5) == 3
        assert round_count(16) == 4
        assert round_count(17) == 5

    @pytest.mark.parametrize("n", range(2, 18))
    def test_match_count_and_byes(self, n):
        players = make_players(n)
        rnd = generate_round(players, random.Random(n))
        assert len(rnd) == next_power_of_two(n) // 2
        occupants = slots(rnd)
        assert sum(1 for s in occupants if s is BYE) == next_power_of_two(n) - n
        real = [s for s in occupants if s is not BYE]
        assert sorted(p.id for p in real) == sorted(p.id for p in players)

    @pytest.mark.parametrize("n", range(2, 18))
    def test_no_match_has_two_byes(self, n):
        rnd = generate_round(make_players(n), random.Random(0))
        assert all(not (m.slot_a is BYE and m.slot_b is BYE) for m in rnd)

    def test_match_ids_are_sequential_from_one(self):
        rnd = generate_round(make_players(6), random.Random(1))
        assert [m.match_id for m in rnd] == [1, 2, 3, 4]


# --------------------------------------------------------------------------- #
# Layout                                                                       #
# --------------------------------------------------------------------------- #

class TestLayout:
    def test_outer_pairs_with_inner(self):
        a, b, c, d = make_players(4)
        rnd = generate_round([a, b, c, d], KeepOrder())
        assert [(m.slot_a, m.slot_b) for m in rnd] == [(a, d), (b, c)]

    def test_three_players_bye_faces_first_slot(self):
        a, b, c = make_players(3)
        rnd = generate_round([a, b, c], KeepOrder())
        assert rnd[0].slot_a == a and rnd[0].slot_b is BYE
        assert rnd[1].slot_a == b and rnd[1].slot_b == c

    def test_shuffle_source_is_used(self):
        a, b, c, d = make_players(4)
        rnd = generate_round([a, b, c, d], ReverseOrder())
        assert [(m.slot_a, m.slot_b) for m in rnd] == [(d, a), (c, b)]

    def test_input_is_not_mutated(self):
        players = make_players(5)
        before = list(players)
        generate_round(players, ReverseOrder())
        assert players == before

    def test_same_seed_same_bracket(self):
        players = make_players(7)
        first = generate_round(players, random.Random(42))
        second = generate_round(players, random.Random(42))
        assert first == second


# --------------------------------------------------------------------------- #
# Bye policy                                                                   #
# --------------------------------------------------------------------------- #

class TestByePolicy:
    def test_auto_advance_pre_resolves_bye_matches(self):
        a, b, c = make_players(3)
        rnd = generate_round([a, b, c], KeepOrder(), bye_policy="auto_advance")
        assert rnd[0].winner == a
        assert rnd[1].winner is None

    def test_manual_leaves_bye_matches_pending(self):
        rnd = generate_round(make_players(5), KeepOrder(), bye_policy="manual")
        assert all(m.winner is None for m in rnd)
        assert sum(1 for m in rnd if m.has_bye) == 3

    def test_auto_advance_never_resolves_whole_round(self):
        for n in range(2, 18):
            rnd = generate_round(make_players(n), random.Random(n))
            assert any(not m.is_resolved for m in rnd)


# --------------------------------------------------------------------------- #
# Validation                                                                   #
# --------------------------------------------------------------------------- #

class TestValidation:
    def test_single_contestant_raises(self):
        with pytest.raises(InsufficientContestants) as info:
            generate_round(make_players(1))
        assert info.value.count == 1

    def test_empty_raises(self):
        with pytest.raises(InsufficientContestants):
            generate_round([])

    def test_duplicate_ids_rejected(self):
        a = Player(id="same", display_name="One")
        b = Player(id="same", display_name="Two")
        with pytest.raises(InvalidInput):
            generate_round([a, b])


@pytest.mark.parametrize("n", [2, 3, 5, 31, 32, 33, 1000, 2**40 + 1])
def test_sizes_match_exact_integer_math(n):
    p = next_power_of_two(n)
    assert p >= n > p // 2
    assert round_count(n) == p.bit_length() - 1
