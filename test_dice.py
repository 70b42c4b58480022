"""Tests for random sources and dice."""

import pytest

from simulation.dice import DiceBag, PythonRandomSource, parse_dice, roll, seeded_random
from simulation.errors import ConfigurationError


def test_roll_sums_one_draw_per_die(scripted):
    rng = scripted(ints=[4, 6, 2])
    assert roll([6, 6, 3], rng) == 12
    assert rng.randint_calls == [(1, 6), (1, 6), (1, 3)]


@pytest.mark.parametrize("sides", [[], [0], [6, -1]])
def test_roll_rejects_bad_dice(sides, scripted):
    rng = scripted(ints=[1, 1])
    with pytest.raises(ConfigurationError):
        roll(sides, rng)
    assert rng.randint_calls == []


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)


@pytest.mark.parametrize("expr,expected", [
    ("2d6", [6, 6]),
    ("1d20", [20]),
    ("d20", [20]),
    ("3D6", [6, 6, 6]),
    (" 1d3 ", [3]),
])
def test_parse_dice(expr, expected):
    assert parse_dice(expr) == expected


@pytest.mark.parametrize("expr", ["", "2x6", "0d6", "2d0", "d", "six"])
def test_parse_dice_rejects_malformed(expr):
    with pytest.raises(ConfigurationError):
        parse_dice(expr)


def test_dice_bag_bounds():
    bag = DiceBag.from_expression("2d6", PythonRandomSource(7))
    assert (bag.minimum, bag.maximum) == (2, 12)
    for _ in range(200):
        assert 2 <= bag.roll() <= 12


def test_seeded_sources_repeat():
    a, b = seeded_random(99), seeded_random(99)
    assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]
    assert [a.randint(1, 20) for _ in range(5)] == [b.randint(1, 20) for _ in range(5)]
    assert a.seed == 99


def test_choice_rejects_empty():
    with pytest.raises(ValueError):
        PythonRandomSource(1).choice([])
