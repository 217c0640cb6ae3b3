"""Shared fixtures for tgrelabel tests."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tgrelabel.annotation.tier import Interval, Tier, TieredAnnotation
from tgrelabel.matching.rules import Rule


# "water" spoken between two silences, with word and phone tiers
WATER_WORDS = [(0.0, 0.5, ""), (0.5, 1.0, "water:NN"), (1.0, 1.5, "")]
WATER_PHONES = [
    (0.0, 0.5, ""),
    (0.5, 0.6, "w"),
    (0.6, 0.75, "ao"),
    (0.75, 0.85, "t"),
    (0.85, 1.0, "er"),
    (1.0, 1.5, ""),
]


def tier_from(name, spans):
    return Tier(name, tuple(Interval(start, end, text) for start, end, text in spans))


@pytest.fixture
def water():
    """Two-tier annotation of the word "water"."""
    return TieredAnnotation((
        tier_from("words", WATER_WORDS),
        tier_from("phones", WATER_PHONES),
    ))


@pytest.fixture
def flap_rule():
    """Rule turning "t er" into a flap, keeping the vowel."""
    return Rule(
        name="flap",
        arity=2,
        search_ngrams=[("t", "er"), ("d", "er")],
        replacement_options=[("dx", "*"), ("t", "er")],
    )


@pytest.fixture
def textgrid_dir(tmp_path, water):
    """A folder holding one matching TextGrid."""
    from tgrelabel.annotation.textgrid import write_textgrid

    folder = tmp_path / "TextGrid"
    folder.mkdir()
    write_textgrid(water, folder / "s01.TextGrid")
    return folder
