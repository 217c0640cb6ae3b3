"""Tests for sliding-window rule matching."""

from tgrelabel.annotation.tier import Interval, Tier
from tgrelabel.matching.alignment import WordAlignment
from tgrelabel.matching.matcher import Match, context_title, find_matches
from tgrelabel.matching.rules import Rule


def phone_tier(labels):
    return Tier("phones", tuple(Interval(i * 0.1, (i + 1) * 0.1, label)
                                for i, label in enumerate(labels)))


def test_matches_in_ascending_order():
    """Every window whose labels are a search n-gram is reported, in order."""
    rule = Rule("s", search_ngrams=[("s",)])
    matches, titles = find_matches(rule, phone_tier(["s", "t", "r", "eh", "s"]))

    assert [m.tier_index for m in matches] == [0, 4]
    assert titles == ["[s] t r", "r eh [s] s"]


def test_overlapping_windows():
    """Windows advance one phone at a time, so matches may overlap."""
    rule = Rule("aa", arity=2, search_ngrams=[("a", "a")])
    matches, _ = find_matches(rule, phone_tier(["a", "a", "a", "b"]))
    assert matches == [Match(0), Match(1)]


def test_no_match_when_tier_shorter_than_rule():
    rule = Rule("long", arity=3, search_ngrams=[("a", "b", "c")])
    matches, titles = find_matches(rule, phone_tier(["a", "b"]))
    assert matches == []
    assert titles == []


def test_context_title_with_words(water, flap_rule):
    """The title shows the spanned word, two phones of context, and the match."""
    words = WordAlignment.between(water.word_tier, water.phone_tier)
    matches, titles = find_matches(flap_rule, water.phone_tier, words)

    assert matches == [Match(3)]
    # The word is cut at the separator; the empty trailing phone adds nothing
    assert titles == ["(water) w ao [t er]"]


def test_context_title_without_words(water, flap_rule):
    """Without an alignment the word part is omitted."""
    _, titles = find_matches(flap_rule, water.phone_tier)
    assert titles == ["w ao [t er]"]


def test_context_clamp_at_tier_end():
    """A match ending on the last phone repeats that phone after the brackets."""
    labels = ["a", "b", "t", "er"]
    assert context_title(labels, 2, 2) == "a b [t er] er"
    assert context_title(labels, 0, 2) == "[a b] t er"


def test_context_title_spanning_two_words():
    """A window that crosses a word boundary lists both words once each."""
    words = Tier("words", (Interval(0.0, 0.2, "ab:x"), Interval(0.2, 0.4, "cd:y")))
    phones = phone_tier(["a", "b", "c", "d"])
    alignment = WordAlignment.between(words, phones)

    title = context_title(phones.labels, 1, 2, alignment)
    assert title == "(ab cd) a [b c] d"


def test_context_size_and_separator():
    """Test configurable context width and word separator."""
    words = Tier("words", (Interval(0.0, 0.5, "cat/N"),))
    phones = phone_tier(["k", "ae", "t", "s", "z"])
    alignment = WordAlignment.between(words, phones)

    rule = Rule("ae", search_ngrams=[("ae",)])
    _, titles = find_matches(rule, phones, alignment, context_size=1, separator="/")
    assert titles == ["(cat) k [ae] t"]
