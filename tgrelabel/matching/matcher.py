"""Sliding-window rule matching over a phone tier."""

from __future__ import annotations

from dataclasses import dataclass

from ..annotation.tier import Tier
from .alignment import WordAlignment
from .rules import Rule

# Number of neighbouring phones shown on each side of a match
CONTEXT_SIZE = 2
# Word labels may carry extra data after this character (e.g. "word:pos")
WORD_SEPARATOR = ':'


@dataclass(frozen=True)
class Match:
    """A rule match starting at ``tier_index`` in the phone tier."""
    tier_index: int


def context_title(labels: list[str], index: int, arity: int,
                  words: WordAlignment | None = None,
                  context_size: int = CONTEXT_SIZE,
                  separator: str = WORD_SEPARATOR) -> str:
    """
    Build a readable description of a match, e.g. ``"(water) w ao [t er]"``.

    The word part is only present when a complete alignment is available.
    The following context starts at ``min(index + arity, n - 1)``, so a
    match that ends on the last phone repeats that phone after the brackets.
    """
    n = len(labels)
    title = ''
    if words is not None:
        spanned = words.words_for(index, index + arity)
        title += '(' + ' '.join(word.split(separator)[0] for word in spanned) + ') '
    for j in range(max(0, index - context_size), index):
        title += labels[j] + ' '
    title += '[' + ' '.join(labels[index:index + arity]) + '] '
    for j in range(min(index + arity, n - 1), min(index + arity + context_size, n)):
        title += labels[j] + ' '
    return title.strip()


def find_matches(rule: Rule, phone_tier: Tier,
                 words: WordAlignment | None = None,
                 context_size: int = CONTEXT_SIZE,
                 separator: str = WORD_SEPARATOR) -> tuple[list[Match], list[str]]:
    """
    Find every window of the phone tier whose labels form one of the rule's n-grams.

    Windows overlap (step 1) and are reported in ascending order.

    Returns:
        (matches, context_titles) as parallel lists
    """
    labels = phone_tier.labels
    arity = rule.arity
    search = rule.search_set
    matches: list[Match] = []
    titles: list[str] = []

    for i in range(len(labels) - arity + 1):
        if tuple(labels[i:i + arity]) in search:
            matches.append(Match(i))
            titles.append(context_title(labels, i, arity, words, context_size, separator))

    return matches, titles
