"""Word-to-phone correspondence between two tiers.

Each phone is assigned to the word that covers most of it. The sweep is
strictly monotonic: once a word fails to cover the current phone the
sweep moves on to the next word and never comes back.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..annotation.tier import Interval, Tier

# A word owns a phone when it covers more than this fraction of it
OVERLAP_THRESHOLD = 0.8


def overlap_ratio(word: Interval, phone: Interval) -> float:
    """Fraction of the phone's duration covered by the word.

    A zero-length phone cannot be covered and yields 0.0.
    """
    if phone.duration <= 0:
        return 0.0
    return word.overlap(phone) / phone.duration


def align(word_tier: Tier, phone_tier: Tier,
          threshold: float = OVERLAP_THRESHOLD) -> list[int] | None:
    """
    Map every phone to the index of the word it belongs to.

    Args:
        word_tier: Orthographic tier
        phone_tier: Phonetic tier
        threshold: Minimum overlap ratio (exclusive) for an assignment

    Returns:
        A list with one word index per phone, or None if some phone could
        not be assigned. A partial mapping is never returned.
    """
    phones = phone_tier.intervals
    assignment: list[int] = []
    i = 0
    for word_index, word in enumerate(word_tier.intervals):
        while i < len(phones) and overlap_ratio(word, phones[i]) > threshold:
            assignment.append(word_index)
            i += 1

    if len(assignment) != len(phones):
        return None
    return assignment


@dataclass(frozen=True)
class WordAlignment:
    """A complete phone-to-word mapping together with the word tier it indexes."""
    word_tier: Tier
    word_indices: tuple[int, ...]

    def words_for(self, start: int, stop: int) -> list[str]:
        """Labels of the words spanning phones [start, stop), consecutive repeats collapsed."""
        labels = []
        previous = None
        for word_index in self.word_indices[start:stop]:
            if word_index != previous:
                labels.append(self.word_tier[word_index].text)
                previous = word_index
        return labels

    @classmethod
    def between(cls, word_tier: Tier | None, phone_tier: Tier,
                threshold: float = OVERLAP_THRESHOLD) -> WordAlignment | None:
        """Align the two tiers, returning None when no usable alignment exists."""
        if word_tier is None:
            return None
        indices = align(word_tier, phone_tier, threshold)
        if indices is None:
            return None
        return cls(word_tier, tuple(indices))
