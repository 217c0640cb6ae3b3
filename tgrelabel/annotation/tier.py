"""Annotation tier data model.

All types here are immutable. Rewrites build new values with
``dataclasses.replace`` instead of mutating tiers in place, so the
annotation parsed at scan time stays intact until a write succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterator


@dataclass(frozen=True)
class Interval:
    """An interval in an annotation tier."""
    start: float  # Start time in seconds
    end: float    # End time in seconds
    text: str = ""  # Label/annotation text

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Interval start ({self.start}) must not be negative")
        if self.start > self.end:
            raise ValueError(f"Interval start ({self.start}) must be <= end ({self.end})")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, time: float) -> bool:
        """Check if time falls within this interval."""
        return self.start <= time < self.end

    def overlaps(self, other: Interval) -> bool:
        """Check if this interval overlaps with another."""
        return self.start < other.end and other.start < self.end

    def overlap(self, other: Interval) -> float:
        """Length of the time span shared with another interval (0 if disjoint)."""
        return max(0.0, min(self.end, other.end) - max(self.start, other.start))


@dataclass(frozen=True)
class Tier:
    """A named, ordered sequence of contiguous intervals."""
    name: str
    intervals: tuple[Interval, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence but store a tuple so the tier stays hashable
        if not isinstance(self.intervals, tuple):
            object.__setattr__(self, 'intervals', tuple(self.intervals))

    def __len__(self) -> int:
        return len(self.intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __getitem__(self, index: int) -> Interval:
        return self.intervals[index]

    @property
    def labels(self) -> list[str]:
        return [interval.text for interval in self.intervals]

    @property
    def end_time(self) -> float:
        """Largest interval end, or 0.0 for an empty tier."""
        return max((interval.end for interval in self.intervals), default=0.0)

    def with_labels(self, changes: dict[int, str]) -> Tier:
        """Return a copy of this tier with the labels at the given indices replaced."""
        intervals = list(self.intervals)
        for index, text in changes.items():
            if index < 0 or index >= len(intervals):
                raise IndexError(f"Interval index {index} out of range (0-{len(intervals) - 1})")
            intervals[index] = replace(intervals[index], text=text)
        return replace(self, intervals=tuple(intervals))


@dataclass(frozen=True)
class TieredAnnotation:
    """An ordered collection of tiers (a TextGrid).

    When there are two or more tiers, tier 0 is the orthographic (word)
    tier. The last tier is always the phonetic tier used for matching.
    """
    tiers: tuple[Tier, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.tiers, tuple):
            object.__setattr__(self, 'tiers', tuple(self.tiers))

    @property
    def num_tiers(self) -> int:
        return len(self.tiers)

    @property
    def duration(self) -> float:
        return max((tier.end_time for tier in self.tiers), default=0.0)

    @property
    def word_tier(self) -> Tier | None:
        """The orthographic tier, or None when only one tier exists."""
        if len(self.tiers) < 2:
            return None
        return self.tiers[0]

    @property
    def phone_tier(self) -> Tier:
        if not self.tiers:
            raise IndexError("Annotation has no tiers")
        return self.tiers[-1]

    @property
    def phone_tier_index(self) -> int:
        return len(self.tiers) - 1

    def get_tier(self, index: int) -> Tier:
        return self.tiers[index]

    def get_tier_by_name(self, name: str) -> Tier | None:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        return None

    def with_tier(self, index: int, tier: Tier) -> TieredAnnotation:
        """Return a copy with the tier at ``index`` replaced."""
        tiers = list(self.tiers)
        tiers[index] = tier
        return replace(self, tiers=tuple(tiers))
