"""Per-file scan results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .annotation.tier import TieredAnnotation
from .errors import SelectionError
from .matching.matcher import Match


@dataclass
class ItemRecord:
    """One annotation file with rule matches and the user's chosen replacements."""
    file: Path
    annotation: TieredAnnotation     # as parsed at scan time, never mutated
    matches: list[Match]
    context_titles: list[str]
    arity: int
    replacement_options: list[tuple[str, ...]]
    audio_file: Path | None = None
    chosen_options: list[int | None] = field(default_factory=list)
    baseline_options: list[int | None] = field(default_factory=list)
    written: TieredAnnotation | None = None  # last successfully saved content

    def __post_init__(self):
        if not self.chosen_options:
            self.chosen_options = [None] * len(self.matches)
        if not self.baseline_options:
            self.baseline_options = list(self.chosen_options)

    @property
    def stem(self) -> str:
        return self.file.stem

    @property
    def dirty(self) -> bool:
        return self.chosen_options != self.baseline_options

    def choose(self, match_index: int, option_index: int | None) -> bool:
        """
        Set (or clear, with None) the replacement option for one match.

        Returns:
            True if the choice changed

        Raises:
            SelectionError: If either index is out of range
        """
        if match_index < 0 or match_index >= len(self.matches):
            raise SelectionError(
                f"Match index {match_index} out of range for {self.file.name} "
                f"({len(self.matches)} matches)"
            )
        if option_index is not None and not 0 <= option_index < len(self.replacement_options):
            raise SelectionError(
                f"Option index {option_index} out of range "
                f"({len(self.replacement_options)} options)"
            )
        if self.chosen_options[match_index] == option_index:
            return False
        self.chosen_options[match_index] = option_index
        return True

    def mark_saved(self, written: TieredAnnotation, saved_options: list[int | None] | None = None):
        """Record a successful write of ``saved_options`` (default: the current choices)."""
        if saved_options is None:
            saved_options = self.chosen_options
        self.baseline_options = list(saved_options)
        self.written = written
