"""Replacement rules.

A rule names a fixed-length phone sequence pattern (its arity), the set of
label sequences to look for, and the replacement options a user can pick
from for each match. Definitions use the form ``"name"`` or
``"name,N"``, where ``N`` is the arity (default 1).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from ..errors import ValidationError

# Token in a replacement option that keeps the original label
WILDCARD = '*'


def split_tokens(text: str) -> tuple[str, ...]:
    """Split a whitespace-separated token sequence."""
    return tuple(text.split())


@dataclass
class Rule:
    """A search pattern plus replacement options over phone labels."""
    name: str
    arity: int = 1
    search_ngrams: list[tuple[str, ...]] = field(default_factory=list)
    replacement_options: list[tuple[str, ...]] = field(default_factory=list)

    def __post_init__(self):
        if not self.name.strip():
            raise ValidationError("Rule name must not be empty")
        if ',' in self.name:
            raise ValidationError(f"Rule name {self.name!r} must not contain ','")
        if self.arity < 1:
            raise ValidationError(f"Rule arity must be at least 1, got {self.arity}")
        terms, options = self.search_ngrams, self.replacement_options
        self.search_ngrams, self.replacement_options = [], []
        for term in terms:
            self.add_search_term(term)
        for option in options:
            self.add_replacement_option(option)

    @classmethod
    def from_definition(cls, definition: str) -> Rule:
        """Create an empty rule from ``"name"`` or ``"name,N"``."""
        parts = definition.split(',')
        if len(parts) == 1:
            return cls(name=definition.strip())
        if len(parts) != 2:
            raise ValidationError(f"Invalid rule definition: {definition!r}")
        try:
            arity = int(parts[1].strip())
        except ValueError:
            raise ValidationError(f"Invalid rule arity in {definition!r}") from None
        return cls(name=parts[0].strip(), arity=arity)

    @property
    def definition(self) -> str:
        return self.name if self.arity == 1 else f"{self.name},{self.arity}"

    @property
    def search_set(self) -> frozenset[tuple[str, ...]]:
        return frozenset(self.search_ngrams)

    def _tokens(self, value: str | Iterable[str], kind: str) -> tuple[str, ...]:
        tokens = split_tokens(value) if isinstance(value, str) else tuple(value)
        if len(tokens) != self.arity:
            raise ValidationError(
                f"{kind} {' '.join(tokens)!r} has {len(tokens)} token(s), "
                f"rule {self.name!r} expects {self.arity}"
            )
        return tokens

    def add_search_term(self, term: str | Iterable[str]) -> int:
        """Add a search n-gram and return its index.

        Adding a term that already exists returns the existing index.
        """
        tokens = self._tokens(term, 'Search term')
        if tokens in self.search_ngrams:
            return self.search_ngrams.index(tokens)
        self.search_ngrams.append(tokens)
        return len(self.search_ngrams) - 1

    def add_replacement_option(self, option: str | Iterable[str]) -> int:
        """Add a replacement option and return its index.

        Adding an option that already exists returns the existing index.
        """
        tokens = self._tokens(option, 'Replacement option')
        if tokens in self.replacement_options:
            return self.replacement_options.index(tokens)
        self.replacement_options.append(tokens)
        return len(self.replacement_options) - 1


def load_rules(entries: Iterable[dict[str, Any]]) -> list[Rule]:
    """
    Build rules from config entries.

    Each entry is a mapping with ``name`` (a rule definition such as
    ``"flap,2"``) and optional ``search`` and ``options`` lists of
    whitespace-separated token sequences.

    Raises:
        ValidationError: On malformed entries or duplicate rule names
    """
    rules: list[Rule] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict) or 'name' not in entry:
            raise ValidationError(f"Rule entry must be a mapping with a 'name': {entry!r}")
        rule = Rule.from_definition(str(entry['name']))
        if rule.name in seen:
            raise ValidationError(f"Duplicate rule name {rule.name!r}")
        seen.add(rule.name)
        for term in entry.get('search') or []:
            rule.add_search_term(str(term))
        for option in entry.get('options') or []:
            rule.add_replacement_option(str(option))
        rules.append(rule)
    return rules


def find_rule(rules: Iterable[Rule], name: str) -> Rule:
    """Look up a rule by name.

    Raises:
        ValidationError: If no rule has that name
    """
    for rule in rules:
        if rule.name == name:
            return rule
    raise ValidationError(f"Unknown rule {name!r}")
