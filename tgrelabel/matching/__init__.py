"""Tier alignment and rule matching."""

from .alignment import WordAlignment, align, overlap_ratio
from .matcher import Match, context_title, find_matches
from .rules import WILDCARD, Rule, find_rule, load_rules

__all__ = [
    'WordAlignment',
    'align',
    'overlap_ratio',
    'Match',
    'context_title',
    'find_matches',
    'WILDCARD',
    'Rule',
    'find_rule',
    'load_rules',
]
