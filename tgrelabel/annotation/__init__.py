"""Annotation module for tiers, intervals, and TextGrid I/O."""

from .tier import Interval, Tier, TieredAnnotation
from .textgrid import (
    decode,
    encode,
    parse_textgrid,
    read_textgrid,
    write_textgrid,
)

__all__ = [
    'Interval',
    'Tier',
    'TieredAnnotation',
    'decode',
    'encode',
    'parse_textgrid',
    'read_textgrid',
    'write_textgrid',
]
