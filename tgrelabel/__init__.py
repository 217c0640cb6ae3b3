"""Find and relabel phone sequences in Praat TextGrid corpora."""

__version__ = '0.1.0'

from .errors import (
    AudioError,
    DecodeError,
    ParseError,
    RelabelError,
    SelectionError,
    ValidationError,
)
from .items import ItemRecord
from .rewrite import apply_choices, save_item
from .session import Session

__all__ = [
    'AudioError',
    'DecodeError',
    'ParseError',
    'RelabelError',
    'SelectionError',
    'ValidationError',
    'ItemRecord',
    'apply_choices',
    'save_item',
    'Session',
]
