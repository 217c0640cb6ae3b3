"""TextGrid decoding and encoding.

Praat's text format is a stream of values (numbers, quoted strings and
``<flags>``) interleaved with labels such as ``xmin =`` or ``item [1]:``.
The long format spells the labels out, the short format omits them. The
reader here walks the value tokens in order and treats everything else as
a label, so both layouts are accepted. After an ``=`` a value must follow,
which is how a bad number like ``xmax = 1.2.3`` is caught instead of being
skipped over.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from charset_normalizer import from_bytes
from charset_normalizer.cd import encoding_unicode_range
from charset_normalizer.utils import is_multi_byte_encoding

from ..errors import DecodeError, ParseError, ValidationError
from .tier import Interval, Tier, TieredAnnotation

logger = logging.getLogger(__name__)

INDENT = '    '

# Longest marks first: the UTF-32 LE mark starts with the UTF-16 LE one
_BOMS = [
    (codecs.BOM_UTF32_LE, 'utf-32-le'),
    (codecs.BOM_UTF32_BE, 'utf-32-be'),
    (codecs.BOM_UTF8, 'utf-8'),
    (codecs.BOM_UTF16_LE, 'utf-16-le'),
    (codecs.BOM_UTF16_BE, 'utf-16-be'),
]

# Preferred reading of 8-bit Latin text
LEGACY_ENCODINGS = ['cp1252']

# A quoted string may span lines; "" inside it is an escaped quote
_CHUNK_RE = re.compile(r'"(?:[^"]|"")*"|\S+')
_NUMBER_RE = re.compile(r'[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?')
_FLAG_RE = re.compile(r'<\w+>')


def _unescape_praat_string(s: str) -> str:
    """
    Unescape a Praat text string.

    In Praat TextGrid format, strings are quoted with double quotes,
    and a literal quote within the string is represented as two quotes ("").
    This function removes the outer quotes and unescapes inner quotes.
    """
    # Remove outer quotes if present
    if len(s) >= 2 and s.startswith('"') and s.endswith('"'):
        s = s[1:-1]
    # Unescape doubled quotes
    return s.replace('""', '"')


def _escape_praat_string(s: str) -> str:
    """
    Escape a string for Praat TextGrid format.

    Escapes literal quotes as "" and wraps in outer quotes.
    """
    return '"' + s.replace('"', '""') + '"'


def _format_number(value: float) -> str:
    """Shortest round-trip representation, without a trailing '.0'."""
    text = repr(float(value))
    if text.endswith('.0'):
        text = text[:-2]
    return text


# =============================================================================
# DECODING
# =============================================================================

def _is_latin_code_page(encoding: str) -> bool:
    if is_multi_byte_encoding(encoding):
        return False
    return all('Latin' in name for name in encoding_unicode_range(encoding))


def detect_text(data: bytes) -> str:
    """Decode raw bytes to text, guessing the character encoding.

    A byte order mark decides the encoding outright (Praat saves non-ASCII
    TextGrids as UTF-16 with a BOM). Otherwise strict UTF-8 is tried, then
    charset detection. Among single-byte Latin code pages the detector
    cannot tell apart reliably, Windows-1252 wins whenever it is plausible.

    Raises:
        DecodeError: If no plausible encoding is found
    """
    if not data:
        return ''

    for bom, encoding in _BOMS:
        if data.startswith(bom):
            try:
                return data[len(bom):].decode(encoding)
            except UnicodeDecodeError as e:
                raise DecodeError(f"Invalid {encoding} text after byte order mark: {e}") from None

    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        pass

    best = from_bytes(data).best()
    if best is None:
        raise DecodeError("Unable to detect the character encoding")
    if best.encoding not in LEGACY_ENCODINGS and _is_latin_code_page(best.encoding):
        legacy = from_bytes(data, cp_isolation=LEGACY_ENCODINGS).best()
        if legacy is not None:
            best = legacy
    logger.debug("Detected encoding %s", best.encoding)
    return str(best).lstrip('\ufeff')


@dataclass
class _Token:
    kind: str   # 'string', 'number', 'flag', 'equals' or 'label'
    text: str
    line: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    line = 1
    pos = 0
    for match in _CHUNK_RE.finditer(text):
        line += text.count('\n', pos, match.start())
        pos = match.start()
        chunk = match.group()
        if chunk.startswith('"'):
            if len(chunk) < 2 or not chunk.endswith('"') or chunk.count('"') % 2:
                raise ParseError("Unterminated string", chunk[:40], line)
            kind = 'string'
        elif chunk == '=':
            kind = 'equals'
        elif _NUMBER_RE.fullmatch(chunk):
            kind = 'number'
        elif _FLAG_RE.fullmatch(chunk):
            kind = 'flag'
        else:
            kind = 'label'
        tokens.append(_Token(kind, chunk, line))
    return tokens


class _TokenReader:
    """Reads successive values from a token list, skipping labels."""

    def __init__(self, tokens: list[_Token]):
        self._tokens = tokens
        self._pos = 0

    def _last_line(self) -> int | None:
        return self._tokens[-1].line if self._tokens else None

    def next_value(self, what: str) -> _Token:
        after_equals = False
        while self._pos < len(self._tokens):
            token = self._tokens[self._pos]
            self._pos += 1
            if token.kind == 'equals':
                after_equals = True
                continue
            if token.kind == 'label':
                if after_equals:
                    raise ParseError(f"Invalid value for {what}", token.text, token.line)
                continue
            return token
        raise ParseError(f"Unexpected end of input while reading {what}", "", self._last_line())

    def number(self, what: str) -> float:
        token = self.next_value(what)
        if token.kind != 'number':
            raise ParseError(f"Expected a number for {what}", token.text, token.line)
        try:
            return float(token.text)
        except ValueError:
            raise ParseError(f"Invalid number for {what}", token.text, token.line) from None

    def count(self, what: str) -> int:
        token = self.next_value(what)
        if token.kind != 'number' or not re.fullmatch(r'\+?\d+', token.text):
            raise ParseError(f"Expected a non-negative integer for {what}", token.text, token.line)
        return int(token.text)

    def string(self, what: str) -> str:
        token = self.next_value(what)
        if token.kind != 'string':
            raise ParseError(f"Expected a quoted string for {what}", token.text, token.line)
        return _unescape_praat_string(token.text)

    def flag(self, what: str) -> str:
        token = self.next_value(what)
        if token.kind != 'flag':
            raise ParseError(f"Expected a flag for {what}", token.text, token.line)
        return token.text

    def expect_end(self):
        while self._pos < len(self._tokens):
            token = self._tokens[self._pos]
            self._pos += 1
            if token.kind != 'label':
                raise ParseError("Unexpected content after the last tier", token.text, token.line)


def parse_textgrid(content: str) -> TieredAnnotation:
    """Parse TextGrid text (long or short format) into a TieredAnnotation.

    Raises:
        ParseError: If the text does not follow the TextGrid grammar
    """
    reader = _TokenReader(_tokenize(content))

    file_type = reader.string('file type')
    if not file_type.startswith('ooTextFile'):
        raise ParseError("Not a Praat text file", file_type)
    object_class = reader.string('object class')
    if object_class != 'TextGrid':
        raise ParseError("Unsupported object class", object_class)

    reader.number('xmin')
    reader.number('xmax')
    if reader.flag('tiers') != '<exists>':
        raise ParseError("TextGrid has no tiers")
    num_tiers = reader.count('tier count')
    if num_tiers == 0:
        raise ParseError("TextGrid has no tiers")

    tiers = []
    for tier_number in range(1, num_tiers + 1):
        tier_class = reader.string(f'class of tier {tier_number}')
        if tier_class != 'IntervalTier':
            raise ParseError(f"Unsupported tier class in tier {tier_number}", tier_class)
        name = reader.string(f'name of tier {tier_number}')
        reader.number(f'xmin of tier {tier_number}')
        reader.number(f'xmax of tier {tier_number}')
        num_intervals = reader.count(f'interval count of tier {tier_number}')
        if num_intervals == 0:
            raise ParseError(f"Tier {tier_number} has no intervals", name)

        intervals = []
        for interval_number in range(1, num_intervals + 1):
            where = f'interval {interval_number} of tier {tier_number}'
            xmin = reader.number(f'xmin of {where}')
            xmax = reader.number(f'xmax of {where}')
            text = reader.string(f'text of {where}')
            try:
                intervals.append(Interval(xmin, xmax, text))
            except ValueError as e:
                raise ParseError(str(e), f"xmin = {xmin}, xmax = {xmax}") from None
        tiers.append(Tier(name, tuple(intervals)))

    reader.expect_end()
    return TieredAnnotation(tuple(tiers))


def decode(data: bytes) -> TieredAnnotation:
    """Decode raw TextGrid bytes in any detectable encoding.

    Raises:
        DecodeError: On charset or grammar failure (ParseError for the latter)
    """
    return parse_textgrid(detect_text(data))


def read_textgrid(file_path: str | Path) -> TieredAnnotation:
    """Read a Praat TextGrid file.

    Supports both short and long TextGrid formats and any character
    encoding that can be detected from the content.
    """
    file_path = Path(file_path)
    return decode(file_path.read_bytes())


# =============================================================================
# ENCODING
# =============================================================================

def encode(annotations: TieredAnnotation) -> str:
    """Serialize annotations to long-format TextGrid text.

    Raises:
        ValidationError: If there are no tiers or a tier has no intervals,
            since the global extent would be undefined
    """
    if not annotations.tiers:
        raise ValidationError("Cannot serialize an annotation without tiers")
    for tier in annotations.tiers:
        if not tier.intervals:
            raise ValidationError(f"Cannot serialize empty tier {tier.name!r}")

    lines = [
        'File type = "ooTextFile"',
        'Object class = "TextGrid"',
        '',
        'xmin = 0',
        f'xmax = {_format_number(annotations.duration)}',
        'tiers? <exists>',
        f'size = {annotations.num_tiers}',
        'item []:',
    ]

    for i, tier in enumerate(annotations.tiers):
        lines.append(f'{INDENT}item [{i + 1}]:')
        lines.append(f'{INDENT * 2}class = "IntervalTier"')
        lines.append(f'{INDENT * 2}name = {_escape_praat_string(tier.name)}')
        lines.append(f'{INDENT * 2}xmin = 0')
        lines.append(f'{INDENT * 2}xmax = {_format_number(tier.end_time)}')
        lines.append(f'{INDENT * 2}intervals: size = {len(tier)}')

        for j, interval in enumerate(tier):
            lines.append(f'{INDENT * 3}intervals [{j + 1}]:')
            lines.append(f'{INDENT * 4}xmin = {_format_number(interval.start)}')
            lines.append(f'{INDENT * 4}xmax = {_format_number(interval.end)}')
            lines.append(f'{INDENT * 4}text = {_escape_praat_string(interval.text)}')

    return '\n'.join(lines) + '\n'


def write_textgrid(annotations: TieredAnnotation, file_path: str | Path):
    """Write annotations to a long-format, UTF-8 Praat TextGrid file."""
    file_path = Path(file_path)

    content = encode(annotations)
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(content)
