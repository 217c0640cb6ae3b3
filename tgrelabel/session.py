"""
Scan session state.

A ``Session`` holds the items found by the last scan and the user's
replacement choices. Every method that changes state takes the session
lock for an in-memory update only: files are parsed before the lock is
taken and written after it is released.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .annotation.textgrid import read_textgrid
from .annotation.tier import TieredAnnotation
from .audio.actor import PlaySegment
from .config import config
from .errors import DecodeError, SelectionError, ValidationError
from .items import ItemRecord
from .matching.alignment import WordAlignment
from .matching.matcher import find_matches
from .matching.rules import Rule
from .rewrite import write_item

logger = logging.getLogger(__name__)


def list_textgrids(folder: Path, extension: str | None = None) -> list[Path]:
    """TextGrid files directly inside ``folder``, sorted by name.

    Raises:
        FileNotFoundError: If the folder does not exist
    """
    if extension is None:
        extension = config['files']['textgrid_extension']
    folder = Path(folder)
    if not folder.is_dir():
        raise FileNotFoundError(f"TextGrid folder not found: {folder}")
    extension = extension.lower()
    return sorted(
        (path for path in folder.iterdir()
         if path.is_file() and path.suffix.lower() == extension),
        key=lambda path: path.name,
    )


def build_item(path: Path, annotation: TieredAnnotation, rule: Rule,
               audio_dir: Path | None = None) -> ItemRecord | None:
    """Match a rule against a parsed file; None if nothing matches."""
    matching = config['matching']
    phone_tier = annotation.phone_tier
    words = WordAlignment.between(annotation.word_tier, phone_tier,
                                  matching['overlap_threshold'])
    matches, titles = find_matches(rule, phone_tier, words,
                                   context_size=matching['context_size'],
                                   separator=matching['word_separator'])
    if not matches:
        return None

    audio_file = None
    if audio_dir is not None:
        audio_file = Path(audio_dir) / (path.stem + config['files']['audio_extension'])

    return ItemRecord(
        file=path,
        annotation=annotation,
        matches=matches,
        context_titles=titles,
        arity=rule.arity,
        replacement_options=list(rule.replacement_options),
        audio_file=audio_file,
    )


class Session:
    """Items from the last scan plus the user's choices, guarded by a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: list[ItemRecord] = []
        self._rule: Rule | None = None

    @property
    def items(self) -> tuple[ItemRecord, ...]:
        with self._lock:
            return tuple(self._items)

    @property
    def rule(self) -> Rule | None:
        return self._rule

    @property
    def dirty(self) -> bool:
        with self._lock:
            return any(item.dirty for item in self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def item(self, index: int) -> ItemRecord:
        with self._lock:
            return self._item(index)

    def _item(self, index: int) -> ItemRecord:
        if index < 0 or index >= len(self._items):
            raise SelectionError(f"Item index {index} out of range ({len(self._items)} items)")
        return self._items[index]

    def scan(self, textgrid_dir: str | Path, rule: Rule,
             audio_dir: str | Path | None = None) -> int:
        """
        Find rule matches in every TextGrid of a folder.

        Files that cannot be read or parsed are logged and skipped; files
        without matches are left out. The previous items are replaced.

        Returns:
            Number of items found
        """
        items = []
        for path in list_textgrids(Path(textgrid_dir)):
            try:
                annotation = read_textgrid(path)
            except (DecodeError, OSError) as e:
                logger.warning(f"Skipping {path.name}: {e}")
                continue
            item = build_item(path, annotation, rule,
                              Path(audio_dir) if audio_dir is not None else None)
            if item is not None:
                items.append(item)

        with self._lock:
            self._items = items
            self._rule = rule
        logger.info(f"Found {sum(len(item.matches) for item in items)} matches in {len(items)} files")
        return len(items)

    def choose_option(self, item_index: int, match_index: int,
                      option_index: int | None) -> tuple[list[int | None], bool]:
        """
        Choose a replacement option for one match (None clears the choice).

        Returns:
            (chosen options of the item, whether the item is dirty)

        Raises:
            SelectionError: If any index is out of range
        """
        with self._lock:
            item = self._item(item_index)
            item.choose(match_index, option_index)
            return list(item.chosen_options), item.dirty

    def play_request(self, item_index: int, match_index: int,
                     volume: float | None = None) -> PlaySegment:
        """
        Build the playback command for one match.

        The window starts ``lead_in_ms`` before the first matched phone and
        ends ``tail_ms`` after the last one.

        Raises:
            SelectionError: If an index is out of range or the item has no audio file
        """
        playback = config['playback']
        with self._lock:
            item = self._item(item_index)
            if match_index < 0 or match_index >= len(item.matches):
                raise SelectionError(f"Match index {match_index} out of range ({len(item.matches)} matches)")
            if item.audio_file is None:
                raise SelectionError(f"No audio file for {item.file.name}")
            phones = item.annotation.phone_tier
            first = phones[item.matches[match_index].tier_index]
            last = phones[item.matches[match_index].tier_index + item.arity - 1]
            audio_file = item.audio_file

        lead_in = playback['lead_in_ms']
        start_ms = max(0, int(first.start * 1000 - lead_in))
        window_ms = int(lead_in + playback['tail_ms'] + (last.end - first.start) * 1000)
        if volume is None:
            volume = playback['volume_factor']
        return PlaySegment(audio_file, start_ms, window_ms, volume)

    def save(self, create_backup: bool | None = None) -> list[Path]:
        """
        Write every dirty item back to its file.

        Returns:
            Files that failed to save; those items stay dirty
        """
        files = config['files']
        if create_backup is None:
            create_backup = files['auto_backup']

        with self._lock:
            pending = [(item, list(item.chosen_options)) for item in self._items if item.dirty]

        failed = []
        for item, chosen in pending:
            try:
                written = write_item(item, chosen, create_backup, files['backup_suffix'])
            except (OSError, SelectionError, ValidationError) as e:
                logger.warning(f"Failed to save {item.file}: {e}")
                failed.append(item.file)
                continue
            with self._lock:
                item.mark_saved(written, chosen)
        return failed
