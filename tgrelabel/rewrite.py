"""Apply chosen replacements and write TextGrids back to disk."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from .annotation.textgrid import encode
from .annotation.tier import TieredAnnotation
from .errors import SelectionError
from .items import ItemRecord
from .matching.rules import WILDCARD

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = '.bak'


def apply_choices(item: ItemRecord,
                  options: list[tuple[str, ...]] | None = None,
                  chosen: list[int | None] | None = None) -> TieredAnnotation:
    """
    Build a new annotation with the item's chosen options applied.

    ``item.annotation`` is left untouched. Wildcard tokens keep the
    original label at their position.

    Args:
        item: The scanned item
        options: Replacement options to index into (defaults to the
                 options the item was scanned with)
        chosen: Option index per match (defaults to the item's choices)

    Raises:
        SelectionError: If a chosen option index is out of range
    """
    if options is None:
        options = item.replacement_options
    if chosen is None:
        chosen = item.chosen_options
    phone_index = item.annotation.phone_tier_index
    phone_tier = item.annotation.phone_tier

    changes: dict[int, str] = {}
    for match, option_index in zip(item.matches, chosen):
        if option_index is None:
            continue
        if not 0 <= option_index < len(options):
            raise SelectionError(f"Option index {option_index} out of range ({len(options)} options)")
        for j, token in enumerate(options[option_index][:item.arity]):
            if token == WILDCARD:
                continue
            changes[match.tier_index + j] = token

    return item.annotation.with_tier(phone_index, phone_tier.with_labels(changes))


def backup_path(path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    """Sibling backup location, e.g. ``a.TextGrid`` -> ``a.TextGrid.bak``."""
    return path.with_name(path.name + suffix)


def _atomic_write(target: Path, data: bytes) -> None:
    """Write data to target atomically via temp file + rename."""
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        if target.exists():
            shutil.copymode(target, tmp)
        os.replace(tmp, target)
    except Exception:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_item(item: ItemRecord, chosen: list[int | None], create_backup: bool = False,
               backup_suffix: str = BACKUP_SUFFIX) -> TieredAnnotation:
    """
    Write ``item.file`` with the given choices applied, without touching the item.

    On the first write of a file with ``create_backup`` set, the original
    is copied to a sibling backup path; an existing backup is never
    overwritten. The file itself is replaced atomically, so a failure
    leaves it as it was.

    Returns:
        The annotation that was written

    Raises:
        OSError: If the backup copy or the write fails
    """
    new_annotation = apply_choices(item, chosen=chosen)
    data = encode(new_annotation).encode('utf-8')

    if create_backup:
        bak = backup_path(item.file, backup_suffix)
        if not bak.exists():
            shutil.copy2(item.file, bak)
            logger.info(f"Backed up {item.file.name} to {bak.name}")

    _atomic_write(item.file, data)
    logger.info(f"Saved {item.file}")
    return new_annotation


def save_item(item: ItemRecord, create_backup: bool = False,
              backup_suffix: str = BACKUP_SUFFIX) -> bool:
    """
    Rewrite the item's file with its chosen options and mark it clean.

    Clean items are skipped, so saving twice writes (and backs up) once.

    Returns:
        True if the file was written, False if the item was clean

    Raises:
        OSError: If the backup copy or the write fails; the item stays dirty
    """
    if not item.dirty:
        return False
    chosen = list(item.chosen_options)
    written = write_item(item, chosen, create_backup, backup_suffix)
    item.mark_saved(written, chosen)
    return True
