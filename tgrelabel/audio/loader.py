"""Audio file loading utilities."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import soundfile as sf

from ..errors import AudioError
from .source import Source


class FileSource(Source):
    """Decodes samples from an open soundfile on demand."""

    def __init__(self, sound_file: sf.SoundFile):
        self._file = sound_file
        self.sample_rate = sound_file.samplerate
        self.channels = sound_file.channels

    def read(self, frames: int) -> np.ndarray:
        return self._file.read(frames, dtype='float32', always_2d=True)

    def seek(self, frame: int):
        self._file.seek(max(0, min(frame, self._file.frames)))

    @property
    def total_duration(self) -> float:
        return self._file.frames / self.sample_rate

    def close(self):
        self._file.close()

    @property
    def closed(self) -> bool:
        return self._file.closed


class Sound:
    """
    The raw bytes of an audio file, kept in memory.

    Every call to ``decoder()`` starts a fresh decode from the cached bytes,
    so replaying a segment never touches the file system again.
    """

    def __init__(self, data: bytes, file_path: Path | None = None):
        self.data = data
        self.file_path = file_path

    @classmethod
    def load(cls, file_path: str | Path) -> Sound:
        """Read a whole audio file into memory.

        Raises:
            OSError: If the file cannot be read
        """
        file_path = Path(file_path)
        return cls(file_path.read_bytes(), file_path)

    def decoder(self) -> FileSource:
        """Open a new decoder over the cached bytes.

        Supports formats: WAV, FLAC, OGG, etc. (via soundfile/libsndfile)

        Raises:
            AudioError: If the bytes are not a supported audio format
        """
        try:
            return FileSource(sf.SoundFile(io.BytesIO(self.data)))
        except sf.LibsndfileError as e:
            name = self.file_path.name if self.file_path else '<memory>'
            raise AudioError(f"Cannot decode audio {name}: {e}") from e


def load_sound(file_path: str | Path) -> Sound:
    """
    Load an audio file for segment playback.

    Raises:
        AudioError: If the file is missing or unreadable
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise AudioError(f"Audio file not found: {file_path}")
    try:
        return Sound.load(file_path)
    except OSError as e:
        raise AudioError(f"Cannot read audio file {file_path}: {e}") from e
