"""
Pull-based audio sources and transforms.

A source produces float32 sample blocks of shape ``(frames, channels)``
on demand through ``read(frames)``. An empty block means the source is
exhausted. Transforms wrap an inner source and are chained like this:

    source = (decoder
              .skip_duration(1.2)
              .take_duration(0.9)
              .amplify(0.8)
              .fade_in(0.05)
              .fade_out(0.05, total=0.9))

Each transform keeps its own position, so a chain can be pulled from the
audio callback thread one block at a time without precomputing the whole
segment.
"""

from __future__ import annotations

import threading
from collections import deque

import numpy as np

NS_PER_SECOND = 1_000_000_000


def _empty(channels: int) -> np.ndarray:
    return np.zeros((0, channels), dtype=np.float32)


class Source:
    """Base class for pull-based sample sources."""

    sample_rate: int
    channels: int

    def read(self, frames: int) -> np.ndarray:
        """Return up to ``frames`` frames; an empty array when exhausted."""
        raise NotImplementedError

    @property
    def total_duration(self) -> float | None:
        """Length in seconds if known."""
        return None

    def blocks(self, block_size: int = 1024):
        """Iterate over the remaining samples in blocks."""
        while True:
            block = self.read(block_size)
            if len(block) == 0:
                return
            yield block

    def skip_duration(self, seconds: float) -> SkipDuration:
        return SkipDuration(self, seconds)

    def take_duration(self, seconds: float) -> TakeDuration:
        return TakeDuration(self, seconds)

    def amplify(self, factor: float) -> Amplify:
        return Amplify(self, factor)

    def fade_in(self, seconds: float) -> FadeIn:
        return FadeIn(self, seconds)

    def fade_out(self, seconds: float, total: float | None = None) -> FadeOut:
        return fade_out(self, seconds, total)


class ArraySource(Source):
    """Plays samples held in memory."""

    def __init__(self, samples: np.ndarray, sample_rate: int):
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples[:, np.newaxis]
        self._samples = samples
        self._position = 0
        self.sample_rate = int(sample_rate)
        self.channels = samples.shape[1]

    def read(self, frames: int) -> np.ndarray:
        block = self._samples[self._position:self._position + frames]
        self._position += len(block)
        return block

    def seek(self, frame: int):
        self._position = max(0, min(frame, len(self._samples)))

    @property
    def total_duration(self) -> float:
        return len(self._samples) / self.sample_rate


class SineWave(Source):
    """An endless sine tone."""

    def __init__(self, frequency: float, sample_rate: int = 48000, channels: int = 1):
        self.frequency = frequency
        self.sample_rate = sample_rate
        self.channels = channels
        self._position = 0

    def read(self, frames: int) -> np.ndarray:
        t = (np.arange(frames) + self._position) / self.sample_rate
        self._position += frames
        wave = np.sin(2 * np.pi * self.frequency * t).astype(np.float32)
        return np.repeat(wave[:, np.newaxis], self.channels, axis=1)


class Transform(Source):
    """A source that wraps and modifies another source."""

    def __init__(self, inner: Source):
        self.inner = inner
        self.sample_rate = inner.sample_rate
        self.channels = inner.channels

    @property
    def total_duration(self) -> float | None:
        return self.inner.total_duration


class SkipDuration(Transform):
    """Drops the first ``seconds`` of the inner source."""

    def __init__(self, inner: Source, seconds: float):
        super().__init__(inner)
        self.seconds = max(0.0, seconds)
        self._pending = int(round(self.seconds * self.sample_rate))

    def _skip(self):
        if hasattr(self.inner, 'seek'):
            self.inner.seek(self._pending)
            self._pending = 0
            return
        while self._pending > 0:
            block = self.inner.read(min(self._pending, 65536))
            if len(block) == 0:
                break
            self._pending -= len(block)
        self._pending = 0

    def read(self, frames: int) -> np.ndarray:
        if self._pending:
            self._skip()
        return self.inner.read(frames)

    @property
    def total_duration(self) -> float | None:
        total = self.inner.total_duration
        if total is None:
            return None
        return max(0.0, total - self.seconds)


class TakeDuration(Transform):
    """Truncates the inner source after ``seconds``."""

    def __init__(self, inner: Source, seconds: float):
        super().__init__(inner)
        self.seconds = max(0.0, seconds)
        self._remaining = int(round(self.seconds * self.sample_rate))

    def read(self, frames: int) -> np.ndarray:
        if self._remaining <= 0:
            return _empty(self.channels)
        block = self.inner.read(min(frames, self._remaining))
        self._remaining -= len(block)
        return block

    @property
    def total_duration(self) -> float:
        total = self.inner.total_duration
        if total is None:
            return self.seconds
        return min(total, self.seconds)


class Amplify(Transform):
    """Scales every sample by a constant factor."""

    def __init__(self, inner: Source, factor: float):
        super().__init__(inner)
        self.factor = factor

    def read(self, frames: int) -> np.ndarray:
        return self.inner.read(frames) * np.float32(self.factor)


class FadeIn(Transform):
    """Ramps the amplitude linearly from 0 to 1 over ``seconds``."""

    def __init__(self, inner: Source, seconds: float):
        super().__init__(inner)
        self._fade_frames = seconds * self.sample_rate
        self._position = 0

    def read(self, frames: int) -> np.ndarray:
        block = self.inner.read(frames)
        n = len(block)
        if n == 0 or self._position >= self._fade_frames:
            self._position += n
            return block
        positions = np.arange(self._position, self._position + n, dtype=np.float64)
        self._position += n
        factors = np.minimum(positions / self._fade_frames, 1.0).astype(np.float32)
        return block * factors[:, np.newaxis]


class FadeOut(Transform):
    """
    Ramps the amplitude linearly to 0 at the end of a known total length.

    The transform counts elapsed nanoseconds per frame. The multiplier is
    1.0 until ``start_fade`` (``total - fade``) and then decays linearly,
    reaching 0.0 at the total length. The total is supplied by the caller
    because a truncated decoder cannot report its own length reliably.

    Attributes:
        current_ns: Elapsed time, advanced before each frame is scaled
        start_fade: Nanosecond offset where the fade begins
        total_ns: Length of the fade in nanoseconds
    """

    def __init__(self, inner: Source, fade_ns: float, start_fade_ns: float):
        super().__init__(inner)
        self.current_ns = 0.0
        self.start_fade = start_fade_ns
        self.total_ns = fade_ns
        self._step_ns = NS_PER_SECOND / self.sample_rate

    def start(self):
        """Restart the elapsed-time counter."""
        self.current_ns = 0.0

    def read(self, frames: int) -> np.ndarray:
        block = self.inner.read(frames)
        n = len(block)
        if n == 0:
            return block
        elapsed = self.current_ns + self._step_ns * np.arange(1, n + 1, dtype=np.float64)
        self.current_ns = float(elapsed[-1])
        if elapsed[-1] <= self.start_fade:
            return block
        past = elapsed - self.start_fade
        if self.total_ns > 0:
            factors = np.where(past <= 0, 1.0, np.maximum(1.0 - past / self.total_ns, 0.0))
        else:
            factors = np.where(past <= 0, 1.0, 0.0)
        return block * factors.astype(np.float32)[:, np.newaxis]


def fade_out(inner: Source, seconds: float, total: float | None = None) -> FadeOut:
    """
    Build a FadeOut that ends at ``total`` seconds.

    Args:
        inner: Source to fade
        seconds: Fade length
        total: Length of the whole segment; defaults to the inner
               source's reported duration

    Raises:
        ValueError: If no total is given and the inner source has no known length
    """
    if total is None:
        total = inner.total_duration
        if total is None:
            raise ValueError("Cannot fade out a source of unknown length without a total duration")
    fade_ns = seconds * NS_PER_SECOND
    start_fade_ns = max(0.0, total * NS_PER_SECOND - fade_ns)
    return FadeOut(inner, fade_ns, start_fade_ns)


class SourceQueue:
    """
    Sources waiting to be played, in order.

    ``fill`` is called from the audio callback thread while ``append``,
    ``clear`` and ``empty`` are called from the owning thread, so all of
    them take the same lock.
    """

    def __init__(self):
        self._sources: deque[Source] = deque()
        self._lock = threading.Lock()

    def append(self, source: Source):
        with self._lock:
            self._sources.append(source)

    def clear(self):
        with self._lock:
            self._sources.clear()

    def empty(self) -> bool:
        with self._lock:
            return not self._sources

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)

    def fill(self, out: np.ndarray) -> int:
        """
        Fill ``out`` (frames x channels) from the queued sources.

        Exhausted sources are dropped. Unfilled frames are zeroed.

        Returns:
            Number of frames taken from sources
        """
        frames = len(out)
        written = 0
        with self._lock:
            while written < frames and self._sources:
                block = self._sources[0].read(frames - written)
                if len(block) == 0:
                    self._sources.popleft()
                    continue
                out[written:written + len(block)] = _match_channels(block, out.shape[1])
                written += len(block)
        out[written:] = 0
        return written


def _match_channels(block: np.ndarray, channels: int) -> np.ndarray:
    """Up-mix by repetition or down-mix by averaging to ``channels``."""
    if block.shape[1] == channels:
        return block
    if block.shape[1] == 1:
        return np.repeat(block, channels, axis=1)
    mono = block.mean(axis=1, keepdims=True)
    return np.repeat(mono, channels, axis=1)
