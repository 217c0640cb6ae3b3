"""Tests for pull-based audio sources and transforms."""

import numpy as np
import pytest

from tgrelabel.audio.source import (
    ArraySource, FadeOut, NS_PER_SECOND, SineWave, SourceQueue, fade_out
)


def pull(source, block_size=64):
    blocks = list(source.blocks(block_size))
    if not blocks:
        return np.zeros((0, source.channels), dtype=np.float32)
    return np.concatenate(blocks)


def test_array_source_reads_in_blocks():
    """Test reading an in-memory source until it is exhausted."""
    source = ArraySource(np.arange(10, dtype=np.float32), 10)
    assert source.channels == 1
    assert source.total_duration == 1.0

    first = source.read(4)
    assert first.shape == (4, 1)
    assert list(first[:, 0]) == [0, 1, 2, 3]
    rest = pull(source, 4)
    assert list(rest[:, 0]) == [4, 5, 6, 7, 8, 9]
    assert len(source.read(4)) == 0


def test_skip_and_take():
    """skip_duration drops the start and take_duration truncates."""
    source = ArraySource(np.arange(100, dtype=np.float32), 100)
    chain = source.skip_duration(0.2).take_duration(0.3)

    out = pull(chain, 7)
    assert out.shape == (30, 1)
    assert out[0, 0] == 20
    assert out[-1, 0] == 49
    assert chain.total_duration == pytest.approx(0.3)


def test_skip_without_seek():
    """Sources without seek are skipped by reading ahead."""
    tone = SineWave(1.0, sample_rate=4)
    skipped = tone.skip_duration(1.0).take_duration(0.5)
    out = pull(skipped)
    # sin(2*pi*t) at t = 1.0 and 1.25
    assert out[:, 0] == pytest.approx([0.0, 1.0], abs=1e-6)


def test_skip_past_end():
    source = ArraySource(np.ones(10, dtype=np.float32), 10)
    assert len(pull(source.skip_duration(5.0))) == 0


def test_amplify():
    source = ArraySource(np.full(8, 0.5, dtype=np.float32), 8)
    out = pull(source.amplify(0.5))
    assert np.allclose(out, 0.25)
    assert out.dtype == np.float32


def test_fade_envelope():
    """Fade in rises linearly from 0; fade out reaches 0 at the total length."""
    rate = 1000
    source = ArraySource(np.ones(rate, dtype=np.float32), rate)
    chain = source.take_duration(1.0).fade_in(0.1).fade_out(0.1, total=1.0)

    envelope = pull(chain, 37)[:, 0]
    assert len(envelope) == rate
    assert envelope[0] == 0.0
    assert envelope[50] == pytest.approx(0.5)
    assert envelope[100:899] == pytest.approx(np.ones(799))
    # Frame k ends at (k + 1) ms; the fade starts at 900 ms
    assert envelope[899] == pytest.approx(1.0)
    assert envelope[949] == pytest.approx(0.5)
    assert envelope[999] == pytest.approx(0.0)
    assert np.all(np.diff(envelope[900:]) <= 0)


def test_fade_out_bookkeeping():
    """FadeOut exposes elapsed time, fade start and fade length in nanoseconds."""
    source = ArraySource(np.ones(100, dtype=np.float32), 100)
    faded = fade_out(source, 0.2, total=1.0)

    assert isinstance(faded, FadeOut)
    assert faded.start_fade == pytest.approx(0.8 * NS_PER_SECOND)
    assert faded.total_ns == pytest.approx(0.2 * NS_PER_SECOND)

    faded.read(10)
    assert faded.current_ns == pytest.approx(0.1 * NS_PER_SECOND)
    faded.start()
    assert faded.current_ns == 0.0


def test_fade_out_after_total_is_silent():
    """Samples past the declared total are multiplied by zero."""
    source = ArraySource(np.ones(20, dtype=np.float32), 10)
    out = pull(fade_out(source, 0.5, total=1.0))
    assert len(out) == 20
    assert np.all(out[10:] == 0.0)


def test_fade_out_needs_total():
    """Test that an endless source cannot be faded out without a total."""
    with pytest.raises(ValueError):
        fade_out(SineWave(440.0), 0.1)
    # The total defaults to the reported duration when there is one
    finite = SineWave(440.0).take_duration(0.5)
    assert fade_out(finite, 0.1).start_fade == pytest.approx(0.4 * NS_PER_SECOND)


def test_sine_wave_channels():
    tone = SineWave(440.0, sample_rate=48000, channels=2)
    block = tone.read(480)
    assert block.shape == (480, 2)
    assert np.array_equal(block[:, 0], block[:, 1])
    assert np.max(np.abs(block)) <= 1.0


def test_source_queue_fill():
    """Queued sources are played back to back and the rest is silence."""
    queue = SourceQueue()
    queue.append(ArraySource(np.array([1, 2, 3], dtype=np.float32), 10))
    queue.append(ArraySource(np.array([4, 5], dtype=np.float32), 10))
    assert len(queue) == 2

    out = np.full((8, 2), -1.0, dtype=np.float32)
    assert queue.fill(out) == 5
    assert list(out[:, 0]) == [1, 2, 3, 4, 5, 0, 0, 0]
    assert np.array_equal(out[:, 0], out[:, 1])
    assert queue.empty()


def test_source_queue_clear():
    queue = SourceQueue()
    queue.append(SineWave(440.0))
    assert not queue.empty()
    queue.clear()
    assert queue.empty()

    out = np.ones((4, 1), dtype=np.float32)
    assert queue.fill(out) == 0
    assert np.all(out == 0)


def test_source_queue_downmix():
    """Stereo sources are averaged into a mono output."""
    queue = SourceQueue()
    queue.append(ArraySource(np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32), 10))
    out = np.zeros((2, 1), dtype=np.float32)
    queue.fill(out)
    assert list(out[:, 0]) == [0.5, 0.5]
