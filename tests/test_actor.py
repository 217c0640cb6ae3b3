"""Tests for the audio playback actor.

The actor is driven with fake outputs so no audio device is needed.
A fake output keeps every appended source until it is cleared, which
stands in for a sink that is still sounding.
"""

import io
import sys
import threading

import numpy as np
import pytest
import soundfile as sf

from tgrelabel.audio.actor import (
    AudioActor, PlaybackState, PlaySegment, _open_sounddevice_output, segment_source,
    tone_source,
)
from tgrelabel.audio.loader import Sound, load_sound
from tgrelabel.errors import AudioError

RATE = 8000


class FakeOutput:
    def __init__(self, name):
        self.name = name
        self.sources = []
        self.plays = 0
        self.closed = False

    def append(self, source):
        self.sources.append(source)

    def play(self):
        self.plays += 1

    def clear(self):
        self.sources.clear()

    def empty(self):
        return not self.sources

    def close(self):
        self.closed = True

    def finish(self):
        """Simulate the queued audio running out."""
        self.sources.clear()


@pytest.fixture
def outputs():
    return []


@pytest.fixture
def errors():
    return []


@pytest.fixture
def actor(outputs, errors):
    def open_output(name):
        if name == "missing":
            raise AudioError(f"Cannot open output device {name!r}")
        output = FakeOutput(name)
        outputs.append(output)
        return output

    actor = AudioActor(device="speakers", open_output=open_output,
                       on_error=errors.append, fade_ms=50).start()
    yield actor
    actor.stop(timeout=2.0)


@pytest.fixture
def wav_file(tmp_path):
    """One second of constant 0.5 at 8 kHz."""
    path = tmp_path / "s01.wav"
    sf.write(path, np.full(RATE, 0.5, dtype=np.float32), RATE, subtype='FLOAT')
    return path


def wav_bytes(samples):
    buffer = io.BytesIO()
    sf.write(buffer, samples, RATE, format='WAV', subtype='FLOAT')
    return buffer.getvalue()


def test_segment_source_shape():
    """A segment covers exactly the requested window, faded at both ends."""
    sound = Sound(wav_bytes(np.full(RATE, 0.5, dtype=np.float32)))
    source = segment_source(sound.decoder(), start_ms=100, window_ms=500, volume=2.0, fade_ms=50)

    out = np.concatenate(list(source.blocks(256)))[:, 0]
    assert len(out) == RATE // 2
    assert out[0] == 0.0
    assert out[RATE // 4] == pytest.approx(1.0)
    assert out[-1] == pytest.approx(0.0, abs=1e-6)


def test_segment_source_reads_from_offset():
    """Test that the segment starts at the requested position."""
    ramp = np.arange(RATE, dtype=np.float32) / RATE
    sound = Sound(wav_bytes(ramp))
    out = np.concatenate(list(segment_source(sound.decoder(), 500, 250, 1.0, fade_ms=0).blocks()))[:, 0]
    assert out[0] == pytest.approx(0.5)
    assert len(out) == RATE // 4


def test_segment_past_end_is_empty():
    sound = Sound(wav_bytes(np.zeros(RATE, dtype=np.float32)))
    assert list(segment_source(sound.decoder(), 5000, 500, 1.0).blocks()) == []


def test_sound_decoder_rejects_garbage():
    """Bytes that are not audio fail with AudioError."""
    with pytest.raises(AudioError):
        Sound(b"definitely not audio").decoder()


def test_load_sound_missing_file(tmp_path):
    with pytest.raises(AudioError, match="not found"):
        load_sound(tmp_path / "missing.wav")


def test_tone_source():
    """The test tone is 0.9 s of a quiet sine at 48 kHz."""
    out = np.concatenate(list(tone_source().blocks(4800)))[:, 0]
    assert len(out) == 43200
    assert np.max(np.abs(out)) <= 0.2 + 1e-6
    assert np.max(np.abs(out[19200:24000])) == pytest.approx(0.2, abs=1e-3)
    assert abs(out[0]) < 1e-6


def test_play_segment(actor, outputs, wav_file):
    """A segment is appended to the sink and played."""
    actor.play_segment(wav_file, 100, 500, 0.8)
    actor.flush()

    assert len(outputs) == 1
    assert outputs[0].name == "speakers"
    assert outputs[0].plays == 1
    assert len(outputs[0].sources) == 1
    assert actor.state is PlaybackState.PLAYING

    outputs[0].finish()
    assert actor.state is PlaybackState.IDLE


def test_repeat_request_is_debounced(actor, outputs, wav_file):
    """Repeating the request that is still sounding does nothing."""
    actor.send(PlaySegment(wav_file, 100, 500))
    actor.send(PlaySegment(wav_file, 100, 500))
    actor.flush()
    assert outputs[0].plays == 1
    assert len(outputs[0].sources) == 1

    # Once it has finished the same request plays again
    outputs[0].finish()
    actor.send(PlaySegment(wav_file, 100, 500))
    actor.flush()
    assert outputs[0].plays == 2


def test_new_request_interrupts(actor, outputs, wav_file):
    """Test that a different segment replaces the one that is sounding."""
    actor.play_segment(wav_file, 100, 500)
    actor.play_segment(wav_file, 300, 500)
    actor.flush()

    assert outputs[0].plays == 2
    assert len(outputs[0].sources) == 1


def test_change_device(actor, outputs, wav_file):
    """After a device change only the new sink receives audio."""
    actor.play_segment(wav_file, 100, 500)
    actor.change_device("headphones")
    actor.play_segment(wav_file, 100, 500)
    actor.flush()

    old, new = outputs
    assert old.closed
    assert old.plays == 1
    assert not new.closed
    assert new.name == "headphones"
    # The debounce memory was reset, so the same request played again
    assert new.plays == 1
    assert actor.device == "headphones"


def test_failed_device_change_keeps_output(actor, outputs, errors, wav_file):
    """An unknown device is reported and the current sink stays in use."""
    actor.change_device("missing")
    actor.play_segment(wav_file, 100, 500)
    actor.flush()

    assert len(errors) == 1
    assert isinstance(errors[0], AudioError)
    assert len(outputs) == 1
    assert not outputs[0].closed
    assert outputs[0].plays == 1
    assert actor.device == "speakers"


def test_missing_audio_file_is_reported(actor, outputs, errors, tmp_path):
    """Test that a bad file is reported without stopping the worker."""
    actor.play_segment(tmp_path / "missing.wav", 0, 500)
    actor.flush()

    assert len(errors) == 1
    assert actor.is_alive
    assert outputs[0].plays == 0
    assert actor.state is PlaybackState.IDLE


def test_test_tone_resets_debounce(actor, outputs, wav_file):
    """The tone replaces the segment, and the segment can be replayed after it."""
    actor.play_segment(wav_file, 100, 500)
    actor.test_tone()
    actor.play_segment(wav_file, 100, 500)
    actor.flush()

    assert outputs[0].plays == 3
    assert len(outputs[0].sources) == 1


def test_stop_closes_output(outputs, errors, wav_file):
    """Stopping the actor releases the device and ends the thread."""
    actor = AudioActor(open_output=lambda name: outputs.append(FakeOutput(name)) or outputs[-1],
                       on_error=errors.append).start()
    actor.play_segment(wav_file, 0, 200)
    actor.flush()
    actor.stop(timeout=2.0)

    assert not actor.is_alive
    assert outputs[0].name is None
    assert outputs[0].closed
    assert errors == []


def test_segment_decoder_closed_when_replaced(actor, outputs, wav_file, monkeypatch):
    """Each new segment or tone releases the decoder of the one it replaces."""
    decoders = []
    decoder = Sound.decoder

    def recording_decoder(sound):
        source = decoder(sound)
        decoders.append(source)
        return source

    monkeypatch.setattr(Sound, "decoder", recording_decoder)

    actor.play_segment(wav_file, 100, 500)
    actor.play_segment(wav_file, 300, 500)
    actor.flush()
    assert len(decoders) == 2
    assert decoders[0].closed
    assert not decoders[1].closed

    actor.test_tone()
    actor.flush()
    assert decoders[1].closed


def test_stop_closes_decoder(outputs, wav_file, monkeypatch):
    decoders = []
    decoder = Sound.decoder
    monkeypatch.setattr(Sound, "decoder",
                        lambda sound: decoders.append(decoder(sound)) or decoders[-1])

    actor = AudioActor(open_output=FakeOutput).start()
    actor.play_segment(wav_file, 0, 200)
    actor.flush()
    assert not decoders[0].closed

    actor.stop(timeout=2.0)
    assert decoders[0].closed


def test_unexpected_open_failure_keeps_worker(errors):
    """Any failure opening the first device is reported and commands still complete."""
    def open_output(name):
        raise OSError("PortAudio library not found")

    actor = AudioActor(open_output=open_output, on_error=errors.append).start()
    actor.test_tone()

    flusher = threading.Thread(target=actor.flush, daemon=True)
    flusher.start()
    flusher.join(timeout=2.0)
    assert not flusher.is_alive()

    assert actor.is_alive
    assert len(errors) == 2
    assert all(isinstance(error, AudioError) for error in errors)
    assert "PortAudio library not found" in str(errors[0])
    assert "No output device" in str(errors[1])
    actor.stop(timeout=2.0)
    assert not actor.is_alive


def test_missing_output_backend_is_audio_error(monkeypatch):
    """An output library that fails to import surfaces as AudioError."""
    monkeypatch.setitem(sys.modules, "tgrelabel.audio.player", None)
    with pytest.raises(AudioError, match="unavailable"):
        _open_sounddevice_output(None)
