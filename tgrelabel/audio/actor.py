"""
Segment preview playback on a dedicated worker thread.

The ``AudioActor`` owns the output device, the sink and the decoded-file
cache. Other threads only ever enqueue commands, which the worker runs
strictly in arrival order:

    ChangeDevice(name)   rebuild the output on another device
    PlaySegment(...)     play a faded excerpt of an audio file
    TestTone()           play a short sine tone to check device routing

Starting a new segment always interrupts whatever is sounding, except
that repeating the request that is still playing is ignored (debounce).
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from ..config import config
from ..errors import AudioError
from .loader import FileSource, Sound, load_sound
from .source import SineWave, Source, fade_out

logger = logging.getLogger(__name__)


# =============================================================================
# COMMANDS
# =============================================================================

@dataclass(frozen=True)
class ChangeDevice:
    """Switch output to the named device (None = system default)."""
    name: str | None


@dataclass(frozen=True)
class PlaySegment:
    """Play ``window_ms`` of ``file`` starting at ``start_ms``, scaled by ``volume``."""
    file: Path
    start_ms: int
    window_ms: int
    volume: float = 1.0


@dataclass(frozen=True)
class TestTone:
    """Play the device test tone."""
    __test__ = False  # not a pytest test class


@dataclass(frozen=True)
class Shutdown:
    """Release the device and stop the worker."""


Command = ChangeDevice | PlaySegment | TestTone | Shutdown


class PlaybackState(Enum):
    IDLE = 'idle'
    PLAYING = 'playing'


class Output(Protocol):
    """What the actor needs from a sink."""

    def append(self, source: Source): ...
    def play(self): ...
    def clear(self): ...
    def empty(self) -> bool: ...
    def close(self): ...


def _open_sounddevice_output(device: str | None) -> Output:
    # Imported here so building sources and commands works without PortAudio
    try:
        from .player import open_output
    except (ImportError, OSError) as e:
        raise AudioError(f"Audio output is unavailable: {e}") from e
    return open_output(device)


# =============================================================================
# SOURCE BUILDERS
# =============================================================================

def segment_source(decoder: Source, start_ms: int, window_ms: int, volume: float,
                   fade_ms: int = 50) -> Source:
    """
    Build the render chain for one preview segment over a fresh decoder.

    seek -> truncate -> amplify -> fade in -> fade out. The fade-out is
    timed against the requested window, not the decoder's own length.
    """
    window = window_ms / 1000
    fade = fade_ms / 1000
    chain = (decoder
             .skip_duration(max(0, start_ms) / 1000)
             .take_duration(window)
             .amplify(volume)
             .fade_in(fade))
    return fade_out(chain, fade, total=window)


def tone_source(frequency: float = 440.0, duration: float = 0.9, amplitude: float = 0.2,
                fade: float = 0.2, sample_rate: int = 48000) -> Source:
    """A short sine tone with the same fade envelope as segment previews."""
    chain = (SineWave(frequency, sample_rate)
             .take_duration(duration)
             .amplify(amplitude)
             .fade_in(fade))
    return fade_out(chain, fade, total=duration)


# =============================================================================
# ACTOR
# =============================================================================

class AudioActor:
    """
    Single owner of the audio output, driven by a FIFO command queue.

    ``send`` never blocks. Failures inside a command are logged, passed to
    ``on_error`` if given, and never stop the worker. A failed
    ``ChangeDevice`` keeps the previous output.

    Args:
        device: Device opened when the worker starts (None = default)
        open_output: Factory returning an output for a device name;
                     defaults to sounddevice
        on_error: Called on the worker thread with each AudioError
    """

    def __init__(self, device: str | None = None,
                 open_output: Callable[[str | None], Output] | None = None,
                 on_error: Callable[[AudioError], None] | None = None,
                 fade_ms: int | None = None):
        self._initial_device = device
        self._open_output = open_output or _open_sounddevice_output
        self._on_error = on_error
        self._fade_ms = fade_ms if fade_ms is not None else config['playback']['fade_ms']
        self._tone = dict(config['test_tone'])

        self._queue: queue.Queue[Command] = queue.Queue()
        self._thread = threading.Thread(target=self._run, name='tgrelabel-audio', daemon=True)

        # Owned by the worker thread
        self._output: Output | None = None
        self._device: str | None = None
        self._sound: Sound | None = None
        self._sound_path: Path | None = None
        self._decoder: FileSource | None = None  # decoder feeding the current segment
        self._last_play: tuple[Path, int] | None = None

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def start(self) -> AudioActor:
        self._thread.start()
        return self

    def send(self, command: Command):
        """Enqueue a command without waiting for it to run."""
        self._queue.put(command)

    def change_device(self, name: str | None):
        self.send(ChangeDevice(name))

    def play_segment(self, file: str | Path, start_ms: int, window_ms: int, volume: float = 1.0):
        self.send(PlaySegment(Path(file), int(start_ms), int(window_ms), volume))

    def test_tone(self):
        self.send(TestTone())

    def flush(self):
        """Block until every command sent so far has been processed."""
        self._queue.join()

    def stop(self, timeout: float | None = None):
        """Close the output and end the worker thread."""
        if self._thread.is_alive():
            self.send(Shutdown())
            self._thread.join(timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    @property
    def device(self) -> str | None:
        """Name of the device currently in use."""
        return self._device

    @property
    def state(self) -> PlaybackState:
        output = self._output
        if output is None or output.empty():
            return PlaybackState.IDLE
        return PlaybackState.PLAYING

    # -------------------------------------------------------------------------
    # Worker side
    # -------------------------------------------------------------------------

    def _run(self):
        # The worker reaches its command loop even when no output opens
        try:
            self._output = self._open_output(self._initial_device)
            self._device = self._initial_device
        except AudioError as e:
            self._report(e)
        except Exception as e:
            logger.exception(f"Unexpected error opening output {self._initial_device!r}")
            self._report(AudioError(f"Cannot open output device {self._initial_device!r}: {e}"))

        while True:
            command = self._queue.get()
            try:
                if isinstance(command, Shutdown):
                    self._close_output()
                    return
                self._handle(command)
            except AudioError as e:
                self._report(e)
            except Exception:
                logger.exception(f"Unexpected error handling {command!r}")
            finally:
                self._queue.task_done()

    def _handle(self, command: Command):
        if isinstance(command, ChangeDevice):
            self._change_device(command.name)
        elif isinstance(command, PlaySegment):
            self._play_segment(command)
        elif isinstance(command, TestTone):
            self._play_tone()
        else:
            raise AudioError(f"Unknown audio command {command!r}")

    def _report(self, error: AudioError):
        logger.warning(str(error))
        if self._on_error is not None:
            self._on_error(error)

    def _require_output(self) -> Output:
        if self._output is None:
            raise AudioError("No output device is open")
        return self._output

    def _release_decoder(self):
        if self._decoder is not None:
            self._decoder.close()
            self._decoder = None

    def _close_output(self):
        self._release_decoder()
        if self._output is not None:
            self._output.close()
            self._output = None

    def _change_device(self, name: str | None):
        # Open the new device first so a failure leaves the old one in place
        output = self._open_output(name)
        self._close_output()
        self._output = output
        self._device = name
        self._last_play = None
        logger.info(f"Switched output to {name if name is not None else '(default)'}")

    def _play_segment(self, command: PlaySegment):
        path = Path(command.file)
        if self._sound is None or self._sound_path != path:
            self._sound = load_sound(path)
            self._sound_path = path

        output = self._require_output()
        if self._last_play == (path, command.start_ms) and not output.empty():
            logger.debug(f"Ignoring repeated request for {path.name} at {command.start_ms} ms")
            return

        decoder = self._sound.decoder()
        source = segment_source(decoder, command.start_ms, command.window_ms,
                                command.volume, self._fade_ms)
        output.clear()
        self._release_decoder()
        self._decoder = decoder
        output.append(source)
        output.play()
        self._last_play = (path, command.start_ms)

    def _play_tone(self):
        output = self._require_output()
        source = tone_source(
            frequency=self._tone['frequency'],
            duration=self._tone['duration'],
            amplitude=self._tone['amplitude'],
            fade=self._tone['fade'],
            sample_rate=self._tone['sample_rate'],
        )
        output.clear()
        self._release_decoder()
        output.append(source)
        output.play()
        self._last_play = None
