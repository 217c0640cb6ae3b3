"""
Audio output using sounddevice.

This module provides the output side of segment preview playback using
the sounddevice library (Python bindings for PortAudio):
- Enumerating output devices
- Opening an output bound to a named device
- A ``Sink`` that streams queued sources to that device

The playback uses a callback-based streaming approach where audio data
is pulled from the queued sources in small chunks, so clearing the sink
silences the device immediately.
"""

from __future__ import annotations

import logging
import threading

import sounddevice as sd

from ..errors import AudioError
from .source import Source, SourceQueue

logger = logging.getLogger(__name__)


class Sink:
    """
    Plays queued sources on one output device.

    A new ``sd.OutputStream`` is opened for each appended source, matching
    its sample rate and channel count. The stream callback pulls samples
    from a ``SourceQueue`` and stops the stream once the queue runs dry.

    Attributes:
        device: Device name or index the sink is bound to (None = default)
    """

    def __init__(self, device: str | int | None = None):
        self.device = device
        self._queue = SourceQueue()
        self._stream: sd.OutputStream | None = None
        self._lock = threading.Lock()  # Protects the stream handle
        self._closed = False

    def append(self, source: Source):
        """Queue a source and open a stream for its format."""
        with self._lock:
            if self._closed:
                raise AudioError("Sink is closed")
            self._close_stream()
            self._queue.append(source)
            try:
                self._stream = sd.OutputStream(
                    samplerate=source.sample_rate,
                    channels=source.channels,
                    dtype='float32',
                    device=self.device,
                    callback=self._callback,
                )
            except (sd.PortAudioError, ValueError) as e:
                self._queue.clear()
                raise AudioError(f"Cannot open output stream on {self.device!r}: {e}") from e

    def play(self):
        """Start streaming the queued sources."""
        with self._lock:
            if self._stream is not None and not self._stream.active:
                try:
                    self._stream.start()
                except sd.PortAudioError as e:
                    raise AudioError(f"Cannot start playback on {self.device!r}: {e}") from e

    def clear(self):
        """Drop all queued sources and stop the device."""
        with self._lock:
            self._queue.clear()
            self._close_stream()

    def empty(self) -> bool:
        """True when nothing is queued or sounding."""
        return self._queue.empty()

    def close(self):
        """Release the device. The sink cannot be used afterwards."""
        with self._lock:
            self._queue.clear()
            self._close_stream()
            self._closed = True

    def _close_stream(self):
        if self._stream is not None:
            try:
                self._stream.abort()
                self._stream.close()
            except sd.PortAudioError as e:
                logger.warning(f"Error closing output stream: {e}")
            self._stream = None

    def _callback(self, outdata, frames, time_info, status):
        """
        Audio stream callback - called by sounddevice from audio thread.

        Fills the output buffer from the queued sources and raises
        ``sd.CallbackStop`` once every source is exhausted.
        """
        if status:
            logger.debug(f"Output stream status: {status}")
        written = self._queue.fill(outdata)
        if written == 0 and self._queue.empty():
            raise sd.CallbackStop()


def open_output(device: str | int | None = None) -> Sink:
    """
    Open a sink on the named output device.

    Raises:
        AudioError: If the device does not exist or cannot be opened
    """
    try:
        if device is not None:
            # Raises ValueError for unknown or ambiguous names
            sd.query_devices(device, 'output')
        sd.check_output_settings(device=device)
    except (ValueError, sd.PortAudioError) as e:
        raise AudioError(f"Cannot open output device {device!r}: {e}") from e
    logger.info(f"Opened output device {device if device is not None else '(default)'}")
    return Sink(device)


def list_output_devices() -> tuple[str, list[str]]:
    """
    List output devices.

    Returns:
        (default device name, names of all devices with output channels)

    Raises:
        AudioError: If PortAudio cannot enumerate devices or has no
            default output
    """
    try:
        devices = sd.query_devices()
        default = sd.query_devices(kind='output')
    except (sd.PortAudioError, ValueError) as e:
        # ValueError when there is no default output device
        raise AudioError(f"Cannot list output devices: {e}") from e
    names = [d['name'] for d in devices if d['max_output_channels'] > 0]
    return default['name'], names
