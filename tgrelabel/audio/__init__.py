"""Audio loading and segment preview playback.

The sounddevice-backed output lives in ``tgrelabel.audio.player`` and is
only imported when an output is opened.
"""

from .actor import (
    AudioActor,
    ChangeDevice,
    PlaybackState,
    PlaySegment,
    Shutdown,
    TestTone,
    segment_source,
    tone_source,
)
from .loader import FileSource, Sound, load_sound
from .source import ArraySource, FadeOut, SineWave, Source, SourceQueue, fade_out

__all__ = [
    'AudioActor',
    'ChangeDevice',
    'PlaybackState',
    'PlaySegment',
    'Shutdown',
    'TestTone',
    'segment_source',
    'tone_source',
    'FileSource',
    'Sound',
    'load_sound',
    'ArraySource',
    'FadeOut',
    'SineWave',
    'Source',
    'SourceQueue',
    'fade_out',
]
