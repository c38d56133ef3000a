"""
Audio processing for the sonedit editor.

Provides the effect library, capture, playback, mixdown, import/export and
the editing session facade (sonedit.audio.engine).
"""

from sonedit.audio.effects import (
    EFFECT_REGISTRY,
    EffectBase,
    EffectType,
    ParameterSpec,
    apply_effect,
    catalog,
    get_effect,
    parameter_table,
)
from sonedit.audio.capture import (
    CaptureAccumulator,
    CaptureState,
    InputDevice,
    SimulatedInputDevice,
    SoundDeviceInput,
)
from sonedit.audio.playback import PlaybackScheduler, PlaybackState
from sonedit.audio.mixer import AudioMixer, mixdown
from sonedit.audio.export import (
    Encoder,
    ExportedAudio,
    PlaceholderEncoder,
    WavEncoder,
    export_buffer,
    read_wav_header,
    register_encoder,
)
from sonedit.audio.decode import decode_audio

__all__ = [
    'EFFECT_REGISTRY',
    'EffectBase',
    'EffectType',
    'ParameterSpec',
    'apply_effect',
    'catalog',
    'get_effect',
    'parameter_table',
    'CaptureAccumulator',
    'CaptureState',
    'InputDevice',
    'SimulatedInputDevice',
    'SoundDeviceInput',
    'PlaybackScheduler',
    'PlaybackState',
    'AudioMixer',
    'mixdown',
    'Encoder',
    'ExportedAudio',
    'PlaceholderEncoder',
    'WavEncoder',
    'export_buffer',
    'read_wav_header',
    'register_encoder',
    'decode_audio',
]
