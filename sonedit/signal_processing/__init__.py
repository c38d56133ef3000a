"""
Sample buffer, signal generators and read-only analysis.
"""

from sonedit.signal_processing.buffer import (
    SampleBuffer,
    concatenate,
    copy_buffer,
    extract_range,
    insert,
    seconds_to_frames,
    splice_out,
    to_interleaved,
)
from sonedit.signal_processing.generators import (
    generate_chirp,
    generate_dtmf,
    generate_noise,
    generate_silence,
    generate_tone,
)
from sonedit.signal_processing.analysis import (
    peak_frequency,
    peak_level,
    rms_level,
    spectral_centroid,
    spectrum,
    to_decibels,
    waveform_peaks,
    zero_crossing_rate,
)

__all__ = [
    "SampleBuffer",
    "concatenate",
    "copy_buffer",
    "extract_range",
    "insert",
    "seconds_to_frames",
    "splice_out",
    "to_interleaved",
    "generate_chirp",
    "generate_dtmf",
    "generate_noise",
    "generate_silence",
    "generate_tone",
    "peak_frequency",
    "peak_level",
    "rms_level",
    "spectral_centroid",
    "spectrum",
    "to_decibels",
    "waveform_peaks",
    "zero_crossing_rate",
]
