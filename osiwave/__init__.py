"""
osiwave - Recover serial data from AFSK cassette recordings.

Audio is decoded by a chain of pull-based stages:

    source -> DCFilter -> ZeroCrossingDetector -> FrequencySpanFilter
           -> NoiseFilter -> BitstreamFilter -> FrameFilter -> bytes
"""

__version__ = "0.1.0"

# Protocol constants
SAMPLE_RATE = 44100  # Hz
MARK_FREQ = 2400  # Hz - logic 1
SPACE_FREQ = 1200  # Hz - logic 0
BAUD_RATE = 300  # clocks per second

# Classification bands (Hz). Mark is open on both ends, space is [low, high).
# The gap between them absorbs tape speed drift and warble.
MARK_BAND = (2100, 2550)
SPACE_BAND = (1100, 1550)

# Moving-average window for DC removal (samples)
DC_WINDOW = 96

# Async frame: leading mark, start bit, 8 data bits (LSB first), stop bit
FRAME_BITS = 11

from .source import AudioFormatError, ArraySource, WaveSource, DeviceSource
from .dcfilter import DCFilter
from .crossing import ZeroCrossingDetector
from .spans import Value, Span, FrequencySpanFilter, classify
from .denoise import NoiseFilter
from .bitstream import BitstreamFilter, PipelineInvariantError
from .framing import FrameFilter
from .decoder import Decoder, decode_file
from .encoder import AFSKEncoder

__all__ = [
    "AudioFormatError",
    "ArraySource",
    "WaveSource",
    "DeviceSource",
    "DCFilter",
    "ZeroCrossingDetector",
    "Value",
    "Span",
    "FrequencySpanFilter",
    "classify",
    "NoiseFilter",
    "BitstreamFilter",
    "PipelineInvariantError",
    "FrameFilter",
    "Decoder",
    "decode_file",
    "AFSKEncoder",
]
