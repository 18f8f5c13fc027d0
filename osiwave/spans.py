"""
Frequency spans: runs of zero-crossing intervals with the same tone.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from . import MARK_BAND, SPACE_BAND

_logger = logging.getLogger(__name__)


class Value(Enum):
    """A value decoded from the analog data."""

    SPACE = "space"  # 1200 Hz => zero
    MARK = "mark"  # 2400 Hz => one
    NOISE = "noise"  # anything else


class Span:
    """
    A run of one detected value.

    `length` is in seconds. `clocks` is None until the noise filter rounds
    the length to a whole number of baud clocks.
    """

    __slots__ = ("value", "length", "clocks")

    def __init__(self, value: Value, length: float, clocks: Optional[int] = None):
        self.value = value
        self.length = length
        self.clocks = clocks

    def __repr__(self) -> str:
        return f"Span({self.value.value}, {self.length * 1000:.3f}ms, clocks={self.clocks})"


def classify(
    freq: float,
    mark_band: Tuple[float, float] = MARK_BAND,
    space_band: Tuple[float, float] = SPACE_BAND,
) -> Value:
    """
    Classify an instantaneous frequency.

    Mark is strictly inside its band; space includes its lower edge only.
    """
    if mark_band[0] < freq < mark_band[1]:
        return Value.MARK
    if space_band[0] <= freq < space_band[1]:
        return Value.SPACE
    return Value.NOISE


class FrequencySpanFilter:
    """
    Groups zero crossings into spans of consistent frequency.

    A span ends when the classification of a crossing-to-crossing interval
    changes; the next span starts at the crossing where the change was seen.
    The very first change only fixes where the first span starts. Noise is
    labelled here, not removed.
    """

    WINDOW = 1024

    def __init__(
        self,
        upstream,
        mark_band: Tuple[float, float] = MARK_BAND,
        space_band: Tuple[float, float] = SPACE_BAND,
        trace: bool = False,
    ):
        """
        Args:
            upstream: Crossing stage providing read(n) of timestamps
            mark_band: Open (low, high) frequency range for mark (Hz)
            space_band: Half-open [low, high) frequency range for space (Hz)
            trace: Log every interval and span
        """
        self.upstream = upstream
        self.mark_band = mark_band
        self.space_band = space_band
        self.trace = trace

        self._crossings: List[float] = []
        self._crossing_idx = 0
        self._eof = False

        self.spans = 0

        self._prev = self._next_crossing()
        self._start = self._prev
        self._value = Value.NOISE
        self._first = True

    def read(self, nspans: int) -> List[Span]:
        """
        Read up to `nspans` spans.

        Returns an empty list at end of stream.
        """
        spans: List[Span] = []

        while len(spans) < nspans and self._prev is not None:
            curr = self._next_crossing()
            if curr is None:
                self._finish(spans)
                break

            dt = curr - self._prev
            freq = 1.0 / dt if dt > 0 else 0.0
            value = classify(freq, self.mark_band, self.space_band)

            if self.trace:
                _logger.debug(f"interval {curr:.6f} {freq:.1f}Hz {value.value}")

            if value != self._value:
                if self._first:
                    self._first = False
                else:
                    spans.append(self._emit(self._value, self._prev - self._start))
                self._value = value
                self._start = self._prev

            self._prev = curr

        return spans

    def _finish(self, spans: List[Span]):
        """Emit the span still open when the crossings run out."""
        length = self._prev - self._start
        if not self._first and length > 0:
            spans.append(self._emit(self._value, length))
        self._prev = None

    def _emit(self, value: Value, length: float) -> Span:
        self.spans += 1
        if self.trace:
            _logger.debug(f"span {value.value} {length * 1000:.3f}ms")
        return Span(value, length)

    def _next_crossing(self) -> Optional[float]:
        if self._crossing_idx >= len(self._crossings):
            if self._eof:
                return None
            self._crossings = self.upstream.read(self.WINDOW)
            self._crossing_idx = 0
            if len(self._crossings) == 0:
                self._eof = True
                return None

        t = self._crossings[self._crossing_idx]
        self._crossing_idx += 1
        return t
