"""
Noise removal: fold noise spans into their neighbours and round every
span to a whole number of baud clocks.
"""

import logging
from typing import List, Optional

from . import BAUD_RATE
from .spans import Span, Value

_logger = logging.getLogger(__name__)


def clocks_for(length: float, clock_ms: float) -> int:
    """Round a span length in seconds to the nearest number of clocks."""
    return int((length * 1000.0) / clock_ms + 0.5)


def distance_from_clock(length: float, clock_ms: float) -> float:
    """How far (0 to 0.5 clocks) a length in seconds is from a whole number of clocks."""
    clk = (length * 1000.0) / clock_ms
    clk -= int(clk)
    if clk > 0.5:
        clk = 1.0 - clk
    return clk


class NoiseFilter:
    """
    Removes noise spans from a span stream.

    A noise span's duration is credited to whichever neighbour is currently
    farther from a whole number of clocks; on a tie it goes to the following
    span. When both neighbours carry the same value the three spans become
    one. Every span leaving this stage has `clocks` set and is mark or space.
    """

    WINDOW = 1024

    def __init__(self, upstream, baud_rate: int = BAUD_RATE, trace: bool = False):
        """
        Args:
            upstream: Frequency span stage providing read(n)
            baud_rate: Clock rate of the encoded signal (clocks per second)
            trace: Log every span emitted
        """
        if baud_rate <= 0:
            raise ValueError(f"baud rate must be positive, got {baud_rate}")

        self.upstream = upstream
        self.baud_rate = baud_rate
        self.clock_ms = 1000.0 / baud_rate
        self.trace = trace

        self._spans: List[Span] = []
        self._span_idx = 0
        self._eof = False

        self.spans = 0
        self.noise_folded = 0

        # Two-span lookahead; a leading noise span has nothing to fold into
        self._prev = self._next_span()
        while self._prev is not None and self._prev.value is Value.NOISE:
            self._prev = self._next_span()
        self._curr = self._next_span()

    def read(self, nspans: int) -> List[Span]:
        """
        Read up to `nspans` finalized spans.

        Returns an empty list at end of stream.
        """
        spans: List[Span] = []

        while len(spans) < nspans and self._prev is not None:
            prev = self._prev
            curr = self._curr

            if curr is None:
                # Nothing follows, so prev is complete
                spans.append(self._finalize(prev))
                self._prev = None
                break

            if curr.value is not Value.NOISE:
                spans.append(self._finalize(prev))
                self._prev = curr
                self._curr = self._next_span()
                continue

            following = self._next_span()
            if following is None:
                # Trailing noise can't be placed; drop it
                spans.append(self._finalize(prev))
                self._prev = None
                break

            self.noise_folded += 1

            if following.value is Value.NOISE:
                curr.length += following.length
                continue

            if following.value is prev.value:
                prev.length += curr.length + following.length
                self._curr = self._next_span()
                continue

            if distance_from_clock(prev.length, self.clock_ms) > distance_from_clock(following.length, self.clock_ms):
                prev.length += curr.length
            else:
                following.length += curr.length

            spans.append(self._finalize(prev))
            self._prev = following
            self._curr = self._next_span()

        return spans

    def _finalize(self, span: Span) -> Span:
        span.clocks = clocks_for(span.length, self.clock_ms)
        self.spans += 1
        if self.trace:
            _logger.debug(f"span {span.value.value} {span.length * 1000:.3f}ms {span.clocks} clocks")
        return span

    def _next_span(self) -> Optional[Span]:
        if self._span_idx >= len(self._spans):
            if self._eof:
                return None
            self._spans = self.upstream.read(self.WINDOW)
            self._span_idx = 0
            if len(self._spans) == 0:
                self._eof = True
                return None

        span = self._spans[self._span_idx]
        self._span_idx += 1
        return span
