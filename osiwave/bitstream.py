"""
Expand clocked spans into individual bits.
"""

import logging
from typing import List, Optional

from .spans import Span, Value

_logger = logging.getLogger(__name__)


class PipelineInvariantError(RuntimeError):
    """An earlier stage handed on data that breaks its own guarantees."""


class BitstreamFilter:
    """
    Turns each span into `clocks` copies of its bit (mark = True).
    """

    WINDOW = 1024

    def __init__(self, upstream, trace: bool = False):
        """
        Args:
            upstream: Noise filter stage providing read(n) of finalized spans
            trace: Log the bits produced by each read
        """
        self.upstream = upstream
        self.trace = trace

        self._spans: List[Span] = []
        self._span_idx = 0
        self._eof = False

        self.bits = 0

        self._span = self._next_span()
        self._remaining = self._clocks(self._span)

    def read(self, nbits: int) -> List[bool]:
        """
        Read up to `nbits` bits.

        Returns an empty list at end of stream.

        Raises:
            PipelineInvariantError: a span arrived with a negative clock count
        """
        bits: List[bool] = []

        while len(bits) < nbits and self._span is not None:
            if self._remaining == 0:
                self._span = self._next_span()
                self._remaining = self._clocks(self._span)
                continue

            bits.append(self._span.value is Value.MARK)
            self._remaining -= 1

        self.bits += len(bits)
        if self.trace:
            for bit in bits:
                _logger.debug(f"bit {int(bit)}")
        return bits

    @staticmethod
    def _clocks(span: Optional[Span]) -> int:
        if span is None:
            return 0
        if span.clocks is None or span.clocks < 0:
            raise PipelineInvariantError(f"span reached bit expansion with bad clock count: {span!r}")
        return span.clocks

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
