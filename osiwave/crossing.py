"""
Zero-crossing detection with sub-sample interpolation.
"""

import logging
from typing import List, Optional

_logger = logging.getLogger(__name__)


class ZeroCrossingDetector:
    """
    Finds low-to-high zero crossings and returns their times in seconds.

    Crossings between samples are placed by linear interpolation. A run of
    samples that are exactly zero counts as a single crossing at the middle
    of the run. With `negate` set, high-to-low crossings are found instead.
    """

    WINDOW = 4096

    def __init__(self, upstream, sample_rate: int, negate: bool = False, trace: bool = False):
        """
        Args:
            upstream: DC-corrected sample stage providing read(n)
            sample_rate: Samples per second of the stream
            negate: Detect high-to-low instead of low-to-high crossings
            trace: Log every crossing found
        """
        self.upstream = upstream
        self.sample_rate = sample_rate
        self.negate = negate
        self.trace = trace
        self.sec_per_sample = 1.0 / sample_rate

        self._samples: List[int] = []
        self._sample_idx = 0
        self._sample_time = -1  # stream index of the last sample handed out
        self._eof = False

        self.crossings = 0

        # The left-hand sample of the next pair to examine
        self._prev = self._next_sample()
        self._prev_time = self._sample_time

    def read(self, ncross: int) -> List[float]:
        """
        Read up to `ncross` crossing timestamps (seconds from stream start).

        Returns an empty list at end of stream.
        """
        out: List[float] = []

        while len(out) < ncross and self._prev is not None:
            left = self._prev
            left_time = self._prev_time
            right = self._next_sample()
            if right is None:
                break

            if left == 0:
                # Collapse a run of zeroes into one crossing at its middle
                zeroes = 1
                while right == 0:
                    zeroes += 1
                    right = self._next_sample()
                    if right is None:
                        break
                if right is None:
                    # Run still open at end of stream
                    break

                out.append(self._emit((left_time + (zeroes - 1) * 0.5) * self.sec_per_sample))
            elif left < 0 < right:
                t = -left / (right - left)
                out.append(self._emit((left_time + t) * self.sec_per_sample))

            self._prev = right
            self._prev_time = self._sample_time

        if len(out) < ncross:
            self._prev = None

        return out

    def _emit(self, t: float) -> float:
        self.crossings += 1
        if self.trace:
            _logger.debug(f"crossing {t:.6f}")
        return t

    def _next_sample(self) -> Optional[int]:
        """Next buffered sample, sign-flipped when negating; None at end of stream."""
        if self._sample_idx >= len(self._samples):
            if self._eof:
                return None
            block = self.upstream.read(self.WINDOW)
            if len(block) == 0:
                self._eof = True
                return None
            self._samples = [int(s) for s in block]
            self._sample_idx = 0

        sample = self._samples[self._sample_idx]
        self._sample_idx += 1
        self._sample_time += 1
        return -sample if self.negate else sample
