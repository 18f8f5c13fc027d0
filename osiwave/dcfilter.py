"""
DC removal by a centred moving average.
"""

import logging

import numpy as np

from . import DC_WINDOW

_logger = logging.getLogger(__name__)


def _average(totals, window: int):
    """Integer mean of window sums, truncated toward zero."""
    return np.sign(totals) * (np.abs(totals) // window)


class DCFilter:
    """
    Removes baseline drift from a sample stream.

    Each output sample is the sample at the centre of a `window`-wide moving
    window minus the window's mean, so the correction has no phase lag. The
    first window/2 samples pass through unfiltered while the window fills,
    and a stream shorter than one window passes through untouched.
    """

    def __init__(self, source, window: int = DC_WINDOW, trace: bool = False):
        """
        Initialize the filter and prime the window.

        Args:
            source: Audio source providing read_samples(n)
            window: Moving average width in samples
            trace: Log every output sample
        """
        if window <= 0:
            raise ValueError(f"DC window must be positive, got {window}")

        self.source = source
        self.window = window
        self.trace = trace

        # Raw samples currently in the window, oldest first
        self._window = self._prime(window)
        self._passthrough = len(self._window) < window

        self._emitted = 0  # samples handed out straight from the primed window
        self._eof = False
        self._drain = 0
        self._final_average = 0

        self.samples = 0

    def _prime(self, window: int) -> np.ndarray:
        """Fill the first window; a short read only means end of stream when it is empty."""
        blocks = []
        count = 0
        while count < window:
            block = self.source.read_samples(window - count)
            if len(block) == 0:
                break
            blocks.append(np.asarray(block, dtype=np.int64))
            count += len(block)

        if not blocks:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate(blocks)

    def read(self, nsamples: int) -> np.ndarray:
        """
        Read up to `nsamples` DC-corrected samples.

        Returns an empty array at end of stream.
        """
        if nsamples <= 0:
            return np.zeros(0, dtype=np.int64)

        if self._passthrough:
            out = self._window[self._emitted:self._emitted + nsamples]
            self._emitted += len(out)
            return self._emit(out)

        parts = []
        half = self.window // 2

        if self._emitted < half:
            n = min(half - self._emitted, nsamples)
            parts.append(self._window[self._emitted:self._emitted + n])
            self._emitted += n
            nsamples -= n

        if nsamples > 0:
            parts.append(self._filter(nsamples))

        return self._emit(np.concatenate(parts))

    def _filter(self, nsamples: int) -> np.ndarray:
        if not self._eof:
            raw = self.source.read_samples(nsamples)
            if len(raw) > 0:
                return self._steady(np.asarray(raw, dtype=np.int64))

            # Source exhausted: flush the back half of the window
            self._eof = True
            self._drain = self.window // 2
            self._final_average = int(_average(self._window.sum(), self.window))

        out = self._window[self._drain:self._drain + nsamples] - self._final_average
        self._drain += len(out)
        return out

    def _steady(self, raw: np.ndarray) -> np.ndarray:
        w = self.window
        m = len(raw)

        combined = np.concatenate((self._window, raw))
        sums = np.concatenate(([0], np.cumsum(combined)))

        # totals[j] = sum(combined[j:j + w]), the window centred on combined[j + w/2]
        totals = sums[w:w + m] - sums[:m]
        half = w // 2
        out = combined[half:half + m] - _average(totals, w)

        self._window = combined[m:]
        return out

    def _emit(self, out: np.ndarray) -> np.ndarray:
        self.samples += len(out)
        if self.trace:
            for sample in out.tolist():
                _logger.debug(f"dc {sample}")
        return out
