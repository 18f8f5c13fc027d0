"""
RS-232 style frame synchronization.

Frame layout, one bit per clock:

    position  0  1  2 .. 9          10
    bit       M  S  d0 .. d7 (LSB)  M

M is a mark (idle or the previous stop bit), S the start bit (a space).
"""

import logging
from collections import deque
from typing import List, Optional

from . import FRAME_BITS

_logger = logging.getLogger(__name__)


def is_acceptable(byte: int) -> bool:
    """Only ASCII text survives: CR, LF, NUL and printable characters."""
    return byte in (0x0D, 0x0A, 0x00) or 0x20 <= byte <= 0x7E


class FrameFilter:
    """
    Finds frames in a bit stream and decodes their bytes.

    The last FRAME_BITS bits are kept in a sliding window. When the window
    holds a frame with an acceptable byte, the whole frame is consumed and
    its stop bit becomes the leading mark of the next window. Otherwise the
    window slides by one bit, which lets the decoder fall back into step
    after a slipped or spurious bit.
    """

    WINDOW = 1024

    def __init__(self, upstream, trace: bool = False):
        """
        Args:
            upstream: Bit stage providing read(n)
            trace: Log every accepted and rejected frame
        """
        self.upstream = upstream
        self.trace = trace

        self._bits: List[bool] = []
        self._bit_idx = 0
        self._eof = False

        self.frames_accepted = 0
        self.frames_rejected = 0

        self._frame: deque = deque(maxlen=FRAME_BITS)
        self._filled = self._fill(FRAME_BITS)

    def read(self, nchars: int) -> bytes:
        """
        Read up to `nchars` decoded bytes.

        Returns empty bytes at end of stream.
        """
        chars = bytearray()

        while len(chars) < nchars and self._filled:
            frame = self._frame

            if frame[0] and not frame[1] and frame[10]:
                byte = 0
                for b in range(8):
                    if frame[2 + b]:
                        byte |= 1 << b

                if is_acceptable(byte):
                    self.frames_accepted += 1
                    if self.trace:
                        _logger.debug(f"frame {byte:#04x} {chr(byte)!r}")
                    chars.append(byte)
                    self._refill()
                    continue

                self.frames_rejected += 1
                if self.trace:
                    _logger.debug(f"frame {byte:#04x} rejected, resyncing")

            self._shift()

        return bytes(chars)

    def _shift(self):
        """Slide the window along by one bit."""
        self._filled = self._fill(1)

    def _refill(self):
        """Start a new window from the stop bit of the frame just consumed."""
        stop = self._frame[-1]
        self._frame.clear()
        self._frame.append(stop)
        self._filled = self._fill(FRAME_BITS - 1)

    def _fill(self, count: int) -> bool:
        for _ in range(count):
            bit = self._next_bit()
            if bit is None:
                return False
            self._frame.append(bit)
        return True

    def _next_bit(self) -> Optional[bool]:
        if self._bit_idx >= len(self._bits):
            if self._eof:
                return None
            self._bits = self.upstream.read(self.WINDOW)
            self._bit_idx = 0
            if len(self._bits) == 0:
                self._eof = True
                return None

        bit = self._bits[self._bit_idx]
        self._bit_idx += 1
        return bool(bit)
