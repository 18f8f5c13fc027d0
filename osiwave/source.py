"""
Audio sources feeding the decode pipeline.

A source hands out signed 16-bit samples of one channel in blocks:

    read_samples(n) -> np.ndarray   (at most n samples, empty at end of stream)
    sample_rate                     (Hz)
    skip(n) -> int                  (discard leading samples)
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import soundfile as sf

from . import SAMPLE_RATE

_logger = logging.getLogger(__name__)

INT16_MIN = -32768
INT16_MAX = 32767


class AudioFormatError(ValueError):
    """The audio input can't be opened or isn't in a supported format."""


def _check_channel(channel: int, channels: int):
    if channel < 0 or channel >= channels:
        raise AudioFormatError(
            f"attempt to set invalid read channel {channel} "
            f"-- stream only has {channels} channels."
        )


class WaveSource:
    """
    Reads 16-bit PCM samples from a mono or stereo WAV file.

    The file is validated when the source is constructed; nothing downstream
    is built for a file that fails.
    """

    WAVE_FORMATS = ("WAV", "WAVEX")

    def __init__(
        self,
        path: Union[str, Path],
        channel: int = 0,
        sample_rate: int = SAMPLE_RATE,
    ):
        """
        Open and validate a wave file.

        Args:
            path: Path to the WAV file
            channel: Zero-based channel to read (0 = left, 1 = right)
            sample_rate: Sample rate the file must have (Hz)

        Raises:
            AudioFormatError: file is unreadable or not 16-bit PCM at the expected rate
        """
        self.path = str(path)

        try:
            self._file = sf.SoundFile(self.path)
        except (RuntimeError, OSError) as e:
            # LibsndfileError is a RuntimeError
            raise AudioFormatError(f"failed to open file: {e}") from e

        try:
            self._validate(channel, sample_rate)
        except AudioFormatError:
            self._file.close()
            raise

        self.channel = channel
        self.channels = self._file.channels
        self.sample_rate = self._file.samplerate

        _logger.info(
            f"Opened {self.path}: {self.sample_rate} Hz, {self.channels} channel(s), "
            f"{self._file.frames} frames, reading channel {channel}"
        )

    def _validate(self, channel: int, sample_rate: int):
        f = self._file
        if f.format not in self.WAVE_FORMATS:
            raise AudioFormatError("file is not a wave file.")
        if f.subtype != "PCM_16":
            raise AudioFormatError("wave format must be 16-bit PCM.")
        if f.channels > 2:
            raise AudioFormatError(
                f"only mono and stereo files are supported, got {f.channels} channels."
            )
        if f.samplerate != sample_rate:
            raise AudioFormatError(
                f"sample rate must be {sample_rate} Hz, got {f.samplerate} Hz."
            )
        _check_channel(channel, f.channels)

    @property
    def frames(self) -> int:
        """Total number of sample frames in the file."""
        return self._file.frames

    def read_samples(self, nsamples: int) -> np.ndarray:
        """
        Read up to `nsamples` samples from the selected channel.

        Returns an empty array once all samples have been read.
        """
        if nsamples <= 0 or self._file.closed:
            return np.zeros(0, dtype=np.int16)

        data = self._file.read(nsamples, dtype="int16", always_2d=True)
        return np.ascontiguousarray(data[:, self.channel])

    def skip(self, nsamples: int) -> int:
        """Discard up to `nsamples` leading samples. Returns the count skipped."""
        if nsamples < 0:
            raise ValueError("skip count must not be negative")

        left = self._file.frames - self._file.tell()
        count = min(nsamples, left)
        self._file.seek(count, sf.SEEK_CUR)
        return count

    def close(self):
        """Close the underlying file."""
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ArraySource:
    """In-memory source over an array of 16-bit samples."""

    def __init__(self, samples, sample_rate: int = SAMPLE_RATE, channel: int = 0):
        """
        Args:
            samples: 1-D array (mono) or 2-D array shaped (frames, channels)
            sample_rate: Sample rate of the data (Hz)
            channel: Channel to read from a 2-D array
        """
        data = np.asarray(samples)
        if data.size and not np.issubdtype(data.dtype, np.integer):
            raise AudioFormatError(f"samples must be integers, got {data.dtype}")
        if data.size and (data.min() < INT16_MIN or data.max() > INT16_MAX):
            raise AudioFormatError("samples exceed the 16-bit range")

        if data.ndim == 1:
            data = data.reshape(-1, 1)
        elif data.ndim != 2:
            raise AudioFormatError(f"expected 1-D or 2-D samples, got {data.ndim}-D")

        _check_channel(channel, data.shape[1])

        self._data = data[:, channel].astype(np.int16)
        self._pos = 0
        self.channel = channel
        self.channels = data.shape[1]
        self.sample_rate = sample_rate

    @property
    def frames(self) -> int:
        return len(self._data)

    def read_samples(self, nsamples: int) -> np.ndarray:
        nsamples = max(nsamples, 0)
        block = self._data[self._pos:self._pos + nsamples]
        self._pos += len(block)
        return block

    def skip(self, nsamples: int) -> int:
        if nsamples < 0:
            raise ValueError("skip count must not be negative")
        count = min(nsamples, len(self._data) - self._pos)
        self._pos += count
        return count


def _sounddevice():
    """Import sounddevice on first use; it is only needed for live input."""
    try:
        import sounddevice
    except (ImportError, OSError) as e:
        # OSError: the PortAudio library itself is missing
        raise AudioFormatError(
            f"live input needs sounddevice. Install with: pip install osiwave[live] ({e})"
        ) from e
    return sounddevice


class DeviceSource:
    """
    Live source reading from an audio input device.

    Reads block until the device has delivered the requested samples. Without
    a duration the stream never ends on its own; stop pulling to stop.
    """

    def __init__(
        self,
        device: Optional[int] = None,
        channel: int = 0,
        sample_rate: int = SAMPLE_RATE,
        duration: Optional[float] = None,
    ):
        """
        Args:
            device: Input device number (None = system default)
            channel: Zero-based input channel to read
            sample_rate: Capture rate (Hz)
            duration: Stop after this many seconds (None = unlimited)
        """
        sd = _sounddevice()

        try:
            info = sd.query_devices(device, "input")
        except (sd.PortAudioError, ValueError) as e:
            # ValueError: no such device or not an input
            raise AudioFormatError(f"no usable input device: {e}") from e

        _check_channel(channel, int(info["max_input_channels"]))

        try:
            self._stream = sd.InputStream(
                device=device,
                channels=channel + 1,
                samplerate=sample_rate,
                dtype="int16",
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise AudioFormatError(f"can't open input device: {e}") from e

        self.channel = channel
        self.sample_rate = sample_rate
        self._remaining = None if duration is None else int(duration * sample_rate)

        _logger.info(f"Capturing from {info['name']} at {sample_rate} Hz, channel {channel}")

    def read_samples(self, nsamples: int) -> np.ndarray:
        if self._remaining is not None:
            nsamples = min(nsamples, self._remaining)
        if nsamples <= 0 or self._stream.closed:
            return np.zeros(0, dtype=np.int16)

        data, overflowed = self._stream.read(nsamples)
        if overflowed:
            _logger.warning("Input overflow, samples were dropped")

        if self._remaining is not None:
            self._remaining -= len(data)
        return np.ascontiguousarray(data[:, self.channel])

    def skip(self, nsamples: int) -> int:
        skipped = 0
        while skipped < nsamples:
            block = self.read_samples(min(nsamples - skipped, 4096))
            if len(block) == 0:
                break
            skipped += len(block)
        return skipped

    def close(self):
        if not self._stream.closed:
            self._stream.stop()
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
