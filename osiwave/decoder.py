"""
AFSK Cassette Decoder

Assembles the decode pipeline over an audio source and provides the
osiwave-decode command line tool.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

import click

from . import BAUD_RATE, DC_WINDOW, MARK_BAND, SPACE_BAND
from .source import AudioFormatError, DeviceSource, WaveSource, _sounddevice
from .dcfilter import DCFilter
from .crossing import ZeroCrossingDetector
from .spans import FrequencySpanFilter
from .denoise import NoiseFilter
from .bitstream import BitstreamFilter
from .framing import FrameFilter

# Module-level logger
_logger = logging.getLogger(__name__)

# Stages that can be traced, and the loggers their trace lines go to
TRACE_STAGES = {
    "dc": DCFilter.__module__,
    "crossings": ZeroCrossingDetector.__module__,
    "spans": FrequencySpanFilter.__module__,
    "denoise": NoiseFilter.__module__,
    "bits": BitstreamFilter.__module__,
    "frames": FrameFilter.__module__,
}


class Decoder:
    """
    Decodes bytes from an AFSK audio source.

    Owns one instance of every pipeline stage. Nothing is decoded until
    bytes are read; each read pulls only as much audio as it needs.
    """

    WINDOW = 1024

    def __init__(
        self,
        source,
        dc_window: int = DC_WINDOW,
        negate: bool = False,
        baud_rate: int = BAUD_RATE,
        mark_band: Tuple[float, float] = MARK_BAND,
        space_band: Tuple[float, float] = SPACE_BAND,
        trace: Iterable[str] = (),
    ):
        """
        Initialize decoder.

        Args:
            source: Audio source providing read_samples(n) and sample_rate
            dc_window: DC removal window (samples)
            negate: Detect high-to-low zero crossings
            baud_rate: Clock rate of the encoded data
            mark_band: Mark frequency band (Hz)
            space_band: Space frequency band (Hz)
            trace: Names of stages to trace (see TRACE_STAGES)
        """
        trace = set(trace)
        unknown = trace - set(TRACE_STAGES)
        if unknown:
            raise ValueError(f"unknown trace stage(s): {', '.join(sorted(unknown))}")

        self.source = source

        self.dc_filter = DCFilter(source, dc_window, trace="dc" in trace)
        self.crossing_detector = ZeroCrossingDetector(
            self.dc_filter, source.sample_rate, negate, trace="crossings" in trace
        )
        self.span_filter = FrequencySpanFilter(
            self.crossing_detector, mark_band, space_band, trace="spans" in trace
        )
        self.noise_filter = NoiseFilter(self.span_filter, baud_rate, trace="denoise" in trace)
        self.bitstream = BitstreamFilter(self.noise_filter, trace="bits" in trace)
        self.frame_filter = FrameFilter(self.bitstream, trace="frames" in trace)

        _logger.debug(
            f"Decoder initialized: sample_rate={source.sample_rate}, dc_window={dc_window}, "
            f"negate={negate}, baud_rate={baud_rate}"
        )

    def read(self, nchars: int) -> bytes:
        """Read up to `nchars` decoded bytes; empty at end of stream."""
        return self.frame_filter.read(nchars)

    def __iter__(self) -> Iterator[bytes]:
        """Yield decoded bytes in chunks until the source is exhausted."""
        while True:
            chunk = self.read(self.WINDOW)
            if not chunk:
                return
            yield chunk

    def decode(self) -> bytes:
        """Decode everything remaining in the source."""
        return b"".join(self)

    def get_statistics(self) -> dict:
        """
        Get decoder statistics.

        Returns:
            Dict with counts of samples, crossings, spans, bits and frames
        """
        return {
            "samples": self.dc_filter.samples,
            "crossings": self.crossing_detector.crossings,
            "spans": self.span_filter.spans,
            "noise_folded": self.noise_filter.noise_folded,
            "clocked_spans": self.noise_filter.spans,
            "bits": self.bitstream.bits,
            "frames_accepted": self.frame_filter.frames_accepted,
            "frames_rejected": self.frame_filter.frames_rejected,
        }


def clip_source(source, clip: int):
    """
    Drop `clip` leading samples from a file source.

    Raises:
        ValueError: the clip would leave no samples
    """
    if clip <= 0:
        return
    if clip >= source.frames:
        raise ValueError(f"clip size {clip} would leave no samples.")

    _logger.info(f"Trimming {clip} samples from start of wave")
    source.skip(clip)


def decode_file(
    file_path: Union[str, Path],
    clip: int = 0,
    dc_window: int = DC_WINDOW,
    negate: bool = False,
    channel: int = 0,
    trace: Iterable[str] = (),
) -> bytes:
    """
    Decode a WAV file.

    Args:
        file_path: Path to a 16-bit PCM wave file
        clip: Leading samples to discard
        dc_window: DC removal window (samples)
        negate: Detect high-to-low zero crossings
        channel: Channel to decode (0 = left, 1 = right)
        trace: Names of stages to trace

    Returns:
        The decoded bytes

    Raises:
        AudioFormatError: the file can't be read or has an unsupported format
    """
    with WaveSource(file_path, channel=channel) as source:
        clip_source(source, clip)
        return Decoder(source, dc_window=dc_window, negate=negate, trace=trace).decode()


def _configure_logging(verbose: bool, trace: Iterable[str]):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )
    for stage in trace:
        logging.getLogger(TRACE_STAGES[stage]).setLevel(logging.DEBUG)


@click.command()
@click.argument(
    "wave_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False),
)
@click.option(
    "-c", "--clip",
    type=click.IntRange(min=0),
    default=0,
    help="Samples to discard from the start of the recording",
)
@click.option(
    "-d", "--dc-window",
    type=click.IntRange(min=1),
    default=DC_WINDOW,
    help=f"DC removal window in samples (default: {DC_WINDOW})",
)
@click.option(
    "-n", "--negate",
    is_flag=True,
    help="Detect high-to-low zero crossings (inverted recordings)",
)
@click.option(
    "--channel",
    type=click.IntRange(min=0),
    default=0,
    help="Channel to decode (0=left, 1=right, default: 0)",
)
@click.option(
    "-t", "--trace",
    type=click.Choice(list(TRACE_STAGES)),
    multiple=True,
    help="Trace a pipeline stage to stderr (repeatable)",
)
@click.option(
    "--live",
    is_flag=True,
    help="Decode from an audio input device instead of a file",
)
@click.option(
    "-D", "--device",
    type=int,
    help="Audio input device number (default: system default)",
)
@click.option(
    "--duration",
    type=float,
    help="Stop live decoding after this many seconds",
)
@click.option(
    "-l", "--list-devices",
    is_flag=True,
    help="List available audio input devices",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output with statistics",
)
def main(
    wave_file: Optional[str],
    clip: int,
    dc_window: int,
    negate: bool,
    channel: int,
    trace: Tuple[str, ...],
    live: bool,
    device: Optional[int],
    duration: Optional[float],
    list_devices: bool,
    verbose: bool,
):
    """
    Decode ASCII data from a 300 baud AFSK cassette recording.

    Examples:

        osiwave-decode tape.wav                 # Decode a recording

        osiwave-decode -c 44100 tape.wav        # Skip the first second

        osiwave-decode -t frames tape.wav       # Show frame decisions

        osiwave-decode --live --duration 60     # Decode a minute of line input
    """
    if list_devices:
        try:
            sd = _sounddevice()
        except AudioFormatError as e:
            click.echo(str(e), err=True)
            sys.exit(1)
        click.echo("Audio Input Devices:")
        click.echo("-" * 60)
        for i, dev in enumerate(sd.query_devices()):
            if dev['max_input_channels'] > 0:
                click.echo(f"  [{i}] {dev['name']}")
        return

    if wave_file is None and not live:
        raise click.UsageError("a wave file or --live is required")

    _configure_logging(verbose, trace)

    name = wave_file if wave_file is not None else "audio input"

    try:
        if wave_file is not None:
            source = WaveSource(wave_file, channel=channel)
        else:
            source = DeviceSource(device=device, channel=channel, duration=duration)
    except AudioFormatError as e:
        click.echo(f"{name}: {e}", err=True)
        sys.exit(1)

    try:
        if wave_file is not None:
            try:
                clip_source(source, clip)
            except ValueError as e:
                click.echo(str(e), err=True)
                sys.exit(1)
        elif clip:
            source.skip(clip)

        decoder = Decoder(source, dc_window=dc_window, negate=negate, trace=trace)

        try:
            for chunk in decoder:
                click.echo(chunk, nl=False)
        except KeyboardInterrupt:
            click.echo("\nStopped.", err=True)

        stats = decoder.get_statistics()
        if verbose:
            click.echo(f"Stats: {stats}", err=True)

        if stats["crossings"] == 0:
            click.echo("no data found (no zero crossings)", err=True)
            sys.exit(1)

        click.echo()
    finally:
        source.close()


if __name__ == "__main__":
    main()
