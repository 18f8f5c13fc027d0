"""
AFSK Encoder - Generates cassette-style audio from bytes.

Each byte is sent as a start bit (space), eight data bits LSB first and a
stop bit (mark), with idle mark tone before and after the data.
"""

import math
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Union

import click
import numpy as np
import soundfile as sf

from . import SAMPLE_RATE, MARK_FREQ, SPACE_FREQ, BAUD_RATE

LEAD_IN_BITS = 150
LEAD_OUT_BITS = 30


def frame_bits(byte: int) -> List[int]:
    """Bits sent on the wire for one byte: start, d0..d7, stop."""
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"byte out of range: {byte}")
    return [0] + [(byte >> i) & 1 for i in range(8)] + [1]


class AFSKEncoder:
    """
    AFSK encoder for cassette data.

    Uses continuous phase across bit boundaries, like a tape interface's
    oscillator switching between its two tones.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        mark_freq: int = MARK_FREQ,
        space_freq: int = SPACE_FREQ,
        baud_rate: int = BAUD_RATE,
    ):
        """
        Initialize encoder.

        Args:
            sample_rate: Output audio sample rate (Hz)
            mark_freq: Frequency for logic 1 (Hz)
            space_freq: Frequency for logic 0 (Hz)
            baud_rate: Bit rate (bits per second)
        """
        self.sample_rate = sample_rate
        self.mark_freq = mark_freq
        self.space_freq = space_freq
        self.baud_rate = baud_rate

        # Samples per bit (147 at 44.1 kHz / 300 baud)
        self.samples_per_bit = sample_rate / baud_rate

        # Phase accumulator for continuous phase
        self.phase = 0.0
        # Fractional samples carried between bits
        self.sample_accumulator = 0.0

    def reset(self):
        """Reset phase and timing state."""
        self.phase = 0.0
        self.sample_accumulator = 0.0

    def _generate_bit(self, bit: int) -> np.ndarray:
        """
        Generate one bit period of tone.

        Returns:
            Array of audio samples (-1.0 to 1.0)
        """
        freq = self.mark_freq if bit else self.space_freq

        self.sample_accumulator += self.samples_per_bit
        num_samples = int(self.sample_accumulator)
        self.sample_accumulator -= num_samples

        omega = 2 * math.pi * freq / self.sample_rate
        samples = np.sin(self.phase + omega * np.arange(num_samples))
        self.phase = (self.phase + omega * num_samples) % (2 * math.pi)

        return samples

    def encode_bits(self, bits: Iterable[int]) -> np.ndarray:
        """Modulate a sequence of bits."""
        chunks = [self._generate_bit(bit) for bit in bits]
        if not chunks:
            return np.zeros(0)
        return np.concatenate(chunks)

    def data_bits(
        self,
        data: bytes,
        lead_in_bits: int = LEAD_IN_BITS,
        lead_out_bits: int = LEAD_OUT_BITS,
    ) -> List[int]:
        """Full bit sequence for `data`, including idle marks."""
        bits = [1] * lead_in_bits
        for byte in data:
            bits.extend(frame_bits(byte))
        bits.extend([1] * lead_out_bits)
        return bits

    def generate(
        self,
        data: bytes,
        lead_in_bits: int = LEAD_IN_BITS,
        lead_out_bits: int = LEAD_OUT_BITS,
        amplitude: float = 0.7,
    ) -> tuple:
        """
        Generate AFSK audio for `data`.

        Args:
            data: Bytes to encode
            lead_in_bits: Idle mark clocks before the data
            lead_out_bits: Idle mark clocks after the data
            amplitude: Output amplitude (0.0 to 1.0)

        Returns:
            Tuple of (audio_samples, sample_rate)
        """
        if not 0.0 < amplitude <= 1.0:
            raise ValueError("amplitude must be in (0, 1]")

        self.reset()
        samples = self.encode_bits(self.data_bits(data, lead_in_bits, lead_out_bits))
        return samples * amplitude, self.sample_rate

    def generate_pcm16(self, data: bytes, **kwargs) -> np.ndarray:
        """Generate AFSK audio as signed 16-bit samples."""
        samples, _ = self.generate(data, **kwargs)
        return np.round(samples * 32767).astype(np.int16)

    def generate_to_file(
        self,
        output_path: Union[str, Path],
        data: bytes,
        lead_in_bits: int = LEAD_IN_BITS,
        lead_out_bits: int = LEAD_OUT_BITS,
        amplitude: float = 0.7,
    ):
        """
        Generate and save AFSK audio as a 16-bit PCM WAV file.
        """
        samples = self.generate_pcm16(
            data,
            lead_in_bits=lead_in_bits,
            lead_out_bits=lead_out_bits,
            amplitude=amplitude,
        )
        sf.write(str(output_path), samples, self.sample_rate, subtype='PCM_16')


@click.command()
@click.argument("text", required=False)
@click.option(
    "-i", "--input",
    "input_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Encode the contents of a file instead of TEXT",
)
@click.option(
    "-o", "--output",
    type=click.Path(),
    default="osiwave.wav",
    help="Output WAV file path",
)
@click.option(
    "-a", "--amplitude",
    type=float,
    default=0.7,
    help="Amplitude 0.0-1.0 (default: 0.7)",
)
@click.option(
    "-s", "--sample-rate",
    type=int,
    default=SAMPLE_RATE,
    help=f"Sample rate in Hz (default: {SAMPLE_RATE})",
)
@click.option(
    "--lead-in",
    type=click.IntRange(min=1),
    default=LEAD_IN_BITS,
    help=f"Idle mark clocks before the data (default: {LEAD_IN_BITS})",
)
@click.option(
    "--lead-out",
    type=click.IntRange(min=0),
    default=LEAD_OUT_BITS,
    help=f"Idle mark clocks after the data (default: {LEAD_OUT_BITS})",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
def main(
    text: Optional[str],
    input_file: Optional[str],
    output: str,
    amplitude: float,
    sample_rate: int,
    lead_in: int,
    lead_out: int,
    verbose: bool,
):
    """
    Encode text as a 300 baud AFSK cassette recording.

    Examples:

        osiwave-encode "10 PRINT 42" -o listing.wav

        osiwave-encode -i program.bas -o program.wav
    """
    if input_file is not None:
        data = Path(input_file).read_bytes()
    elif text is not None:
        try:
            data = text.encode("ascii")
        except UnicodeEncodeError as e:
            click.echo(f"Error: text must be ASCII: {e}", err=True)
            sys.exit(1)
    else:
        raise click.UsageError("TEXT or --input is required")

    if verbose:
        duration = (lead_in + lead_out + 10 * len(data)) / BAUD_RATE
        click.echo(f"Encoding {len(data)} bytes ({duration:.1f}s of audio)...")
        click.echo(f"  Output: {output}")
        click.echo(f"  Sample rate: {sample_rate} Hz")
        click.echo(f"  Amplitude: {amplitude}")

    encoder = AFSKEncoder(sample_rate=sample_rate)

    try:
        encoder.generate_to_file(
            output,
            data,
            lead_in_bits=lead_in,
            lead_out_bits=lead_out,
            amplitude=amplitude,
        )
        click.echo(f"✓ Generated {output}")
    except (ValueError, RuntimeError) as e:
        click.echo(f"Error generating file: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
