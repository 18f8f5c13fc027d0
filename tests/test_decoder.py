"""
End-to-end tests for the decode pipeline and the osiwave-decode command.
"""

import logging

import numpy as np
import pytest
import soundfile as sf
from click.testing import CliRunner

from osiwave import AFSKEncoder, ArraySource, Decoder, decode_file
from osiwave.decoder import main

LISTING = b'10 PRINT "HELLO, WORLD"\r\n20 GOTO 10\r\n'


def tape(data, lead_in_bits=30, lead_out_bits=30):
    """16-bit samples of `data` as the encoder records it."""
    return AFSKEncoder().generate_pcm16(
        data, lead_in_bits=lead_in_bits, lead_out_bits=lead_out_bits
    )


def write_tape(path, samples):
    sf.write(str(path), samples, 44100, subtype="PCM_16")
    return path


class TestDecoder:
    """Test decoding in-memory audio."""

    def test_decode_hi(self):
        assert Decoder(ArraySource(tape(b"Hi"))).decode() == b"Hi"

    def test_decode_listing(self):
        assert Decoder(ArraySource(tape(LISTING))).decode() == LISTING

    def test_chunked_reads(self):
        decoder = Decoder(ArraySource(tape(LISTING)))

        chunks = []
        while True:
            chunk = decoder.read(3)
            if not chunk:
                break
            assert len(chunk) <= 3
            chunks.append(chunk)

        assert b"".join(chunks) == LISTING

    def test_source_with_short_reads(self, trickle):
        """Audio delivered a few samples at a time decodes the same."""
        assert Decoder(trickle(tape(b"Hi"), chunk=64)).decode() == b"Hi"

    def test_dc_offset_removed(self):
        samples = tape(b"Hi").astype(np.int32) + 3000
        assert Decoder(ArraySource(samples)).decode() == b"Hi"

    def test_negated_recording(self):
        samples = -tape(b"Hi")
        assert Decoder(ArraySource(samples), negate=True).decode() == b"Hi"

    def test_statistics(self):
        decoder = Decoder(ArraySource(tape(b"Hi")))
        decoder.decode()

        stats = decoder.get_statistics()
        assert stats["samples"] == (30 + 20 + 30) * 147
        assert stats["frames_accepted"] == 2
        assert stats["crossings"] > 0
        assert stats["bits"] >= 20

    def test_silence(self):
        decoder = Decoder(ArraySource(np.zeros(44100, dtype=np.int16)))
        assert decoder.decode() == b""
        assert decoder.get_statistics()["crossings"] == 0

    def test_unknown_trace_stage(self):
        with pytest.raises(ValueError, match="unknown trace stage"):
            Decoder(ArraySource(tape(b"Hi")), trace=["bogus"])

    def test_trace_frames(self, caplog):
        caplog.set_level(logging.DEBUG, logger="osiwave.framing")

        decoder = Decoder(ArraySource(tape(b"Hi")), trace=["frames"])

        assert decoder.decode() == b"Hi"
        assert "frame 0x48" in caplog.text


class TestDecodeFile:
    """Test decoding wave files."""

    def test_round_trip(self, tmp_path):
        path = write_tape(tmp_path / "listing.wav", tape(LISTING))
        assert decode_file(path) == LISTING

    def test_stereo_channel(self, tmp_path):
        samples = tape(b"Hi")
        stereo = np.column_stack([np.zeros_like(samples), samples])
        path = write_tape(tmp_path / "stereo.wav", stereo)

        assert decode_file(path, channel=1) == b"Hi"
        assert decode_file(path, channel=0) == b""

    def test_clip(self, tmp_path):
        path = write_tape(tmp_path / "hi.wav", tape(b"Hi"))
        assert decode_file(path, clip=1000) == b"Hi"

    def test_clip_too_large(self, tmp_path):
        samples = tape(b"Hi")
        path = write_tape(tmp_path / "hi.wav", samples)
        with pytest.raises(ValueError, match="would leave no samples"):
            decode_file(path, clip=len(samples))


class TestDecodeCommand:
    """Test the osiwave-decode command."""

    def test_decode(self, tmp_path):
        path = write_tape(tmp_path / "hi.wav", tape(b"Hi"))
        result = CliRunner().invoke(main, [str(path)])

        assert result.exit_code == 0
        assert result.output == "Hi\n"

    @pytest.mark.filterwarnings("error::DeprecationWarning:osiwave")
    def test_decoded_bytes_written_as_is(self, tmp_path):
        """Non-printable control bytes such as NUL reach stdout unchanged."""
        path = write_tape(tmp_path / "nul.wav", tape(b"A\x00B"))
        result = CliRunner().invoke(main, [str(path)])

        assert result.exit_code == 0
        assert result.stdout_bytes == b"A\x00B\n"

    def test_clip_option(self, tmp_path):
        path = write_tape(tmp_path / "hi.wav", tape(b"Hi"))
        result = CliRunner().invoke(main, ["-c", "500", str(path)])

        assert result.exit_code == 0
        assert result.output.startswith("Hi")

    def test_clip_too_large(self, tmp_path):
        path = write_tape(tmp_path / "hi.wav", tape(b"Hi"))
        result = CliRunner().invoke(main, ["-c", "10000000", str(path)])

        assert result.exit_code == 1
        assert "would leave no samples" in result.output

    def test_not_a_wave_file(self, tmp_path):
        path = tmp_path / "notes.wav"
        path.write_text("not audio\n")
        result = CliRunner().invoke(main, [str(path)])

        assert result.exit_code == 1
        assert "failed to open file" in result.output

    def test_no_data(self, tmp_path):
        path = write_tape(tmp_path / "blank.wav", np.zeros(4410, dtype=np.int16))
        result = CliRunner().invoke(main, [str(path)])

        assert result.exit_code == 1
        assert result.output == "no data found (no zero crossings)\n"

    def test_missing_argument(self):
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 2

    def test_live_without_input_device(self, monkeypatch, fake_sounddevice):
        """A missing input device is reported, not raised."""
        sd = fake_sounddevice(ValueError("No input device matching 99"))
        monkeypatch.setattr("osiwave.source._sounddevice", lambda: sd)

        result = CliRunner().invoke(main, ["--live", "-D", "99"])

        assert result.exit_code == 1
        assert "audio input: no usable input device" in result.output
