"""
Tests for zero-crossing detection.
"""

import numpy as np
import pytest

from osiwave import ZeroCrossingDetector


class TestZeroCrossingDetector:
    """Test crossing interpolation and zero-run handling."""

    def test_interpolated_crossing(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 1, -3, 1]), sample_rate=1)
        assert drain(zc, 10) == pytest.approx([0.5, 2.75])

    def test_seconds_from_sample_rate(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 1]), sample_rate=4)
        assert drain(zc, 10) == pytest.approx([0.125])

    def test_falling_edge_ignored(self, stub, drain):
        zc = ZeroCrossingDetector(stub([5, -5, -2]), sample_rate=1)
        assert drain(zc, 10) == []

    def test_negate_detects_falling_edge(self, stub, drain):
        zc = ZeroCrossingDetector(stub([5, -5, 3]), sample_rate=1, negate=True)
        assert drain(zc, 10) == pytest.approx([0.5])

    def test_zero_run_is_one_crossing_at_middle(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-2, 0, 0, 0, 2]), sample_rate=1)
        assert drain(zc, 10) == pytest.approx([2.0])

    def test_single_zero_sample(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 0, 1, -1, 0, 0, 1]), sample_rate=1)
        assert drain(zc, 10) == pytest.approx([1.0, 4.5])

    def test_zero_run_open_at_end_of_stream(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 1, -1, 0, 0]), sample_rate=1)
        assert drain(zc, 10) == pytest.approx([0.5])

    def test_zero_run_across_upstream_windows(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 0, 0, 0, 1, -1, 1], chunk=2), sample_rate=1)
        assert drain(zc, 10) == pytest.approx([2.0, 5.5])

    def test_empty_stream(self, stub):
        zc = ZeroCrossingDetector(stub([]), sample_rate=44100)
        assert zc.read(10) == []
        assert zc.read(10) == []

    def test_timestamps_non_decreasing(self, stub, drain):
        samples = np.random.default_rng(3).integers(-3, 4, 5000).tolist()
        ts = drain(ZeroCrossingDetector(stub(samples, chunk=100), sample_rate=44100), 64)

        assert len(ts) > 0
        assert all(b >= a for a, b in zip(ts, ts[1:]))

    def test_read_size_does_not_change_output(self, stub, drain):
        samples = np.random.default_rng(4).integers(-3, 4, 3000).tolist()
        expected = drain(ZeroCrossingDetector(stub(samples), sample_rate=1), 4096)

        for size, chunk in ((1, None), (5, 3), (100, 17)):
            zc = ZeroCrossingDetector(stub(samples, chunk=chunk), sample_rate=1)
            assert drain(zc, size) == expected

    def test_tone_period(self, stub, drain):
        """Crossings of a 2400 Hz tone are one period apart."""
        t = np.arange(2000)
        samples = np.round(10000 * np.sin(2 * np.pi * 2400 * t / 44100 + 0.3)).astype(int).tolist()
        ts = drain(ZeroCrossingDetector(stub(samples), sample_rate=44100), 1024)

        periods = np.diff(ts)
        assert periods == pytest.approx(np.full(len(periods), 1 / 2400), rel=1e-3)

    def test_pulls_in_fixed_windows(self, stub, drain):
        upstream = stub([-1, 1] * 10)
        drain(ZeroCrossingDetector(upstream, sample_rate=1), 3)
        assert set(upstream.requests) == {ZeroCrossingDetector.WINDOW}

    def test_crossing_count(self, stub, drain):
        zc = ZeroCrossingDetector(stub([-1, 1] * 5), sample_rate=1)
        drain(zc, 2)
        assert zc.crossings == 5
