"""
Shared fixtures for pipeline stage tests.
"""

import types

import pytest

from osiwave import ArraySource


class StubStage:
    """
    Upstream stand-in that hands out a fixed list of items.

    Each read returns at most `chunk` items, so window boundaries can be
    placed anywhere in the data. Requested sizes are recorded.
    """

    def __init__(self, items, chunk=None):
        self.items = list(items)
        self.chunk = chunk
        self.pos = 0
        self.requests = []

    def read(self, n):
        self.requests.append(n)
        if self.chunk is not None:
            n = min(n, self.chunk)
        block = self.items[self.pos:self.pos + n]
        self.pos += len(block)
        return block


class TrickleSource(ArraySource):
    """Audio source that never returns more than `chunk` samples per read."""

    def __init__(self, samples, chunk, **kwargs):
        super().__init__(samples, **kwargs)
        self.chunk = chunk

    def read_samples(self, nsamples):
        return super().read_samples(min(nsamples, self.chunk))


def _drain(stage, n):
    out = []
    while True:
        block = stage.read(n)
        if len(block) == 0:
            return out
        out.extend(block)


@pytest.fixture
def stub():
    """Factory for StubStage upstreams."""
    return StubStage


@pytest.fixture
def trickle():
    """Factory for TrickleSource audio sources."""
    return TrickleSource


@pytest.fixture
def drain():
    """Reads a stage to end of stream: drain(stage, n) -> list."""
    return _drain


@pytest.fixture
def fake_sounddevice():
    """Factory for a sounddevice stand-in whose device query raises `error`."""

    class PortAudioError(Exception):
        pass

    def make(error):
        def query_devices(device=None, kind=None):
            raise error

        return types.SimpleNamespace(PortAudioError=PortAudioError, query_devices=query_devices)

    make.PortAudioError = PortAudioError
    return make
