from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from curator.core.errors import UnreadableMetadata
from curator.models.track import TrackRecord
from curator.models.track_meta_data import TrackMetaData
from curator.services.decoder import DecodedAudio
from curator.services.fingerprint import compute_fingerprint

SAMPLE_RATE = 11025


def synth_audio(seed: int, seconds: float = 8.0, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Broadband test signal: a run of short noise bursts, each with its own spectral shape."""
    rng = np.random.default_rng(seed)
    note_count = max(1, int(seconds * 4))
    note_len = int(seconds * sample_rate) // note_count
    freqs = np.fft.rfftfreq(note_len, d=1.0 / sample_rate)
    anchors = np.geomspace(50.0, sample_rate / 2.0, 24)
    pieces = []
    for _ in range(note_count):
        gains = rng.uniform(0.05, 1.0, size=anchors.size)
        envelope = np.interp(freqs, anchors, gains)
        spectrum = np.fft.rfft(rng.standard_normal(note_len)) * envelope
        pieces.append(np.fft.irfft(spectrum, n=note_len))
    signal = np.concatenate(pieces)
    return 0.5 * signal / np.max(np.abs(signal))


def reencode(samples: np.ndarray, seed: int = 99, gain: float = 0.8, noise: float = 2e-4) -> np.ndarray:
    """Rough stand-in for a lossy transcode: level change plus low-level noise."""
    rng = np.random.default_rng(seed)
    return gain * samples + noise * rng.standard_normal(samples.size)


def make_record(
    track_id: int,
    path: str,
    seed: int = 1,
    metadata: TrackMetaData | None = None,
    **kwargs,
) -> TrackRecord:
    return TrackRecord(
        id=track_id,
        file_path=Path(path),
        fingerprint=compute_fingerprint(synth_audio(seed), SAMPLE_RATE),
        metadata=metadata or TrackMetaData(),
        **kwargs,
    )


class FakeLibrary:
    """In-memory stand-in for the tag reader and audio decoder collaborators."""

    def __init__(self):
        self.metadata: dict[Path, TrackMetaData] = {}
        self.audio: dict[Path, np.ndarray] = {}

    def add(self, path: str | Path, samples: np.ndarray, metadata: TrackMetaData | None = None) -> Path:
        path = Path(path)
        self.audio[path] = samples
        self.metadata[path] = metadata or TrackMetaData(codec="mp3")
        return path

    def remove(self, path: str | Path):
        path = Path(path)
        self.audio.pop(path, None)
        self.metadata.pop(path, None)

    def move(self, source: str | Path, destination: str | Path):
        source, destination = Path(source), Path(destination)
        self.audio[destination] = self.audio.pop(source)
        self.metadata[destination] = self.metadata.pop(source)

    def read_metadata(self, path: Path) -> TrackMetaData:
        if path not in self.metadata:
            raise UnreadableMetadata(path, "tag reader returned no data")
        return self.metadata[path]

    def decode(self, path: Path) -> DecodedAudio | None:
        if path not in self.audio:
            return None
        return DecodedAudio(samples=self.audio[path], sample_rate=SAMPLE_RATE)


@pytest.fixture
def fake_library() -> FakeLibrary:
    return FakeLibrary()
