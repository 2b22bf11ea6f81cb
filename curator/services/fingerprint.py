"""Content fingerprints for duplicate detection.

A fingerprint summarizes how the spectral shape of a recording changes over
time. The decoded signal is cut into ``FRAME_COUNT + 1`` equal segments and the
energy of each segment is measured in ``BAND_COUNT`` log-spaced bands. Every
bit records whether the energy difference between two neighbouring bands grew
or shrank from one segment to the next. Only signs of differences are kept,
so the result ignores playback gain and survives lossy re-encoding with few
flipped bits, while unrelated recordings land near half the bits apart.

Fingerprints are tuples of ``FINGERPRINT_WORDS`` unsigned 32-bit integers and
are compared by Hamming distance.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from curator.core.errors import FingerprintUnavailable
from curator.models.track import Fingerprint
from curator.services.decoder import DecodedAudio

logger = logging.getLogger(__name__)

FRAME_COUNT = 32
BAND_COUNT = 17
FINGERPRINT_BITS = FRAME_COUNT * (BAND_COUNT - 1)
FINGERPRINT_WORDS = FINGERPRINT_BITS // 32

MIN_FREQUENCY_HZ = 300.0
MAX_FREQUENCY_HZ = 5000.0
SILENCE_RATIO = 0.01
MIN_SEGMENT_SAMPLES = 64

# Policy defaults; both are overridable through Settings.
DEFAULT_SIMILARITY_THRESHOLD = 48
DEFAULT_MIN_FINGERPRINT_SECONDS = 2.0


def fingerprint_audio(
    audio: DecodedAudio | None,
    path: Path | None = None,
    min_seconds: float = DEFAULT_MIN_FINGERPRINT_SECONDS,
) -> Fingerprint:
    if audio is None:
        raise FingerprintUnavailable(path, "audio decoder returned no samples")
    return compute_fingerprint(audio.samples, audio.sample_rate, min_seconds=min_seconds, path=path)


def compute_fingerprint(
    samples: np.ndarray,
    sample_rate: int,
    min_seconds: float = DEFAULT_MIN_FINGERPRINT_SECONDS,
    path: Path | None = None,
) -> Fingerprint:
    if sample_rate <= 0:
        raise FingerprintUnavailable(path, f"invalid sample rate {sample_rate}")

    data = np.asarray(samples, dtype=np.float64)
    if data.ndim > 1:
        # (frames, channels) -> mono
        data = data.mean(axis=1)
    if data.size == 0:
        raise FingerprintUnavailable(path, "no samples")
    if not np.all(np.isfinite(data)):
        raise FingerprintUnavailable(path, "samples contain non-finite values")

    peak = float(np.max(np.abs(data)))
    if peak == 0.0:
        raise FingerprintUnavailable(path, "audio is silent")

    data = _trim_silence(data / peak)
    duration = data.size / float(sample_rate)
    if duration < min_seconds:
        raise FingerprintUnavailable(
            path, f"audio too short for a stable fingerprint ({duration:.2f}s < {min_seconds:.2f}s)"
        )
    if data.size < (FRAME_COUNT + 1) * MIN_SEGMENT_SAMPLES:
        raise FingerprintUnavailable(path, f"too few samples ({data.size})")

    energies = _band_energies(data, sample_rate)
    band_diffs = energies[:, :-1] - energies[:, 1:]
    bits = (band_diffs[1:] - band_diffs[:-1]) > 0
    return _pack_bits(bits)


def fingerprint_distance(a: Fingerprint, b: Fingerprint) -> int:
    if len(a) != len(b):
        raise ValueError(f"fingerprint length mismatch: {len(a)} != {len(b)}")
    return sum((x ^ y).bit_count() for x, y in zip(a, b))


def fingerprint_to_hex(fingerprint: Fingerprint) -> str:
    return "".join(f"{word:08x}" for word in fingerprint)


def fingerprint_from_hex(text: str) -> Fingerprint:
    if len(text) != FINGERPRINT_WORDS * 8:
        raise ValueError(f"fingerprint hex must be {FINGERPRINT_WORDS * 8} characters, got {len(text)}")
    return tuple(int(text[i:i + 8], 16) for i in range(0, len(text), 8))


def _trim_silence(data: np.ndarray) -> np.ndarray:
    loud = np.flatnonzero(np.abs(data) >= SILENCE_RATIO)
    if loud.size == 0:
        return data[:0]
    return data[loud[0]:loud[-1] + 1]


def _band_edges(sample_rate: int) -> np.ndarray:
    high = min(MAX_FREQUENCY_HZ, sample_rate / 2.0 * 0.95)
    low = min(MIN_FREQUENCY_HZ, high / 2.0)
    return np.geomspace(low, high, BAND_COUNT + 1)


def _band_energies(data: np.ndarray, sample_rate: int) -> np.ndarray:
    edges = _band_edges(sample_rate)
    rows = []
    for segment in np.array_split(data, FRAME_COUNT + 1):
        spectrum = np.abs(np.fft.rfft(segment * np.hanning(segment.size))) ** 2
        freqs = np.fft.rfftfreq(segment.size, d=1.0 / sample_rate)
        band_index = np.searchsorted(edges, freqs, side="right") - 1
        in_range = (band_index >= 0) & (band_index < BAND_COUNT)
        rows.append(np.bincount(band_index[in_range], weights=spectrum[in_range], minlength=BAND_COUNT))
    return np.vstack(rows)


def _pack_bits(bits: np.ndarray) -> Fingerprint:
    packed = np.packbits(bits.astype(np.uint8).ravel())
    words = packed.view(">u4")
    return tuple(int(word) for word in words)
