from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

import curator.services.fingerprint as fingerprint
from curator.core.errors import FingerprintUnavailable
from curator.services.decoder import DecodedAudio

from conftest import SAMPLE_RATE, reencode, synth_audio


class TestComputeFingerprint:
    def test_compute_fingerprint__same_samples_twice__identical(self):
        samples = synth_audio(seed=1)

        first = fingerprint.compute_fingerprint(samples, SAMPLE_RATE)
        second = fingerprint.compute_fingerprint(samples.copy(), SAMPLE_RATE)

        assert first == second

    def test_compute_fingerprint__fixed_length__words_and_bits(self):
        fp = fingerprint.compute_fingerprint(synth_audio(seed=2), SAMPLE_RATE)

        assert len(fp) == fingerprint.FINGERPRINT_WORDS
        assert fingerprint.FINGERPRINT_BITS == 512
        assert all(0 <= word < 2**32 for word in fp)

    def test_compute_fingerprint__gain_change__identical(self):
        samples = synth_audio(seed=3)

        loud = fingerprint.compute_fingerprint(samples, SAMPLE_RATE)
        quiet = fingerprint.compute_fingerprint(samples * 0.25, SAMPLE_RATE)

        assert loud == quiet

    def test_compute_fingerprint__lossy_copy__within_threshold(self):
        samples = synth_audio(seed=4)

        original = fingerprint.compute_fingerprint(samples, SAMPLE_RATE)
        copy = fingerprint.compute_fingerprint(reencode(samples), SAMPLE_RATE)

        assert fingerprint.fingerprint_distance(original, copy) <= fingerprint.DEFAULT_SIMILARITY_THRESHOLD

    def test_compute_fingerprint__leading_silence__ignored(self):
        samples = synth_audio(seed=5)
        padded = np.concatenate([np.zeros(SAMPLE_RATE), samples, np.zeros(SAMPLE_RATE // 2)])

        assert fingerprint.compute_fingerprint(samples, SAMPLE_RATE) == fingerprint.compute_fingerprint(
            padded, SAMPLE_RATE
        )

    def test_compute_fingerprint__different_recordings__beyond_threshold(self):
        a = fingerprint.compute_fingerprint(synth_audio(seed=6), SAMPLE_RATE)
        b = fingerprint.compute_fingerprint(synth_audio(seed=7), SAMPLE_RATE)

        assert fingerprint.fingerprint_distance(a, b) > fingerprint.DEFAULT_SIMILARITY_THRESHOLD

    def test_compute_fingerprint__stereo_input__downmixed(self):
        mono = synth_audio(seed=8)
        stereo = np.column_stack([mono, mono])

        assert fingerprint.compute_fingerprint(stereo, SAMPLE_RATE) == fingerprint.compute_fingerprint(
            mono, SAMPLE_RATE
        )

    def test_compute_fingerprint__too_short__raises_fingerprint_unavailable(self):
        short = synth_audio(seed=9, seconds=1.5)

        with pytest.raises(FingerprintUnavailable) as exc_info:
            fingerprint.compute_fingerprint(short, SAMPLE_RATE, path=Path("short.mp3"))

        assert exc_info.value.path == Path("short.mp3")
        assert "too short" in exc_info.value.reason

    def test_compute_fingerprint__custom_min_seconds__accepts_short_audio(self):
        short = synth_audio(seed=9, seconds=1.5)

        fp = fingerprint.compute_fingerprint(short, SAMPLE_RATE, min_seconds=1.0)

        assert len(fp) == fingerprint.FINGERPRINT_WORDS

    @pytest.mark.parametrize(
        "samples",
        [
            np.array([]),
            np.zeros(SAMPLE_RATE * 5),
            np.array([0.1, np.nan] * SAMPLE_RATE * 3),
        ],
        ids=["empty", "silent", "nan"],
    )
    def test_compute_fingerprint__unusable_samples__raises_fingerprint_unavailable(self, samples):
        with pytest.raises(FingerprintUnavailable):
            fingerprint.compute_fingerprint(samples, SAMPLE_RATE)

    def test_compute_fingerprint__invalid_sample_rate__raises_fingerprint_unavailable(self):
        with pytest.raises(FingerprintUnavailable):
            fingerprint.compute_fingerprint(synth_audio(seed=1), 0)


class TestFingerprintAudio:
    def test_fingerprint_audio__decoder_returned_none__raises_fingerprint_unavailable(self):
        with pytest.raises(FingerprintUnavailable) as exc_info:
            fingerprint.fingerprint_audio(None, path=Path("broken.flac"))

        assert exc_info.value.path == Path("broken.flac")

    def test_fingerprint_audio__decoded_audio__matches_compute_fingerprint(self):
        samples = synth_audio(seed=10)
        audio = DecodedAudio(samples=samples, sample_rate=SAMPLE_RATE)

        assert fingerprint.fingerprint_audio(audio) == fingerprint.compute_fingerprint(samples, SAMPLE_RATE)


class TestFingerprintDistance:
    def test_fingerprint_distance__identical__zero(self):
        fp = (0xFFFFFFFF,) * fingerprint.FINGERPRINT_WORDS
        assert fingerprint.fingerprint_distance(fp, fp) == 0

    def test_fingerprint_distance__counts_differing_bits(self):
        a = (0,) * fingerprint.FINGERPRINT_WORDS
        b = (0b1011,) + (0,) * (fingerprint.FINGERPRINT_WORDS - 2) + (0x80000000,)

        assert fingerprint.fingerprint_distance(a, b) == 4
        assert fingerprint.fingerprint_distance(b, a) == 4

    def test_fingerprint_distance__length_mismatch__raises_value_error(self):
        with pytest.raises(ValueError):
            fingerprint.fingerprint_distance((1, 2), (1, 2, 3))


class TestFingerprintHex:
    def test_fingerprint_hex__round_trip__preserves_words(self):
        fp = fingerprint.compute_fingerprint(synth_audio(seed=11), SAMPLE_RATE)

        text = fingerprint.fingerprint_to_hex(fp)

        assert len(text) == fingerprint.FINGERPRINT_WORDS * 8
        assert fingerprint.fingerprint_from_hex(text) == fp

    def test_fingerprint_from_hex__wrong_length__raises_value_error(self):
        with pytest.raises(ValueError):
            fingerprint.fingerprint_from_hex("abc")
