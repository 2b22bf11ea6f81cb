import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 11025
DEFAULT_MAX_SECONDS = 120.0


@dataclass(frozen=True)
class DecodedAudio:
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / float(self.sample_rate)


def decode_audio(
    file_path: Path,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    max_seconds: float = DEFAULT_MAX_SECONDS,
) -> DecodedAudio | None:
    """Decode the start of a file to mono float samples in [-1, 1] using ffmpeg."""
    try:
        completed_process = subprocess.run(
            [
                "ffmpeg",
                "-v", "error",
                "-hide_banner",
                "-nostdin",
                "-i", str(file_path),
                "-t", str(max_seconds),
                "-vn",
                "-ac", "1",
                "-ar", str(sample_rate),
                "-f", "s16le",
                "-acodec", "pcm_s16le",
                "-",
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except FileNotFoundError:
        logger.error("ffmpeg not found")
        return None
    except OSError as e:
        logger.warning(f"ffmpeg failed for {file_path}: {e}")
        return None

    if completed_process.returncode != 0:
        return None

    raw = completed_process.stdout or b""
    # Odd trailing byte means a truncated final sample.
    raw = raw[: len(raw) - (len(raw) % 2)]
    pcm = np.frombuffer(raw, dtype="<i2")
    samples = pcm.astype(np.float64) / 32768.0
    return DecodedAudio(samples=samples, sample_rate=sample_rate)
