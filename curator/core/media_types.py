from pathlib import Path
from typing import FrozenSet

AUDIO_EXTENSIONS: FrozenSet[str] = frozenset({
    ".mp3",
    ".wav",
    ".flac",
    ".m4a",
    ".ogg",
    ".opus",
    ".aac",
})


def is_music_file(file_path: str | Path) -> bool:
    return Path(file_path).suffix.lower() in AUDIO_EXTENSIONS
