import json
import logging
import subprocess
import unicodedata
from pathlib import Path

from curator.core.errors import UnreadableMetadata
from curator.models.track_meta_data import TrackMetaData

logger = logging.getLogger(__name__)

STRING_TAGS = {
    "title": "title",
    "artist": "artist",
    "album": "album",
    "album_artist": "album_artist",
    "albumartist": "album_artist",
    "genre": "genre",
    "date": "date",
}


def read_track_metadata(file_path: Path) -> TrackMetaData:
    json_data = ffprobe_for_metadata(file_path)
    if json_data is None:
        raise UnreadableMetadata(file_path, "tag reader returned no data")
    return extract_metadata(file_path, json_data)


def ffprobe_for_metadata(file_path: Path) -> dict | None:
    try:
        completed_process = subprocess.run(
            [
                "ffprobe",
                "-v", "error",
                "-hide_banner",
                "-show_streams",
                "-show_format",
                "-of", "json",
                str(file_path),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        logger.error("ffprobe not found")
        return None
    except OSError as e:
        logger.warning(f"ffprobe failed for {file_path}: {e}")
        return None

    if completed_process.returncode != 0:
        return None

    try:
        return json.loads(completed_process.stdout or "{}")
    except json.JSONDecodeError:
        return None


def extract_metadata(file_path: Path, json_data: object) -> TrackMetaData:
    """
    Normalize raw tag reader output into a TrackMetaData.

    Tags the source does not report stay None. An explicitly empty tag is kept
    as "" so reconciliation can tell "unknown" apart from "empty".
    """
    if not isinstance(json_data, dict):
        raise UnreadableMetadata(file_path, "tag data is not a mapping")

    format_section = json_data.get("format") or {}
    streams = json_data.get("streams") or []
    if not isinstance(format_section, dict) or not isinstance(streams, list):
        raise UnreadableMetadata(file_path, "malformed tag data")

    raw_tags = format_section.get("tags", {})
    if not isinstance(raw_tags, dict):
        raise UnreadableMetadata(file_path, "malformed tags section")

    audio_stream = None
    for stream in streams:
        if isinstance(stream, dict) and stream.get("codec_type") == "audio":
            audio_stream = stream
            break

    if audio_stream is None:
        raise UnreadableMetadata(file_path, "no audio stream")

    # Some containers store tags on the stream instead of the format.
    stream_tags = audio_stream.get("tags", {})
    tags = {}
    if isinstance(stream_tags, dict):
        tags.update({str(k).lower(): v for k, v in stream_tags.items()})
    tags.update({str(k).lower(): v for k, v in raw_tags.items()})

    metadata = TrackMetaData()

    codec = audio_stream.get("codec_name")
    metadata.codec = clean_text(codec) if codec is not None else None
    metadata.duration = _parse_float(audio_stream.get("duration"))
    if metadata.duration is None:
        metadata.duration = _parse_float(format_section.get("duration"))

    bit_rate = _parse_float(audio_stream.get("bit_rate"))
    if bit_rate is None:
        bit_rate = _parse_float(format_section.get("bit_rate"))
    metadata.bitrate_kbps = bit_rate / 1000.0 if bit_rate is not None else None

    metadata.sample_rate_hz = _parse_int(audio_stream.get("sample_rate"))
    metadata.channels = _parse_int(audio_stream.get("channels"))

    for key, field in STRING_TAGS.items():
        if key in tags and getattr(metadata, field) is None:
            setattr(metadata, field, clean_text(tags[key]))

    metadata.year = _parse_year(metadata.date)
    metadata.track_number = _parse_track_number(tags.get("track")) if "track" in tags else None
    metadata.disc_number = _parse_track_number(tags.get("disc")) if "disc" in tags else None

    return metadata


def clean_text(value: object) -> str:
    """Drop control and format characters (stray \\r, BOMs, etc.) and trim whitespace."""
    text = str(value)
    text = "".join(ch for ch in text if unicodedata.category(ch) not in ("Cc", "Cf"))
    return text.strip()


def _parse_float(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _parse_int(value: object) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def _parse_year(date_val: object) -> int | None:
    """
    Best-effort year extraction from ffprobe date tags.
    Common values: "2021", "2021-06-01", sometimes numeric.
    """
    if date_val is None:
        return None
    if isinstance(date_val, int):
        return date_val
    if not isinstance(date_val, str):
        return None
    if not date_val.strip():
        return None
    try:
        return int(date_val.split("-")[0])
    except (ValueError, TypeError):
        return None


def _parse_track_number(track_val: object) -> int | None:
    """
    Best-effort parsing from ffprobe track tags.
    Common values: "1", "1/12", sometimes numeric.
    """
    if track_val is None:
        return None
    if isinstance(track_val, int):
        return track_val
    if not isinstance(track_val, str):
        return None
    if not track_val.strip():
        return None
    try:
        return int(track_val.split("/")[0])
    except (ValueError, TypeError):
        return None
