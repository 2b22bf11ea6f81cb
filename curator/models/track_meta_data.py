from pydantic import BaseModel

TAG_FIELDS: tuple[str, ...] = (
    "title",
    "artist",
    "album",
    "album_artist",
    "year",
    "date",
    "genre",
    "track_number",
    "disc_number",
    "duration",
)


class TrackMetaData(BaseModel):
    # None means the source did not report the field; "" is a present, empty tag.
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    album_artist: str | None = None
    year: int | None = None
    date: str | None = None

    genre: str | None = None
    track_number: int | None = None
    disc_number: int | None = None

    duration: float | None = None

    codec: str | None = None
    bitrate_kbps: float | None = None
    sample_rate_hz: int | None = None
    channels: int | None = None

    def has_audio_properties(self) -> bool:
        return not (
            self.codec is None
            and self.duration is None
            and self.bitrate_kbps is None
            and self.sample_rate_hz is None
            and self.channels is None
        )

    def quality(self) -> tuple[float, int]:
        """Audio quality as (bitrate kbps, sample rate); unknown values rank lowest."""
        return (self.bitrate_kbps or 0.0, self.sample_rate_hz or 0)

    def tags(self) -> dict:
        return {name: getattr(self, name) for name in TAG_FIELDS}
