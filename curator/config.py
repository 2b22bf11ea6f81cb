from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from curator.services.fingerprint import (
    DEFAULT_MIN_FINGERPRINT_SECONDS,
    DEFAULT_SIMILARITY_THRESHOLD,
)
from curator.services.decoder import DEFAULT_MAX_SECONDS, DEFAULT_SAMPLE_RATE


class Settings(BaseSettings):
    # Project directories
    music_library_dir: Path = Path("./music")
    app_data_dir: Path = Path("./data")
    database_filename: str = "library.db"

    # Fingerprint / duplicate policy
    similarity_threshold: int = DEFAULT_SIMILARITY_THRESHOLD
    min_fingerprint_seconds: float = DEFAULT_MIN_FINGERPRINT_SECONDS
    max_fingerprint_seconds: float = DEFAULT_MAX_SECONDS
    fingerprint_sample_rate: int = DEFAULT_SAMPLE_RATE

    scan_workers: int = 4

    # Server settings
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Feature flags
    enable_file_watcher: bool = True
    watcher_debounce_seconds: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def database_path(self) -> Path:
        return self.app_data_dir / self.database_filename


settings = Settings()
