"""Application configuration using Pydantic BaseSettings."""

import tempfile
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """transcodewatch configuration loaded from environment variables."""

    model_config = {"env_prefix": "TRANSCODEWATCH_", "env_file": ".env", "extra": "ignore"}

    # Executable
    ffmpeg_path: str = "ffmpeg"
    ffmpeg_archive: Path | None = None
    global_arguments: str = "-nostdin -y -loglevel info"

    # Supervision
    default_timeout_ms: int | None = None
    accepted_exit_codes: list[int] = [0, 1]
    error_excerpt_chars: int = 1000
    kill_reap_seconds: float = 5.0
    reader_grace_seconds: float = 0.1
    read_chunk_size: int = 4096
    encoding: str = "utf-8"

    # Provisioning lock
    lock_name: str = "transcodewatch.engine.lock"
    lock_dir: Path = Path(tempfile.gettempdir())


def get_settings() -> Settings:
    """Return settings instance."""
    return Settings()
