"""RIPAUDIT global configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    env: str = "development"

    # Library
    library_dir: Path = Path("./library")
    reports_dir: Path = Path("./reports")
    audio_extensions: list[str] = [".wav", ".flac", ".ogg", ".aiff", ".aif", ".mp3"]

    model_config = {"env_prefix": "RIPAUDIT_"}


settings = Settings()
