from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env")

    app_name: str = "AI Background Remover"
    storage_root: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "background_remover"
    )
    download_dir_name: str = "downloads"
    rembg_model_name: str = "u2net"
    removal_timeout: float = 120.0  # seconds
    max_upload_bytes: int = 20 * 1024 * 1024
    prefetch_samples: bool = True
    sample_fetch_timeout: float = 30.0  # seconds
    log_level: str = "INFO"

    @property
    def download_dir(self) -> Path:
        return self.storage_root / self.download_dir_name

    def ensure_directories(self) -> None:
        for directory in (self.storage_root, self.download_dir):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
