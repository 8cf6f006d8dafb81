# core/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root: .../addons-webconfig
BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """
    Add-ons configurator settings.

    Reads from:
    - environment variables
    - .env in project root

    Goals:
    - sensible defaults for a device on its default USB-RNDIS address
    - normalize paths
    - clamp audio/timer values that would make playback misbehave
    """

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ---- Environment / server ----
    app_env: str = Field(default="development", validation_alias="APP_ENV")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")
    cors_allow_origins: Optional[str] = Field(default=None, validation_alias="CORS_ALLOW_ORIGINS")

    # ---- Device API ----
    device_base_url: str = Field(
        default="http://192.168.7.1",
        validation_alias=AliasChoices("DEVICE_BASE_URL", "DEVICE_URL"),
    )
    device_timeout_s: float = Field(default=5.0, validation_alias="DEVICE_TIMEOUT_S")

    # ---- Paths ----
    output_dir: Path = Field(default=Path("outputs"), validation_alias="OUTPUT_DIR")

    # ---- Buzzer preview ----
    preview_sample_rate: int = Field(default=22050, validation_alias="PREVIEW_SAMPLE_RATE")
    min_tick_ms: int = Field(default=1, validation_alias="MIN_TICK_MS")

    def model_post_init(self, __context) -> None:
        self.output_dir = self._abs_path(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.device_base_url = (self.device_base_url or "").strip().rstrip("/") or "http://192.168.7.1"

        if self.device_timeout_s <= 0:
            self.device_timeout_s = 5.0

        # Sample rate sanity: square waves up to DS8 (4978 Hz) need headroom
        if self.preview_sample_rate < 8000:
            self.preview_sample_rate = 22050

        if self.min_tick_ms < 1:
            self.min_tick_ms = 1

    @staticmethod
    def _abs_path(p: Path) -> Path:
        if p.is_absolute():
            return p
        return (BASE_DIR / p).resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
