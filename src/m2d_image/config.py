"""Configuration management using pydantic-settings.

Loads from environment variables (prefixed with ``M2D_IMAGE_``) and .env file.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

FallbackImageType = Literal["png", "jpg", "bmp", "gif"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Attributes:
        scale: Oversampling factor used when re-encoding or rasterizing images.
        fallback_image_type: Format used for images DOCX cannot embed natively.
        max_w: Maximum image width on the page, in inches.
        max_h: Maximum image height on the page, in inches.
        placeholder: Optional image source (data URL, URL or path) used on errors.
        cache_enabled: Persist resolved images between runs.
        cache_salt: Extra value mixed into cache keys (e.g. a theme name).
        cache_max_age_minutes: Age after which persisted entries are swept.
        cache_dir: Directory holding the persistent image cache.
        fetch_timeout: HTTP timeout for image fetching in seconds.
        fetch_retries: Attempts made for a remote image on transport errors.
        fetch_backoff: Base delay in seconds between fetch attempts.
        base_url: Origin used to resolve relative image URLs.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Output logs in JSON format for production.
        log_file: Optional file receiving a rotated copy of the logs.

    """

    model_config = SettingsConfigDict(
        env_prefix="M2D_IMAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rendering
    scale: float = 3
    fallback_image_type: FallbackImageType = "png"
    max_w: float = 6.3
    max_h: float = 9.7
    placeholder: str | None = None

    # Caching
    cache_enabled: bool = True
    cache_salt: str | None = None
    cache_max_age_minutes: int = 7 * 24 * 60
    cache_dir: str = "./data/image-cache"

    # Fetching
    fetch_timeout: int = 30
    fetch_retries: int = 3
    fetch_backoff: float = 1.0
    base_url: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None

    @property
    def cache_path(self) -> Path:
        """Return the image cache directory as a Path object.

        Returns:
            Path: Resolved path to the image cache directory.

        """
        return Path(self.cache_dir)


# Global settings instance
settings = Settings()
