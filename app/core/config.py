"""
Application configuration using Pydantic Settings
"""

import os
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # API Settings
    api_title: str = "Sticker Pack Delivery API"
    api_description: str = "Downloads, archives, caches and delivers sticker packs"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Logging Settings
    log_level: str = "INFO"
    log_format: str = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    log_file: str = "data/app.log"

    # Bot API Settings
    bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    proxy_url: Optional[str] = None
    api_request_timeout: int = 180  # 3 minutes

    # Download Settings
    download_timeout: int = 180
    download_batch_size: int = 10
    # Extra attempts per sticker inside its own batch slot (0 = single attempt)
    download_member_retries: int = 0
    download_chunk_size: int = 8192

    # Storage Settings
    data_dir: str = "data"
    cache_dir: str = "data/cache"
    cache_max_age_days: float = 7.0
    cache_sweep_on_startup: bool = True

    # Temporary Directory Settings
    temp_dir_prefix: str = "tmp_pack_"
    temp_cleanup_age_hours: float = 1.0

    # Archive Settings
    max_archive_size_mb: float = 50.0
    archive_warn_size_mb: float = 45.0
    archive_compression_level: int = 9

    # FFmpeg Settings (webm -> animated webp)
    ffmpeg_binary_path: str = "ffmpeg"
    ffmpeg_timeout: int = 120
    webp_quality: int = 80
    webp_compression_level: int = 6
    conversion_pacing_delay: float = 0.5

    # Delivery Settings
    delivery_max_attempts: int = 3
    delivery_retry_backoff: float = 5.0  # 5s, 10s, 20s ...
    delivery_max_backoff: float = 60.0
    delivery_timeout: int = 300

    # Pull link Settings ("cache" or "s3")
    pull_link_backend: str = "cache"
    public_base_url: str = "http://localhost:8000"

    # AWS S3 Settings
    aws_s3_bucket: str = ""
    aws_s3_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_s3_prefix: str = "stickers/"  # S3 object key prefix for uploads
    """
    AWS S3 configuration for the pull-link fallback.
    aws_s3_bucket: S3 bucket name
    aws_s3_region: S3 region
    aws_access_key_id: AWS access key
    aws_secret_access_key: AWS secret key
    """

    # Usage Statistics Settings
    stats_file: str = "data/statistics.json"
    stats_history_limit: int = 100
    stats_recent_count: int = 10

    # Job Store Settings
    job_store_file: str = "data/job_store.json"

    # Security Settings
    request_timeout: int = 600  # cache lookup through cache put; delivery has its own budget
    max_concurrent_requests: int = 10

    @field_validator("pull_link_backend")
    @classmethod
    def parse_pull_link_backend(cls, v):
        """Normalize the pull link backend name.

        Example:
            >>> parse_pull_link_backend(" S3 ")
            's3'
        """
        backend = str(v or "cache").strip().lower()
        if backend not in ("cache", "s3"):
            raise ValueError(f"Unsupported pull_link_backend: {v}")
        return backend

    @property
    def effective_proxy_url(self) -> Optional[str]:
        """Explicit proxy_url, else the conventional proxy environment variables."""
        if self.proxy_url:
            return self.proxy_url
        for key in ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"):
            if os.getenv(key):
                return os.getenv(key)
        return None

    @property
    def max_archive_size_bytes(self) -> int:
        return int(self.max_archive_size_mb * 1024 * 1024)

    @property
    def cache_max_age_seconds(self) -> float:
        return self.cache_max_age_days * 24 * 60 * 60

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()
