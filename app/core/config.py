from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Nirman Public Works Tracker"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── OBJECT STORE ───────────
    object_store_backend: Literal["s3", "memory"] = "s3"
    s3_bucket: str = "nirman-works"
    s3_region: str = "ap-south-1"
    s3_public_base_url: str | None = None
    object_store_timeout_seconds: float = 30.0

    # ─────────── UPLOAD LIMITS ───────────
    max_upload_bytes: int = 10 * 1024 * 1024
    max_images_per_upload: int = 5

    # ─────────── WORKFLOW ───────────
    progress_write_max_retries: int = 3
    status_transitions_enforced: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
