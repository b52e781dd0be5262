from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=True, alias="DEBUG")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Generative service (Gemini / Veo)
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    classifier_model: str = Field(default="gemini-2.5-flash", alias="CLASSIFIER_MODEL")
    image_model: str = Field(default="gemini-2.5-flash-image", alias="IMAGE_MODEL")
    video_model: str = Field(
        default="veo-3.1-fast-generate-preview", alias="VIDEO_MODEL"
    )
    genai_timeout: int = Field(default=120, alias="GENAI_TIMEOUT")

    # Classification queue (rate-limited classifier)
    classification_cooldown_seconds: float = Field(
        default=4.5, alias="CLASSIFICATION_COOLDOWN_SECONDS"
    )

    # Video long-running operation
    video_poll_interval_seconds: float = Field(
        default=10.0, alias="VIDEO_POLL_INTERVAL_SECONDS"
    )
    video_poll_timeout_seconds: float = Field(
        default=900.0, alias="VIDEO_POLL_TIMEOUT_SECONDS"
    )
    video_resolution: str = Field(default="720p", alias="VIDEO_RESOLUTION")

    # Redis (catalogue persistence)
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_password: str | None = Field(default=None, alias="REDIS_PASSWORD")
    redis_max_connections: int = Field(default=10, alias="REDIS_MAX_CONNECTIONS")

    # Storage (S3/R2)
    aws_access_key_id: str | None = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    aws_region: str = Field(default="ap-northeast-2", alias="AWS_REGION")
    s3_bucket_name: str = Field(default="creative-studio-media", alias="S3_BUCKET_NAME")


@lru_cache
def get_settings() -> Settings:
    return Settings()
