from pydantic import BaseModel, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import (
    DEFAULT_ACRCLOUD_HOST,
    DEFAULT_ARTIFACT_MAX_AGE_SECONDS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_RECOGNITION_MAX_BYTES,
    DEFAULT_RECOGNITION_MIN_BYTES,
    DEFAULT_WINDOW_COUNT,
    DEFAULT_WINDOW_LENGTH_SECONDS,
)


class PipelineSettings(BaseModel):
    window_length: int
    window_count: int
    max_asset_duration: int
    metadata_timeout: int
    window_fetch_timeout: int
    full_fetch_timeout: int
    split_timeout: int


class RecognitionSettings(BaseModel):
    host: str
    access_key: str
    access_secret: str
    concurrency: int
    batch_delay_ms: int
    timeout: int
    min_bytes: int
    max_bytes: int

    @property
    def configured(self) -> bool:
        return bool(self.access_key and self.access_secret)


class StorageSettings(BaseModel):
    artifacts_dir: str
    artifact_max_age: int
    cleanup_interval: int
    cache_ttl: int


class RateLimitsSettings(BaseModel):
    extract: str


class ServerSettings(BaseModel):
    host: str
    port: int
    debug: bool
    cors_origins: list[str]


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        validate_default=True,
        extra="ignore",
    )

    window_length: int = DEFAULT_WINDOW_LENGTH_SECONDS
    window_count: int = DEFAULT_WINDOW_COUNT
    max_asset_duration: int = 3600

    metadata_timeout: int = 60
    window_fetch_timeout: int = 120
    full_fetch_timeout: int = 600
    split_timeout: int = 120

    recognition_concurrency: int = 50
    recognition_batch_delay_ms: int = 50
    recognition_timeout: int = 10
    recognition_min_bytes: int = DEFAULT_RECOGNITION_MIN_BYTES
    recognition_max_bytes: int = DEFAULT_RECOGNITION_MAX_BYTES

    # ACRCloud identification service
    acrcloud_host: str = DEFAULT_ACRCLOUD_HOST
    acrcloud_access_key: str = ""
    acrcloud_access_secret: str = ""

    cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS
    artifacts_dir: str = "downloads"
    artifact_max_age: int = DEFAULT_ARTIFACT_MAX_AGE_SECONDS
    cleanup_interval: int = DEFAULT_CLEANUP_INTERVAL_SECONDS

    rate_limit_extract: str = "30 per minute"

    port: int = 5001
    debug: bool = False
    host: str = "0.0.0.0"
    cors_origins: str = "http://localhost:3000"

    @computed_field
    @property
    def pipeline(self) -> PipelineSettings:
        return PipelineSettings(
            window_length=self.window_length,
            window_count=self.window_count,
            max_asset_duration=self.max_asset_duration,
            metadata_timeout=self.metadata_timeout,
            window_fetch_timeout=self.window_fetch_timeout,
            full_fetch_timeout=self.full_fetch_timeout,
            split_timeout=self.split_timeout,
        )

    @computed_field
    @property
    def recognition(self) -> RecognitionSettings:
        return RecognitionSettings(
            host=self.acrcloud_host,
            access_key=self.acrcloud_access_key,
            access_secret=self.acrcloud_access_secret,
            concurrency=self.recognition_concurrency,
            batch_delay_ms=self.recognition_batch_delay_ms,
            timeout=self.recognition_timeout,
            min_bytes=self.recognition_min_bytes,
            max_bytes=self.recognition_max_bytes,
        )

    @computed_field
    @property
    def storage(self) -> StorageSettings:
        return StorageSettings(
            artifacts_dir=self.artifacts_dir,
            artifact_max_age=self.artifact_max_age,
            cleanup_interval=self.cleanup_interval,
            cache_ttl=self.cache_ttl,
        )

    @computed_field
    @property
    def rate_limits(self) -> RateLimitsSettings:
        return RateLimitsSettings(extract=self.rate_limit_extract)

    @computed_field
    @property
    def server(self) -> ServerSettings:
        return ServerSettings(
            host=self.host,
            port=self.port,
            debug=self.debug,
            cors_origins=[
                origin.strip() for origin in self.cors_origins.split(",") if origin.strip()
            ],
        )

    def validate_for_startup(self) -> list[str]:
        """Validate configuration values, returning non-fatal warnings"""
        errors = []
        warnings = []

        positive_settings = {
            "WINDOW_LENGTH": self.window_length,
            "WINDOW_COUNT": self.window_count,
            "MAX_ASSET_DURATION": self.max_asset_duration,
            "RECOGNITION_CONCURRENCY": self.recognition_concurrency,
            "RECOGNITION_TIMEOUT": self.recognition_timeout,
            "CACHE_TTL": self.cache_ttl,
            "ARTIFACT_MAX_AGE": self.artifact_max_age,
            "CLEANUP_INTERVAL": self.cleanup_interval,
        }
        for name, value in positive_settings.items():
            if value <= 0:
                errors.append(f"{name} must be positive (got {value})")

        if self.recognition_min_bytes >= self.recognition_max_bytes:
            errors.append("RECOGNITION_MIN_BYTES must be lower than RECOGNITION_MAX_BYTES")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

        if not self.recognition.configured:
            warnings.append(
                "ACRCLOUD_ACCESS_KEY / ACRCLOUD_ACCESS_SECRET not set - "
                "music identification will be skipped"
            )

        return warnings
