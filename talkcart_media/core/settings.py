from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_UPLOAD_MIME_TYPES = [
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    # Video
    "video/mp4",
    "video/mov",
    "video/quicktime",
    "video/avi",
    "video/x-msvideo",
    "video/x-matroska",
    "video/webm",
    "video/mpeg",
    "video/3gpp",
    "video/3gpp2",
    # Audio
    "audio/mp3",
    "audio/mpeg",
    "audio/wav",
    "audio/aac",
    "audio/ogg",
    "audio/webm",
]

DEFAULT_PROFILE_PICTURE_MIME_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]

CsvList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    cloudinary_cloud_name: str = Field(default="", alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str = Field(default="", alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: str = Field(default="", alias="CLOUDINARY_API_SECRET")
    cloudinary_api_base_url: str = Field(
        default="https://api.cloudinary.com/v1_1", alias="CLOUDINARY_API_BASE_URL"
    )
    cloudinary_delivery_host: str = Field(
        default="res.cloudinary.com", alias="CLOUDINARY_DELIVERY_HOST"
    )
    media_root_folder: str = Field(default="talkcart", alias="MEDIA_ROOT_FOLDER")
    remote_timeout_seconds: float = Field(default=60.0, alias="REMOTE_TIMEOUT_SECONDS")

    upload_max_file_size_mb: int = Field(default=200, alias="UPLOAD_MAX_FILE_SIZE_MB")
    # Unset means max(200, upload_max_file_size_mb)
    upload_max_field_size_mb: int | None = Field(default=None, alias="UPLOAD_MAX_FIELD_SIZE_MB")
    upload_allowed_mime_types: CsvList = Field(
        default_factory=lambda: list(DEFAULT_UPLOAD_MIME_TYPES),
        alias="UPLOAD_ALLOWED_MIME_TYPES",
    )
    profile_picture_allowed_mime_types: CsvList = Field(
        default_factory=lambda: list(DEFAULT_PROFILE_PICTURE_MIME_TYPES),
        alias="PROFILE_PICTURE_ALLOWED_MIME_TYPES",
    )
    profile_picture_max_size_mb: int = Field(default=15, alias="PROFILE_PICTURE_MAX_SIZE_MB")

    relay_timeout_seconds: float = Field(default=10.0, alias="RELAY_TIMEOUT_SECONDS")
    relay_allowed_hosts: CsvList = Field(
        default_factory=lambda: ["localhost"], alias="RELAY_ALLOWED_HOSTS"
    )
    relay_allowed_networks: CsvList = Field(
        default_factory=lambda: ["127.0.0.0/8", "::1/128"], alias="RELAY_ALLOWED_NETWORKS"
    )
    relay_cache_max_age_seconds: int = Field(default=3600, alias="RELAY_CACHE_MAX_AGE_SECONDS")

    allowed_origins: CsvList = Field(default_factory=lambda: ["*"], alias="ALLOWED_ORIGINS")
    rate_limit_per_minute: int = Field(default=120, alias="RATE_LIMIT_PER_MINUTE")
    upload_rate_limit_per_minute: int = Field(default=30, alias="UPLOAD_RATE_LIMIT_PER_MINUTE")
    relay_rate_limit_per_minute: int = Field(default=300, alias="RELAY_RATE_LIMIT_PER_MINUTE")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    enable_hsts: bool = Field(default=True, alias="ENABLE_HSTS")

    @field_validator(
        "upload_allowed_mime_types",
        "profile_picture_allowed_mime_types",
        "relay_allowed_hosts",
        "relay_allowed_networks",
        "allowed_origins",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
