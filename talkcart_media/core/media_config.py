from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field

from talkcart_media.core.settings import Settings, settings as default_settings
from talkcart_media.services.media.errors import BYTES_PER_MB, ConfigurationError


@dataclass(frozen=True, slots=True)
class CloudinaryCredentials:
    cloud_name: str
    api_key: str
    api_secret: str

    def __repr__(self) -> str:
        return f"CloudinaryCredentials(cloud_name={self.cloud_name!r}, api_key=***, api_secret=***)"


@dataclass(frozen=True, slots=True)
class MediaConfig:
    """Process-wide media configuration, built once at startup and injected everywhere."""

    credentials: CloudinaryCredentials
    api_base_url: str
    delivery_host: str
    root_folder: str
    remote_timeout_seconds: float
    max_file_bytes: int
    max_field_bytes: int
    allowed_mime_types: frozenset[str]
    profile_picture_mime_types: frozenset[str]
    profile_picture_max_bytes: int
    relay_timeout_seconds: float
    relay_allowed_hosts: frozenset[str]
    relay_allowed_networks: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...]
    relay_cache_max_age_seconds: int
    environment: str = field(default="development")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "MediaConfig":
        cfg = source or default_settings

        missing = [
            name
            for name, value in (
                ("CLOUDINARY_CLOUD_NAME", cfg.cloudinary_cloud_name),
                ("CLOUDINARY_API_KEY", cfg.cloudinary_api_key),
                ("CLOUDINARY_API_SECRET", cfg.cloudinary_api_secret),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ConfigurationError(
                f"Missing media service credentials: {', '.join(missing)}",
                details={"missing": missing},
            )

        if cfg.upload_max_file_size_mb <= 0:
            raise ConfigurationError("UPLOAD_MAX_FILE_SIZE_MB must be positive")
        field_mb = cfg.upload_max_field_size_mb
        if field_mb is None:
            field_mb = max(200, cfg.upload_max_file_size_mb)
        if field_mb <= 0:
            raise ConfigurationError("UPLOAD_MAX_FIELD_SIZE_MB must be positive")
        if cfg.profile_picture_max_size_mb <= 0:
            raise ConfigurationError("PROFILE_PICTURE_MAX_SIZE_MB must be positive")
        if cfg.relay_timeout_seconds <= 0:
            raise ConfigurationError("RELAY_TIMEOUT_SECONDS must be positive")

        allowed = _normalize_mime_types(cfg.upload_allowed_mime_types)
        profile_allowed = _normalize_mime_types(cfg.profile_picture_allowed_mime_types)
        if not allowed or not profile_allowed:
            raise ConfigurationError("MIME allow-lists must not be empty")
        wildcards = sorted(t for t in allowed | profile_allowed if "*" in t)
        if wildcards:
            raise ConfigurationError(
                f"MIME allow-lists must enumerate types explicitly: {', '.join(wildcards)}"
            )

        try:
            networks = tuple(
                ipaddress.ip_network(value.strip(), strict=False)
                for value in cfg.relay_allowed_networks
                if value.strip()
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RELAY_ALLOWED_NETWORKS entry: {exc}") from exc

        return cls(
            credentials=CloudinaryCredentials(
                cloud_name=cfg.cloudinary_cloud_name.strip(),
                api_key=cfg.cloudinary_api_key.strip(),
                api_secret=cfg.cloudinary_api_secret.strip(),
            ),
            api_base_url=cfg.cloudinary_api_base_url.rstrip("/"),
            delivery_host=cfg.cloudinary_delivery_host.strip().strip("/"),
            root_folder=cfg.media_root_folder.strip("/"),
            remote_timeout_seconds=cfg.remote_timeout_seconds,
            max_file_bytes=cfg.upload_max_file_size_mb * BYTES_PER_MB,
            max_field_bytes=field_mb * BYTES_PER_MB,
            allowed_mime_types=allowed,
            profile_picture_mime_types=profile_allowed,
            profile_picture_max_bytes=cfg.profile_picture_max_size_mb * BYTES_PER_MB,
            relay_timeout_seconds=cfg.relay_timeout_seconds,
            relay_allowed_hosts=frozenset(
                host.strip().lower() for host in cfg.relay_allowed_hosts if host.strip()
            ),
            relay_allowed_networks=networks,
            relay_cache_max_age_seconds=cfg.relay_cache_max_age_seconds,
            environment=cfg.environment,
        )


def _normalize_mime_types(values: list[str]) -> frozenset[str]:
    return frozenset(value.strip().lower() for value in values if value and value.strip())
