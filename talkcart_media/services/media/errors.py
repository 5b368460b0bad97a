from __future__ import annotations

from typing import Any

BYTES_PER_MB = 1024 * 1024


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / BYTES_PER_MB:.2f}MB"


class MediaError(Exception):
    """Base class for every failure the media subsystem reports to callers."""

    code = "media_error"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(MediaError):
    code = "configuration_error"


class UploadValidationError(MediaError):
    code = "validation_failed"
    status_code = 400


class UnsupportedMediaTypeError(UploadValidationError):
    code = "unsupported_media_type"

    def __init__(self, mime_type: str, message: str | None = None) -> None:
        super().__init__(
            message or f"File type {mime_type} is not allowed",
            details={"mime_type": mime_type},
        )
        self.mime_type = mime_type


class PayloadTooLargeError(UploadValidationError):
    code = "payload_too_large"

    def __init__(self, message: str, *, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            message,
            details={
                "detail": f"Current size: {format_megabytes(size_bytes)}",
                "size_bytes": size_bytes,
                "limit_bytes": limit_bytes,
            },
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class MissingUploadError(UploadValidationError):
    code = "no_valid_content"

    def __init__(self, message: str = "No valid content delivered", *, detail: str | None = None) -> None:
        super().__init__(message, details={"detail": detail} if detail else None)


class RemoteStorageError(MediaError):
    """The remote media service rejected or failed an operation. Never retried here."""

    code = "remote_storage_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        provider_status: int | None = None,
        diagnostic: Any = None,
    ) -> None:
        super().__init__(
            message,
            details={
                "operation": operation,
                "provider_status": provider_status,
                "diagnostic": diagnostic,
            },
        )
        self.operation = operation
        self.provider_status = provider_status
        self.diagnostic = diagnostic


class InvalidTransformationError(ValueError):
    pass


class ProxyError(MediaError):
    code = "proxy_error"
    status_code = 502


class MalformedTargetError(ProxyError):
    code = "malformed_target"
    status_code = 400


class ForbiddenTargetError(ProxyError):
    code = "forbidden_target"
    status_code = 403


class RelayTimeoutError(ProxyError):
    code = "relay_timeout"
    status_code = 408


class UpstreamStatusError(ProxyError):
    code = "upstream_error"

    def __init__(self, upstream_status: int, reason: str = "") -> None:
        super().__init__(
            "Failed to fetch upstream resource",
            details={"status": upstream_status, "status_text": reason},
        )
        # Unfollowed redirects and other non-error statuses surface as a gateway failure
        self.status_code = upstream_status if upstream_status >= 400 else 502
        self.upstream_status = upstream_status


class RelayTransportError(ProxyError):
    code = "relay_transport_error"
    status_code = 502
