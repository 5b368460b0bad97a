from __future__ import annotations

import base64
import binascii
import math
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from talkcart_media.core.media_config import MediaConfig
from talkcart_media.services.media.errors import (
    MissingUploadError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    UploadValidationError,
    format_megabytes,
)

# Leading-byte signatures for image types; content must match the declared MIME type.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/jpg": [b"\xff\xd8\xff"],
    "image/gif": [b"GIF87a", b"GIF89a"],
    "image/webp": [b"RIFF"],
}

_STORED_KIND_PREFIXES = frozenset({"image", "video", "audio"})

_DATA_URI_RE =re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?:;[\w.+-]+=[\w.+-]+)*;base64,(?P<payload>.*)$", re.S)


@dataclass(frozen=True, slots=True)
class UploadProfile:
    name: str
    allowed_mime_types: frozenset[str]
    max_file_bytes: int
    max_field_bytes: int
    max_files: int = 1
    too_large_message: str | None = None
    unsupported_message: str | None = None

    def check_mime_type(self, mime_type: str | None) -> str:
        normalized = (mime_type or "").split(";")[0].strip().lower()
        if normalized not in self.allowed_mime_types:
            shown = normalized or "unknown"
            message = None
            if self.unsupported_message:
                message = self.unsupported_message.format(mime_type=shown)
            raise UnsupportedMediaTypeError(shown, message)
        return normalized

    def check_size(self, size_bytes: int) -> None:
        if size_bytes > self.max_file_bytes:
            raise PayloadTooLargeError(
                self.too_large_message
                or (
                    f"File exceeds maximum allowed size of {self.max_file_bytes // (1024 * 1024)} MB "
                    f"(received {format_megabytes(size_bytes)})"
                ),
                size_bytes=size_bytes,
                limit_bytes=self.max_file_bytes,
            )

    @property
    def stored_kinds(self) -> frozenset[str]:
        """Resource kinds the remote service may file an admitted upload under."""
        kinds = set()
        for mime_type in self.allowed_mime_types:
            major = mime_type.split("/", 1)[0]
            kinds.add(major if major in _STORED_KIND_PREFIXES else "raw")
        return frozenset(kinds)

    def check_stored_kind(self, resource_kind: str, fmt: str | None) -> None:
        # Used where only the stored asset tells what the source was (URL uploads)
        if resource_kind in self.stored_kinds:
            return
        label = f"{resource_kind}/{fmt or 'unknown'}"
        message = None
        if self.unsupported_message:
            message = self.unsupported_message.format(mime_type=label)
        raise UnsupportedMediaTypeError(label, message)

    def check_field_size(self, size_bytes: int) -> None:
        if size_bytes > self.max_field_bytes:
            raise PayloadTooLargeError(
                f"Field exceeds maximum allowed size of {self.max_field_bytes // (1024 * 1024)} MB",
                size_bytes=size_bytes,
                limit_bytes=self.max_field_bytes,
            )


def general_profile(config: MediaConfig) -> UploadProfile:
    return UploadProfile(
        name="general",
        allowed_mime_types=config.allowed_mime_types,
        max_file_bytes=config.max_file_bytes,
        max_field_bytes=config.max_field_bytes,
    )


def profile_picture_profile(config: MediaConfig) -> UploadProfile:
    limit_mb = config.profile_picture_max_bytes // (1024 * 1024)
    return UploadProfile(
        name="profile_picture",
        allowed_mime_types=config.profile_picture_mime_types,
        max_file_bytes=config.profile_picture_max_bytes,
        # Pictures may arrive as base64, which is a third larger than the decoded file
        max_field_bytes=encoded_length(config.profile_picture_max_bytes),
        too_large_message=f"Profile picture must be less than {limit_mb}MB in size",
        unsupported_message=(
            "File type {mime_type} is not allowed for profile pictures. "
            "Only JPG, PNG, GIF, and WebP are supported."
        ),
    )


def encoded_length(size_bytes: int) -> int:
    return 4 * math.ceil(size_bytes / 3)


def check_magic_bytes(header: bytes, mime_type: str) -> None:
    signatures = _MAGIC_SIGNATURES.get(mime_type)
    if signatures is None:
        return
    if not any(header.startswith(sig) for sig in signatures):
        raise UploadValidationError(
            f"File content does not match the declared type {mime_type}",
            details={"mime_type": mime_type},
        )
    if mime_type == "image/webp" and header[8:12] != b"WEBP":
        raise UploadValidationError(
            f"File content does not match the declared type {mime_type}",
            details={"mime_type": mime_type},
        )


def check_remote_url(url: str) -> str:
    candidate = (url or "").strip()
    if not candidate:
        raise MissingUploadError(detail="A source URL is required")
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in {"http", "https"}:
        raise UploadValidationError("Source URL must use http or https")
    if not parsed.hostname:
        raise UploadValidationError("Source URL must include a hostname")
    if parsed.username or parsed.password:
        raise UploadValidationError("Source URL must not include embedded credentials")
    return candidate


def parse_data_uri(data: str, profile: UploadProfile) -> tuple[str, bytes]:
    """Validate a base64 data URI against *profile*; returns ``(mime_type, decoded bytes)``."""
    candidate = (data or "").strip()
    if not candidate:
        raise MissingUploadError(detail="A base64 payload is required")
    match = _DATA_URI_RE.match(candidate)
    if not match:
        raise UploadValidationError("Base64 uploads must be a data URI (data:<mime>;base64,<payload>)")
    mime_type = profile.check_mime_type(match.group("mime"))
    payload = re.sub(r"\s+", "", match.group("payload"))
    if not payload:
        raise MissingUploadError(detail="The base64 payload is empty")

    # Estimate the decoded size before allocating it
    estimated = len(payload) * 3 // 4 - payload[-2:].count("=")
    profile.check_size(estimated)
    profile.check_field_size(len(payload))
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UploadValidationError("Invalid base64 payload") from exc
    profile.check_size(len(decoded))
    check_magic_bytes(decoded[:16], mime_type)
    return mime_type, decoded
