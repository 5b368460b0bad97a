from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    RAW = "raw"

    @property
    def provider_type(self) -> str:
        # The remote service files audio under its video pipeline
        if self is ResourceKind.AUDIO:
            return "video"
        return self.value

    @classmethod
    def from_provider(cls, resource_type: str | None, *, is_audio: bool = False) -> "ResourceKind":
        if resource_type == "video" and is_audio:
            return cls.AUDIO
        try:
            return cls(resource_type or "raw")
        except ValueError:
            return cls.RAW


class UploadContext(str, Enum):
    GENERAL = "general"
    POST = "post"
    PROFILE_PICTURE = "profile_picture"
    MARKETPLACE_LISTING = "marketplace_listing"
    CHAT_ATTACHMENT = "chat_attachment"
    STREAM_THUMBNAIL = "stream_thumbnail"


class UrlVariant(str, Enum):
    ORIGINAL = "original"
    OPTIMIZED_IMAGE = "optimized_image"
    VIDEO_THUMBNAIL = "video_thumbnail"
    OPTIMIZED_VIDEO = "optimized_video"
    PREVIEW_CLIP = "preview_clip"


class Asset(BaseModel):
    identifier: str
    secure_url: str
    resource_kind: ResourceKind
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    byte_size: int = 0
    namespace: str = ""
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class PresetOptions(BaseModel):
    folder: Optional[str] = None
    resource_kind: Optional[ResourceKind] = Field(
        default=None, description="None lets the remote service detect the kind"
    )
    allowed_formats: Optional[List[str]] = None
    unsigned: bool = True

    @field_validator("allowed_formats")
    @classmethod
    def _normalize_formats(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        cleaned = [item.strip().lower().lstrip(".") for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("allowed_formats must not be empty")
        return cleaned


class PresetDescriptor(BaseModel):
    name: str
    folder: str
    resource_kind: str
    allowed_formats: List[str]
    unsigned: bool = True


class CreatePresetRequest(PresetOptions):
    name: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_\-]+$")


class UploadFromUrlRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    context: UploadContext = UploadContext.GENERAL
    field_name: str = Field(default="file", min_length=1, max_length=64)


class UploadFromBase64Request(BaseModel):
    data: str = Field(..., min_length=1, description="data:<mime>;base64,<payload>")
    context: UploadContext = UploadContext.GENERAL
    field_name: str = Field(default="file", min_length=1, max_length=64)


class BulkDeleteRequest(BaseModel):
    identifiers: List[str] = Field(..., min_length=1)
    resource_kind: ResourceKind = ResourceKind.IMAGE


class DeleteOutcome(BaseModel):
    identifier: Optional[str] = None
    resource_kind: ResourceKind
    outcome: Dict[str, Any]


class SearchResult(BaseModel):
    expression: str
    total: int
    assets: List[Asset]


class DeliveryUrl(BaseModel):
    identifier: str
    resource_kind: ResourceKind
    variant: UrlVariant
    url: str
