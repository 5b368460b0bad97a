"""Delivery URL derivation for stored assets.

Every function here is pure: identical arguments always produce byte-identical
URLs, and nothing touches the network. URLs are recomputed on demand and never
persisted, so they always reflect the current transformation rules.

The transformation clause is a comma-separated list of ``key_value`` tokens
sorted by key, e.g. ``c_fill,h_300,q_auto,w_400``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote

from talkcart_media.schemas.media import ResourceKind, UrlVariant
from talkcart_media.services.media.errors import InvalidTransformationError

DEFAULT_DELIVERY_HOST = "res.cloudinary.com"

CROP_MODES = frozenset(
    {"fill", "fit", "limit", "scale", "thumb", "crop", "pad", "lfill", "lpad", "mfit", "mpad", "fill_pad"}
)
STILL_IMAGE_FORMATS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "avif"})
VIDEO_CONTAINER_FORMATS = frozenset({"mp4", "webm", "mov", "ogv", "mkv", "avi", "flv", "m3u8", "mpd", "3gp"})
QUALITY_PRESETS = frozenset({"auto", "auto:best", "auto:good", "auto:eco", "auto:low"})

VARIANT_KINDS: dict[UrlVariant, frozenset[ResourceKind]] = {
    UrlVariant.ORIGINAL: frozenset(ResourceKind),
    UrlVariant.OPTIMIZED_IMAGE: frozenset({ResourceKind.IMAGE}),
    UrlVariant.VIDEO_THUMBNAIL: frozenset({ResourceKind.VIDEO}),
    UrlVariant.OPTIMIZED_VIDEO: frozenset({ResourceKind.VIDEO}),
    UrlVariant.PREVIEW_CLIP: frozenset({ResourceKind.VIDEO}),
}

VARIANT_OPTIONS: dict[UrlVariant, frozenset[str]] = {
    UrlVariant.ORIGINAL: frozenset(),
    UrlVariant.OPTIMIZED_IMAGE: frozenset({"width", "height", "quality", "format", "crop"}),
    UrlVariant.VIDEO_THUMBNAIL: frozenset({"width", "height", "quality", "format"}),
    UrlVariant.OPTIMIZED_VIDEO: frozenset({"width", "height", "quality", "format"}),
    UrlVariant.PREVIEW_CLIP: frozenset({"width", "height", "quality", "duration", "start_offset"}),
}

_OPTION_ALIASES = {"startOffset": "start_offset", "start": "start_offset"}


def _identifier(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidTransformationError("identifier is required")
    if cleaned.startswith("/") or ".." in cleaned.split("/") or any(ch.isspace() for ch in cleaned):
        raise InvalidTransformationError(f"Malformed identifier: {value!r}")
    return quote(cleaned, safe="/-_.")


def _dimension(name: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidTransformationError(f"{name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTransformationError(f"{name} must be a positive integer") from exc
    if number <= 0 or str(number) != str(value).strip():
        raise InvalidTransformationError(f"{name} must be a positive integer")
    return number


def _quality(value: Any) -> str:
    text = str(value).strip().lower()
    if text in QUALITY_PRESETS:
        return text
    if text.isdigit() and 1 <= int(text) <= 100:
        return str(int(text))
    raise InvalidTransformationError(f"quality must be 'auto' or an integer 1-100, got {value!r}")


def _format(value: Any) -> str:
    text = str(value).strip().lower().lstrip(".")
    if not text or not text.replace(":", "").isalnum():
        raise InvalidTransformationError(f"Malformed format: {value!r}")
    return text


def _seconds(name: str, value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTransformationError(f"{name} must be a number of seconds") from exc
    if number < 0 or number != number or number == float("inf"):
        raise InvalidTransformationError(f"{name} must be a non-negative number of seconds")
    # Fixed-point only; the delivery service does not parse exponents
    return f"{number:f}".rstrip("0").rstrip(".")


def _crop(value: Any) -> str:
    text = str(value).strip().lower()
    if text not in CROP_MODES:
        raise InvalidTransformationError(f"Unsupported crop mode: {value!r}")
    return text


def _clause(tokens: Mapping[str, str]) -> str:
    return ",".join(f"{key}_{tokens[key]}" for key in sorted(tokens))


def _compose(
    cloud_name: str,
    delivery_host: str,
    provider_type: str,
    identifier: str,
    tokens: Mapping[str, str],
    extension: str | None = None,
) -> str:
    if not cloud_name:
        raise InvalidTransformationError("cloud_name is required")
    parts = [f"https://{delivery_host}", cloud_name, provider_type, "upload"]
    clause = _clause(tokens)
    if clause:
        parts.append(clause)
    path = _identifier(identifier)
    if extension:
        path = f"{path}.{extension}"
    parts.append(path)
    return "/".join(parts)


def original_url(
    identifier: str,
    resource_kind: ResourceKind,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
) -> str:
    return _compose(cloud_name, delivery_host, ResourceKind(resource_kind).provider_type, identifier, {})


def optimized_image_url(
    identifier: str,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
    width: Any = None,
    height: Any = None,
    quality: Any = "auto",
    format: Any = "auto",
    crop: Any = "fill",
) -> str:
    tokens = {"q": _quality(quality)}
    crop_mode = _crop(crop)
    w = _dimension("width", width)
    h = _dimension("height", height)
    # Without requested dimensions the asset's native size is served as-is
    if w is not None or h is not None:
        tokens["c"] = crop_mode
    if w is not None:
        tokens["w"] = str(w)
    if h is not None:
        tokens["h"] = str(h)
    fmt = _format(format)
    extension = None
    if fmt == "auto":
        tokens["f"] = "auto"
    else:
        extension = fmt
    return _compose(cloud_name, delivery_host, "image", identifier, tokens, extension)


def video_thumbnail_url(
    identifier: str,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
    width: Any = 400,
    height: Any = 300,
    quality: Any = "auto",
    format: Any = "jpg",
) -> str:
    fmt = _format(format)
    if fmt not in STILL_IMAGE_FORMATS:
        raise InvalidTransformationError(f"Video thumbnails must use a still-image format, got {fmt!r}")
    tokens = {"c": "fill", "q": _quality(quality)}
    w = _dimension("width", width)
    h = _dimension("height", height)
    if w is not None:
        tokens["w"] = str(w)
    if h is not None:
        tokens["h"] = str(h)
    return _compose(cloud_name, delivery_host, "video", identifier, tokens, fmt)


def optimized_video_url(
    identifier: str,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
    quality: Any = "auto",
    format: Any = "mp4",
    width: Any = None,
    height: Any = None,
) -> str:
    fmt = _format(format)
    if fmt not in VIDEO_CONTAINER_FORMATS:
        raise InvalidTransformationError(f"Optimized video requires a video container format, got {fmt!r}")
    tokens = {"q": _quality(quality), "fl": "streaming_attachment"}
    w = _dimension("width", width)
    h = _dimension("height", height)
    if w is not None:
        tokens["w"] = str(w)
    if h is not None:
        tokens["h"] = str(h)
    return _compose(cloud_name, delivery_host, "video", identifier, tokens, fmt)


def preview_clip_url(
    identifier: str,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
    duration: Any = 10,
    start_offset: Any = 0,
    width: Any = 300,
    height: Any = 400,
    quality: Any = "auto",
) -> str:
    tokens = {
        "c": "fill",
        "q": _quality(quality),
        "so": _seconds("start_offset", start_offset),
        "du": _seconds("duration", duration),
    }
    if float(tokens["du"]) <= 0:
        raise InvalidTransformationError("duration must be greater than zero")
    w = _dimension("width", width)
    h = _dimension("height", height)
    if w is not None:
        tokens["w"] = str(w)
    if h is not None:
        tokens["h"] = str(h)
    return _compose(cloud_name, delivery_host, "video", identifier, tokens, "mp4")


def _normalize_options(variant: UrlVariant, options: Mapping[str, Any] | None) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in (options or {}).items():
        if value is None:
            continue
        name = _OPTION_ALIASES.get(key, key)
        if name not in VARIANT_OPTIONS[variant]:
            raise InvalidTransformationError(f"Option {key!r} is not supported by variant {variant.value}")
        normalized[name] = value
    return normalized


def build_url(
    identifier: str,
    resource_kind: ResourceKind | str,
    variant: UrlVariant | str,
    options: Mapping[str, Any] | None = None,
    *,
    cloud_name: str,
    delivery_host: str = DEFAULT_DELIVERY_HOST,
) -> str:
    try:
        kind = ResourceKind(resource_kind)
        chosen = UrlVariant(variant)
    except ValueError as exc:
        raise InvalidTransformationError(str(exc)) from exc
    if kind not in VARIANT_KINDS[chosen]:
        raise InvalidTransformationError(
            f"Variant {chosen.value} does not apply to {kind.value} assets"
        )
    opts = _normalize_options(chosen, options)
    target = {"cloud_name": cloud_name, "delivery_host": delivery_host}

    if chosen is UrlVariant.ORIGINAL:
        return original_url(identifier, kind, **target)
    if chosen is UrlVariant.OPTIMIZED_IMAGE:
        return optimized_image_url(identifier, **target, **opts)
    if chosen is UrlVariant.VIDEO_THUMBNAIL:
        return video_thumbnail_url(identifier, **target, **opts)
    if chosen is UrlVariant.OPTIMIZED_VIDEO:
        return optimized_video_url(identifier, **target, **opts)
    return preview_clip_url(identifier, **target, **opts)


@dataclass(frozen=True, slots=True)
class UrlBuilder:
    """Binds the delivery target so callers only pass asset and rendering inputs."""

    cloud_name: str
    delivery_host: str = DEFAULT_DELIVERY_HOST

    def build(
        self,
        identifier: str,
        resource_kind: ResourceKind | str,
        variant: UrlVariant | str,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        return build_url(
            identifier,
            resource_kind,
            variant,
            options,
            cloud_name=self.cloud_name,
            delivery_host=self.delivery_host,
        )
