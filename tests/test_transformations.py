import pytest

from talkcart_media.schemas.media import ResourceKind, UrlVariant
from talkcart_media.services.media.errors import InvalidTransformationError
from talkcart_media.services.media.transformations import UrlBuilder, build_url

BASE = "https://res.cloudinary.com/demo-cloud"

urls = UrlBuilder(cloud_name="demo-cloud")


def test_same_inputs_give_identical_urls() -> None:
    first = urls.build("clips/launch", "video", "preview_clip", {"duration": 5})
    second = urls.build("clips/launch", ResourceKind.VIDEO, UrlVariant.PREVIEW_CLIP, {"duration": 5})
    assert first == second


def test_video_thumbnail_defaults() -> None:
    url = urls.build("clips/launch", "video", "video_thumbnail")
    assert url == f"{BASE}/video/upload/c_fill,h_300,q_auto,w_400/clips/launch.jpg"


def test_video_thumbnail_custom_size_and_format() -> None:
    url = urls.build("clips/launch", "video", "video_thumbnail", {"width": 128, "height": 72, "format": "webp"})
    assert url == f"{BASE}/video/upload/c_fill,h_72,q_auto,w_128/clips/launch.webp"


def test_preview_clip_defaults() -> None:
    url = urls.build("clips/launch", "video", "preview_clip")
    assert url == f"{BASE}/video/upload/c_fill,du_10,h_400,q_auto,so_0,w_300/clips/launch.mp4"


def test_preview_clip_accepts_start_offset_alias() -> None:
    url = urls.build("clips/launch", "video", "preview_clip", {"startOffset": 2.5, "duration": 4})
    assert "so_2.5" in url
    assert "du_4" in url


def test_optimized_image_without_dimensions_has_no_crop() -> None:
    url = urls.build("talkcart/posts/pic", "image", "optimized_image")
    assert url == f"{BASE}/image/upload/f_auto,q_auto/talkcart/posts/pic"
    assert "c_" not in url


def test_optimized_image_with_width() -> None:
    url = urls.build("talkcart/posts/pic", "image", "optimized_image", {"width": 200, "quality": 80})
    assert url == f"{BASE}/image/upload/c_fill,f_auto,q_80,w_200/talkcart/posts/pic"


def test_optimized_image_explicit_format_becomes_extension() -> None:
    url = urls.build("pic", "image", "optimized_image", {"format": "png"})
    assert url == f"{BASE}/image/upload/q_auto/pic.png"


def test_optimized_video_streams_mp4() -> None:
    url = urls.build("clips/launch", "video", "optimized_video")
    assert url == f"{BASE}/video/upload/fl_streaming_attachment,q_auto/clips/launch.mp4"


def test_original_audio_uses_video_pipeline() -> None:
    assert urls.build("talkcart/song", "audio", "original") == f"{BASE}/video/upload/talkcart/song"


def test_identifier_is_quoted() -> None:
    assert urls.build("talkcart/été", "image", "original") == f"{BASE}/image/upload/talkcart/%C3%A9t%C3%A9"


def test_every_variant_is_https() -> None:
    cases = [
        ("pic", "image", "original"),
        ("pic", "image", "optimized_image"),
        ("clip", "video", "video_thumbnail"),
        ("clip", "video", "optimized_video"),
        ("clip", "video", "preview_clip"),
    ]
    for identifier, kind, variant in cases:
        assert urls.build(identifier, kind, variant).startswith("https://")


def test_custom_delivery_host() -> None:
    url = build_url("pic", "image", "original", cloud_name="demo-cloud", delivery_host="media.example.com")
    assert url == "https://media.example.com/demo-cloud/image/upload/pic"


def test_unknown_crop_rejected_without_dimensions() -> None:
    with pytest.raises(InvalidTransformationError):
        urls.build("pic", "image", "optimized_image", {"crop": "explode"})


def test_long_preview_durations_stay_fixed_point() -> None:
    url = urls.build("clips/launch", "video", "preview_clip", {"duration": 1000000, "start_offset": 0.25})
    assert "du_1000000," in url
    assert "so_0.25," in url
    assert "e+" not in url


@pytest.mark.parametrize(
    "identifier,kind,variant,options",
    [
        ("pic", "image", "video_thumbnail", None),
        ("clip", "video", "optimized_image", None),
        ("pic", "image", "optimized_image", {"width": -5}),
        ("pic", "image", "optimized_image", {"width": "wide"}),
        ("pic", "image", "optimized_image", {"crop": "explode"}),
        ("pic", "image", "optimized_image", {"blur": 300}),
        ("clip", "video", "video_thumbnail", {"format": "mp4"}),
        ("clip", "video", "optimized_video", {"format": "png"}),
        ("clip", "video", "preview_clip", {"duration": 0}),
        ("clip", "video", "preview_clip", {"start_offset": -1}),
        ("../etc/passwd", "image", "original", None),
        ("", "image", "original", None),
        ("pic", "document", "original", None),
        ("pic", "image", "sepia", None),
    ],
)
def test_invalid_inputs_raise(identifier, kind, variant, options) -> None:
    with pytest.raises(InvalidTransformationError):
        urls.build(identifier, kind, variant, options)


def test_invalid_transformation_is_a_value_error() -> None:
    assert issubclass(InvalidTransformationError, ValueError)
