import base64
from urllib.parse import unquote_plus

import pytest

from conftest import JPEG_HEADER, PNG_HEADER, FakeUpload, asset_payload, make_config
from talkcart_media.schemas.media import ResourceKind, UploadContext
from talkcart_media.services.media.errors import (
    MissingUploadError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    UploadValidationError,
)
from talkcart_media.services.media.gateway import UploadGateway

MB = 1024 * 1024


def _form(request) -> str:
    return unquote_plus(request.content.decode())


@pytest.mark.asyncio
async def test_general_upload_of_5mb_png(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload(size=5 * MB))
    upload = FakeUpload(PNG_HEADER + b"\x00" * (5 * MB - len(PNG_HEADER)))

    asset = await media_services.gateway.admit_file(UploadContext.GENERAL, "file", upload)

    assert asset.resource_kind is ResourceKind.IMAGE
    assert asset.format == "png"
    assert asset.byte_size == 5 * MB
    assert upload.closed is True
    [request] = fake_remote.calls("POST", "auto/upload")
    assert b"Content-Type: image/png" in request.content
    assert b'name="folder"\r\n\r\ntalkcart\r\n' in request.content
    assert b'name="public_id"\r\n\r\nfile_' in request.content


@pytest.mark.asyncio
async def test_profile_picture_declared_size_rejected_before_reading(media_services, fake_remote) -> None:
    upload = FakeUpload(PNG_HEADER, filename="me.png", size=20 * MB)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await media_services.gateway.admit_file(UploadContext.PROFILE_PICTURE, "profilePicture", upload)

    assert exc_info.value.message == "Profile picture must be less than 15MB in size"
    assert exc_info.value.details["detail"] == "Current size: 20.00MB"
    assert fake_remote.requests == []


@pytest.mark.asyncio
async def test_profile_picture_realized_size_wins_over_declared(media_services, fake_remote) -> None:
    content = PNG_HEADER + b"\x00" * (16 * MB)
    upload = FakeUpload(content, filename="me.png", size=1024)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await media_services.gateway.admit_file(UploadContext.PROFILE_PICTURE, "profilePicture", upload)

    assert exc_info.value.size_bytes == len(content)
    assert upload.closed is True
    assert fake_remote.requests == []


@pytest.mark.asyncio
async def test_disallowed_mime_type_is_named_and_not_stored(media_services, fake_remote) -> None:
    upload = FakeUpload(b"MZ\x90\x00", filename="tool.exe", content_type="application/x-msdownload")

    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        await media_services.gateway.admit_file(UploadContext.GENERAL, "file", upload)

    assert "application/x-msdownload" in exc_info.value.message
    assert fake_remote.requests == []


@pytest.mark.asyncio
async def test_missing_and_empty_uploads(media_services) -> None:
    with pytest.raises(MissingUploadError):
        await media_services.gateway.admit_file(UploadContext.GENERAL, "file", None)
    with pytest.raises(MissingUploadError):
        await media_services.gateway.admit_file(UploadContext.GENERAL, "file", FakeUpload(b""))


@pytest.mark.asyncio
async def test_content_must_match_declared_type(media_services, fake_remote) -> None:
    upload = FakeUpload(JPEG_HEADER, filename="fake.png", content_type="image/png")

    with pytest.raises(UploadValidationError):
        await media_services.gateway.admit_file(UploadContext.POST, "file", upload)
    assert fake_remote.requests == []


@pytest.mark.asyncio
async def test_marketplace_upload_bounds_dimensions(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/marketplace/file_1_a"))

    await media_services.gateway.admit_file("marketplace_listing", "file", FakeUpload(PNG_HEADER))

    [request] = fake_remote.calls("POST", "auto/upload")
    assert b"talkcart/marketplace" in request.content
    assert b"c_limit,h_800,w_800/f_auto,q_auto" in request.content


@pytest.mark.asyncio
async def test_unknown_context_rejected(media_services) -> None:
    with pytest.raises(UploadValidationError):
        await media_services.gateway.admit_file("billboard", "file", FakeUpload(PNG_HEADER))


@pytest.mark.asyncio
async def test_url_upload_sends_source_url(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/posts/file_1_a"))

    asset = await media_services.gateway.admit_url(UploadContext.POST, "https://cdn.example.com/a.png")

    assert asset.identifier == "talkcart/posts/file_1_a"
    [request] = fake_remote.calls("POST", "auto/upload")
    form = _form(request)
    assert "file=https://cdn.example.com/a.png" in form
    assert "folder=talkcart/posts" in form


@pytest.mark.asyncio
async def test_url_profile_picture_that_is_not_an_image_is_removed(media_services, fake_remote) -> None:
    fake_remote.on(
        "POST",
        "auto/upload",
        json=asset_payload("talkcart/profile-pictures/p_1_a", resource_type="video", fmt="mp4"),
    )
    fake_remote.on("POST", "video/destroy", json={"result": "ok"})

    with pytest.raises(UnsupportedMediaTypeError):
        await media_services.gateway.admit_url(
            UploadContext.PROFILE_PICTURE, "https://cdn.example.com/clip.mp4", "profilePicture"
        )

    [destroy] = fake_remote.calls("POST", "video/destroy")
    assert "public_id=talkcart/profile-pictures/p_1_a" in _form(destroy)


@pytest.mark.asyncio
async def test_url_profile_picture_over_limit_is_removed(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/profile-pictures/p_1_a", size=20 * MB))
    fake_remote.on("POST", "image/destroy", json={"result": "ok"})

    with pytest.raises(PayloadTooLargeError):
        await media_services.gateway.admit_url(UploadContext.PROFILE_PICTURE, "https://cdn.example.com/big.png")

    assert len(fake_remote.calls("POST", "image/destroy")) == 1


@pytest.mark.asyncio
async def test_base64_upload(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/chat/file_1_a"))
    data = "data:image/png;base64," + base64.b64encode(PNG_HEADER).decode()

    asset = await media_services.gateway.admit_base64(UploadContext.CHAT_ATTACHMENT, data)

    assert asset.namespace == "talkcart/chat"
    [request] = fake_remote.calls("POST", "auto/upload")
    assert "file=data:image/png;base64," in _form(request)


@pytest.mark.asyncio
async def test_url_upload_stored_as_raw_file_is_removed(media_services, fake_remote) -> None:
    fake_remote.on(
        "POST",
        "auto/upload",
        json=asset_payload("talkcart/file_1_a", resource_type="raw", fmt="zip"),
    )
    fake_remote.on("POST", "raw/destroy", json={"result": "ok"})

    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        await media_services.gateway.admit_url(UploadContext.GENERAL, "https://cdn.example.com/a.zip")

    assert exc_info.value.mime_type == "raw/zip"
    assert "raw/zip" in exc_info.value.message
    [destroy] = fake_remote.calls("POST", "raw/destroy")
    assert "public_id=talkcart/file_1_a" in _form(destroy)


@pytest.mark.asyncio
async def test_url_upload_of_audio_is_kept(media_services, fake_remote) -> None:
    fake_remote.on(
        "POST",
        "auto/upload",
        json=asset_payload("talkcart/file_1_a", resource_type="video", fmt="mp3", is_audio=True),
    )

    asset = await media_services.gateway.admit_url(UploadContext.GENERAL, "https://cdn.example.com/a.mp3")

    assert asset.resource_kind is ResourceKind.AUDIO
    assert fake_remote.calls("POST", "video/destroy") == []


@pytest.mark.asyncio
async def test_failed_cleanup_keeps_the_validation_error(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/profile-pictures/p_1_a", size=20 * MB))
    fake_remote.on("POST", "image/destroy", status=500, json={"error": {"message": "boom"}})

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await media_services.gateway.admit_url(UploadContext.PROFILE_PICTURE, "https://cdn.example.com/big.png")

    assert exc_info.value.message == "Profile picture must be less than 15MB in size"
    assert exc_info.value.details["orphaned_identifier"] == "talkcart/profile-pictures/p_1_a"
    assert len(fake_remote.calls("POST", "image/destroy")) == 1


@pytest.mark.asyncio
async def test_oversized_stream_reports_the_full_measured_size(media_services) -> None:
    gateway = UploadGateway(make_config(profile_picture_max_bytes=MB), media_services.adapter)
    content = PNG_HEADER + b"\x00" * (5 * MB)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await gateway.admit_file(UploadContext.PROFILE_PICTURE, "profilePicture", FakeUpload(content, size=10))

    assert exc_info.value.size_bytes == len(content)
    assert exc_info.value.details["detail"] == f"Current size: {len(content) / MB:.2f}MB"


@pytest.mark.asyncio
async def test_base64_profile_picture_of_12mb_is_accepted(media_services, fake_remote) -> None:
    fake_remote.on("POST", "auto/upload", json=asset_payload("talkcart/profile-pictures/p_1_a", size=12 * MB))
    picture = PNG_HEADER + b"\x00" * (12 * MB - len(PNG_HEADER))
    data = "data:image/png;base64," + base64.b64encode(picture).decode()

    asset = await media_services.gateway.admit_base64(UploadContext.PROFILE_PICTURE, data, "profilePicture")

    assert asset.byte_size == 12 * MB
    assert len(fake_remote.calls("POST", "auto/upload")) == 1


@pytest.mark.asyncio
async def test_base64_profile_picture_over_limit_uses_picture_message(media_services, fake_remote) -> None:
    picture = PNG_HEADER + b"\x00" * (20 * MB - len(PNG_HEADER))
    data = "data:image/png;base64," + base64.b64encode(picture).decode()

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await media_services.gateway.admit_base64(UploadContext.PROFILE_PICTURE, data, "profilePicture")

    assert exc_info.value.message == "Profile picture must be less than 15MB in size"
    assert exc_info.value.details["detail"] == "Current size: 20.00MB"
    assert fake_remote.requests == []
