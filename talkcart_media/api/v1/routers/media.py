from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from talkcart_media.api import deps
from talkcart_media.core.limiter import UPLOAD_RATE_LIMIT, limiter
from talkcart_media.schemas.media import (
    Asset,
    BulkDeleteRequest,
    CreatePresetRequest,
    DeleteOutcome,
    DeliveryUrl,
    PresetDescriptor,
    PresetOptions,
    ResourceKind,
    SearchResult,
    UploadContext,
    UploadFromBase64Request,
    UploadFromUrlRequest,
    UrlVariant,
)
from talkcart_media.services.media.errors import MissingUploadError, UploadValidationError
from talkcart_media.services.media.gateway import UploadGateway
from talkcart_media.services.media.lifecycle import DEFAULT_SEARCH_LIMIT, LifecycleManager
from talkcart_media.services.media.transformations import UrlBuilder

router = APIRouter(prefix="/media", tags=["media"])


def _single_file(files: Optional[List[UploadFile]], field_name: str) -> Optional[UploadFile]:
    if not files:
        return None
    if len(files) > 1:
        raise UploadValidationError(
            "Only one file may be uploaded per request",
            details={"field": field_name, "received": len(files)},
        )
    return files[0]


@router.post(
    "/upload",
    response_model=Asset,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a single media file",
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_file(
    request: Request,
    file: Optional[List[UploadFile]] = File(default=None),
    context: UploadContext = Form(default=UploadContext.GENERAL),
    gateway: UploadGateway = Depends(deps.get_gateway),
) -> Asset:
    return await gateway.admit_file(context, "file", _single_file(file, "file"))


@router.post(
    "/upload/profile-picture",
    response_model=Asset,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a profile picture",
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_profile_picture(
    request: Request,
    profile_picture: Optional[List[UploadFile]] = File(default=None, alias="profilePicture"),
    gateway: UploadGateway = Depends(deps.get_gateway),
) -> Asset:
    upload = _single_file(profile_picture, "profilePicture")
    if upload is None:
        raise MissingUploadError("No profile picture provided")
    return await gateway.admit_file(UploadContext.PROFILE_PICTURE, "profilePicture", upload)


@router.post(
    "/upload/url",
    response_model=Asset,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest media from a remote URL",
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_from_url(
    request: Request,
    payload: UploadFromUrlRequest,
    gateway: UploadGateway = Depends(deps.get_gateway),
) -> Asset:
    return await gateway.admit_url(payload.context, payload.url, payload.field_name)


@router.post(
    "/upload/base64",
    response_model=Asset,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest media from a base64 data URI",
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_from_base64(
    request: Request,
    payload: UploadFromBase64Request,
    gateway: UploadGateway = Depends(deps.get_gateway),
) -> Asset:
    return await gateway.admit_base64(payload.context, payload.data, payload.field_name)


@router.get("/url", response_model=DeliveryUrl, summary="Derive a delivery URL")
async def delivery_url(
    identifier: str = Query(..., min_length=1),
    resource_kind: ResourceKind = Query(default=ResourceKind.IMAGE),
    variant: UrlVariant = Query(default=UrlVariant.ORIGINAL),
    width: Optional[str] = Query(default=None),
    height: Optional[str] = Query(default=None),
    quality: Optional[str] = Query(default=None),
    format: Optional[str] = Query(default=None),
    crop: Optional[str] = Query(default=None),
    duration: Optional[str] = Query(default=None),
    start_offset: Optional[str] = Query(default=None),
    urls: UrlBuilder = Depends(deps.get_url_builder),
) -> DeliveryUrl:
    options = {
        "width": width,
        "height": height,
        "quality": quality,
        "format": format,
        "crop": crop,
        "duration": duration,
        "start_offset": start_offset,
    }
    url = urls.build(identifier, resource_kind, variant, options)
    return DeliveryUrl(identifier=identifier, resource_kind=resource_kind, variant=variant, url=url)


@router.get("/assets/search", response_model=SearchResult, summary="Search stored assets")
async def search_assets(
    expression: str = Query(..., min_length=1),
    limit: int = Query(default=DEFAULT_SEARCH_LIMIT),
    lifecycle: LifecycleManager = Depends(deps.get_lifecycle),
) -> SearchResult:
    assets = await lifecycle.search_assets(expression, limit)
    return SearchResult(expression=expression, total=len(assets), assets=assets)


@router.post("/assets/bulk-delete", response_model=DeleteOutcome, summary="Delete several assets")
async def bulk_delete_assets(
    payload: BulkDeleteRequest,
    lifecycle: LifecycleManager = Depends(deps.get_lifecycle),
) -> DeleteOutcome:
    outcome = await lifecycle.delete_assets(payload.identifiers, payload.resource_kind)
    return DeleteOutcome(resource_kind=payload.resource_kind, outcome=outcome)


@router.get(
    "/assets/{resource_kind}/{identifier:path}",
    response_model=Asset,
    summary="Fetch stored asset metadata",
)
async def fetch_asset(
    resource_kind: ResourceKind,
    identifier: str,
    lifecycle: LifecycleManager = Depends(deps.get_lifecycle),
) -> Asset:
    return await lifecycle.fetch_asset_info(identifier, resource_kind)


@router.delete(
    "/assets/{resource_kind}/{identifier:path}",
    response_model=DeleteOutcome,
    summary="Delete a stored asset",
)
async def delete_asset(
    resource_kind: ResourceKind,
    identifier: str,
    lifecycle: LifecycleManager = Depends(deps.get_lifecycle),
) -> DeleteOutcome:
    outcome = await lifecycle.delete_asset(identifier, resource_kind)
    return DeleteOutcome(identifier=identifier, resource_kind=resource_kind, outcome=outcome)


@router.post(
    "/presets",
    response_model=PresetDescriptor,
    status_code=status.HTTP_201_CREATED,
    summary="Create an upload preset",
)
async def create_preset(
    payload: CreatePresetRequest,
    lifecycle: LifecycleManager = Depends(deps.get_lifecycle),
) -> PresetDescriptor:
    options = PresetOptions.model_validate(payload.model_dump(exclude={"name"}))
    return await lifecycle.create_preset(payload.name, options)
