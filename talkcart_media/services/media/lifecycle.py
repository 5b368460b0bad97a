from __future__ import annotations

import logging
from typing import Any, Dict, List

from talkcart_media.schemas.media import Asset, PresetDescriptor, PresetOptions, ResourceKind
from talkcart_media.services.media.errors import UploadValidationError
from talkcart_media.services.storage.adapter import StorageAdapter

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 30
MAX_SEARCH_LIMIT = 500
MAX_BULK_DELETE = 100
DEFAULT_PRESET_FORMATS = ["jpg", "jpeg", "png", "gif", "webp", "mp4", "mov", "avi", "mp3", "wav"]


def _require_identifier(identifier: str) -> str:
    cleaned = (identifier or "").strip()
    if not cleaned:
        raise UploadValidationError("identifier is required")
    return cleaned


class LifecycleManager:
    """Delete, search, inspect and preset operations on previously stored assets.

    Deletes are not special-cased for identifiers that are already gone: the
    remote service's answer (``ok`` / ``not found``) is returned verbatim.
    """

    def __init__(self, adapter: StorageAdapter, *, default_folder: str = "") -> None:
        self.adapter = adapter
        self.default_folder = default_folder

    async def delete_asset(self, identifier: str, resource_kind: ResourceKind) -> Dict[str, Any]:
        public_id = _require_identifier(identifier)
        outcome = await self.adapter.destroy(public_id, ResourceKind(resource_kind))
        logger.info("Delete %s (%s): %s", public_id, resource_kind, outcome.get("result"))
        return outcome

    async def delete_assets(self, identifiers: List[str], resource_kind: ResourceKind) -> Dict[str, Any]:
        public_ids = [_require_identifier(identifier) for identifier in identifiers or []]
        if not public_ids:
            raise UploadValidationError("At least one identifier is required")
        if len(public_ids) > MAX_BULK_DELETE:
            raise UploadValidationError(
                f"Bulk delete accepts at most {MAX_BULK_DELETE} identifiers, got {len(public_ids)}"
            )
        outcome = await self.adapter.destroy_many(public_ids, ResourceKind(resource_kind))
        logger.info("Bulk delete of %d %s assets requested", len(public_ids), resource_kind)
        return outcome

    async def search_assets(self, expression: str, limit: int | None = None) -> List[Asset]:
        query = (expression or "").strip()
        if not query:
            raise UploadValidationError("A search expression is required")
        max_results = DEFAULT_SEARCH_LIMIT if limit is None else limit
        if not 1 <= max_results <= MAX_SEARCH_LIMIT:
            raise UploadValidationError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}")
        assets = await self.adapter.search(query, max_results=max_results)
        # Newest first, even if the remote service ignores the requested ordering
        return sorted(
            assets,
            key=lambda asset: asset.created_at.timestamp() if asset.created_at else float("-inf"),
            reverse=True,
        )

    async def create_preset(self, name: str, options: PresetOptions | None = None) -> PresetDescriptor:
        preset_name = (name or "").strip()
        if not preset_name:
            raise UploadValidationError("A preset name is required")
        opts = options or PresetOptions()
        resolved = opts.model_copy(
            update={
                "folder": opts.folder or self.default_folder,
                "allowed_formats": opts.allowed_formats or list(DEFAULT_PRESET_FORMATS),
            }
        )
        descriptor = await self.adapter.create_upload_preset(preset_name, resolved)
        logger.info("Created upload preset %s for folder %s", descriptor.name, descriptor.folder)
        return descriptor

    async def fetch_asset_info(self, identifier: str, resource_kind: ResourceKind) -> Asset:
        return await self.adapter.resource(_require_identifier(identifier), ResourceKind(resource_kind))
