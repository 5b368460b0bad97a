from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Protocol

from talkcart_media.core.media_config import MediaConfig
from talkcart_media.schemas.media import Asset, UploadContext
from talkcart_media.services.media.errors import (
    MissingUploadError,
    RemoteStorageError,
    UploadValidationError,
)
from talkcart_media.services.media.validation import (
    UploadProfile,
    check_magic_bytes,
    check_remote_url,
    general_profile,
    parse_data_uri,
    profile_picture_profile,
)
from talkcart_media.services.storage.adapter import StorageAdapter
from talkcart_media.services.storage.key_generator import KeyGenerator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Listing photos are bounded on ingestion so storefront pages never pull originals
MARKETPLACE_TRANSFORMATION = "c_limit,h_800,w_800/f_auto,q_auto"


class IncomingFile(Protocol):
    filename: Optional[str]
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes: ...

    async def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class ContextRule:
    profile: UploadProfile
    namespace: str
    transformation: str | None = None


class UploadGateway:
    """Admits one upload per call: validate against the context's profile, then store."""

    def __init__(self, config: MediaConfig, adapter: StorageAdapter) -> None:
        self.config = config
        self.adapter = adapter
        general = general_profile(config)
        picture = profile_picture_profile(config)
        self._rules: dict[UploadContext, ContextRule] = {}
        for context in UploadContext:
            is_picture = context is UploadContext.PROFILE_PICTURE
            self._rules[context] = ContextRule(
                profile=picture if is_picture else general,
                namespace=KeyGenerator.namespace_for(context, config.root_folder),
                transformation=(
                    MARKETPLACE_TRANSFORMATION if context is UploadContext.MARKETPLACE_LISTING else None
                ),
            )

    def rule_for(self, context: UploadContext | str) -> ContextRule:
        try:
            return self._rules[UploadContext(context)]
        except ValueError as exc:
            raise UploadValidationError(f"Unknown upload context: {context}") from exc

    async def admit_file(
        self,
        context: UploadContext | str,
        field_name: str,
        upload: IncomingFile | None,
    ) -> Asset:
        rule = self.rule_for(context)
        if upload is None:
            raise MissingUploadError(detail="Please select a file from your device")
        try:
            mime_type = rule.profile.check_mime_type(upload.content_type)
            declared = getattr(upload, "size", None)
            if declared is not None:
                rule.profile.check_size(declared)
            # Re-checked against the realized byte count, whatever the client declared
            payload = await _read_payload(upload, rule.profile)
            if not payload:
                raise MissingUploadError(detail="The uploaded file is empty")
            check_magic_bytes(payload[:16], mime_type)
        except UploadValidationError as exc:
            logger.warning(
                "Upload rejected profile=%s field=%s reason=%s",
                rule.profile.name,
                field_name,
                exc.message,
            )
            raise

        public_id = KeyGenerator.generate_public_id(field_name)
        filename = PurePosixPath(upload.filename or "").name or public_id
        return await self.adapter.upload_bytes(
            payload,
            namespace=rule.namespace,
            public_id=public_id,
            filename=filename,
            content_type=mime_type,
            transformation=rule.transformation,
        )

    async def admit_url(self, context: UploadContext | str, url: str, field_name: str = "file") -> Asset:
        rule = self.rule_for(context)
        try:
            source = check_remote_url(url)
        except UploadValidationError as exc:
            logger.warning("URL upload rejected profile=%s reason=%s", rule.profile.name, exc.message)
            raise
        asset = await self.adapter.upload_url(
            source,
            namespace=rule.namespace,
            public_id=KeyGenerator.generate_public_id(field_name),
            transformation=rule.transformation,
        )
        # The type and size of a fetched source are only known once the remote service has it
        await self._enforce_stored_limits(rule, asset)
        return asset

    async def admit_base64(
        self, context: UploadContext | str, data: str, field_name: str = "file"
    ) -> Asset:
        rule = self.rule_for(context)
        try:
            mime_type, decoded = parse_data_uri(data, rule.profile)
        except UploadValidationError as exc:
            logger.warning("Base64 upload rejected profile=%s reason=%s", rule.profile.name, exc.message)
            raise
        data_uri = f"data:{mime_type};base64,{base64.b64encode(decoded).decode('ascii')}"
        return await self.adapter.upload_base64(
            data_uri,
            namespace=rule.namespace,
            public_id=KeyGenerator.generate_public_id(field_name),
            transformation=rule.transformation,
        )

    async def _enforce_stored_limits(self, rule: ContextRule, asset: Asset) -> None:
        try:
            rule.profile.check_stored_kind(asset.resource_kind.value, asset.format)
            rule.profile.check_size(asset.byte_size)
        except UploadValidationError as error:
            logger.warning(
                "Stored asset %s violates profile=%s; removing it: %s",
                asset.identifier,
                rule.profile.name,
                error.message,
            )
            try:
                await self.adapter.destroy(asset.identifier, asset.resource_kind)
            except RemoteStorageError as exc:
                logger.error(
                    "Could not remove out-of-profile asset %s, left orphaned: %s",
                    asset.identifier,
                    exc.message,
                )
                error.details["orphaned_identifier"] = asset.identifier
                raise error from exc
            raise


async def _read_payload(upload: IncomingFile, profile: UploadProfile) -> bytes:
    buffer = bytearray()
    total = 0
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            # Past the ceiling the rest is only counted so the rejection reports the real size
            if total <= profile.max_file_bytes:
                buffer.extend(chunk)
    finally:
        await upload.close()
    profile.check_size(total)
    return bytes(buffer)
