from __future__ import annotations

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from talkcart_media.core.media_config import CloudinaryCredentials
from talkcart_media.schemas.media import Asset, PresetDescriptor, PresetOptions, ResourceKind
from talkcart_media.services.media.errors import RemoteStorageError

logger = logging.getLogger(__name__)

# Parameters the remote service excludes from the request signature
_UNSIGNED_PARAMS = {"file", "cloud_name", "resource_type", "api_key"}


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """SHA-1 over the sorted ``key=value`` pairs joined by ``&`` followed by the secret."""
    pairs = []
    for key in sorted(params):
        if key in _UNSIGNED_PARAMS:
            continue
        value = params[key]
        if value is None or value == "" or value == []:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        elif isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append(f"{key}={value}")
    to_sign = "&".join(pairs) + api_secret
    return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()


class StorageAdapter(ABC):
    provider: str = "remote"

    @abstractmethod
    async def upload_bytes(
        self,
        payload: bytes,
        *,
        namespace: str,
        public_id: str,
        filename: str,
        content_type: str,
        transformation: str | None = None,
    ) -> Asset:
        pass

    @abstractmethod
    async def upload_url(
        self, url: str, *, namespace: str, public_id: str, transformation: str | None = None
    ) -> Asset:
        pass

    @abstractmethod
    async def upload_base64(
        self, data_uri: str, *, namespace: str, public_id: str, transformation: str | None = None
    ) -> Asset:
        pass

    @abstractmethod
    async def destroy(self, public_id: str, resource_kind: ResourceKind) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def destroy_many(self, public_ids: List[str], resource_kind: ResourceKind) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def resource(self, public_id: str, resource_kind: ResourceKind) -> Asset:
        pass

    @abstractmethod
    async def search(self, expression: str, *, max_results: int) -> List[Asset]:
        pass

    @abstractmethod
    async def create_upload_preset(self, name: str, options: PresetOptions) -> PresetDescriptor:
        pass

    @abstractmethod
    async def ping(self) -> Dict[str, Any]:
        pass


class CloudinaryAdapter(StorageAdapter):
    """Async client for a Cloudinary-compatible upload and admin REST API."""

    def __init__(
        self,
        credentials: CloudinaryCredentials,
        *,
        api_base_url: str,
        client: httpx.AsyncClient,
        default_folder: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = "cloudinary"
        self.credentials = credentials
        self.api_base_url = api_base_url.rstrip("/")
        self.client = client
        self.default_folder = default_folder
        self._clock = clock

    def _endpoint(self, *parts: str) -> str:
        return "/".join([self.api_base_url, self.credentials.cloud_name, *parts])

    def _signed(self, params: Dict[str, Any]) -> Dict[str, str]:
        payload = {k: v for k, v in params.items() if v is not None and v != ""}
        payload["timestamp"] = int(self._clock())
        payload["signature"] = sign_params(payload, self.credentials.api_secret)
        payload["api_key"] = self.credentials.api_key
        return {k: _form_value(v) for k, v in payload.items()}

    @property
    def _auth(self) -> tuple[str, str]:
        return (self.credentials.api_key, self.credentials.api_secret)

    async def _send(self, operation: str, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Remote media %s failed in transport: %s", operation, exc)
            raise RemoteStorageError(
                f"Remote media service unreachable during {operation}",
                operation=operation,
                diagnostic=str(exc),
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400:
            diagnostic = _provider_message(body) or response.reason_phrase
            logger.error(
                "Remote media %s rejected: status=%s diagnostic=%s",
                operation,
                response.status_code,
                diagnostic,
            )
            raise RemoteStorageError(
                f"Remote media service rejected {operation}: {diagnostic}",
                operation=operation,
                provider_status=response.status_code,
                diagnostic=body,
            )
        if not isinstance(body, dict):
            raise RemoteStorageError(
                f"Unexpected response from remote media service during {operation}",
                operation=operation,
                provider_status=response.status_code,
                diagnostic=body,
            )
        return body

    async def _upload(
        self,
        operation: str,
        file_field: Any,
        *,
        namespace: str,
        public_id: str,
        transformation: str | None,
    ) -> Asset:
        form = self._signed(
            {
                "folder": namespace or self.default_folder,
                "public_id": public_id,
                "transformation": transformation,
            }
        )
        kwargs: Dict[str, Any] = {"data": form}
        if isinstance(file_field, tuple):
            kwargs["files"] = {"file": file_field}
        else:
            form["file"] = file_field
        body = await self._send(operation, "POST", self._endpoint("auto", "upload"), **kwargs)
        asset = _parse_asset(body, operation=operation)
        logger.info(
            "Stored %s asset %s (%s bytes) in %s",
            asset.resource_kind.value,
            asset.identifier,
            asset.byte_size,
            asset.namespace,
        )
        return asset

    async def upload_bytes(
        self,
        payload: bytes,
        *,
        namespace: str,
        public_id: str,
        filename: str,
        content_type: str,
        transformation: str | None = None,
    ) -> Asset:
        return await self._upload(
            "upload",
            (filename, payload, content_type),
            namespace=namespace,
            public_id=public_id,
            transformation=transformation,
        )

    async def upload_url(
        self, url: str, *, namespace: str, public_id: str, transformation: str | None = None
    ) -> Asset:
        return await self._upload(
            "upload_url", url, namespace=namespace, public_id=public_id, transformation=transformation
        )

    async def upload_base64(
        self, data_uri: str, *, namespace: str, public_id: str, transformation: str | None = None
    ) -> Asset:
        return await self._upload(
            "upload_base64",
            data_uri,
            namespace=namespace,
            public_id=public_id,
            transformation=transformation,
        )

    async def destroy(self, public_id: str, resource_kind: ResourceKind) -> Dict[str, Any]:
        form = self._signed({"public_id": public_id})
        return await self._send(
            "destroy", "POST", self._endpoint(resource_kind.provider_type, "destroy"), data=form
        )

    async def destroy_many(self, public_ids: List[str], resource_kind: ResourceKind) -> Dict[str, Any]:
        params = [("public_ids[]", public_id) for public_id in public_ids]
        return await self._send(
            "delete_resources",
            "DELETE",
            self._endpoint("resources", resource_kind.provider_type, "upload"),
            params=params,
            auth=self._auth,
        )

    async def resource(self, public_id: str, resource_kind: ResourceKind) -> Asset:
        url = self._endpoint("resources", resource_kind.provider_type, "upload", quote(public_id, safe="/"))
        body = await self._send("resource", "GET", url, auth=self._auth)
        return _parse_asset(body, operation="resource")

    async def search(self, expression: str, *, max_results: int) -> List[Asset]:
        body = await self._send(
            "search",
            "POST",
            self._endpoint("resources", "search"),
            json={
                "expression": expression,
                "sort_by": [{"created_at": "desc"}],
                "max_results": max_results,
            },
            auth=self._auth,
        )
        return [_parse_asset(item, operation="search") for item in body.get("resources") or []]

    async def create_upload_preset(self, name: str, options: PresetOptions) -> PresetDescriptor:
        folder = options.folder or self.default_folder
        resource_kind = options.resource_kind.provider_type if options.resource_kind else "auto"
        allowed_formats = list(options.allowed_formats or [])
        form = {
            "name": name,
            "unsigned": _form_value(options.unsigned),
            "folder": folder,
            "resource_type": resource_kind,
            "allowed_formats": ",".join(allowed_formats),
        }
        body = await self._send(
            "create_upload_preset", "POST", self._endpoint("upload_presets"), data=form, auth=self._auth
        )
        return PresetDescriptor(
            name=body.get("name") or name,
            folder=folder,
            resource_kind=resource_kind,
            allowed_formats=allowed_formats,
            unsigned=options.unsigned,
        )

    async def ping(self) -> Dict[str, Any]:
        return await self._send("ping", "GET", self._endpoint("ping"), auth=self._auth)


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


def _provider_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return body.get("message")


def _parse_asset(payload: Dict[str, Any], *, operation: str) -> Asset:
    public_id = payload.get("public_id")
    secure_url = payload.get("secure_url")
    if not public_id or not secure_url:
        raise RemoteStorageError(
            "Remote media service response is missing the asset identifier or URL",
            operation=operation,
            diagnostic=payload,
        )
    namespace = payload.get("asset_folder") or payload.get("folder")
    if namespace is None:
        namespace = public_id.rpartition("/")[0]
    return Asset(
        identifier=public_id,
        secure_url=secure_url,
        resource_kind=ResourceKind.from_provider(
            payload.get("resource_type"), is_audio=bool(payload.get("is_audio"))
        ),
        format=payload.get("format"),
        width=payload.get("width"),
        height=payload.get("height"),
        duration=payload.get("duration"),
        byte_size=payload.get("bytes") or 0,
        namespace=namespace,
        created_at=payload.get("created_at"),
    )

