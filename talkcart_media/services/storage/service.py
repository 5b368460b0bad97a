from __future__ import annotations

from dataclasses import dataclass

import httpx

from talkcart_media.core.media_config import MediaConfig
from talkcart_media.services.media.gateway import UploadGateway
from talkcart_media.services.media.lifecycle import LifecycleManager
from talkcart_media.services.media.transformations import UrlBuilder
from talkcart_media.services.relay import LocalRelay, RelayAllowlist
from talkcart_media.services.storage.adapter import CloudinaryAdapter, StorageAdapter


def get_storage_adapter(config: MediaConfig, client: httpx.AsyncClient) -> StorageAdapter:
    return CloudinaryAdapter(
        config.credentials,
        api_base_url=config.api_base_url,
        client=client,
        default_folder=config.root_folder,
    )


@dataclass(slots=True)
class MediaServices:
    config: MediaConfig
    adapter: StorageAdapter
    gateway: UploadGateway
    lifecycle: LifecycleManager
    urls: UrlBuilder
    relay: LocalRelay
    _clients: tuple[httpx.AsyncClient, ...] = ()

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()


def create_media_services(
    config: MediaConfig,
    *,
    remote_client: httpx.AsyncClient | None = None,
    relay_client: httpx.AsyncClient | None = None,
) -> MediaServices:
    """Wire every media component from one immutable config.

    Clients passed in are owned by the caller; clients created here are closed by ``aclose``.
    """
    owned: list[httpx.AsyncClient] = []
    if remote_client is None:
        remote_client = httpx.AsyncClient(timeout=config.remote_timeout_seconds)
        owned.append(remote_client)
    if relay_client is None:
        relay_client = httpx.AsyncClient(timeout=config.relay_timeout_seconds, follow_redirects=False)
        owned.append(relay_client)

    adapter = get_storage_adapter(config, remote_client)
    return MediaServices(
        config=config,
        adapter=adapter,
        gateway=UploadGateway(config, adapter),
        lifecycle=LifecycleManager(adapter, default_folder=config.root_folder),
        urls=UrlBuilder(cloud_name=config.credentials.cloud_name, delivery_host=config.delivery_host),
        relay=LocalRelay(
            relay_client,
            RelayAllowlist.from_config(config),
            timeout_seconds=config.relay_timeout_seconds,
            cache_max_age=config.relay_cache_max_age_seconds,
        ),
        _clients=tuple(owned),
    )
