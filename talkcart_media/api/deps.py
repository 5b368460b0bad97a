from fastapi import Depends, Request

from talkcart_media.services.media.errors import ConfigurationError
from talkcart_media.services.media.gateway import UploadGateway
from talkcart_media.services.media.lifecycle import LifecycleManager
from talkcart_media.services.media.transformations import UrlBuilder
from talkcart_media.services.relay import LocalRelay
from talkcart_media.services.storage.service import MediaServices


class MediaUnavailableError(ConfigurationError):
    status_code = 503
    code = "media_unavailable"


def get_media_services(request: Request) -> MediaServices:
    services = getattr(request.app.state, "media", None)
    if services is None:
        raise MediaUnavailableError("Media services are not initialised")
    return services


def get_gateway(services: MediaServices = Depends(get_media_services)) -> UploadGateway:
    return services.gateway


def get_lifecycle(services: MediaServices = Depends(get_media_services)) -> LifecycleManager:
    return services.lifecycle


def get_url_builder(services: MediaServices = Depends(get_media_services)) -> UrlBuilder:
    return services.urls


def get_relay(services: MediaServices = Depends(get_media_services)) -> LocalRelay:
    return services.relay
