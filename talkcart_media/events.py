import logging

from fastapi import FastAPI

from talkcart_media.core.media_config import MediaConfig
from talkcart_media.services.storage.service import create_media_services

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")
        if getattr(app.state, "media", None) is not None:
            return
        # ConfigurationError propagates: the process must not serve without credentials
        config = MediaConfig.from_settings()
        app.state.media = create_media_services(config)
        app.state.owns_media = True
        logger.info("Media services ready for cloud %s", config.credentials.cloud_name)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        services = getattr(app.state, "media", None)
        if services is not None and getattr(app.state, "owns_media", False):
            await services.aclose()
            app.state.media = None
            app.state.owns_media = False
