from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from talkcart_media import __version__
from talkcart_media.api.v1 import api_router
from talkcart_media.api.v1.routers import relay
from talkcart_media.core.errors import register_exception_handlers
from talkcart_media.core.limiter import limiter
from talkcart_media.core.logging import configure_logging
from talkcart_media.core.response_envelope import register_response_envelope
from talkcart_media.core.settings import settings
from talkcart_media.events import register_event_handlers
from talkcart_media.middlewares.request_context import RequestContextMiddleware
from talkcart_media.middlewares.security_headers import SecurityHeadersMiddleware

RELAY_PREFIXES = ("/relay",)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="TalkCart Media", version=__version__)
    register_exception_handlers(app)
    register_response_envelope(app, exclude_prefixes=RELAY_PREFIXES)
    app.state.limiter = limiter
    app.state.media = None
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        SecurityHeadersMiddleware,
        enable_hsts=settings.enable_hsts,
        cross_origin_prefixes=RELAY_PREFIXES,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api/v1")
    app.include_router(relay.router)
    register_event_handlers(app)
    return app


app = create_app()
