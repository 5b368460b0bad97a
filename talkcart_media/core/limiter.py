from slowapi import Limiter
from slowapi.util import get_remote_address

from talkcart_media.core.settings import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)

# Uploads and relay fetches hold request bodies or upstream responses in memory
UPLOAD_RATE_LIMIT = f"{settings.upload_rate_limit_per_minute}/minute"
RELAY_RATE_LIMIT = f"{settings.relay_rate_limit_per_minute}/minute"

__all__ = ["limiter", "UPLOAD_RATE_LIMIT", "RELAY_RATE_LIMIT"]
