from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from talkcart_media.api import deps
from talkcart_media.core.limiter import RELAY_RATE_LIMIT, limiter
from talkcart_media.services.relay import LocalRelay

router = APIRouter(tags=["relay"])


@router.get(
    "/relay",
    summary="Fetch an allowlisted internal resource",
    response_class=Response,
    responses={
        400: {"description": "Missing or malformed target"},
        403: {"description": "Target host is not allowlisted"},
        408: {"description": "Target did not answer in time"},
    },
)
@limiter.limit(RELAY_RATE_LIMIT)
async def relay_resource(
    request: Request,
    target: Optional[str] = Query(default=None, description="Absolute http(s) URL to fetch"),
    relay: LocalRelay = Depends(deps.get_relay),
) -> Response:
    resource = await relay.fetch(target)
    return Response(content=resource.body, headers=resource.headers())
