from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from talkcart_media import __version__
from talkcart_media.core.settings import settings
from talkcart_media.services.storage.service import MediaServices

APP_VERSION = __version__


async def _check_media_config(services: MediaServices | None) -> dict[str, str]:
    if services is None:
        return {"status": "error", "error": "media services not initialised"}
    return {"status": "ok", "cloud_name": services.config.credentials.cloud_name}


async def _check_remote_service(services: MediaServices | None) -> dict[str, str]:
    if services is None:
        return {"status": "error", "error": "media services not initialised"}
    try:
        await services.adapter.ping()
        return {"status": "ok"}
    except Exception as exc:  # reported as a degraded check, not raised
        return {"status": "error", "error": str(exc)}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def _run_checks(services: MediaServices | None) -> dict[str, dict[str, Any]]:
    return {
        "api": await _check_api(),
        "media_config": await _check_media_config(services),
        "remote_media": await _check_remote_service(services),
    }


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload(services: MediaServices | None) -> dict[str, Any]:
    checks = await _run_checks(services)
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload(services: MediaServices | None) -> dict[str, Any]:
    payload = await ready_payload(services)
    payload["version"] = APP_VERSION
    return payload
