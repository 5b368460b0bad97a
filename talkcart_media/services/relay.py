from __future__ import annotations

import asyncio
import ipaddress
import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from talkcart_media.core.media_config import MediaConfig
from talkcart_media.services.media.errors import (
    ForbiddenTargetError,
    MalformedTargetError,
    RelayTimeoutError,
    RelayTransportError,
    UpstreamStatusError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "TalkCart-Media-Relay/1.0"
FALLBACK_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class RelayAllowlist:
    """Hosts matched exactly (case-insensitive) and IP literals matched against CIDR networks."""

    hosts: frozenset[str]
    networks: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...]

    @classmethod
    def from_config(cls, config: MediaConfig) -> "RelayAllowlist":
        return cls(hosts=config.relay_allowed_hosts, networks=config.relay_allowed_networks)

    def permits(self, hostname: str) -> bool:
        host = hostname.strip().lower().rstrip(".")
        if not host:
            return False
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return host in self.hosts
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            address = address.ipv4_mapped
        return any(address in network for network in self.networks)


@dataclass(frozen=True, slots=True)
class RelayedResource:
    body: bytes
    content_type: str
    cache_max_age: int

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Cache-Control": f"public, max-age={self.cache_max_age}",
            "Content-Length": str(len(self.body)),
            "Access-Control-Allow-Origin": "*",
        }


class LocalRelay:
    """Single-attempt fetch of an allowlisted internal resource, bounded by a fixed timeout.

    received -> validated -> fetching -> succeeded | upstream-error | timed-out | transport-error

    The body is read in full inside the timeout race before anything is sent back, so a
    slow body times out as a 408 instead of truncating a 200, and ``Content-Length``
    is always the exact relayed size.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        allowlist: RelayAllowlist,
        *,
        timeout_seconds: float = 10.0,
        cache_max_age: int = 3600,
    ) -> None:
        self.client = client
        self.allowlist = allowlist
        self.timeout_seconds = timeout_seconds
        self.cache_max_age = cache_max_age

    def validate_target(self, target: str | None) -> str:
        candidate = (target or "").strip()
        if not candidate:
            raise MalformedTargetError("Target parameter is required")
        if any(ch.isspace() for ch in candidate):
            raise MalformedTargetError("Invalid target format")
        parts = urlsplit(candidate)
        if parts.scheme.lower() not in {"http", "https"} or not parts.hostname:
            raise MalformedTargetError("Invalid target format")
        try:
            parts.port
        except ValueError as exc:
            raise MalformedTargetError("Invalid target port") from exc

        if parts.username is not None or parts.password is not None:
            logger.warning("Relay target with embedded credentials rejected")
            raise ForbiddenTargetError("Targets with embedded credentials are not allowed")
        if not self.allowlist.permits(parts.hostname):
            logger.warning("Relay target host rejected: %s", parts.hostname)
            raise ForbiddenTargetError(
                "Only internal targets are allowed",
                details={"host": parts.hostname},
            )
        return candidate

    async def fetch(self, target: str | None) -> RelayedResource:
        url = self.validate_target(target)
        try:
            response = await asyncio.wait_for(self._get(url), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("Relay fetch timed out after %ss: %s", self.timeout_seconds, url)
            raise RelayTimeoutError(
                "Request timeout",
                details={"timeout_seconds": self.timeout_seconds},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Relay fetch failed for %s: %s", url, exc)
            raise RelayTransportError("Failed to reach relay target", details={"detail": str(exc)}) from exc

        if not response.is_success:
            logger.warning("Relay upstream returned %s for %s", response.status_code, url)
            raise UpstreamStatusError(response.status_code, response.reason_phrase)

        return RelayedResource(
            body=response.content,
            content_type=response.headers.get("content-type") or FALLBACK_CONTENT_TYPE,
            cache_max_age=self.cache_max_age,
        )

    async def _get(self, url: str) -> httpx.Response:
        # Redirects are not followed: a redirect could leave the allowlisted network
        return await self.client.get(url, headers={"User-Agent": USER_AGENT}, follow_redirects=False)
