"""
Best-effort ISP / public IP lookup.

Tries a keyless geolocation service and falls back to a second one.  The
lookup never raises: if both providers fail the fields simply stay unset.
All HTTP work goes through a single ``aiohttp.ClientSession`` managed via
the async-context-manager protocol (``async with ProviderLookup() as p``),
or a throwaway session when :meth:`lookup` is called outside one.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import aiohttp

from .constants import COMMON_HEADERS, PROVIDER_URLS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderInfo:
    """Network provider name and public IP as reported by a lookup service."""

    name: Optional[str] = None
    ip: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.name or self.ip)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "ip": self.ip}


def parse_ipapi(data: Dict[str, Any]) -> ProviderInfo:
    name = data.get("org") or data.get("asn") or data.get("org_name") or data.get("company")
    return ProviderInfo(name=name or None, ip=data.get("ip"))


def parse_ipwho(data: Dict[str, Any]) -> ProviderInfo:
    conn = data.get("connection") or {}
    name = conn.get("isp") or conn.get("org") or data.get("org")
    return ProviderInfo(name=name or None, ip=data.get("ip"))


_PARSERS = (parse_ipapi, parse_ipwho)


# ---------------------------------------------------------------------------
# Lookup client
# ---------------------------------------------------------------------------

class ProviderLookup:
    """Async context-manager wrapping the provider lookup services."""

    def __init__(self, urls: Sequence[str] = PROVIDER_URLS, timeout: float = 5.0) -> None:
        self.urls = list(urls)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProviderLookup:
        self._session = self._new_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    def _new_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )

    # -- Public methods -----------------------------------------------------

    async def lookup(self) -> ProviderInfo:
        """Ask each service in turn; the first successful answer wins."""
        if self._session is not None:
            return await self._lookup(self._session)
        async with self._new_session() as session:
            return await self._lookup(session)

    async def _lookup(self, session: aiohttp.ClientSession) -> ProviderInfo:
        for url, parse in zip(self.urls, _PARSERS):
            try:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        logger.debug("provider %s answered HTTP %d", url, resp.status)
                        continue
                    data = await resp.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
                logger.debug("provider %s failed: %s", url, exc)
                continue
            if isinstance(data, dict):
                info = parse(data)
                logger.info("provider: %s (%s)", info.name, info.ip)
                return info
        return ProviderInfo()
