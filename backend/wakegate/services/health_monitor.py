"""Backend health probing with a stale-while-revalidate cache."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from time import monotonic
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthCacheEntry:
    healthy: bool = False
    last_checked_at: Optional[float] = None  # monotonic seconds, None = never probed
    last_observed_state: bool = False  # verdict before the latest check


class HealthMonitor:
    """Probes the readiness URL and caches the verdict for ``interval`` seconds."""

    PROBE_TIMEOUT = 5  # seconds per request

    def __init__(self, url: str, interval: float = 10):
        self._url = url
        self._interval = interval
        self._entry = HealthCacheEntry()
        self._entry_lock = threading.Lock()
        self._refresh_lock = asyncio.Lock()

    @property
    def url(self) -> str:
        return self._url

    async def probe(self) -> bool:
        """Single GET against the readiness URL. Anything but 2xx is unhealthy."""
        try:
            async with httpx.AsyncClient(timeout=self.PROBE_TIMEOUT) as client:
                resp = await client.get(self._url)
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Health probe %s failed: %s", self._url, e)
            return False

        healthy = 200 <= resp.status_code < 300
        logger.debug("Health probe %s -> %d (healthy: %s)", self._url, resp.status_code, healthy)
        return healthy

    def snapshot(self) -> HealthCacheEntry:
        return self._entry

    def is_fresh(self, entry: HealthCacheEntry) -> bool:
        if entry.last_checked_at is None:
            return False
        return monotonic() - entry.last_checked_at < self._interval

    def record(self, healthy: bool) -> None:
        """Store a verdict. Logs only when the state changes."""
        now = monotonic()
        with self._entry_lock:
            prev = self._entry
            if prev.last_checked_at is not None and now < prev.last_checked_at:
                return
            self._entry = HealthCacheEntry(
                healthy=healthy,
                last_checked_at=now,
                last_observed_state=prev.healthy,
            )

        if prev.last_checked_at is None:
            logger.info("Service at %s is %s", self._url, "healthy" if healthy else "unhealthy")
        elif prev.healthy != healthy:
            logger.info(
                "Service at %s changed: %s -> %s",
                self._url,
                "healthy" if prev.healthy else "unhealthy",
                "healthy" if healthy else "unhealthy",
            )

    async def cached_healthy(self) -> bool:
        """Cached verdict, refreshed by at most one concurrent probe."""
        entry = self._entry
        if self.is_fresh(entry):
            return entry.healthy

        # Someone is already refreshing: serve the previous verdict
        if self._refresh_lock.locked() and entry.last_checked_at is not None:
            return entry.healthy

        async with self._refresh_lock:
            entry = self._entry
            if self.is_fresh(entry):
                return entry.healthy

            healthy = await self.probe()
            self.record(healthy)
            return healthy
