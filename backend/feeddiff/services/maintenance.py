import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from feeddiff.core.config import settings
from feeddiff.services.keylog_store import KeyLogStore, KeyLogStoreError
from feeddiff.utils.canonical import CanonicalCache, canonical_cache

logger = logging.getLogger(__name__)


class MaintenanceService:
    """Periodically drops the canonical-form cache and purges expired findings."""

    def __init__(
        self,
        store: KeyLogStore,
        cache: CanonicalCache = canonical_cache,
        interval: int = settings.MAINTENANCE_INTERVAL_SECONDS,
        retention_days: Optional[int] = settings.KEYLOG_RETENTION_DAYS,
    ):
        self.store = store
        self.cache = cache
        self.interval = interval
        self.retention_days = retention_days
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> Dict[str, int]:
        """Run a single maintenance pass."""
        stats = {"cache_entries_dropped": len(self.cache), "findings_purged": 0}
        self.cache.clear()

        if self.retention_days:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)
            try:
                stats["findings_purged"] = await self.store.purge(before=cutoff)
            except KeyLogStoreError as e:
                logger.error(f"Retention purge failed: {e}")

        logger.debug(f"Maintenance pass finished: {stats}")
        return stats

    async def _run_periodically(self):
        logger.info(f"Maintenance service started (interval: {self.interval}s)")

        while self.running:
            try:
                await asyncio.sleep(self.interval)
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Maintenance service cancelled")
                break
            except Exception as e:
                logger.error(f"Unexpected error in maintenance loop: {e}", exc_info=True)

    def start(self):
        if self.running:
            logger.warning("Maintenance service already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._run_periodically())

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Maintenance service stopped")
