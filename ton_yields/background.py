from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ton_yields.config import get_settings
from ton_yields.models import PipelineResult
from ton_yields.services.pipeline import YieldPipeline
from ton_yields.utils.loki import loki_log

logger = logging.getLogger(__name__)


class BackgroundRefresher:
    def __init__(self, pipeline: YieldPipeline, interval: Optional[int] = None):
        self.pipeline = pipeline
        self.interval = interval or get_settings().REFRESH_INTERVAL_SECONDS
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()
        # manual refreshes and the loop never overlap, so snapshot writes stay ordered
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._stopping.set()
        if self._task:
            await self._task
        self._task = None

    async def run_once(self) -> PipelineResult:
        async with self._lock:
            result = await self.pipeline.run()
        total = sum(result.buckets.counts().values())
        logger.info(f"✅ TON yields refreshed: {total} records, top {len(result.top)}")
        return result

    async def _run_loop(self) -> None:
        logger.info(f"Background refresher started (interval={self.interval}s)")
        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Refresh iteration failed: {e}")
                await loki_log("ERROR", "refresh_failed", extra={"error": str(e)})
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
