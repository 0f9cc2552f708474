from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from ton_yields.adapters.registry import build_default_adapters
from ton_yields.config import Settings, get_settings
from ton_yields.http import HttpClient
from ton_yields.models import ChainTvl, PipelineResult
from ton_yields.services.aggregator import Aggregator
from ton_yields.services.history import HistoricalStore
from ton_yields.services.overlap import OverlapPolicy
from ton_yields.services.storage import build_backend
from ton_yields.services.tvl import ChainTvlTracker, fetch_chain_tvl

logger = logging.getLogger(__name__)


def utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


class YieldPipeline:
    """aggregate -> averages -> today's snapshots -> chain TVL.

    Averages are read before today's snapshot is written, so they describe the
    preceding days. Nothing is persisted until aggregation has fully completed.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        store: HistoricalStore,
        http: HttpClient,
        settings: Optional[Settings] = None,
    ):
        self.aggregator = aggregator
        self.store = store
        self.http = http
        self.settings = settings or get_settings()
        self.tvl_tracker = ChainTvlTracker(store, chain=self.settings.CHAIN)
        self.last_result: PipelineResult | None = None

    async def run(self, today: Optional[dt.date] = None) -> PipelineResult:
        today = today or utc_today()
        buckets = await self.aggregator.refresh()
        records = buckets.all_records()

        averages = await self.store.averages_for(records)
        await self.store.record_all(records, today)

        chain_tvl: ChainTvl | None = None
        tvl = await fetch_chain_tvl(self.http, self.settings.DEFILLAMA_PROTOCOLS_URL, chain=self.settings.CHAIN)
        if tvl > 0:
            chain_tvl = await self.tvl_tracker.observe(tvl, today)

        result = PipelineResult(
            buckets=buckets,
            averages=averages,
            top=buckets.top(self.aggregator.top_n),
            chain_tvl=chain_tvl,
            sources=self.aggregator.source_summaries(),
            generated_at=dt.datetime.now(dt.timezone.utc),
        )
        self.last_result = result
        logger.info(f"Pipeline run complete: {buckets.counts()}, {len(averages)} averages")
        return result


async def build_pipeline(http: HttpClient, settings: Optional[Settings] = None) -> YieldPipeline:
    """Default wiring: every adapter, configured overlap rules, configured history backend."""
    settings = settings or get_settings()
    aggregator = Aggregator(
        build_default_adapters(http, settings),
        OverlapPolicy.from_settings(settings),
        top_n=settings.TOP_N,
    )
    store = HistoricalStore(
        await build_backend(settings),
        window_days=settings.AVERAGE_WINDOW_DAYS,
        min_snapshots=settings.HISTORY_MIN_SNAPSHOTS,
        retention=settings.HISTORY_RETENTION_DAYS,
    )
    return YieldPipeline(aggregator, store, http, settings)
