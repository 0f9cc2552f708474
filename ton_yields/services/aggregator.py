from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from ton_yields.adapters.base import YieldAdapter
from ton_yields.models import CategorizedBuckets, FetchResult, SourceSummary, YieldRecord
from ton_yields.services.classifier import is_correlated_in_category
from ton_yields.services.history import fold
from ton_yields.services.overlap import OverlapPolicy

logger = logging.getLogger(__name__)


POOL_ID_TAIL = 8


def _pool_id_labels(group: List[YieldRecord]) -> Optional[List[str]]:
    tails = [fold(r.pool_id)[-POOL_ID_TAIL:] if r.pool_id else "" for r in group]
    if not all(tails) or len(set(tails)) < len(tails):
        return None
    return [f"#{t}" for t in tails]


def label_duplicates(records: List[YieldRecord]) -> List[YieldRecord]:
    """Label unlabeled records that would otherwise share a pool identity.

    The label is the tail of the provider's pool id, so it follows the pool
    from one run to the next. Groups where some record has no usable pool id
    fall back to "#n" in list order (TVL desc), #1 being the largest.
    """
    groups: Dict[Tuple[str, str], List[int]] = {}
    for i, r in enumerate(records):
        if r.pool_label is None:
            groups.setdefault((fold(r.source_name), fold(r.asset_symbol)), []).append(i)

    labels: Dict[int, str] = {}
    for (source, asset), positions in groups.items():
        if len(positions) < 2:
            continue
        group = [records[i] for i in positions]
        names = _pool_id_labels(group)
        if names is None:
            logger.debug(f"{source}/{asset}: no pool ids for {len(group)} duplicates, labeling by TVL rank")
            names = [f"#{n}" for n in range(1, len(group) + 1)]
        labels.update(zip(positions, names))

    return [r.model_copy(update={"pool_label": labels[i]}) if i in labels else r for i, r in enumerate(records)]


def bucket_for(record: YieldRecord) -> Optional[str]:
    if record.is_risk_flagged_pair:
        return "risk_flagged"
    if is_correlated_in_category(record.asset_symbol, record.category):
        return record.category.value
    return None


class Aggregator:
    def __init__(self, adapters: Sequence[YieldAdapter], policy: Optional[OverlapPolicy] = None, top_n: int = 5):
        self.adapters = list(adapters)
        self.policy = policy or OverlapPolicy.from_settings()
        self.top_n = top_n
        self._last_refresh_at: int | None = None
        self._last_buckets = CategorizedBuckets()
        self._last_results: List[FetchResult] = []

    @property
    def last_refresh_at(self) -> int | None:
        return self._last_refresh_at

    async def collect(self) -> List[FetchResult]:
        """Run every adapter concurrently. Each adapter bounds itself and never raises."""
        return list(await asyncio.gather(*(a.fetch_result() for a in self.adapters)))

    def aggregate(self, results: Sequence[FetchResult]) -> CategorizedBuckets:
        records = [r for res in results for r in res.records]
        fetched = len(records)
        records = self.policy.apply(records)
        after_overlap = len(records)
        records = [r for r in records if r.is_valid()]

        buckets: Dict[str, List[YieldRecord]] = {"primary": [], "stable": [], "secondary": [], "risk_flagged": []}
        uncorrelated = 0
        for r in records:
            name = bucket_for(r)
            if name is None:
                uncorrelated += 1
                continue
            buckets[name].append(r)

        for name, items in buckets.items():
            items.sort(key=lambda r: r.tvl, reverse=True)
            buckets[name] = label_duplicates(items)

        result = CategorizedBuckets(**buckets)
        logger.info(
            f"Aggregated {fetched} records: {fetched - after_overlap} overlapping, "
            f"{after_overlap - len(records)} invalid, {uncorrelated} uncorrelated pairs; kept {result.counts()}"
        )
        return result

    async def refresh(self) -> CategorizedBuckets:
        results = await self.collect()
        buckets = self.aggregate(results)
        self._last_results = results
        self._last_buckets = buckets
        self._last_refresh_at = int(time.time())
        return buckets

    def current(self) -> CategorizedBuckets:
        return self._last_buckets

    def top(self, n: Optional[int] = None) -> List[YieldRecord]:
        return self._last_buckets.top(n or self.top_n)

    def source_summaries(self) -> List[SourceSummary]:
        return [
            SourceSummary(provider=r.provider, ok=r.ok, count=len(r.records), error=r.error, elapsed_ms=r.elapsed_ms)
            for r in self._last_results
        ]
