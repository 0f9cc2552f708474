from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from ton_yields.models import ApySnapshot, PoolHistory, YieldRecord
from ton_yields.services.storage import SnapshotBackend

logger = logging.getLogger(__name__)

BATCH_SIZE = 50

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def fold(value: str) -> str:
    return _NON_ALNUM.sub("", value).lower()


def derive_identity(source_name: str, asset_symbol: str, pool_label: Optional[str] = None) -> str:
    """e.g. ("EVAA", "USDT", "Main") -> "evaa-usdt-main"."""
    return f"{fold(source_name)}-{fold(asset_symbol)}-{fold(pool_label or 'default')}"


def pool_identity(record: YieldRecord) -> str:
    return derive_identity(record.source_name, record.asset_symbol, record.pool_label)


def _batches(items: Sequence, size: int = BATCH_SIZE) -> Iterable[Sequence]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class HistoricalStore:
    """Daily APY snapshots per pool and trailing averages over them.

    Backend failures are logged and swallowed: a missing average is always
    preferable to a failed run.
    """

    def __init__(
        self,
        backend: SnapshotBackend,
        window_days: int = 7,
        min_snapshots: int = 3,
        retention: int = 30,
    ):
        self.backend = backend
        self.window_days = window_days
        self.min_snapshots = min_snapshots
        self.retention = retention

    async def record_snapshot(self, identity: str, date: dt.date, apy: float) -> None:
        try:
            await self.backend.put(identity, ApySnapshot(date=date, apy=apy))
        except Exception as e:
            logger.warning(f"Failed to save snapshot for {identity}: {e}")

    async def average_over_window(self, identity: str, window_days: Optional[int] = None) -> Optional[float]:
        window = self.window_days if window_days is None else window_days
        if window <= 0:
            return None
        try:
            snapshots = await self.backend.recent(identity, max(window, self.min_snapshots))
        except Exception as e:
            logger.warning(f"Failed to load history for {identity}: {e}")
            return None
        # the minimum counts stored snapshots, the mean only the window
        if len(snapshots) < self.min_snapshots:
            return None
        in_window = snapshots[:window]
        return sum(s.apy for s in in_window) / len(in_window)

    async def latest(self, identity: str, date: dt.date) -> Optional[ApySnapshot]:
        try:
            return await self.backend.get(identity, date)
        except Exception as e:
            logger.warning(f"Failed to load snapshot {identity}@{date}: {e}")
            return None

    async def history(self, identity: str) -> PoolHistory:
        try:
            snapshots = await self.backend.recent(identity, self.retention)
        except Exception as e:
            logger.warning(f"Failed to load history for {identity}: {e}")
            snapshots = []
        return PoolHistory(identity=identity, snapshots=snapshots)

    async def record_all(self, records: Sequence[YieldRecord], date: dt.date) -> None:
        logger.info(f"Saving APY snapshots for {len(records)} pools")
        for batch in _batches(records):
            await asyncio.gather(*(self.record_snapshot(pool_identity(r), date, r.apy_total) for r in batch))

    async def averages_for(self, records: Sequence[YieldRecord]) -> Dict[str, float]:
        averages: Dict[str, float] = {}
        for batch in _batches(records):
            identities = [pool_identity(r) for r in batch]
            results: List[Optional[float]] = await asyncio.gather(
                *(self.average_over_window(i) for i in identities)
            )
            for identity, avg in zip(identities, results):
                if avg is not None:
                    averages[identity] = avg
        logger.info(f"Calculated {self.window_days}-day averages for {len(averages)}/{len(records)} pools")
        return averages
