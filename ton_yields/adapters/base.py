from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional

from ton_yields.config import Settings, get_settings
from ton_yields.http import HttpClient
from ton_yields.models import FetchResult, TvlUnit, YieldRecord
from ton_yields.services.classifier import classify, is_risk_flagged_pair, normalize_pool_label
from ton_yields.services.protocols import format_protocol_name, protocol_url
from ton_yields.utils.loki import loki_log

logger = logging.getLogger(__name__)


class YieldAdapter(ABC):
    """One provider. Subclasses implement `_fetch_records` and may raise freely;
    `fetch_result` turns any failure into FetchResult.failure and `fetch` never raises.
    """

    name: str = "adapter"
    min_apy: float = 0.1
    min_tvl: float = 0.0

    def __init__(self, http: HttpClient, settings: Optional[Settings] = None):
        self.http = http
        self.settings = settings or get_settings()

    @abstractmethod
    async def _fetch_records(self) -> List[YieldRecord]:
        ...

    async def fetch_result(self) -> FetchResult:
        timeout = self.settings.ADAPTER_TIMEOUT_SECONDS
        started = time.monotonic()
        try:
            records = await asyncio.wait_for(self._fetch_records(), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"timed out after {timeout:.0f}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
        else:
            elapsed = int((time.monotonic() - started) * 1000)
            logger.info(f"{self.name}: {len(records)} records in {elapsed}ms")
            return FetchResult.success(self.name, records, elapsed_ms=elapsed)

        elapsed = int((time.monotonic() - started) * 1000)
        logger.warning(
            f"{self.name} fetch failed: {error}",
            extra={"event": "adapter_failed", "provider": self.name, "error": error, "elapsed_ms": elapsed},
        )
        await loki_log("WARNING", "adapter_failed", extra={"provider": self.name, "error": error, "elapsed_ms": elapsed})
        return FetchResult.failure(self.name, error, elapsed_ms=elapsed)

    async def fetch(self) -> List[YieldRecord]:
        return (await self.fetch_result()).records

    def passes_thresholds(self, apy: float, tvl: float) -> bool:
        return apy >= self.min_apy and tvl >= self.min_tvl

    def transform_each(self, items: Iterable[Any], transform: Callable[[Any], Optional[YieldRecord]]) -> List[YieldRecord]:
        """Apply `transform` per raw item; a malformed item is skipped, not fatal."""
        out: List[YieldRecord] = []
        for item in items:
            try:
                record = transform(item)
            except Exception as e:
                logger.debug(f"{self.name}: skipping malformed item: {e}")
                continue
            if record is not None:
                out.append(record)
        return out

    def make_record(
        self,
        *,
        protocol: str,
        asset_symbol: str,
        apy_total: float,
        tvl: float,
        apy_base: Optional[float] = None,
        apy_reward: Optional[float] = None,
        pool_label: Optional[str] = None,
        pool_id: Optional[str] = None,
        tvl_unit: TvlUnit = TvlUnit.USD,
        source_name: Optional[str] = None,
    ) -> YieldRecord:
        return YieldRecord(
            category=classify(asset_symbol),
            source_name=source_name or format_protocol_name(protocol),
            source_link=protocol_url(protocol),
            asset_symbol=asset_symbol,
            pool_label=normalize_pool_label(pool_label),
            pool_id=str(pool_id) if pool_id else None,
            apy_base=apy_total if apy_base is None else apy_base,
            apy_reward=apy_reward,
            apy_total=apy_total,
            tvl=tvl,
            tvl_unit=tvl_unit,
            is_risk_flagged_pair=is_risk_flagged_pair(asset_symbol),
            provider=self.name,
            protocol=protocol,
        )
