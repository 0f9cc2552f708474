from __future__ import annotations

import datetime as dt
import math
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

APY_CEILING = 10_000.0


class AssetCategory(str, Enum):
    PRIMARY = "primary"      # native chain asset and its LSTs
    STABLE = "stable"
    SECONDARY = "secondary"  # reserve asset (BTC and wrappers)


class TvlUnit(str, Enum):
    USD = "usd"
    USD_ESTIMATE = "usd_estimate"  # token amount x static reference price
    TOKEN = "token"                # raw token count, no price available


class YieldRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: AssetCategory
    source_name: str = Field(..., description="Display name of the protocol")
    source_link: str = Field(default="", description="Protocol app / mini-app URL, empty when unknown")
    asset_symbol: str = Field(..., description="Symbol or hyphen-joined pair, e.g. 'TON-tsTON'")
    pool_label: Optional[str] = Field(default=None, description="Vault name / pool index when one source lists an asset twice")
    pool_id: Optional[str] = Field(default=None, description="Provider's stable pool / vault id, used to tell unlabeled duplicates apart")
    apy_base: float = Field(default=0.0, description="Base APY in %")
    apy_reward: Optional[float] = Field(default=None, description="Incentive APY in %")
    apy_total: float = Field(..., description="Ranking APY in %")
    tvl: float
    tvl_unit: TvlUnit = TvlUnit.USD
    is_risk_flagged_pair: bool = False
    provider: str = Field(..., description="Adapter that produced the record")
    protocol: str = Field(default="", description="Provider's raw protocol slug")

    @property
    def tvl_is_proxy(self) -> bool:
        return self.tvl_unit is not TvlUnit.USD

    def is_valid(self) -> bool:
        """Data-validity band: 0 < apy_total < 10000 and a finite TVL."""
        if not (math.isfinite(self.apy_total) and math.isfinite(self.tvl)):
            return False
        return 0.0 < self.apy_total < APY_CEILING


class SourceGroup(BaseModel):
    source_name: str
    source_link: str
    records: List[YieldRecord]

    @property
    def total_tvl(self) -> float:
        return sum(r.tvl for r in self.records)


BUCKET_NAMES = ("primary", "stable", "secondary", "risk_flagged")


class CategorizedBuckets(BaseModel):
    primary: List[YieldRecord] = Field(default_factory=list)
    stable: List[YieldRecord] = Field(default_factory=list)
    secondary: List[YieldRecord] = Field(default_factory=list)
    risk_flagged: List[YieldRecord] = Field(default_factory=list)

    def bucket(self, name: str) -> List[YieldRecord]:
        if name not in BUCKET_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def groups(self, name: str) -> List[SourceGroup]:
        """Records of one bucket grouped by source, largest group TVL first."""
        by_source: Dict[str, List[YieldRecord]] = {}
        for r in self.bucket(name):
            by_source.setdefault(r.source_name, []).append(r)
        groups = [
            SourceGroup(
                source_name=source,
                source_link=records[0].source_link,
                records=sorted(records, key=lambda r: r.tvl, reverse=True),
            )
            for source, records in by_source.items()
        ]
        groups.sort(key=lambda g: g.total_tvl, reverse=True)
        return groups

    def top(self, n: int = 5) -> List[YieldRecord]:
        # Risk-flagged pairs carry divergence risk and never rank here
        ranked = sorted(self.primary + self.stable + self.secondary, key=lambda r: r.apy_total, reverse=True)
        return ranked[:n]

    def all_records(self) -> List[YieldRecord]:
        return self.primary + self.stable + self.secondary + self.risk_flagged

    def counts(self) -> Dict[str, int]:
        return {name: len(self.bucket(name)) for name in BUCKET_NAMES}

    def is_empty(self) -> bool:
        return not self.all_records()


class FetchResult(BaseModel):
    """Outcome of one adapter call: Ok(records) or Err(error)."""

    provider: str
    records: List[YieldRecord] = Field(default_factory=list)
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, provider: str, records: List[YieldRecord], elapsed_ms: int = 0) -> "FetchResult":
        return cls(provider=provider, records=records, elapsed_ms=elapsed_ms)

    @classmethod
    def failure(cls, provider: str, error: str, elapsed_ms: int = 0) -> "FetchResult":
        return cls(provider=provider, error=error, elapsed_ms=elapsed_ms)


class SourceSummary(BaseModel):
    provider: str
    ok: bool
    count: int
    error: Optional[str] = None
    elapsed_ms: int = 0


class ApySnapshot(BaseModel):
    date: dt.date
    apy: float


class PoolHistory(BaseModel):
    identity: str
    snapshots: List[ApySnapshot] = Field(default_factory=list, description="Newest first")


class ChainTvl(BaseModel):
    tvl: float
    change: Optional[float] = None
    change_pct: Optional[float] = None


class PipelineResult(BaseModel):
    buckets: CategorizedBuckets
    averages: Dict[str, float] = Field(default_factory=dict, description="pool identity -> trailing average APY")
    top: List[YieldRecord] = Field(default_factory=list)
    chain_tvl: Optional[ChainTvl] = None
    sources: List[SourceSummary] = Field(default_factory=list)
    generated_at: dt.datetime


class YieldView(BaseModel):
    identity: str
    record: YieldRecord
    tvl_is_proxy: bool
    apy_avg_7d: Optional[float] = None


class ServiceStatus(BaseModel):
    last_refresh_at: Optional[int]
    records_tracked: Dict[str, int]
    sources: List[SourceSummary]
    avg_apy: float
    chain_tvl: Optional[ChainTvl] = None
