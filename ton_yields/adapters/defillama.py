from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.rates import as_float, as_float_or
from ton_yields.clients.defillama import fetch_llama_pools
from ton_yields.models import YieldRecord
from ton_yields.services.classifier import is_excluded_asset

logger = logging.getLogger(__name__)


class DefiLlamaAdapter(YieldAdapter):
    """Broad multi-protocol index. Overlap with protocol-specific providers is
    resolved later by the aggregator's overlap policy, not here."""

    name = "defillama"

    def __init__(self, http, settings=None):
        super().__init__(http, settings)
        self.min_apy = self.settings.MIN_APY
        self.min_tvl = self.settings.MIN_TVL_USD

    async def _fetch_records(self) -> List[YieldRecord]:
        pools = await fetch_llama_pools(self.http, self.settings.DEFILLAMA_POOLS_URL)
        chain = self.settings.CHAIN.upper()
        chain_pools = [p for p in pools if str(p.get("chain") or "").upper() == chain]
        logger.info(f"DefiLlama: {len(pools)} pools, {len(chain_pools)} on {chain}")
        return self.transform_each(chain_pools, self._transform)

    def _transform(self, p: Dict[str, Any]) -> Optional[YieldRecord]:
        symbol = str(p["symbol"])
        project = str(p["project"])
        if is_excluded_asset(symbol):
            return None

        apy_base = as_float_or(p.get("apyBase"), 0.0)
        apy_reward = p.get("apyReward")
        apy_reward = as_float(apy_reward) if apy_reward is not None else None
        if p.get("apy") is not None:
            apy_total = as_float(p["apy"])
        else:
            apy_total = apy_base + (apy_reward or 0.0)
        tvl = as_float_or(p.get("tvlUsd"), 0.0)
        if not self.passes_thresholds(apy_total, tvl):
            return None

        return self.make_record(
            protocol=project,
            asset_symbol=symbol,
            apy_total=apy_total,
            apy_base=apy_base,
            apy_reward=apy_reward,
            tvl=tvl,
            pool_label=p.get("poolMeta"),
            pool_id=p.get("pool"),
        )


def aggregate_across_chains(pools: List[Dict[str, Any]]) -> Tuple[float, float]:
    """One token listed on several networks: best APY, summed TVL."""
    apy = 0.0
    tvl = 0.0
    for p in pools:
        apy = max(apy, as_float_or(p.get("apy"), 0.0))
        tvl += as_float_or(p.get("tvlUsd"), 0.0)
    return apy, tvl
