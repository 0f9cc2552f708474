from __future__ import annotations

import logging
from typing import Any, Dict, List

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.defillama import aggregate_across_chains
from ton_yields.clients.defillama import fetch_llama_pools
from ton_yields.models import YieldRecord

logger = logging.getLogger(__name__)

PROJECT = "yieldfi"


def normalize_yieldfi_symbol(symbol: str) -> str | None:
    lowered = symbol.lower()
    if "vyusd" in lowered:
        return "vyUSD"
    if "yusd" in lowered:
        return "yUSD"
    return None


class YieldFiAdapter(YieldAdapter):
    """yUSD / vyUSD are the same token on every network, so DefiLlama's
    per-chain pools are folded into one record per token."""

    name = "yieldfi"
    min_apy = 0.1

    async def _fetch_records(self) -> List[YieldRecord]:
        pools = await fetch_llama_pools(self.http, self.settings.DEFILLAMA_POOLS_URL)
        by_token: Dict[str, List[Dict[str, Any]]] = {}
        for p in pools:
            if str(p.get("project") or "").lower() != PROJECT:
                continue
            token = normalize_yieldfi_symbol(str(p.get("symbol") or ""))
            if token:
                by_token.setdefault(token, []).append(p)
        logger.info(f"YieldFi: {sum(len(v) for v in by_token.values())} pools across {len(by_token)} tokens")

        records: List[YieldRecord] = []
        for token, token_pools in by_token.items():
            apy, tvl = aggregate_across_chains(token_pools)
            if not self.passes_thresholds(apy, tvl):
                logger.debug(f"YieldFi: skipping {token}, APY {apy:.3f}% below floor")
                continue
            records.append(self.make_record(protocol=PROJECT, asset_symbol=token, apy_total=apy, tvl=tvl))
        return records
