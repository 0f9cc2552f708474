from __future__ import annotations

import logging
from typing import List

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.defillama import aggregate_across_chains
from ton_yields.clients.defillama import fetch_llama_pools
from ton_yields.models import YieldRecord

logger = logging.getLogger(__name__)

PROJECT = "ethena-usde"
SOURCE_SYMBOL = "SUSDE"
# tsUSDe on TON accrues the sUSDe rate
TON_SYMBOL = "tsUSDE"


class EthenaAdapter(YieldAdapter):
    name = "ethena"
    min_apy = 0.1

    async def _fetch_records(self) -> List[YieldRecord]:
        pools = await fetch_llama_pools(self.http, self.settings.DEFILLAMA_POOLS_URL)
        susde = [
            p
            for p in pools
            if str(p.get("project") or "").lower() == PROJECT and str(p.get("symbol") or "").upper() == SOURCE_SYMBOL
        ]
        logger.info(f"Ethena: {len(susde)} sUSDe pools")
        if not susde:
            return []

        apy, tvl = aggregate_across_chains(susde)
        if not self.passes_thresholds(apy, tvl):
            logger.debug(f"Ethena: APY {apy:.3f}% below floor")
            return []
        return [self.make_record(protocol="ethena", asset_symbol=TON_SYMBOL, apy_total=apy, tvl=tvl)]
