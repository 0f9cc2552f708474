from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.rates import as_float
from ton_yields.clients.graphql import graphql_query
from ton_yields.models import TvlUnit, YieldRecord
from ton_yields.services.classifier import is_eth_asset

logger = logging.getLogger(__name__)

METAMORPHO_QUERY = """
{
  metaMorphos {
    id
    name
    symbol
    decimals
    asset { symbol id decimals }
    rate { rate }
    lastTotalAssets
    idle
  }
}
"""

TEST_TOKENS = ["BMW", "LADA", "UNKNOWN"]

# Rough USD reference prices; the subgraph reports token amounts only
REFERENCE_PRICES_USD: Dict[str, float] = {
    "TON": 1.75,
    "TSTON": 1.75,
    "USD₮": 1.0,
    "USDT": 1.0,
    "USDC": 1.0,
    "WETH": 3300.0,
    "ETH": 3300.0,
    "WBTC": 95_000.0,
    "CBBTC": 95_000.0,
    "LBTC": 95_000.0,
}


def estimate_usd(token_amount: float, symbol: str) -> float:
    return token_amount * REFERENCE_PRICES_USD.get(symbol.upper(), 0.0)


class MorphoAdapter(YieldAdapter):
    """MetaMorpho vaults from the Morpho subgraph. `rate.rate` is a fraction (0.0341 = 3.41%)."""

    name = "morpho"
    min_apy = 0.01
    min_tvl = 100.0

    async def _fetch_records(self) -> List[YieldRecord]:
        data = await graphql_query(self.http, self.settings.MORPHO_SUBGRAPH_URL, METAMORPHO_QUERY)
        vaults = data.get("metaMorphos") or []
        logger.info(f"Morpho: {len(vaults)} MetaMorpho vaults")
        return self.transform_each(vaults, self._transform)

    def _transform(self, vault: Dict[str, Any]) -> Optional[YieldRecord]:
        apy = as_float(vault["rate"]["rate"]) * 100.0
        asset = str(vault["asset"]["symbol"])
        if any(t in asset.upper() for t in TEST_TOKENS) or is_eth_asset(asset):
            return None

        decimals = int(vault["asset"]["decimals"])
        tokens = as_float(vault.get("lastTotalAssets") or 0) / (10 ** decimals)
        tvl = estimate_usd(tokens, asset)
        if not self.passes_thresholds(apy, tvl):
            return None

        return self.make_record(
            protocol="morpho",
            asset_symbol=asset,
            apy_total=apy,
            tvl=tvl,
            tvl_unit=TvlUnit.USD_ESTIMATE,
            pool_label=vault.get("name"),
            pool_id=vault.get("id"),
        )
