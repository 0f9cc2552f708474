from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.rates import as_float, as_float_or
from ton_yields.clients.errors import ProviderError
from ton_yields.models import YieldRecord
from ton_yields.services.classifier import is_eth_asset, is_excluded_asset

logger = logging.getLogger(__name__)

MIN_TVL_USD = 100.0
MIN_APR = 0.05
# very high APR on a tiny pool is almost always an unsustainable memecoin farm
SUSPICIOUS_APR = 100.0
SUSPICIOUS_MAX_TVL = 10_000.0

# Two-token "pools" that are really staking: underlying plus receipt token
LST_PROTOCOLS = ("storm_trade", "kton", "stakee")


def _symbols(pool: Dict[str, Any]) -> List[str]:
    return [str(t["metadata"]["symbol"]) for t in pool.get("tokens") or []]


def asset_symbol(pool: Dict[str, Any]) -> str:
    """Single token as-is; LST pools collapse to the underlying; LP pools join as "A-B"."""
    symbols = _symbols(pool)
    if len(symbols) == 1:
        return symbols[0]

    protocol = str(pool.get("protocol") or "").lower()
    if protocol in LST_PROTOCOLS:
        if "storm" in protocol:
            underlying = next((s for s in symbols if not s.endswith("-SLP")), None)
            if underlying:
                return underlying
        ton = next((s for s in symbols if s.upper() == "TON"), None)
        if ton:
            return ton
    return "-".join(symbols)


def pool_label(pool: Dict[str, Any]) -> Optional[str]:
    tokens = pool.get("tokens") or []
    if len(tokens) == 2:
        symbols = _symbols(pool)
        for i, s in enumerate(symbols):
            if s.upper() == "TON":
                return symbols[1 - i]
        for i, t in enumerate(tokens):
            if (t.get("address") or {}).get("address") == "native":
                return symbols[1 - i]
    amm_type = (pool.get("pool") or {}).get("amm_type")
    if amm_type:
        return f"AMM: {amm_type}"
    return None


class SwapCoffeeAdapter(YieldAdapter):
    """swap.coffee yield aggregator, covering most TON-native protocols.
    The API reports simple APR; it is used as the ranking figure directly."""

    name = "swapcoffee"
    min_apy = MIN_APR
    min_tvl = MIN_TVL_USD

    async def _fetch_records(self) -> List[YieldRecord]:
        resp = await self.http.get(self.settings.SWAPCOFFEE_API_URL, headers={"Accept": "application/json"})
        data = resp.json()
        if not isinstance(data, list):
            raise ProviderError("swap.coffee response is not a list")
        if not data or not isinstance(data[0], dict) or not data[0].get("pools"):
            logger.warning("swap.coffee returned no pools")
            return []
        pools = data[0]["pools"]
        logger.info(f"swap.coffee: {len(pools)} pools")
        return self.transform_each(pools, self._transform)

    def _transform(self, pool: Dict[str, Any]) -> Optional[YieldRecord]:
        if not pool.get("is_trusted"):
            return None
        stats = pool["pool_statistics"]
        tvl = as_float(stats["tvl_usd"])
        apr = as_float(stats["apr"])
        protocol = str(pool["protocol"])

        if tvl < MIN_TVL_USD:
            return None
        # EVAA's USDe market runs near-zero rates but is still listed
        is_evaa_usde = protocol == "evaa" and any("USDE" in s.upper() for s in _symbols(pool))
        if apr < MIN_APR and not is_evaa_usde:
            return None
        if apr > SUSPICIOUS_APR and tvl < SUSPICIOUS_MAX_TVL:
            return None

        asset = asset_symbol(pool)
        if is_eth_asset(asset) or is_excluded_asset(asset):
            return None

        boost = as_float_or(stats.get("boost_apr"), 0.0)
        return self.make_record(
            protocol=protocol,
            asset_symbol=asset,
            apy_total=apr,
            apy_base=as_float_or(stats.get("lp_apr"), 0.0),
            apy_reward=boost if boost > 0 else None,
            tvl=tvl,
            pool_label=pool_label(pool),
            pool_id=pool.get("address"),
        )
