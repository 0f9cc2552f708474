from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.rates import apr_to_apy, as_float, as_float_or
from ton_yields.clients.errors import ProviderError
from ton_yields.models import YieldRecord
from ton_yields.services.classifier import is_excluded_asset

logger = logging.getLogger(__name__)

_NAME_PREFIXES = re.compile(r"^(Provide liquidity to\s+|(Curve|Morpho|Euler|Carbon|Snap)\s+)", re.IGNORECASE)
_NAME_SUFFIXES = re.compile(r"\s+(Pool|Vault)$", re.IGNORECASE)


def extract_asset_symbol(name: str, main_parameter: Optional[str] = None) -> str:
    """Merkl campaign name -> asset symbol, e.g. "Curve USDT/USDC Pool" -> "USDT-USDC"."""
    if main_parameter:
        return main_parameter
    cleaned = name.strip()
    # prefixes can stack ("Provide liquidity to Curve ...")
    while True:
        stripped = _NAME_PREFIXES.sub("", cleaned, count=1)
        if stripped == cleaned:
            break
        cleaned = stripped
    cleaned = _NAME_SUFFIXES.sub("", cleaned)
    return cleaned.replace("/", "-").strip()


class MerklAdapter(YieldAdapter):
    """Reward campaigns on the TAC chain. Merkl reports simple APR, reward-only."""

    name = "merkl"

    def __init__(self, http, settings=None):
        super().__init__(http, settings)
        self.min_apy = self.settings.MIN_APY
        self.min_tvl = self.settings.MIN_TVL_USD

    async def _fetch_records(self) -> List[YieldRecord]:
        resp = await self.http.get(self.settings.MERKL_API_URL, params={"chainId": self.settings.MERKL_CHAIN_ID})
        data = resp.json()
        if not isinstance(data, list):
            raise ProviderError("Merkl response is not a list of opportunities")
        logger.info(f"Merkl: {len(data)} opportunities")
        return self.transform_each(data, self._transform)

    def _transform(self, opp: Dict[str, Any]) -> Optional[YieldRecord]:
        if int(opp.get("chainId", -1)) != self.settings.MERKL_CHAIN_ID:
            return None
        apr = as_float(opp["apr"])
        tvl = as_float_or(opp.get("tvl"), 0.0)
        if apr <= 0:
            return None

        asset = extract_asset_symbol(str(opp["name"]), opp.get("mainParameter"))
        if is_excluded_asset(asset):
            return None
        apy = apr_to_apy(apr)
        if not self.passes_thresholds(apy, tvl):
            return None

        return self.make_record(
            protocol=str(opp["protocol"]["name"]),
            asset_symbol=asset,
            apy_total=apy,
            apy_base=0.0,
            apy_reward=apy,
            tvl=tvl,
            pool_label="Merkl",
            pool_id=opp.get("id"),
        )
