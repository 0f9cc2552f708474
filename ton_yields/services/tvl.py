from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict

from ton_yields.clients.defillama import fetch_llama_protocols
from ton_yields.http import HttpClient
from ton_yields.models import ChainTvl
from ton_yields.services.history import HistoricalStore

logger = logging.getLogger(__name__)

# DefiLlama's headline "DeFi TVL" leaves these out
EXCLUDED_CATEGORIES = ["CEX", "Liquid Staking", "LSD"]
CEX_NAMES = ["binance", "bybit", "kucoin", "bitget", "htx", "okx", "gate.io"]


def is_excluded_protocol(protocol: Dict[str, Any]) -> bool:
    category = str(protocol.get("category") or "").lower()
    name = str(protocol.get("name") or "").lower()
    if any(c.lower() in category for c in EXCLUDED_CATEGORIES):
        return True
    return any(cex in name for cex in CEX_NAMES)


async def fetch_chain_tvl(http: HttpClient, url: str, chain: str = "TON") -> float:
    """Total DeFi TVL on `chain` in USD, or 0.0 when DefiLlama is unreachable."""
    try:
        protocols = await fetch_llama_protocols(http, url)
    except Exception as e:
        logger.warning(f"Failed to fetch {chain} TVL: {e}")
        return 0.0

    total = 0.0
    for p in protocols:
        if chain not in (p.get("chains") or []) and p.get("chain") != chain:
            continue
        if is_excluded_protocol(p):
            continue
        total += float((p.get("chainTvls") or {}).get(chain) or 0.0)
    return total


class ChainTvlTracker:
    """Day-over-day chain TVL, kept in the historical store under one identity."""

    def __init__(self, store: HistoricalStore, chain: str = "TON"):
        self.store = store
        self.identity = f"chain-tvl-{chain.lower()}"

    async def observe(self, tvl: float, today: dt.date) -> ChainTvl:
        yesterday = await self.store.latest(self.identity, today - dt.timedelta(days=1))
        result = ChainTvl(tvl=tvl)
        if yesterday is not None and yesterday.apy != 0:
            change = tvl - yesterday.apy
            result = ChainTvl(tvl=tvl, change=change, change_pct=change / yesterday.apy * 100)
        await self.store.record_snapshot(self.identity, today, tvl)
        return result
