from __future__ import annotations

import logging
from typing import Any, Dict, List

from ton_yields.clients.errors import ProviderError
from ton_yields.http import HttpClient

logger = logging.getLogger(__name__)


async def fetch_llama_pools(http: HttpClient, url: str) -> List[Dict[str, Any]]:
    """Fetch every pool from the DefiLlama Yields API.

    Docs: https://yields.llama.fi/pools
    """
    resp = await http.get(url)
    data = resp.json()
    pools = data.get("data") if isinstance(data, dict) else None
    if not isinstance(pools, list):
        raise ProviderError("DefiLlama pools response has no 'data' list")
    logger.debug(f"DefiLlama returned {len(pools)} pools")
    return pools


async def fetch_llama_protocols(http: HttpClient, url: str) -> List[Dict[str, Any]]:
    """Fetch the DefiLlama protocol list (per-chain TVL breakdown included)."""
    resp = await http.get(url)
    data = resp.json()
    if not isinstance(data, list):
        raise ProviderError("DefiLlama protocols response is not a list")
    return data
