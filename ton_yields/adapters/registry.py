from __future__ import annotations

from typing import List, Optional

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.defillama import DefiLlamaAdapter
from ton_yields.adapters.ethena import EthenaAdapter
from ton_yields.adapters.euler import EulerAdapter
from ton_yields.adapters.merkl import MerklAdapter
from ton_yields.adapters.morpho import MorphoAdapter
from ton_yields.adapters.swapcoffee import SwapCoffeeAdapter
from ton_yields.adapters.yieldfi import YieldFiAdapter
from ton_yields.config import Settings, get_settings
from ton_yields.http import HttpClient

ADAPTER_CLASSES = [
    DefiLlamaAdapter,
    MerklAdapter,
    MorphoAdapter,
    EulerAdapter,
    YieldFiAdapter,
    EthenaAdapter,
    SwapCoffeeAdapter,
]


def build_default_adapters(http: HttpClient, settings: Optional[Settings] = None) -> List[YieldAdapter]:
    settings = settings or get_settings()
    return [cls(http, settings) for cls in ADAPTER_CLASSES]
