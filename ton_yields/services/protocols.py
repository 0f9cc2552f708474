from __future__ import annotations

import re
from typing import Dict

# Provider project slug -> protocol app (Telegram mini-app where one exists)
PROTOCOL_URLS: Dict[str, str] = {
    # Liquid staking
    "tonstakers": "https://tonstakers.com/",
    "bemo": "https://www.bemo.finance/",
    "bemo_v2": "https://www.bemo.finance/",
    "hipo": "https://hipo.finance/",
    "kton": "https://kton.io/",
    "stakee": "https://stakee.ton.org/",
    "torch_finance": "https://torchfinance.org/",
    # Lending
    "evaa": "https://t.me/EvaaAppBot",
    "evaa-protocol": "https://t.me/EvaaAppBot",
    "morpho": "https://t.me/MorphoOrgBot",
    "euler": "https://t.me/EulerFinanceBot",
    "affluent": "https://t.me/AffluentAppBot",
    # Yield
    "fiva": "https://t.me/fiva_yield_bot",
    "daolama": "https://daolama.co/",
    "dao_lama_vault": "https://daolama.co/",
    "yieldfi": "https://t.me/yieldfi_bot",
    "yield-fi": "https://t.me/yieldfi_bot",
    "yield.fi": "https://t.me/yieldfi_bot",
    "ethena": "https://app.ethena.fi/earn/ton",
    # DEXs
    "ston-fi": "https://app.ston.fi/pools",
    "ston.fi": "https://app.ston.fi/pools",
    "stonfi": "https://app.ston.fi/pools",
    "stonfi_v2": "https://app.ston.fi/pools",
    "dedust": "https://dedust.io/pools",
    "tonco": "https://tonco.io/",
    "curve": "https://t.me/CurveAppBot",
    "curve-dex": "https://t.me/CurveAppBot",
    "swap-coffee": "https://swap.coffee/earn",
    "swap.coffee": "https://swap.coffee/earn",
    "swapcoffee": "https://swap.coffee/earn",
    "coffee": "https://swap.coffee/earn",
    "moon": "https://moon.ton.org/",
    "bidask": "https://bidask.io/",
    # TAC DEXs
    "carbon": "https://t.me/CarbonDefiAppBot",
    "carbon-defi": "https://t.me/CarbonDefiAppBot",
    "carbondefi": "https://t.me/CarbonDefiAppBot",
    "bancor": "https://t.me/CarbonDefiAppBot",
    "snap": "https://www.snap.club/",
    "snap-dex": "https://www.snap.club/",
    "snapdex": "https://www.snap.club/",
    # Perps
    "storm-trade": "https://t.me/StormTradeBot",
}

DISPLAY_NAMES: Dict[str, str] = {
    "ston-fi": "Ston.fi",
    "ston.fi": "Ston.fi",
    "stonfi": "Ston.fi",
    "stonfi_v2": "Ston.fi",
    "dedust": "DeDust",
    "evaa": "EVAA",
    "evaa-protocol": "EVAA",
    "tonstakers": "Tonstakers",
    "tonco": "Tonco",
    "megaton-finance": "Megaton",
    "bemo": "Bemo",
    "bemo_v2": "Bemo",
    "hipo": "Hipo",
    "kton": "KTON",
    "stakee": "Stakee",
    "torch_finance": "Torch Finance",
    "storm-trade": "Storm Trade",
    "storm_trade": "Storm Trade",
    "morpho": "Morpho",
    "euler": "Euler",
    "affluent": "Affluent",
    "curve": "Curve",
    "curve-dex": "Curve",
    "fiva": "FIVA",
    "daolama": "Daolama",
    "dao_lama_vault": "Daolama",
    "swap-coffee": "Swap.coffee",
    "swap.coffee": "Swap.coffee",
    "swapcoffee": "Swap.coffee",
    "coffee": "Swap.coffee",
    "moon": "Moon",
    "bidask": "BidAsk",
    "yieldfi": "YieldFi",
    "ethena": "Ethena",
    "carbon": "Carbon",
    "carbon-defi": "Carbon",
    "carbondefi": "Carbon",
    "bancor": "Bancor",
    "snap": "Snap",
    "snap-dex": "Snap",
    "snapdex": "Snap",
}


def protocol_url(project: str) -> str:
    """App link for a project slug, or "" when none is known."""
    lowered = project.lower()
    dashed = re.sub(r"[\s_]", "-", lowered)
    for candidate in (dashed, dashed.replace("-", ""), lowered):
        if candidate in PROTOCOL_URLS:
            return PROTOCOL_URLS[candidate]
    return ""


def format_protocol_name(project: str) -> str:
    lowered = project.lower()
    if lowered in DISPLAY_NAMES:
        return DISPLAY_NAMES[lowered]
    return " ".join(w[:1].upper() + w[1:] for w in re.split(r"[-_\s]+", project) if w)
