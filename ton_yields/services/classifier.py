"""Asset classification and pair-risk rules.

Every check works on a case-folded symbol. Category identifier lists are
matched as substrings, so ``tsUSDe`` is a stablecoin and ``cbBTC`` is BTC.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from ton_yields.models import AssetCategory

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_PAIR_SPLIT = re.compile(r"[-/]")
_NUMERIC = re.compile(r"^\d+$")


def _fold(symbol: str) -> str:
    return _NON_ALNUM.sub("", symbol.upper())


STABLE_ASSETS = [
    "USDT", "USD₮", "USDC", "DAI",
    # Ethena
    "USDE", "SUSDE", "TSUSDE",
    # Resolv
    "USR", "RLP", "WSTUSR", "STUSR",
    # Usual
    "USD0", "USD0++",
    "USN", "SUSN",
    "TUSD", "BUSD", "FRAX", "LUSD",
    # YieldFi
    "YUSD", "VYUSD",
]

SECONDARY_ASSETS = ["cbBTC", "WBTC", "tBTC", "BTC", "LBTC", "M-BTC", "MBTC"]

PRIMARY_ASSETS = ["TON", "TSTON", "STTON", "HTON", "BMTON", "WTON"]

_STABLE_IDS = [_fold(s) for s in STABLE_ASSETS if _fold(s)]
_SECONDARY_IDS = [_fold(s) for s in SECONDARY_ASSETS]
_PRIMARY_IDS = [_fold(s) for s in PRIMARY_ASSETS]

_CATEGORY_IDS: Dict[AssetCategory, List[str]] = {
    AssetCategory.PRIMARY: _PRIMARY_IDS,
    AssetCategory.STABLE: _STABLE_IDS,
    AssetCategory.SECONDARY: _SECONDARY_IDS,
}

# Pairs whose legs track each other closely (no impermanent-loss exposure)
CORRELATED_PAIRS: Dict[AssetCategory, List[Tuple[str, str]]] = {
    AssetCategory.PRIMARY: [
        ("TON", "TSTON"),
        ("TON", "STTON"),
        ("TON", "HTON"),
        ("TON", "BMTON"),
        ("TSTON", "STTON"),
        ("TSTON", "HTON"),
        ("STTON", "HTON"),
        ("STTON", "BMTON"),
    ],
    AssetCategory.STABLE: [
        ("USDT", "USDC"),
        ("USDT", "USDE"),
        ("USDT", "USN"),
        ("USDT", "USD0"),
        ("USDT", "USR"),
        ("USDT", "DAI"),
        ("USDC", "USDE"),
        ("USDC", "USN"),
        ("USDC", "USD0"),
        ("USDC", "USR"),
        ("USDE", "USN"),
        ("USDE", "USD0"),
        ("USDE", "USR"),
        ("USDE", "SUSDE"),
        ("USDE", "TSUSDE"),
        ("TSUSDE", "SUSDE"),
        ("TSUSDE", "USDT"),
        ("TSUSDE", "USDC"),
        ("USN", "USD0"),
        ("USN", "USR"),
        ("USD0", "USR"),
        ("USR", "WSTUSR"),
        ("USR", "RLP"),
    ],
    AssetCategory.SECONDARY: [
        ("BTC", "WBTC"),
        ("BTC", "CBBTC"),
        ("BTC", "LBTC"),
        ("CBBTC", "LBTC"),
        ("CBBTC", "WBTC"),
        ("LBTC", "WBTC"),
        ("CBBTC", "MBTC"),
    ],
}

# Tokens inside multi-asset vault names that are not assets
NON_ASSET_TOKENS = ["VAULT", "POOL", "LP", "XAUT", "MAIN", "STABLE", "ALTS"]

# Memecoins and spam tickers
EXCLUDED_ASSETS = ["NOT", "DOGS", "HMSTR", "CATI", "REDO", "JETTON", "PUNK", "ANON"]

# Bridged Ethereum assets, out of scope for this deployment
ETH_ASSETS = [
    "ETH", "WETH",
    "stETH", "wstETH",
    "rETH",
    "rsETH", "wrsETH",
    "pufETH",
    "eETH", "weETH",
]
_ETH_IDS = sorted({_fold(s) for s in ETH_ASSETS})

NATIVE_ASSET = "TON"
DOMINANT_STABLE_VARIANTS = {"USDT", "TSUSDT", "USDT.E"}


def classify(symbol: str) -> AssetCategory:
    """Stablecoins first (most specific), then the reserve asset, else the native asset."""
    folded = _fold(symbol)
    if any(s in folded for s in _STABLE_IDS):
        return AssetCategory.STABLE
    if any(b in folded for b in _SECONDARY_IDS):
        return AssetCategory.SECONDARY
    return AssetCategory.PRIMARY


def is_single_asset(symbol: str) -> bool:
    return "-" not in symbol and "/" not in symbol


def parse_lp_pair(symbol: str) -> Optional[Tuple[str, str]]:
    """Split "A-B" (or "A-B-VAULT7", "A-B-C") into its first two asset legs, upper-cased."""
    parts = [p for p in _PAIR_SPLIT.split(symbol) if p]
    if len(parts) == 2:
        return parts[0].upper(), parts[1].upper()
    if len(parts) < 3:
        return None

    assets = [
        p.upper()
        for p in parts
        if not _NUMERIC.match(p) and not any(t in p.upper() for t in NON_ASSET_TOKENS)
    ]
    unique: List[str] = []
    for a in assets:
        if a not in unique:
            unique.append(a)
    if len(unique) < 2:
        return None
    return unique[0], unique[1]


def _leg_in_category(leg: str, category: AssetCategory) -> bool:
    folded = _fold(leg)
    return any(ident in folded for ident in _CATEGORY_IDS[category])


def pair_belongs_to_category(symbol: str, category: AssetCategory) -> bool:
    if is_single_asset(symbol):
        return classify(symbol) == category
    pair = parse_lp_pair(symbol)
    if pair is None:
        return False
    return _leg_in_category(pair[0], category) and _leg_in_category(pair[1], category)


def is_correlated_pair(symbol: str, category: AssetCategory) -> bool:
    if is_single_asset(symbol):
        return True
    pair = parse_lp_pair(symbol)
    if pair is None:
        return False
    a1, a2 = _fold(pair[0]), _fold(pair[1])
    return any(
        (a in a1 and b in a2) or (b in a1 and a in a2)
        for a, b in CORRELATED_PAIRS[category]
    )


def is_risk_flagged_pair(symbol: str) -> bool:
    """Exact TON / USDT pair in either order. LSTs and look-alikes (STON, TONNEL) do not count."""
    pair = parse_lp_pair(symbol)
    if pair is None:
        return False
    a1, a2 = (leg.replace("USD₮", "USDT") for leg in pair)
    return (a1 == NATIVE_ASSET and a2 in DOMINANT_STABLE_VARIANTS) or (
        a2 == NATIVE_ASSET and a1 in DOMINANT_STABLE_VARIANTS
    )


def is_excluded_asset(symbol: str) -> bool:
    upper = symbol.upper()
    legs = _PAIR_SPLIT.split(upper)
    return any(ex in legs for ex in EXCLUDED_ASSETS)


def is_eth_asset(symbol: str) -> bool:
    folded = _fold(symbol)
    return any(folded == eth or folded.startswith(eth) for eth in _ETH_IDS)


def is_correlated_in_category(symbol: str, category: AssetCategory) -> bool:
    """Singles pass; pairs need both legs in `category` and a known low-divergence pairing."""
    if is_single_asset(symbol):
        return True
    return pair_belongs_to_category(symbol, category) and is_correlated_pair(symbol, category)


_LABEL_NOISE = re.compile(r"pool|vault", re.IGNORECASE)
_LABEL_SEPARATORS = re.compile(r"[-_]+")
_LABEL_SPACES = re.compile(r"\s+")


def normalize_pool_label(label: Optional[str]) -> Optional[str]:
    """Display form of a provider pool label. Run before deriving a pool identity."""
    if not label:
        return None
    cleaned = _LABEL_NOISE.sub("", label)
    cleaned = _LABEL_SEPARATORS.sub(" ", cleaned)
    cleaned = _LABEL_SPACES.sub(" ", cleaned).strip()
    if not cleaned:
        return None
    return cleaned[0].upper() + cleaned[1:]
