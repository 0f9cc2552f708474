from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.rates import decode_fixed_point
from ton_yields.clients.rpc import encode_call, eth_call
from ton_yields.models import TvlUnit, YieldRecord
from ton_yields.services.classifier import is_eth_asset

logger = logging.getLogger(__name__)

# Lens APYs are percentages scaled by 1e25 (a 1e27 fraction)
APY_DECIMALS = 25

TEST_TOKENS = ["BMW", "LADA", "UNKNOWN"]

ASSET_PRICE_INFO = "(bool,bytes,uint256,address,address,address,uint256,uint256,uint256,uint256)"
ORACLE_DETAILED_INFO = "(address,string,bytes)"
INTEREST_RATE_INFO = "(uint256,uint256,uint256,uint256,uint256)"  # cash, borrows, borrowSPY, borrowAPY, supplyAPY
IRM_DETAILED_INFO = "(address,uint8,bytes)"
VAULT_IRM_INFO = f"(bool,bytes,address,address,{INTEREST_RATE_INFO}[],{IRM_DETAILED_INFO})"
LTV_INFO = "(address,uint256,uint256,uint256,uint256,uint256)"

# VaultLens.getVaultInfoFull return struct, in ABI order
VAULT_INFO_FIELDS = [
    ("timestamp", "uint256"),
    ("vault", "address"),
    ("vaultName", "string"),
    ("vaultSymbol", "string"),
    ("vaultDecimals", "uint256"),
    ("asset", "address"),
    ("assetName", "string"),
    ("assetSymbol", "string"),
    ("assetDecimals", "uint256"),
    ("unitOfAccount", "address"),
    ("unitOfAccountName", "string"),
    ("unitOfAccountSymbol", "string"),
    ("unitOfAccountDecimals", "uint256"),
    ("totalShares", "uint256"),
    ("totalCash", "uint256"),
    ("totalBorrowed", "uint256"),
    ("totalAssets", "uint256"),
    ("accumulatedFeesShares", "uint256"),
    ("accumulatedFeesAssets", "uint256"),
    ("governorFeeReceiver", "address"),
    ("protocolFeeReceiver", "address"),
    ("protocolFeeShare", "uint256"),
    ("interestFee", "uint256"),
    ("hookedOperations", "uint256"),
    ("configFlags", "uint256"),
    ("supplyCap", "uint256"),
    ("borrowCap", "uint256"),
    ("maxLiquidationDiscount", "uint256"),
    ("liquidationCoolOffTime", "uint256"),
    ("dToken", "address"),
    ("oracle", "address"),
    ("interestRateModel", "address"),
    ("hookTarget", "address"),
    ("evc", "address"),
    ("protocolConfig", "address"),
    ("balanceTracker", "address"),
    ("permit2", "address"),
    ("creator", "address"),
    ("governorAdmin", "address"),
    ("irmInfo", VAULT_IRM_INFO),
    ("collateralLTVInfo", f"{LTV_INFO}[]"),
    ("liabilityPriceInfo", ASSET_PRICE_INFO),
    ("collateralPriceInfo", f"{ASSET_PRICE_INFO}[]"),
    ("oracleInfo", ORACLE_DETAILED_INFO),
    ("backupAssetPriceInfo", ASSET_PRICE_INFO),
    ("backupAssetOracleInfo", ORACLE_DETAILED_INFO),
]
VAULT_INFO_FULL = "(" + ",".join(t for _, t in VAULT_INFO_FIELDS) + ")"


def supply_apy_raw(info: Dict[str, Any]) -> Optional[int]:
    """First interest-rate entry's supplyAPY, or None when the IRM query failed or is empty."""
    query_failure, _reason, _vault, _irm, rate_infos, _model = info["irmInfo"]
    if query_failure or not rate_infos:
        return None
    return int(rate_infos[0][4])


class EulerAdapter(YieldAdapter):
    """Euler EVK vaults read straight from chain: the governed perspective lists
    verified vaults, the vault lens returns one struct per vault."""

    name = "euler"
    min_apy = 0.1
    min_tvl = 10.0  # tokens, not USD

    async def _fetch_records(self) -> List[YieldRecord]:
        vaults = await self._verified_vaults()
        size = max(1, self.settings.EULER_BATCH_SIZE)
        total_batches = (len(vaults) + size - 1) // size
        logger.info(f"Euler: {len(vaults)} verified vaults, {total_batches} batches")

        records: List[YieldRecord] = []
        for i in range(0, len(vaults), size):
            batch = vaults[i : i + size]
            logger.debug(f"Euler batch {i // size + 1}/{total_batches}")
            results = await asyncio.gather(*(self._read_vault(v) for v in batch))
            records.extend(r for r in results if r is not None)
            if i + size < len(vaults):
                await asyncio.sleep(self.settings.EULER_BATCH_DELAY_SECONDS)
        return records

    async def _verified_vaults(self) -> List[str]:
        (addresses,) = await eth_call(
            self.http,
            self.settings.EULER_RPC_URL,
            self.settings.EULER_GOVERNED_PERSPECTIVE,
            encode_call("verifiedArray()"),
            ["address[]"],
        )
        return list(addresses)

    async def _vault_info(self, vault: str) -> Dict[str, Any]:
        (info,) = await eth_call(
            self.http,
            self.settings.EULER_RPC_URL,
            self.settings.EULER_VAULT_LENS,
            encode_call("getVaultInfoFull(address)", ["address"], [vault]),
            [VAULT_INFO_FULL],
        )
        return {name: value for (name, _), value in zip(VAULT_INFO_FIELDS, info)}

    async def _read_vault(self, vault: str) -> Optional[YieldRecord]:
        try:
            info = await self._vault_info(vault)
            return self._transform(info)
        except Exception as e:
            logger.warning(f"Euler vault {vault} read failed: {e}")
            return None

    def _transform(self, info: Dict[str, Any]) -> Optional[YieldRecord]:
        raw_apy = supply_apy_raw(info)
        if raw_apy is None:
            return None
        apy = decode_fixed_point(raw_apy, APY_DECIMALS)

        asset = str(info["assetSymbol"]).strip()
        if is_eth_asset(asset) or any(t in asset.upper() for t in TEST_TOKENS):
            return None

        tokens = float(decode_fixed_point(info["totalAssets"], int(info["assetDecimals"])))
        if not self.passes_thresholds(apy, tokens):
            return None

        return self.make_record(
            protocol="euler",
            asset_symbol=asset,
            apy_total=apy,
            tvl=tokens,
            tvl_unit=TvlUnit.TOKEN,
            pool_label=str(info["vaultName"]) or None,
            pool_id=str(info["vault"]),
        )
