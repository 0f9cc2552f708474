from __future__ import annotations

import asyncio
from typing import List

import pytest

from ton_yields.adapters.base import YieldAdapter
from ton_yields.adapters.defillama import DefiLlamaAdapter
from ton_yields.adapters.ethena import EthenaAdapter
from ton_yields.adapters.merkl import MerklAdapter, extract_asset_symbol
from ton_yields.adapters.morpho import MorphoAdapter
from ton_yields.adapters.registry import build_default_adapters
from ton_yields.adapters.swapcoffee import SwapCoffeeAdapter
from ton_yields.adapters.yieldfi import YieldFiAdapter
from ton_yields.models import AssetCategory, TvlUnit, YieldRecord


def _llama_pools(settings, pools):
    return {settings.DEFILLAMA_POOLS_URL: {"status": "success", "data": pools}}


@pytest.mark.anyio
async def test_defillama_filters_chain_assets_and_thresholds(settings, fake_http):
    pools = [
        {"chain": "Ton", "project": "evaa", "symbol": "USDT", "apyBase": 5, "apyReward": 1, "apy": 6, "tvlUsd": 2e6, "poolMeta": "Main Pool", "pool": "747c1d2a-c668-4682-b9f9-296708a3dd90"},
        {"chain": "Ethereum", "project": "aave-v3", "symbol": "USDT", "apy": 4, "tvlUsd": 9e9},
        {"chain": "TON", "project": "dedust", "symbol": "DOGS-TON", "apy": 40, "tvlUsd": 3e5},
        {"chain": "TON", "project": "tonco", "symbol": "TON-USDT", "apy": None, "apyBase": 3, "apyReward": 2, "tvlUsd": 50_000},
        {"chain": "TON", "project": "evaa", "symbol": "TON", "apy": 2, "tvlUsd": 500},
        {"chain": "TON", "project": "evaa", "apy": 2, "tvlUsd": 5e6},
    ]
    adapter = DefiLlamaAdapter(fake_http(_llama_pools(settings, pools)), settings)

    records = await adapter.fetch()

    assert [r.asset_symbol for r in records] == ["USDT", "TON-USDT"]
    evaa, tonco = records
    assert evaa.source_name == "EVAA"
    assert evaa.source_link == "https://t.me/EvaaAppBot"
    assert evaa.pool_label == "Main"
    assert (evaa.apy_base, evaa.apy_reward, evaa.apy_total) == (5, 1, 6)
    assert evaa.provider == "defillama" and evaa.protocol == "evaa"
    assert evaa.pool_id == "747c1d2a-c668-4682-b9f9-296708a3dd90"
    assert tonco.pool_id is None
    assert tonco.apy_total == 5
    assert tonco.is_risk_flagged_pair


@pytest.mark.anyio
async def test_defillama_bad_shape_is_a_failed_result(settings, fake_http):
    adapter = DefiLlamaAdapter(fake_http({settings.DEFILLAMA_POOLS_URL: {"status": "error"}}), settings)
    result = await adapter.fetch_result()
    assert not result.ok
    assert "ProviderError" in result.error
    assert result.records == []


def test_extract_asset_symbol():
    assert extract_asset_symbol("Curve USDT/USDC Pool") == "USDT-USDC"
    assert extract_asset_symbol("Provide liquidity to Curve TON/tsTON") == "TON-tsTON"
    assert extract_asset_symbol("Morpho USDT Vault") == "USDT"
    assert extract_asset_symbol("whatever", "TAC-USDT") == "TAC-USDT"


@pytest.mark.anyio
async def test_merkl_converts_apr_and_keeps_only_configured_chain(settings, fake_http):
    opportunities = [
        {"chainId": 239, "name": "Curve USDT/USDC Pool", "apr": 10, "tvl": 500_000, "protocol": {"name": "curve"}},
        {"chainId": 1, "name": "Curve USDT/USDC Pool", "apr": 10, "tvl": 500_000, "protocol": {"name": "curve"}},
        {"chainId": 239, "name": "Snap TON Vault", "apr": 0, "tvl": 500_000, "protocol": {"name": "snap"}},
    ]
    http = fake_http({settings.MERKL_API_URL: opportunities})
    records = await MerklAdapter(http, settings).fetch()

    assert len(records) == 1
    r = records[0]
    assert r.asset_symbol == "USDT-USDC"
    assert r.apy_total == pytest.approx(10.5156, rel=1e-4)
    assert r.apy_base == 0
    assert r.apy_reward == r.apy_total
    assert r.pool_label == "Merkl"
    assert r.source_name == "Curve"


@pytest.mark.anyio
async def test_merkl_non_list_response_fails(settings, fake_http):
    http = fake_http({settings.MERKL_API_URL: {"error": "rate limited"}})
    result = await MerklAdapter(http, settings).fetch_result()
    assert not result.ok


@pytest.mark.anyio
async def test_morpho_vaults_get_usd_estimates(settings, fake_http):
    vaults = [
        {
            "name": "TON Vault",
            "symbol": "mTON",
            "asset": {"symbol": "TON", "decimals": 9},
            "rate": {"rate": "0.0341"},
            "lastTotalAssets": str(1_000_000 * 10**9),
        },
        {
            "name": "WETH Vault",
            "asset": {"symbol": "WETH", "decimals": 18},
            "rate": {"rate": "0.02"},
            "lastTotalAssets": str(10**21),
        },
        {
            "name": "BMW Vault",
            "asset": {"symbol": "BMW", "decimals": 18},
            "rate": {"rate": "0.5"},
            "lastTotalAssets": str(10**21),
        },
    ]
    http = fake_http({settings.MORPHO_SUBGRAPH_URL: {"data": {"metaMorphos": vaults}}})
    records = await MorphoAdapter(http, settings).fetch()

    assert len(records) == 1
    r = records[0]
    assert r.apy_total == pytest.approx(3.41)
    assert r.tvl == pytest.approx(1_750_000)
    assert r.tvl_unit is TvlUnit.USD_ESTIMATE
    assert r.tvl_is_proxy
    assert r.pool_label == "TON"


@pytest.mark.anyio
async def test_morpho_graphql_errors_fail(settings, fake_http):
    http = fake_http({settings.MORPHO_SUBGRAPH_URL: {"errors": [{"message": "bad query"}]}})
    result = await MorphoAdapter(http, settings).fetch_result()
    assert not result.ok
    assert "GraphQLError" in result.error


@pytest.mark.anyio
async def test_yieldfi_aggregates_across_networks(settings, fake_http):
    pools = [
        {"chain": "Ethereum", "project": "yieldfi", "symbol": "yUSD", "apy": 10, "tvlUsd": 1e6},
        {"chain": "Base", "project": "yieldfi", "symbol": "YUSD", "apy": 12, "tvlUsd": 2e6},
        {"chain": "Ethereum", "project": "yieldfi", "symbol": "vyUSD", "apy": 15, "tvlUsd": 5e5},
        {"chain": "Ethereum", "project": "yieldfi", "symbol": "sUSD", "apy": 30, "tvlUsd": 5e5},
        {"chain": "Ethereum", "project": "other", "symbol": "yUSD", "apy": 50, "tvlUsd": 5e5},
    ]
    records = await YieldFiAdapter(fake_http(_llama_pools(settings, pools)), settings).fetch()
    by_asset = {r.asset_symbol: r for r in records}

    assert set(by_asset) == {"yUSD", "vyUSD"}
    assert by_asset["yUSD"].apy_total == 12
    assert by_asset["yUSD"].tvl == 3e6
    assert by_asset["vyUSD"].apy_total == 15
    assert all(r.category is AssetCategory.STABLE for r in records)
    assert all(r.source_name == "YieldFi" for r in records)


@pytest.mark.anyio
async def test_ethena_emits_tsusde(settings, fake_http):
    pools = [
        {"chain": "Ethereum", "project": "ethena-usde", "symbol": "SUSDE", "apy": 9, "tvlUsd": 1e9},
        {"chain": "Arbitrum", "project": "ethena-usde", "symbol": "SUSDE", "apy": 10, "tvlUsd": 1e8},
        {"chain": "Ethereum", "project": "ethena-usde", "symbol": "USDE", "apy": 0, "tvlUsd": 5e9},
    ]
    records = await EthenaAdapter(fake_http(_llama_pools(settings, pools)), settings).fetch()

    assert len(records) == 1
    r = records[0]
    assert r.asset_symbol == "tsUSDE"
    assert r.apy_total == 10
    assert r.tvl == pytest.approx(1.1e9)
    assert r.category is AssetCategory.STABLE


@pytest.mark.anyio
async def test_ethena_below_floor_is_empty(settings, fake_http):
    pools = [{"chain": "Ethereum", "project": "ethena-usde", "symbol": "SUSDE", "apy": 0.05, "tvlUsd": 1e9}]
    result = await EthenaAdapter(fake_http(_llama_pools(settings, pools)), settings).fetch_result()
    assert result.ok
    assert result.records == []


def _token(symbol: str, address: str = "EQ-any") -> dict:
    return {"address": {"blockchain": "ton", "address": address}, "metadata": {"symbol": symbol, "name": symbol, "decimals": 9}}


def _coffee_pool(protocol, symbols, tvl, apr, lp_apr=None, boost_apr=0.0, trusted=True, amm_type=None):
    pool = {
        "address": f"EQ-{protocol}-{'-'.join(symbols)}",
        "protocol": protocol,
        "is_trusted": trusted,
        "tokens": [_token(s) for s in symbols],
        "pool_statistics": {"tvl_usd": tvl, "volume_usd": 0, "apr": apr, "lp_apr": apr if lp_apr is None else lp_apr, "boost_apr": boost_apr},
    }
    if amm_type:
        pool["pool"] = {"amm_type": amm_type}
    return pool


@pytest.mark.anyio
async def test_swapcoffee_filters_and_labels(settings, fake_http):
    pools = [
        _coffee_pool("stonfi", ["TON", "tsTON"], 500_000, 12, lp_apr=8, boost_apr=4),
        _coffee_pool("stonfi", ["TON", "stTON"], 500_000, 12, trusted=False),
        _coffee_pool("storm_trade", ["TON", "TON-SLP"], 1_000_000, 7),
        _coffee_pool("dedust", ["TON", "SCAM"], 5_000, 150),
        _coffee_pool("dedust", ["TON", "tsTON"], 50, 5),
        _coffee_pool("dedust", ["USDT", "USDC"], 200_000, 3, amm_type="stable"),
        _coffee_pool("dedust", ["USDT", "USDC"], 200_000, 0.01),
        _coffee_pool("evaa", ["USDe"], 1_000_000, 0.01),
        _coffee_pool("tonstakers", ["wstETH"], 1_000_000, 3),
    ]
    http = fake_http({settings.SWAPCOFFEE_API_URL: [{"total_count": len(pools), "pools": pools}]})
    records = await SwapCoffeeAdapter(http, settings).fetch()

    assert [r.asset_symbol for r in records] == ["TON-tsTON", "TON", "USDT-USDC", "USDe"]
    stonfi, storm, dedust, evaa = records
    assert stonfi.source_name == "Ston.fi"
    assert stonfi.pool_label == "TsTON"
    assert (stonfi.apy_base, stonfi.apy_reward, stonfi.apy_total) == (8, 4, 12)
    assert storm.source_name == "Storm Trade"
    assert storm.pool_label == "TON SLP"
    assert storm.apy_reward is None
    assert dedust.pool_label == "AMM: stable"
    assert dedust.pool_id == "EQ-dedust-USDT-USDC"
    # EVAA's USDe market is exempt from the APR floor; overlap rules drop it later
    assert evaa.protocol == "evaa"


@pytest.mark.anyio
async def test_swapcoffee_empty_payload(settings, fake_http):
    http = fake_http({settings.SWAPCOFFEE_API_URL: []})
    result = await SwapCoffeeAdapter(http, settings).fetch_result()
    assert result.ok
    assert result.records == []


@pytest.mark.anyio
async def test_unreachable_provider_is_isolated(settings, fake_http):
    result = await DefiLlamaAdapter(fake_http({}), settings).fetch_result()
    assert not result.ok
    assert "ConnectError" in result.error
    assert await DefiLlamaAdapter(fake_http({}), settings).fetch() == []


class _SlowAdapter(YieldAdapter):
    name = "slow"

    async def _fetch_records(self) -> List[YieldRecord]:
        await asyncio.sleep(5)
        return []


@pytest.mark.anyio
async def test_adapter_timeout_becomes_failure(settings, fake_http):
    fast = settings.model_copy(update={"ADAPTER_TIMEOUT_SECONDS": 0.05})
    result = await _SlowAdapter(fake_http({}), fast).fetch_result()
    assert not result.ok
    assert "timed out" in result.error


def test_registry_builds_every_provider(settings, fake_http):
    names = [a.name for a in build_default_adapters(fake_http({}), settings)]
    assert names == ["defillama", "merkl", "morpho", "euler", "yieldfi", "ethena", "swapcoffee"]
