#!/usr/bin/env python3
"""
Run the yield pipeline once and print the categorized report
"""

import asyncio

from ton_yields.config import get_settings
from ton_yields.http import HttpClient
from ton_yields.main import to_views
from ton_yields.models import BUCKET_NAMES
from ton_yields.services.pipeline import build_pipeline
from ton_yields.utils.logging import setup_logging


def fmt_tvl(tvl: float) -> str:
    if tvl >= 1_000_000_000:
        return f"${tvl / 1_000_000_000:.1f}B"
    if tvl >= 1_000_000:
        return f"${tvl / 1_000_000:.1f}M"
    if tvl >= 1_000:
        return f"${tvl / 1_000:.1f}K"
    return f"${tvl:.0f}"


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    http = HttpClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        pipeline = await build_pipeline(http, settings)
        result = await pipeline.run()
    finally:
        await http.aclose()

    print("\n" + "=" * 60)
    print(f"TON yields ({result.generated_at:%Y-%m-%d %H:%M} UTC)")
    if result.chain_tvl:
        line = f"Chain DeFi TVL: {fmt_tvl(result.chain_tvl.tvl)}"
        if result.chain_tvl.change_pct is not None:
            line += f" ({result.chain_tvl.change_pct:+.2f}% 24h)"
        print(line)
    print("=" * 60)

    for name in BUCKET_NAMES:
        print(f"\n[{name}]")
        for group in result.buckets.groups(name):
            print(f"  {group.source_name} ({fmt_tvl(group.total_tvl)})")
            for v in to_views(group.records, result.averages):
                r = v.record
                label = f" ({r.pool_label})" if r.pool_label else ""
                avg = f" (7d: {v.apy_avg_7d:.1f}%)" if v.apy_avg_7d is not None else ""
                tvl = f"{r.tvl:,.0f} tokens" if r.tvl_unit.value == "token" else fmt_tvl(r.tvl)
                print(f"    {r.asset_symbol}{label}: {r.apy_total:.2f}%{avg} | {tvl}")

    print("\nTop yields:")
    for i, r in enumerate(result.top, 1):
        print(f"  {i}. {r.source_name} {r.asset_symbol}: {r.apy_total:.2f}%")

    failed = [s for s in result.sources if not s.ok]
    if failed:
        print("\nFailed sources: " + ", ".join(f"{s.provider} ({s.error})" for s in failed))


if __name__ == "__main__":
    asyncio.run(main())
