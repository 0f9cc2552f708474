from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query

from ton_yields import db
from ton_yields.background import BackgroundRefresher
from ton_yields.clients.redis import close_redis
from ton_yields.config import get_settings
from ton_yields.http import HttpClient
from ton_yields.models import (
    BUCKET_NAMES,
    PipelineResult,
    PoolHistory,
    ServiceStatus,
    YieldRecord,
    YieldView,
)
from ton_yields.services.history import pool_identity
from ton_yields.services.pipeline import build_pipeline
from ton_yields.utils import loki
from ton_yields.utils.logging import setup_logging
from ton_yields.utils.loki import loki_log

app = FastAPI(title="TON Yields", version="1.0.0")

logger = logging.getLogger(__name__)


def to_views(records: List[YieldRecord], averages: Dict[str, float]) -> List[YieldView]:
    views = []
    for r in records:
        identity = pool_identity(r)
        views.append(YieldView(identity=identity, record=r, tvl_is_proxy=r.tvl_is_proxy, apy_avg_7d=averages.get(identity)))
    return views


def _refresher() -> BackgroundRefresher:
    ref = getattr(app.state, "refresher", None)
    if ref is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return ref


async def _latest() -> PipelineResult:
    ref = _refresher()
    result = ref.pipeline.last_result
    if result is None:
        result = await ref.run_once()
    return result


@app.middleware("http")
async def _loki_logger(request, call_next):
    response = await call_next(request)
    await loki_log(
        "INFO",
        "request",
        extra={
            "path": str(request.url.path),
            "method": request.method,
            "status": response.status_code,
            "client_ip": request.client.host if request.client else None,
        },
    )
    return response


@app.on_event("startup")
async def startup_event() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app.state.http = HttpClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    pipeline = await build_pipeline(app.state.http, settings)
    app.state.refresher = BackgroundRefresher(pipeline, settings.REFRESH_INTERVAL_SECONDS)
    # first run happens inside the loop so startup doesn't hang on external APIs
    await app.state.refresher.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if getattr(app.state, "refresher", None):
        await app.state.refresher.stop()
    if getattr(app.state, "http", None):
        await app.state.http.aclose()
    await loki.close()
    await close_redis()
    await db.close()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/yields")
async def get_yields():
    result = await _latest()
    return {
        "generated_at": result.generated_at,
        "buckets": {name: to_views(result.buckets.bucket(name), result.averages) for name in BUCKET_NAMES},
        "chain_tvl": result.chain_tvl,
    }


@app.get("/api/yields/top", response_model=List[YieldView])
async def get_top(limit: Optional[int] = Query(None, ge=1, le=50)):
    result = await _latest()
    top = result.buckets.top(limit) if limit else result.top
    return to_views(top, result.averages)


@app.get("/api/yields/status", response_model=ServiceStatus)
async def get_status():
    ref = _refresher()
    result = ref.pipeline.last_result
    if result is None:
        return ServiceStatus(last_refresh_at=None, records_tracked={}, sources=[], avg_apy=0.0)
    records = result.buckets.all_records()
    avg_apy = (sum(r.apy_total for r in records) / len(records)) if records else 0.0
    return ServiceStatus(
        last_refresh_at=ref.pipeline.aggregator.last_refresh_at,
        records_tracked=result.buckets.counts(),
        sources=result.sources,
        avg_apy=avg_apy,
        chain_tvl=result.chain_tvl,
    )


@app.get("/api/yields/history/{identity}", response_model=PoolHistory)
async def get_history(identity: str):
    history = await _refresher().pipeline.store.history(identity)
    if not history.snapshots:
        raise HTTPException(status_code=404, detail=f"No history for '{identity}'")
    return history


@app.post("/api/yields/refresh")
async def post_refresh():
    ref = _refresher()
    result = await ref.run_once()
    return {
        "refreshed": sum(result.buckets.counts().values()),
        "last_refresh_at": ref.pipeline.aggregator.last_refresh_at,
        "failed_sources": [s.provider for s in result.sources if not s.ok],
    }
