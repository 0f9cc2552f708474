from __future__ import annotations

import copy
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

os.environ.setdefault("ENV", "test")

from ton_yields.adapters.base import YieldAdapter  # noqa: E402
from ton_yields.config import Settings  # noqa: E402
from ton_yields.models import AssetCategory, TvlUnit, YieldRecord  # noqa: E402


@pytest.fixture
def anyio_backend():
    """Run anyio-marked async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ADAPTER_TIMEOUT_SECONDS=5.0,
        EULER_BATCH_DELAY_SECONDS=0.0,
    )


class FakeHttp:
    """Stands in for HttpClient: routes by URL to canned JSON or a callable.

    A route value that is an Exception instance is raised instead.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Any]] = []

    def _respond(self, method: str, url: str, body: Any) -> httpx.Response:
        self.calls.append((method, url, body))
        if url not in self.routes:
            raise httpx.ConnectError(f"no route for {url}")
        payload = self.routes[url]
        if isinstance(payload, Exception):
            raise payload
        if callable(payload):
            payload = payload(body)
        return httpx.Response(200, json=payload, request=httpx.Request(method, url))

    async def get(self, url: str, params=None, headers=None) -> httpx.Response:
        return self._respond("GET", url, params)

    async def post(self, url: str, json=None, headers=None) -> httpx.Response:
        return self._respond("POST", url, json)

    async def aclose(self) -> None:
        return None


class FakeRedis:
    """The slice of redis.asyncio.Redis the history backend uses."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.fail = False

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key: str, value: str) -> bool:
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = value
        return True


class FakeMongoCollection:
    """The slice of AsyncIOMotorCollection the history backend uses:
    find_one with a projection, update_one with $pull and $push ($each/$sort/$slice)."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.updates: List[Dict[str, Any]] = []

    def _match(self, doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
        return all(doc.get(k) == v for k, v in query.items())

    async def find_one(self, query: Dict[str, Any], projection: Optional[Dict[str, int]] = None):
        doc = next((d for d in self.docs if self._match(d, query)), None)
        if doc is None:
            return None
        if projection:
            doc = {k: v for k, v in doc.items() if projection.get(k)}
        return copy.deepcopy(doc)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False) -> None:
        self.updates.append(update)
        doc = next((d for d in self.docs if self._match(d, query)), None)
        if doc is None:
            if not upsert:
                return
            doc = dict(query)
            self.docs.append(doc)
        for field, cond in update.get("$pull", {}).items():
            doc[field] = [item for item in doc.get(field, []) if not self._match(item, cond)]
        for field, push in update.get("$push", {}).items():
            items = doc.get(field, []) + copy.deepcopy(list(push["$each"]))
            for key, direction in push.get("$sort", {}).items():
                items.sort(key=lambda item: item[key], reverse=direction < 0)
            if "$slice" in push:
                items = items[: push["$slice"]]
            doc[field] = items


@pytest.fixture
def fake_http() -> Callable[..., FakeHttp]:
    return FakeHttp


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_mongo() -> FakeMongoCollection:
    return FakeMongoCollection()


def _make_record(
    asset: str = "USDT",
    apy: float = 5.0,
    tvl: float = 1_000_000.0,
    source: str = "EVAA",
    provider: str = "defillama",
    protocol: str = "evaa",
    category: Optional[AssetCategory] = None,
    pool_label: Optional[str] = None,
    pool_id: Optional[str] = None,
    risk: bool = False,
    tvl_unit: TvlUnit = TvlUnit.USD,
) -> YieldRecord:
    from ton_yields.services.classifier import classify

    return YieldRecord(
        category=category or classify(asset),
        source_name=source,
        asset_symbol=asset,
        pool_label=pool_label,
        pool_id=pool_id,
        apy_total=apy,
        apy_base=apy,
        tvl=tvl,
        tvl_unit=tvl_unit,
        is_risk_flagged_pair=risk,
        provider=provider,
        protocol=protocol,
    )


@pytest.fixture
def make_record() -> Callable[..., YieldRecord]:
    return _make_record


class StaticAdapter(YieldAdapter):
    """Adapter returning fixed records, for wiring tests above the adapter layer."""

    def __init__(self, name: str, records: List[YieldRecord], settings: Settings):
        super().__init__(http=None, settings=settings)
        self.name = name
        self._records = records

    async def _fetch_records(self) -> List[YieldRecord]:
        return list(self._records)


@pytest.fixture
def static_adapter() -> Callable[..., StaticAdapter]:
    return StaticAdapter
