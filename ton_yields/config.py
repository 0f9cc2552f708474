from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExclusionRule(BaseModel):
    """Drop records from `excluded_from` whose protocol slug contains `protocol_pattern`."""

    protocol_pattern: str
    excluded_from: str


# swap.coffee has the more complete coverage for these, so DefiLlama's copies go.
# EVAA is the exception: DefiLlama lists every EVAA sub-pool, swap.coffee does not.
DEFAULT_OVERLAP_RULES: List[ExclusionRule] = [
    *(
        ExclusionRule(protocol_pattern=p, excluded_from="defillama")
        for p in (
            "tonstakers",
            "bemo",
            "hipo",
            "kton",
            "stakee",
            "torch-finance",
            "storm-trade",
            "ston-fi",
            "ston.fi",
            "stonfi",
            "dedust",
            "swap-coffee",
            "swap.coffee",
            "tonco",
            "bidask",
            "moon",
            "daolama",
        )
    ),
    ExclusionRule(protocol_pattern="evaa", excluded_from="swapcoffee"),
    ExclusionRule(protocol_pattern="moon", excluded_from="swapcoffee"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Runtime
    ENV: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Chain / filtering
    CHAIN: str = Field(default="TON")
    MIN_TVL_USD: float = Field(default=10_000.0)
    MIN_APY: float = Field(default=0.1)
    TOP_N: int = Field(default=5)

    # Network bounds
    HTTP_TIMEOUT_SECONDS: float = Field(default=15.0)
    ADAPTER_TIMEOUT_SECONDS: float = Field(default=120.0)

    # Providers
    DEFILLAMA_POOLS_URL: str = Field(default="https://yields.llama.fi/pools")
    DEFILLAMA_PROTOCOLS_URL: str = Field(default="https://api.llama.fi/protocols")
    MERKL_API_URL: str = Field(default="https://api.merkl.xyz/v4/opportunities")
    MERKL_CHAIN_ID: int = Field(default=239)  # TAC
    MORPHO_SUBGRAPH_URL: str = Field(
        default="https://api.goldsky.com/api/public/project_cmb98e0e8apjg01q7eg6u5w6f/subgraphs/morpho-subgraph-prod/1.0.3/gn"
    )
    SWAPCOFFEE_API_URL: str = Field(default="https://backend.swap.coffee/v1/yield/pools")

    # Euler (on-chain reads over JSON-RPC)
    EULER_RPC_URL: str = Field(default="https://rpc.ankr.com/tac")
    EULER_VAULT_LENS: str = Field(default="0xf5f5eaf1157c0cbbf2F4aa949aaBbD686622EA6f")
    EULER_GOVERNED_PERSPECTIVE: str = Field(default="0xb5B6AD9d08a2A6556C20AFD1D15796DEF2617e8F")
    EULER_BATCH_SIZE: int = Field(default=5)
    EULER_BATCH_DELAY_SECONDS: float = Field(default=0.5)

    # Overlap resolution between providers
    OVERLAP_RULES: List[ExclusionRule] = Field(default_factory=lambda: list(DEFAULT_OVERLAP_RULES))

    # History
    HISTORY_BACKEND: str = Field(default="memory")  # memory | redis | mongo
    HISTORY_RETENTION_DAYS: int = Field(default=30)
    HISTORY_MIN_SNAPSHOTS: int = Field(default=3)
    AVERAGE_WINDOW_DAYS: int = Field(default=7)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    MONGODB_URI: str | None = None
    MONGO_DB_NAME: str | None = None

    # Observability
    ENABLE_LOKI: bool = Field(default=False)
    LOKI_URL: str = Field(default="http://localhost:3100")

    # Refresh
    REFRESH_INTERVAL_SECONDS: int = Field(default=86_400)

    def get_mongo_uri(self) -> str:
        return self.MONGODB_URI or "mongodb://localhost:27017"

    def get_mongo_db_name(self) -> str:
        return self.MONGO_DB_NAME or "ton_yields"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
