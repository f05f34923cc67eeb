from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    log_level: str = Field(default="INFO", description="Minimum loguru level written to stderr")
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/policast.db",
        description="SQLAlchemy compatible database URL for indexed events",
    )
    rpc_url: AnyUrl | str = Field(
        default="https://mainnet.base.org",
        description="JSON-RPC endpoint of the chain hosting the market contract",
    )
    contract_address: str = Field(
        default=ZERO_ADDRESS,
        description="Address of the deployed Policast market contract",
    )
    rpc_timeout_seconds: float = Field(
        default=20.0,
        description="Per-request timeout applied to JSON-RPC calls",
        gt=0,
    )
    token_decimals: int = Field(
        default=18,
        description="Decimals of the betting token used when formatting payouts",
        ge=0,
    )
    scan_batch_size: int = Field(
        default=10,
        description="Number of markets inspected per batch by the withdrawal scanner",
        ge=1,
    )
    scan_max_workers: int = Field(
        default=4,
        description="Upper bound on concurrent contract reads within one scanner batch",
        ge=1,
    )
    scan_batch_delay_seconds: float = Field(
        default=0.05,
        description="Pause between scanner batches to stay under upstream rate limits",
        ge=0,
    )
    analytics_cache_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of cached market analytics payloads",
        ge=1,
    )
    price_cache_ttl_seconds: int = Field(
        default=30,
        description="Lifetime of cached current-price payloads",
        ge=1,
    )
    cache_max_entries: int = Field(
        default=1024,
        description="Maximum number of entries held by each in-process cache",
        ge=1,
    )
    indexer_start_block: int = Field(
        default=0,
        description="First block scanned when the indexer has no stored cursor",
        ge=0,
    )
    indexer_chunk_size: int = Field(
        default=2000,
        description="Number of blocks requested per eth_getLogs call while indexing",
        ge=1,
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("contract_address")
    @classmethod
    def _validate_contract_address(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate.startswith("0x") or len(candidate) != 42:
            raise ValueError("CONTRACT_ADDRESS must be a 0x-prefixed 20-byte hex string")
        try:
            int(candidate[2:], 16)
        except ValueError as exc:
            raise ValueError("CONTRACT_ADDRESS must contain only hex digits") from exc
        return candidate

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
