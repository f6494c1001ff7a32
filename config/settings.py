from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


def _load_env() -> None:
    # Centralized dotenv loading; safe if .env missing
    load_dotenv()


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    registry_api_key: str | None
    registry_base_url: str

    # Rate limiting / caching / retries
    min_request_interval_ms: int
    cache_ttl_seconds: int
    max_rate_limit_retries: int
    http_timeout_seconds: int

    search_items_per_page: int
    filing_items_per_page: int

    # Core/runtime
    db_path: str
    run_env: str
    log_level: str

    # Jobs
    enrich_concurrency: int
    job_seconds_per_item: int
    default_estimator: str

    # Logging/tracing
    registry_trace: bool = False
    registry_log_path: str = "logs/registry_calls.jsonl"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_env()
    return Settings(
        registry_api_key=os.getenv("COMPANIES_HOUSE_API_KEY"),
        registry_base_url=os.getenv("REGISTRY_BASE_URL", "https://api.company-information.service.gov.uk"),
        min_request_interval_ms=int(os.getenv("REGISTRY_MIN_INTERVAL_MS", "500")),
        cache_ttl_seconds=int(os.getenv("REGISTRY_CACHE_TTL_SECONDS", "3600")),
        max_rate_limit_retries=int(os.getenv("REGISTRY_MAX_RATE_LIMIT_RETRIES", "5")),
        http_timeout_seconds=int(os.getenv("HTTP_TIMEOUT_SECONDS", "20")),
        search_items_per_page=int(os.getenv("SEARCH_ITEMS_PER_PAGE", "20")),
        filing_items_per_page=int(os.getenv("FILING_ITEMS_PER_PAGE", "50")),
        db_path=os.getenv("DB_PATH", "companies.db"),
        run_env=os.getenv("RUN_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        enrich_concurrency=int(os.getenv("ENRICH_CONCURRENCY", "2")),
        job_seconds_per_item=int(os.getenv("JOB_SECONDS_PER_ITEM", "2")),
        default_estimator=os.getenv("DEFAULT_ESTIMATOR", "sme_bracket"),
        registry_trace=_as_bool(os.getenv("REGISTRY_TRACE", "false")),
        registry_log_path=os.getenv("REGISTRY_LOG_PATH", "logs/registry_calls.jsonl"),
    )
