"""
Companies House registry client with rate limiting, caching and 429 recovery.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError

from config.settings import Settings, get_settings
from models.registry_record import Filing, RegistryRecord, SearchCandidate
from services.company_utils import categorize_filing_type, interpret_status
from services.errors import (
    MalformedDataError,
    NotFoundError,
    RateLimitedRetry,
    RegistryError,
    UpstreamError,
)
from services.response_cache import CacheEntry, CacheStats, ResponseCache, cache_key
from services.throttle import MinIntervalGate
from utils.call_logger import log_call
from utils.number_parsing import parse_iso_date, parse_retry_after

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("company_name", "company_number", "company_status")
USER_AGENT = "Company-Intelligence-Enrichment/1.0"
_SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60


class RegistryClient:
    """Handles all registry calls for the process.

    One instance is shared by every caller so that the rate-limit gate and the
    response cache are process-wide. Clock, sleep, session, cache and gate are
    injectable.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        session: Optional[requests.Session] = None,
        cache: Optional[ResponseCache] = None,
        gate: Optional[MinIntervalGate] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.api_key = self.settings.registry_api_key
        self.base_url = self.settings.registry_base_url.rstrip("/")
        self.session = session or requests.Session()
        self._clock = clock
        self._sleep = sleep
        self.cache = cache or ResponseCache(self.settings.cache_ttl_seconds, clock=clock)
        self.gate = gate or MinIntervalGate(
            self.settings.min_request_interval_ms / 1000.0, clock=clock, sleep=sleep
        )
        self.max_rate_limit_retries = self.settings.max_rate_limit_retries
        self._calls_lock = threading.Lock()
        self.api_calls_made = 0

    # --- public operations ---

    def search(self, query: str) -> List[SearchCandidate]:
        params = {"q": query, "items_per_page": self.settings.search_items_per_page}
        try:
            entry = self._request("/search/companies", params)
        except NotFoundError:
            return []
        candidates: List[SearchCandidate] = []
        for item in (entry.payload or {}).get("items") or []:
            try:
                candidates.append(SearchCandidate.model_validate(item))
            except ValidationError:
                logger.debug("Skipping unusable search item", extra={"endpoint": "/search/companies"})
        return candidates

    def get_details(self, company_number: str) -> RegistryRecord:
        entry = self._request(f"/company/{company_number}")
        return self._build_record(entry)

    def get_filing_history(self, company_number: str) -> List[Filing]:
        """Filing history is supplementary: any failure yields an empty list."""
        path = f"/company/{company_number}/filing-history"
        params = {"items_per_page": self.settings.filing_items_per_page}
        try:
            entry = self._request(path, params)
        except (RegistryError, RuntimeError) as e:
            logger.warning("Filing history unavailable", extra={"endpoint": path, "error": str(e)})
            return []
        today = datetime.fromtimestamp(self._clock(), tz=timezone.utc).date()
        filings: List[Filing] = []
        for item in (entry.payload or {}).get("items") or []:
            if not isinstance(item, dict):
                continue
            filed_on = parse_iso_date(item.get("date"))
            links = item.get("links") or {}
            try:
                filings.append(
                    Filing.model_validate(
                        {
                            **item,
                            "category": categorize_filing_type(item.get("type")),
                            "document_id": links.get("document_metadata") if isinstance(links, dict) else None,
                            "days_since_filing": (today - filed_on).days if filed_on else None,
                        }
                    )
                )
            except ValidationError:
                logger.debug("Skipping unusable filing item", extra={"endpoint": path})
        return filings

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    # --- internals ---

    def _build_record(self, entry: CacheEntry) -> RegistryRecord:
        data: Dict[str, Any] = entry.payload if isinstance(entry.payload, dict) else {}
        missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
        if missing:
            raise MalformedDataError.missing(missing)

        retrieved_at = datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc)
        age_years: Optional[float] = None
        created = data.get("date_of_creation")
        if created:
            created_on = parse_iso_date(created)
            if created_on is None:
                logger.warning("Could not parse company creation date: %s", created)
            else:
                start = datetime(created_on.year, created_on.month, created_on.day, tzinfo=timezone.utc)
                age_years = (retrieved_at - start).total_seconds() / _SECONDS_PER_YEAR

        fields = {
            **data,
            "date_of_creation": str(created) if created else None,
            "sic_codes": _as_code_list(data.get("sic_codes")),
            "data_retrieved_at": retrieved_at,
            "status_interpretation": interpret_status(data.get("company_status")),
            "age_years": age_years,
        }
        try:
            return RegistryRecord.model_validate(fields)
        except ValidationError as e:
            raise MalformedDataError(f"Unexpected registry record shape: {e.error_count()} invalid field(s)") from e

    def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> CacheEntry:
        key = cache_key(path, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached data", extra={"endpoint": path, "status": "cache_hit"})
            log_call(caller="registry_client", endpoint=path, status="ok", cache_hit=True)
            return cached

        if not self.api_key:
            raise RuntimeError("COMPANIES_HOUSE_API_KEY required to call the registry")

        retries = 0
        while True:
            try:
                payload = self._send(path, params, attempt=retries + 1)
            except RateLimitedRetry as rl:
                if retries >= self.max_rate_limit_retries:
                    raise UpstreamError(
                        429, f"rate limit retries exhausted after {retries} attempts"
                    ) from rl
                retries += 1
                logger.warning(
                    "Rate limited. Retrying after %ss", rl.retry_after,
                    extra={"endpoint": path, "status": "429"},
                )
                self._sleep(rl.retry_after)
                continue
            return self.cache.put(key, payload)

    def _send(self, path: str, params: Optional[Dict[str, Any]], *, attempt: int) -> Any:
        self.gate.wait()
        url = f"{self.base_url}{path}"
        t0 = time.monotonic()
        try:
            response = self.session.get(
                url,
                params=params,
                auth=(self.api_key, ""),
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                timeout=self.settings.http_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("Registry request failed", extra={"endpoint": path, "error": str(e)})
            log_call(caller="registry_client", endpoint=path, status="error", attempt=attempt, error=str(e))
            raise UpstreamError(None, str(e)) from e
        finally:
            with self._calls_lock:
                self.api_calls_made += 1
        duration_ms = int((time.monotonic() - t0) * 1000)
        status = response.status_code
        log_call(
            caller="registry_client",
            endpoint=path,
            status="ok" if 200 <= status < 300 else "error",
            http_status=status,
            duration_ms=duration_ms,
            attempt=attempt,
        )
        logger.info(
            "Registry call",
            extra={"endpoint": path, "status": status, "duration_ms": duration_ms},
        )

        if status == 429:
            raise RateLimitedRetry(parse_retry_after(response.headers.get("Retry-After")))
        if status == 404:
            raise NotFoundError("Company not found")
        if not 200 <= status < 300:
            raise UpstreamError(status, getattr(response, "reason", "") or "")
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(status, "invalid JSON in registry response") from e


def _as_code_list(value: Any) -> List[Any]:
    # Only a JSON array carries codes; a bare string is not split into characters
    return list(value) if isinstance(value, (list, tuple)) else []
