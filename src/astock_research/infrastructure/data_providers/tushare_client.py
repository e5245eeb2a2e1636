"""TuShare data-provider client with an in-memory cache and bounded retries."""
from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

import httpx
import pandas as pd
import tushare as ts

from astock_research.domain.errors import ProviderError
from astock_research.utils.logging import resolve_logger

Record = Dict[str, Any]
Envelope = Mapping[str, Any]

BASIC_INFO_FIELDS = "ts_code,name,area,industry,list_date,market,exchange"


class ProviderTransport(Protocol):
    """Issues one raw request and returns the ``{code, msg, data}`` envelope."""

    async def request(self, api_name: str, params: Mapping[str, Any]) -> Envelope:
        ...


# -----------------
# Retry strategies
# -----------------


class RetryPolicy(Protocol):
    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""


@dataclass(frozen=True)
class NoBackoff:
    """Re-issue immediately; keeps single-shot report latency low."""

    def delay(self, attempt: int) -> float:
        return 0.0


@dataclass(frozen=True)
class LinearBackoff:
    throttle_seconds: float = 0.2

    def delay(self, attempt: int) -> float:
        return self.throttle_seconds * attempt


# -----------------
# Cache
# -----------------


class ResponseCache:
    """Thread-safe TTL cache keyed by ``(endpoint, serialized params)``; last writer wins."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[Tuple[str, str], Tuple[float, List[Record]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    @staticmethod
    def key(endpoint: str, params: Mapping[str, Any]) -> Tuple[str, str]:
        return endpoint, json.dumps(params, sort_keys=True, ensure_ascii=False, default=str)

    def get(self, key: Tuple[str, str], ttl: float) -> Optional[List[Record]]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, records = entry
        if self._clock() - stored_at >= ttl:
            return None
        return [dict(row) for row in records]

    def set(self, key: Tuple[str, str], records: List[Record]) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), [dict(row) for row in records])

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# -----------------
# Transports
# -----------------


class HttpTransport:
    """POST ``{api_name, token, params, fields}`` to TuShare or a compatible proxy."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        proxy_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._owns_client = client is None
        if client is None:
            client_kwargs: Dict[str, Any] = {"timeout": httpx.Timeout(timeout, connect=10.0)}
            if proxy_url:
                client_kwargs["proxy"] = proxy_url
            client = httpx.AsyncClient(**client_kwargs)
        self._client = client

    async def request(self, api_name: str, params: Mapping[str, Any]) -> Envelope:
        query = dict(params)
        # TuShare expects the column selection beside params, not inside them.
        body: Dict[str, Any] = {"api_name": api_name, "params": query, "fields": query.pop("fields", "")}
        if self._token:
            body["token"] = self._token
        response = await self._client.post(self._base_url, json=body)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class SdkTransport:
    """Route calls through the ``tushare`` SDK, re-packing DataFrames as envelopes."""

    def __init__(self, token: str, *, base_url: Optional[str] = None) -> None:
        self._pro = ts.pro_api(token)
        if base_url:
            # NOTE: TuShare client stores base URL as a private attribute.
            self._pro._DataApi__http_url = base_url.rstrip("/")  # type: ignore[attr-defined]

    async def request(self, api_name: str, params: Mapping[str, Any]) -> Envelope:
        frame = await asyncio.to_thread(self._pro.query, api_name, **dict(params))
        if frame is None:
            return {"code": 0, "msg": "", "data": {"fields": [], "items": []}}
        return {
            "code": 0,
            "msg": "",
            "data": {"fields": list(frame.columns), "items": frame.astype(object).values.tolist()},
        }

    async def aclose(self) -> None:
        return None


# -----------------
# Client
# -----------------


class TuShareClient:
    """Cache-first, retrying access to the TuShare endpoints used by the report workflow."""

    def __init__(
        self,
        transport: ProviderTransport,
        *,
        max_retries: int = 3,
        retry_policy: Optional[RetryPolicy] = None,
        cache: Optional[ResponseCache] = None,
        basic_info_ttl: float = 24 * 60 * 60,
        daily_ttl: float = 60 * 60,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max_retries
        self._retry_policy = retry_policy or NoBackoff()
        self._cache = cache if cache is not None else ResponseCache()
        self._basic_info_ttl = basic_info_ttl
        self._daily_ttl = daily_ttl
        self._logger = resolve_logger(logger, "tushare")

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    # ------------------
    # Public API helpers
    # ------------------
    async def fetch(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        cache_ttl: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> List[Record]:
        """Fetch ``endpoint`` and return one mapping per row."""
        params = dict(params or {})
        key = ResponseCache.key(endpoint, params)
        if cache_ttl:
            cached = self._cache.get(key, cache_ttl)
            if cached is not None:
                self._logger.debug("TuShare cache hit for %s %s", endpoint, key[1])
                return cached

        records = await self._call_with_retry(endpoint, params, self._max_retries if max_retries is None else max_retries)
        if cache_ttl:
            self._cache.set(key, records)
        return records

    async def fetch_basic_info(self, ts_code: str) -> List[Record]:
        """Static company metadata such as name, list date, and industry."""
        return await self.fetch(
            "stock_basic",
            {"ts_code": ts_code, "fields": BASIC_INFO_FIELDS},
            cache_ttl=self._basic_info_ttl,
        )

    async def fetch_financials(self, ts_code: str, period: str) -> Dict[str, List[Record]]:
        """Income, balance sheet, cash flow and indicator rows for ``period``, most recent first.

        The four statement calls are independent and run concurrently.
        """
        params = {"ts_code": ts_code, "period": period}
        tasks = [
            asyncio.ensure_future(self.fetch(endpoint, params))
            for endpoint in ("income", "balancesheet", "cashflow", "fina_indicator")
        ]
        try:
            income, balance, cashflow, indicators = await asyncio.gather(*tasks)
        except BaseException:
            # One failure ends the request; siblings must not outlive it.
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return {
            "income": _most_recent_first(income),
            "balance": _most_recent_first(balance),
            "cashflow": _most_recent_first(cashflow),
            "indicators": _most_recent_first(indicators),
        }

    async def fetch_daily(self, ts_code: str, start_date: str, end_date: str) -> List[Record]:
        """Daily bars between two ``YYYYMMDD`` dates, ascending by trade date."""
        records = await self.fetch(
            "daily",
            {"ts_code": ts_code, "start_date": start_date, "end_date": end_date},
            cache_ttl=self._daily_ttl,
        )
        return sorted(records, key=lambda row: str(row.get("trade_date") or ""))

    async def aclose(self) -> None:
        closer = getattr(self._transport, "aclose", None)
        if closer is not None:
            await closer()

    # -----------------
    # Internal helpers
    # -----------------
    async def _call_with_retry(self, endpoint: str, params: Dict[str, Any], max_retries: int) -> List[Record]:
        remaining = max(0, max_retries)
        attempt = 0
        while True:
            attempt += 1
            try:
                envelope = await self._transport.request(endpoint, params)
                return normalize_envelope(endpoint, envelope)
            except Exception as exc:  # pylint: disable=broad-except
                if remaining <= 0:
                    self._logger.error("TuShare %s failed after %d attempt(s): %s", endpoint, attempt, exc)
                    if isinstance(exc, ProviderError):
                        raise
                    raise ProviderError(endpoint, str(exc) or exc.__class__.__name__) from exc
                remaining -= 1
                self._logger.warning(
                    "TuShare %s failed (%s); retrying, %d attempt(s) left", endpoint, exc, remaining
                )
                delay = self._retry_policy.delay(attempt)
                if delay > 0:
                    await asyncio.sleep(delay)


def normalize_envelope(endpoint: str, envelope: Envelope) -> List[Record]:
    """Convert a ``{fields, items}`` payload into a list of dicts; non-zero code is an error."""
    if not isinstance(envelope, Mapping):
        raise ProviderError(endpoint, f"unexpected response type {type(envelope).__name__}")
    code = envelope.get("code")
    if code != 0:
        raise ProviderError(endpoint, f"Tushare错误: {envelope.get('msg') or code}")
    data = envelope.get("data") or {}
    fields = data.get("fields") or []
    items = data.get("items") or []
    if not items:
        return []
    frame = pd.DataFrame(items, columns=fields)
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


def _most_recent_first(records: List[Record]) -> List[Record]:
    return sorted(
        records,
        key=lambda row: (str(row.get("end_date") or ""), str(row.get("ann_date") or "")),
        reverse=True,
    )


def read_token_from_disk() -> Optional[str]:
    """Try to load a TuShare token from the working directory or home directory."""
    candidates = [Path.cwd() / ".tushare_token", Path.home() / ".tushare_token"]
    for path in candidates:
        if path.is_file():
            token = path.read_text(encoding="utf-8").strip()
            if token:
                return token
    return None


def build_transport(
    base_url: str,
    token: Optional[str],
    *,
    mode: str = "http",
    proxy_url: Optional[str] = None,
) -> ProviderTransport:
    """Create the configured transport; the SDK mode needs a token."""
    token = token or os.getenv("TUSHARE_TOKEN") or read_token_from_disk()
    if mode == "sdk":
        if not token:
            raise ValueError("TuShare API key is missing; set TUSHARE_API_KEY or provide .tushare_token.")
        return SdkTransport(token, base_url=base_url)
    return HttpTransport(base_url, token, proxy_url=proxy_url)
