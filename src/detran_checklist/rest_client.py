"""HTTP client for REST backends with read caching and health monitoring."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Mapping
from urllib.parse import urlencode, urljoin

import httpx
from aiocache import Cache  # type: ignore[import-untyped]

from .config import Settings
from .health import BackendHealthMonitor
from .metrics import record_backend_request


class RestClient:
    """Issues JSON requests with a concurrency limit, a GET cache and metrics."""

    def __init__(
        self,
        settings: Settings,
        *,
        base_url: str,
        backend: str,
        headers: Mapping[str, str] | None = None,
        monitor: BackendHealthMonitor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._backend = backend
        self._monitor = monitor
        self._semaphore = asyncio.Semaphore(settings.concurrency)
        self._client = httpx.AsyncClient(
            timeout=settings.timeout_seconds,
            headers={"User-Agent": settings.user_agent, **(headers or {})},
            transport=transport,
        )
        self._cache: Cache | None = None
        if settings.cache_ttl_seconds > 0:
            self._cache = Cache(Cache.MEMORY, ttl=settings.cache_ttl_seconds)

    async def close(self) -> None:
        """Close underlying HTTP client and cache."""

        await self._client.aclose()
        if self._cache:
            await self._cache.close()

    async def invalidate(self) -> None:
        """Drop every cached read; called after any write."""

        if self._cache:
            await self._cache.clear()

    def _url(self, path: str, params: Mapping[str, str] | None = None) -> str:
        url = urljoin(self._base_url, path.lstrip("/"))
        if params:
            url = f"{url}?{urlencode(params, safe=',.()*')}"
        return url

    def _record(
        self,
        operation: str,
        *,
        start: float,
        success: bool,
        cache_hit: bool = False,
        error: Exception | None = None,
    ) -> None:
        duration_seconds = 0.0 if cache_hit else time.perf_counter() - start
        record_backend_request(
            self._backend,
            operation,
            cache_hit=cache_hit,
            outcome="success" if success else "error",
            duration_seconds=duration_seconds,
        )
        if self._monitor:
            self._monitor.record_request(
                backend=self._backend,
                operation=operation,
                duration_ms=duration_seconds * 1000,
                success=success,
                cache_hit=cache_hit,
                error_message=str(error) if error else None,
            )

    async def get_json(
        self,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        use_cache: bool = True,
    ) -> Any:
        """GET ``path`` and return the decoded JSON body."""

        url = self._url(path, params)
        start = time.perf_counter()

        if use_cache and self._cache:
            cached = await self._cache.get(url)
            if cached is not None:
                self._record("get", start=start, success=True, cache_hit=True)
                return json.loads(cached)

        try:
            async with self._semaphore:
                response = await self._client.get(url)
            response.raise_for_status()
            text = response.text
        except Exception as exc:
            self._record("get", start=start, success=False, error=exc)
            raise

        if use_cache and self._cache:
            await self._cache.set(url, text)
        self._record("get", start=start, success=True)
        return json.loads(text) if text else None

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a write request and return the decoded JSON body, if any."""

        url = self._url(path, params)
        operation = method.lower()
        start = time.perf_counter()
        try:
            async with self._semaphore:
                response = await self._client.request(
                    method, url, json=json_body, headers=dict(headers or {})
                )
            response.raise_for_status()
        except Exception as exc:
            self._record(operation, start=start, success=False, error=exc)
            raise

        self._record(operation, start=start, success=True)
        await self.invalidate()
        if not response.content:
            return None
        return response.json()
