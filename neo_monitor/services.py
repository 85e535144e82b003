import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .cache import NeoCache, feed_cache_key, lookup_cache_key
from .config import Settings
from .errors import ExternalApiError, NotFoundError
from .logging_utils import log_event
from .metrics import UPSTREAM_REQUESTS

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


class NasaClient:
    """NeoWs feed/lookup client with a read-through cache.

    Concurrent callers asking for the same uncached key share one upstream
    request. That is an optimisation only; two processes may still both fetch
    and both write the same entry.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: NeoCache,
        api_key: str,
        ttl_seconds: Optional[int] = None,
    ):
        self.http = http
        self.cache = cache
        self.api_key = api_key
        self.ttl_seconds = ttl_seconds
        self._inflight: Dict[str, asyncio.Future] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: NeoCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NasaClient":
        http = httpx.AsyncClient(
            base_url=settings.nasa_base_url,
            timeout=settings.nasa_timeout_seconds,
            transport=transport or httpx.AsyncHTTPTransport(retries=settings.nasa_max_retries),
        )
        return cls(http, cache, settings.nasa_api_key, ttl_seconds=settings.cache_ttl_seconds)

    async def fetch_feed(self, start_date: str, end_date: str) -> Dict[str, Any]:
        """Raw feed payload, ``near_earth_objects`` keyed by date."""
        params = {"start_date": start_date, "end_date": end_date}
        return await self._cached(
            feed_cache_key(start_date, end_date),
            lambda: self._get("/feed", "feed", params),
        )

    async def fetch_lookup(self, neo_id: str) -> Dict[str, Any]:
        return await self._cached(
            lookup_cache_key(neo_id),
            lambda: self._get(f"/neo/{neo_id}", "lookup", {}),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _cached(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        cached = await self.cache.get_cached(key)
        if cached.value is not None:
            return cached.value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch))
            self._inflight[key] = task

            def _forget(done: asyncio.Future) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]
                if not done.cancelled():
                    done.exception()

            task.add_done_callback(_forget)
        return await asyncio.shield(task)

    async def _fetch_and_store(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        data = await fetch()
        await self.cache.set_cache(key, data, self.ttl_seconds)
        return data

    async def _get(self, path: str, endpoint: str, params: Dict[str, str]) -> Any:
        # log and report the path only; the query string carries the API key
        try:
            resp = await self.http.get(path, params={**params, "api_key": self.api_key})
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="http_error").inc()
            log_event(logger, "nasa.request_failed", f"NASA {endpoint} API returned an error",
                      level="error", upstream=path, status=status)
            if endpoint == "lookup" and status == 404:
                raise NotFoundError("NEO not found") from exc
            raise ExternalApiError(
                f"NASA {endpoint} API returned {status}",
                upstream=path,
                upstream_status=status,
                transient=status in TRANSIENT_STATUSES,
            ) from exc
        except httpx.RequestError as exc:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="unreachable").inc()
            log_event(logger, "nasa.request_failed", f"NASA {endpoint} API unreachable",
                      level="error", upstream=path, error=type(exc).__name__)
            raise ExternalApiError(
                f"NASA {endpoint} API unreachable", upstream=path, transient=True
            ) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="bad_payload").inc()
            raise ExternalApiError(
                f"NASA {endpoint} API returned invalid JSON",
                upstream=path,
                upstream_status=resp.status_code,
            ) from exc

        UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="ok").inc()
        return data
