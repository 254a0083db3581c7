"""
chaintrack.services.torn_client - Rate-limited Torn API v2 client
===================================================================

Every request goes through one path:

    1. Wait for a slot in the rolling window (:class:`RollingWindowLimiter`).
    2. Issue the GET.
    3. On Torn error 5 (too many requests) or HTTP 429, wait
       ``retry_delay_seconds`` and retry **once**.
    4. Any remaining Torn error becomes :class:`TornAPIError`.  Key
       rejections carry ``remove_key=True`` so the caller forgets the key.

The API key is passed per call and never logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from chaintrack.config import ChainTrackConfig
from chaintrack.constants import (
    NEWS_CATEGORY,
    TORN_ERROR_TOO_MANY_REQUESTS,
    TORN_KEY_REJECTION_CODES,
)
from chaintrack.services.throttle import RollingWindowLimiter

logger = logging.getLogger(__name__)


class TornAPIError(Exception):
    """A Torn request that failed for good.

    Attributes
    ----------
    code : Torn error code, or ``None`` for HTTP / transport failures
    remove_key : True when Torn rejected the key itself
    """

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.remove_key = code in TORN_KEY_REJECTION_CODES


class TornClient:
    """Thin async client for the faction endpoints the tracker needs."""

    def __init__(
        self,
        cfg: ChainTrackConfig | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        limiter: RollingWindowLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cfg = cfg or ChainTrackConfig()
        self.base = self.cfg.api_base.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=self.cfg.request_timeout_seconds,
            transport=httpx.AsyncHTTPTransport(retries=1),
        )
        self.limiter = limiter or RollingWindowLimiter(
            self.cfg.rate_limit, self.cfg.rate_window_seconds
        )
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> TornClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -------------------------------------------------------------------
    # Core request path
    # -------------------------------------------------------------------
    async def _get(self, url: str | httpx.URL, params: dict[str, Any] | None = None) -> dict:
        retried = False
        while True:
            await self.limiter.acquire()
            try:
                response = await self._http.get(url, params=params)
            except httpx.HTTPError as exc:
                raise TornAPIError(f"Torn request failed: {exc}") from exc

            try:
                data = response.json()
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}

            error = data.get("error") or {}
            code = error.get("code")
            throttled = code == TORN_ERROR_TOO_MANY_REQUESTS or response.status_code == 429
            if throttled and not retried:
                logger.warning(
                    "Torn throttled %s, retrying in %.0fs",
                    response.request.url.path, self.cfg.retry_delay_seconds,
                )
                retried = True
                await self._sleep(self.cfg.retry_delay_seconds)
                continue

            if error:
                exc = TornAPIError(error.get("error") or "API error", code=code)
                if exc.remove_key:
                    logger.warning("Torn rejected the API key (code %s)", code)
                raise exc
            if response.status_code >= 400:
                raise TornAPIError(f"HTTP {response.status_code} from Torn API")
            return data

    def _params(self, api_key: str, **extra: Any) -> dict[str, Any]:
        params = {k: v for k, v in extra.items() if v is not None}
        params["key"] = api_key
        return params

    # -------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------
    async def fetch_current_chain(self, api_key: str) -> dict | None:
        """Current chain status, or ``None`` if the faction has none."""
        data = await self._get(f"{self.base}/faction/chain", self._params(api_key))
        return data.get("chain")

    async def fetch_faction_chains(
        self, api_key: str, *, limit: int | None = None, before: int | None = None
    ) -> dict:
        """Previous chains, ``{"chains": [...], "_metadata": {...}}``."""
        params = self._params(
            api_key, limit=limit or self.cfg.chain_list_limit, to=before
        )
        return await self._get(f"{self.base}/faction/chains", params)

    async def fetch_chain_report(self, chain_id: int, api_key: str) -> dict:
        """Per-member hits and respect for *chain_id*."""
        return await self._get(
            f"{self.base}/faction/{chain_id}/chainreport", self._params(api_key)
        )

    async def fetch_faction_news(self, api_key: str, before: str | None = None) -> dict:
        """One page of armory news, newest first.

        *before* is the opaque cursor from the previous page.  Torn hands
        out full ``prev`` URLs; those are followed as-is with the key
        re-applied.  Anything else is passed through as the ``before`` parameter.
        """
        if before and before.startswith("http"):
            url = httpx.URL(before).copy_set_param("key", api_key)
            return await self._get(url)
        params = self._params(
            api_key,
            cat=NEWS_CATEGORY,
            stripTags=str(self.cfg.strip_tags).lower(),
            sort="desc",
            limit=self.cfg.news_page_limit,
            before=before,
        )
        return await self._get(f"{self.base}/faction/news", params)
