from __future__ import annotations

"""Session-scoped rate provider.

Purpose:
    Own the active rate table for one process: where it comes from (the
    persisted RateSource) and the in-memory session cache.

Policy:
    - URL mode: the cache starts empty, is filled by the first successful fetch
      and reused until ``refresh()``, a switch back to URL mode, or ``reset()``.
    - Inline mode: the active table is the stored inline table; the network is
      never touched by ``get_active_rates()``.
    - Failures propagate; there is no default or "assume equal" table.

Concurrency:
    Overlapping fetches of the same URL share one in-flight task, so concurrent
    callers observe a single outcome and a single network round trip. Every
    source switch or reset starts a new generation; a fetch started in an
    older generation is neither joined nor allowed to fill the cache.
"""
import asyncio
import logging
import sqlite3
from typing import Any, Callable, Mapping, Optional, TypeVar

import anyio
import httpx

from cost_manager.core.errors import (
    PersistenceError,
    RateAcquisitionError,
    ValidationError,
)
from cost_manager.db.dal import Database
from cost_manager.models.rates import RateTable
from cost_manager.services.http_client import (
    NO_CACHE_HEADERS,
    HttpError,
    get_json,
    with_cache_buster,
)
from .source import (
    RateSource,
    SourceMode,
    load_source,
    save_inline_source,
    save_url_source,
)

logger = logging.getLogger("cost_manager.rates")

T = TypeVar("T")


class RateProvider:
    def __init__(
        self,
        db: Database,
        *,
        default_url: str,
        timeout: float = 5.0,
        retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._db = db
        self._default_url = default_url
        self._timeout = timeout
        self._retries = retries
        self._transport = transport
        self._source: Optional[RateSource] = None
        self._cache: Optional[RateTable] = None
        self._generation = 0
        self._inflight: Optional[tuple[str, int, asyncio.Future]] = None

    # Internal --------------------------------------------------
    async def _run_db(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await anyio.to_thread.run_sync(fn, *args)
        except sqlite3.Error as e:
            raise PersistenceError(f"rate source storage failed: {e}") from e

    async def _current(self) -> RateSource:
        if self._source is None:
            self._source = await self._run_db(load_source, self._db, self._default_url)
        return self._source

    def _new_generation(self) -> None:
        self._generation += 1
        self._inflight = None

    async def _fetch_and_store(self, url: str, generation: int) -> RateTable:
        table = await self.fetch_from_url(url)
        source = self._source
        if (
            generation == self._generation
            and source is not None
            and source.mode is SourceMode.URL
            and source.url == url
        ):
            self._cache = table
        else:
            logger.debug("discarding rates fetched before a source switch (%s)", url)
        return table

    async def _fetch_single_flight(self, url: str) -> RateTable:
        generation = self._generation
        inflight = self._inflight
        if (
            inflight is None
            or inflight[0] != url
            or inflight[1] != generation
            or inflight[2].done()
        ):
            task = asyncio.ensure_future(self._fetch_and_store(url, generation))
            inflight = (url, generation, task)
            self._inflight = inflight
        else:
            logger.debug("joining in-flight rate fetch for %s", url)
        task = inflight[2]
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._inflight is inflight:
                self._inflight = None

    # Public API -----------------------------------------------
    async def current_source(self) -> RateSource:
        return await self._current()

    def cached_rates(self) -> Optional[RateTable]:
        """Session snapshot without any I/O (``None`` until rates are acquired)."""
        return self._cache

    async def session_rates(self) -> Optional[RateTable]:
        """Table active this session without fetching: inline table or URL cache."""
        source = await self._current()
        if source.mode is SourceMode.INLINE:
            return source.inline
        return self._cache

    async def get_active_rates(self) -> RateTable:
        source = await self._current()
        if source.mode is SourceMode.INLINE:
            if source.inline is None:
                raise ValidationError("inline rate table is not set", field="inline")
            self._cache = source.inline
            return source.inline
        if self._cache is not None:
            logger.debug("rate cache hit")
            return self._cache
        return await self._fetch_single_flight(source.url)

    async def set_source(self, mode: SourceMode | str, config: Any = None) -> RateSource:
        """Switch and persist the rate source.

        ``config`` is the URL for URL mode (empty or ``None`` means the default
        URL) and a rate table mapping for inline mode.
        """
        mode = SourceMode.parse(mode)
        current = await self._current()
        if mode is SourceMode.URL:
            url = _normalize_url(config, self._default_url)
            await self._run_db(save_url_source, self._db, url)
            self._source = RateSource(
                mode=SourceMode.URL,
                url=url,
                inline=current.inline,
                default_url=self._default_url,
            )
            self._cache = None
            self._new_generation()
            logger.info("rate source switched to url %s", url, extra={"rate_source": "url"})
        else:
            if config is None:
                raise ValidationError("inline mode requires a rate table", field="inline")
            table = config if isinstance(config, RateTable) else RateTable(config)
            await self._run_db(save_inline_source, self._db, table)
            self._source = RateSource(
                mode=SourceMode.INLINE,
                url=current.url,
                inline=table,
                default_url=self._default_url,
            )
            self._cache = table
            self._new_generation()
            logger.info("rate source switched to inline table", extra={"rate_source": "inline"})
        return self._source

    async def fetch_from_url(self, url: str) -> RateTable:
        logger.debug("fetching rates from %s", url)
        try:
            data = await get_json(
                with_cache_buster(url),
                headers=NO_CACHE_HEADERS,
                timeout=self._timeout,
                retries=self._retries,
                transport=self._transport,
            )
        except HttpError as e:
            raise RateAcquisitionError(f"Failed to fetch rates from {url}: {e}") from e
        if not isinstance(data, Mapping):
            raise RateAcquisitionError(f"Rates from {url} are not a JSON object")
        try:
            return RateTable(data)
        except ValidationError as e:
            raise RateAcquisitionError(
                f"Rates from {url} rejected: {e.message}", field=e.field
            ) from e

    async def refresh(self) -> RateTable:
        """Drop the session cache and fetch from the configured URL.

        In inline mode the fetched table is returned but the inline table stays
        active; switching modes is always an explicit ``set_source`` call.
        """
        source = await self._current()
        if source.mode is SourceMode.URL:
            self._cache = None
        return await self._fetch_single_flight(source.url)

    def reset(self) -> None:
        """Forget the session cache and the loaded source (as on process restart)."""
        self._cache = None
        self._source = None
        self._new_generation()


def _normalize_url(value: Any, default_url: str) -> str:
    if value is None:
        return default_url
    if not isinstance(value, str):
        raise ValidationError("rates url must be a string", field="url")
    url = value.strip() or default_url
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ValidationError(f"invalid rates url: {e}", field="url") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValidationError("rates url must be an absolute http(s) URL", field="url")
    return url
