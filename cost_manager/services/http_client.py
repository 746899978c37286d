from __future__ import annotations

"""Async HTTP client util with retry.

GET JSON with limited retries on transport errors and 5xx responses. Tests
pass an ``httpx.MockTransport`` through ``transport``.
"""
import asyncio
import logging
import time
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger("cost_manager.http")

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def with_cache_buster(url: str) -> str:
    """Add a millisecond ``_`` nonce, keeping any query the URL already has."""
    nonce = str(int(time.time() * 1000))
    return str(httpx.URL(url).copy_merge_params({"_": nonce}))


class HttpError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


async def get_json(
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 5.0,
    retries: int = 1,
    backoff: float = 0.5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    last_err: Optional[HttpError] = None
    async with httpx.AsyncClient(
        timeout=timeout, transport=transport, follow_redirects=True
    ) as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.get(url, headers=headers)
            except httpx.HTTPError as e:
                last_err = HttpError(f"request to {url} failed: {e}")
            else:
                if resp.is_success:
                    try:
                        return resp.json()
                    except ValueError as e:
                        snippet = resp.text[:120]
                        raise HttpError(
                            f"Invalid JSON: {e}"
                            + (f" | received: {snippet}" if snippet else ""),
                            status_code=resp.status_code,
                        ) from e
                last_err = HttpError(f"HTTP {resp.status_code}", status_code=resp.status_code)
                if resp.status_code < 500:
                    break
            if attempt == retries:
                break
            logger.debug("retrying %s after %s (attempt %d)", url, last_err, attempt + 1)
            await asyncio.sleep(backoff * (2**attempt))
    assert last_err is not None
    raise last_err
