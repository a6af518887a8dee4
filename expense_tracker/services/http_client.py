from __future__ import annotations

"""Async HTTP JSON helper with bounded timeout and limited retries.

Every rate source goes through `get_json`, so a slow provider costs at most
(retries + 1) * timeout before the caller falls back.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("expense_tracker.http")


class HttpError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


async def get_json(
    url: str,
    *,
    timeout: float = 5.0,
    retries: int = 1,
    backoff: float = 0.5,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.get(url)
                if resp.status_code >= 400:
                    raise HttpError(
                        f"HTTP {resp.status_code}", status_code=resp.status_code
                    )
                data = resp.json()
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                return data
            except (httpx.HTTPError, HttpError, ValueError) as e:  # ValueError for JSON decode
                last_err = e
                logger.debug("GET attempt %d failed: %s", attempt + 1, e)
                if attempt == retries:
                    break
                await asyncio.sleep(backoff * (2**attempt))
    status = getattr(last_err, "status_code", None)
    raise HttpError(f"Failed to fetch JSON: {last_err}", status_code=status)
