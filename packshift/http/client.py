# packshift/http/client.py
from __future__ import annotations
import asyncio
import logging
import random
from typing import Any
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urlparse

import httpx

from packshift.app.settings import settings

logger = logging.getLogger(__name__)

__all__ = ["HTTPError", "request"]



class HTTPError(Exception):
    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body



def _parseRetryAfter(value: str | None) -> float | None:
    """Return seconds suggested by Retry-After header, if parsable."""
    if not value:
        return None
    # Retry-After: seconds
    try:
        secondsF = float(value)
        if secondsF >= 0:
            return secondsF
        return None
    except ValueError:
        pass
    # Retry-After: HTTP-date
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    # Normalize to aware UTC for safe subtraction
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc).timestamp()
    return max(0.0, dt.timestamp() - now)



def _shouldRetry(status: int) -> bool:
    # Typical transient HTTP errors upon which retry makes sense
    return status in (408, 429, 500, 502, 503, 504)



def _backoffMs(attempt: int, baseMs: int, maxMs: int) -> float:
    base = min(maxMs, baseMs * (2 ** attempt))
    jitter = base * 0.25
    return max(0.0, base + random.uniform(-jitter, jitter))



async def request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    json: Any | None = None,
    data: Any | None = None,
    params: dict[str, Any] | None = None,
    timeoutMs: int | None = None,
    retries: int | None = None,
    backoffBaseMs: int | None = None,
    backoffMaxMs: int | None = None,
    followRedirects: bool = True
) -> dict[str, Any]:
    """
    Outbound HTTP client with timeout and retries (408/429/5xx).

    Returns:
    {
        "status": int,
        "headers": dict[str,str],
        "text": str,
        "content": bytes,
        "json": Any? # Present when response looks like JSON and parses
    }

    - Unset knobs come from the `http.*` settings.
    - Raises HTTPError for 408/429/5xx after exhausting retries.
    - Re-raises httpx.HTTPError for transport errors after exhausting retries.
    - Non-retryable 4xx responses are returned, not raised.
    """
    if timeoutMs is None:
        timeoutMs = int(settings("http.timeoutMs", 30_000))
    if retries is None:
        retries = int(settings("http.retries", 2))
    if backoffBaseMs is None:
        backoffBaseMs = int(settings("http.backoff.baseMs", 250))
    if backoffMaxMs is None:
        backoffMaxMs = int(settings("http.backoff.maxMs", 1_000))

    if timeoutMs <= 0:
        timeoutMs = 1
    timeout = httpx.Timeout(timeoutMs / 1_000)
    attempt = 0
    method = str(method).upper()
    retries = max(0, retries)
    if json is not None and data is not None:
        raise ValueError("Pass either 'json' or 'data', not both")

    host = urlparse(url).hostname
    logger.debug("%s %s (timeoutMs=%d, retries=%d)", method, url, timeoutMs, retries)

    async with httpx.AsyncClient(timeout=timeout, http2=True) as cli:
        while True:
            try:
                resp = await cli.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    data=data,
                    params=params,
                    follow_redirects=followRedirects
                )
                status = resp.status_code

                # Retry policy based on status
                if _shouldRetry(status) and attempt < retries:
                    retryAfter = _parseRetryAfter(resp.headers.get("Retry-After"))
                    if retryAfter is not None:
                        delay = retryAfter
                    else:
                        delay = _backoffMs(attempt, backoffBaseMs, backoffMaxMs) / 1000.0
                    logger.info(
                        "Retrying %s %s after HTTP %d (attempt %d, delay %.2fs)",
                        method, host, status, attempt + 1, delay,
                    )
                    attempt += 1
                    await asyncio.sleep(delay)
                    continue

                # Retries exhausted (or never allowed) for a transient status
                if status >= 500 or status in (408, 429):
                    raise HTTPError(status, resp.text)

                # Success or non-retryable 4xx: return payload (no exception)
                out: dict[str, Any] = {
                    "status": status,
                    "headers": dict(resp.headers), # note: Duplicate header keys are collapsed
                    "text": resp.text,
                    "content": resp.content,
                }

                # Best-effort JSON parse
                ctype = resp.headers.get("Content-Type", "")
                if "json" in ctype.lower():
                    try:
                        out["json"] = resp.json()
                    except ValueError:
                        # Keep going; caller still has "text"
                        logger.debug("Response from %s claims JSON but does not parse", host)

                logger.debug("%s %s -> %d (%d bytes)", method, url, status, len(resp.content))
                return out

            except httpx.HTTPError as err:
                # Transport-level error. Retry with backoff.
                attempt += 1
                if attempt > retries:
                    logger.warning("%s %s failed after %d attempt(s): %s", method, host, attempt, err)
                    raise
                delayMs = _backoffMs(attempt - 1, backoffBaseMs, backoffMaxMs)
                logger.info(
                    "Transport error on %s %s (%s); retrying in %.0fms",
                    method, host, err, delayMs,
                )
                await asyncio.sleep(delayMs / 1000.0)
