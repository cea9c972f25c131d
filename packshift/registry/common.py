# packshift/registry/common.py
from __future__ import annotations
import logging
from typing import Any

from packshift.core.errors import RegistryError
from packshift.http.client import request

logger = logging.getLogger(__name__)

__all__ = ["callJson"]



async def callJson(
    method: str,
    url: str,
    *,
    what: str,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
) -> Any:
    """
    Perform a request and return its decoded JSON body.

    Any non-2xx status or a body that is not JSON becomes RegistryError so
    callers deal with one exception family. Transport failures and exhausted
    retries (httpx.HTTPError / HTTPError) propagate unchanged.
    """
    resp = await request(method, url, headers=headers, params=params, json=json)
    status = resp["status"]
    if not 200 <= status < 300:
        raise RegistryError(f"{what} failed: HTTP {status}", status=status)
    if "json" not in resp:
        raise RegistryError(f"{what} returned a non-JSON body", status=status)
    return resp["json"]
