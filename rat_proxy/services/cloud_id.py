from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx

from rat_proxy.core.credentials import Credentials
from rat_proxy.utils.logging import logger

ACCESSIBLE_RESOURCES_URL = "https://api.atlassian.com/oauth/token/accessible-resources"

# (email, site) -> cloud id; None records a lookup that found nothing
_cache: Dict[Tuple[str, str], Optional[str]] = {}
_lock = asyncio.Lock()


def _normalise_site(url: str) -> str:
    return url.strip().rstrip("/").lower()


def pick_cloud_id(resources: List[Dict[str, Any]], site: str) -> Optional[str]:
    """Return the id of the resource whose url is the configured site."""
    wanted = _normalise_site(site)
    for res in resources:
        url = res.get("url")
        if res.get("id") and url and _normalise_site(url) == wanted:
            return str(res["id"])
    return None


async def _fetch_resources(
    credentials: Credentials,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport],
) -> List[Dict[str, Any]]:
    headers = {"Authorization": f"Basic {credentials.basic_token()}", "Accept": "application/json"}
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        r = await client.get(ACCESSIBLE_RESOURCES_URL, headers=headers)
    r.raise_for_status()
    data = r.json()
    return data if isinstance(data, list) else []


# PUBLIC_INTERFACE
async def discover_cloud_id(
    credentials: Credentials,
    timeout: float = 15.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Find the cloud id for the configured site via the accessible-resources endpoint.

    The lookup runs once per process for a given (email, site); the outcome is
    cached, including a miss. Failures are logged and yield None so the caller
    falls back to the site URL.
    """
    if credentials.cloud_id:
        return credentials.cloud_id
    if not credentials.base_site_url:
        return None

    key = (credentials.email, _normalise_site(credentials.base_site_url))
    if key in _cache:
        return _cache[key]

    async with _lock:
        if key in _cache:
            return _cache[key]
        try:
            resources = await _fetch_resources(credentials, timeout, transport)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "cloud_id_discovery_failed",
                extra={"site": credentials.base_site_url, "error": str(exc)},
            )
            return None
        cloud_id = pick_cloud_id(resources, credentials.base_site_url)
        logger.info(
            "cloud_id_discovered",
            extra={"site": credentials.base_site_url, "found": cloud_id is not None},
        )
        _cache[key] = cloud_id
        return cloud_id


def clear_cloud_id_cache() -> None:
    """Forget discovered cloud ids (used by tests and on credential rotation)."""
    _cache.clear()
