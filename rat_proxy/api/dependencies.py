from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends, Request

from rat_proxy.core.config import Settings, get_settings
from rat_proxy.core.credentials import build_base_url, resolve_credentials
from rat_proxy.core.errors import ProxyError
from rat_proxy.services.cloud_id import discover_cloud_id
from rat_proxy.services.jira_client import JiraClient
from rat_proxy.utils.logging import logger


# PUBLIC_INTERFACE
def get_app_settings() -> Settings:
    """Expose settings as dependency helper (wrapper around core.get_settings)."""
    return get_settings()


# PUBLIC_INTERFACE
async def get_jira_client(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[JiraClient]:
    """Yield a JiraClient for this request, opened and closed around the handler."""
    credentials = resolve_credentials(settings)

    cloud_id = credentials.cloud_id
    if not cloud_id and settings.JIRA_DISCOVER_CLOUD_ID:
        cloud_id = await discover_cloud_id(credentials, timeout=settings.JIRA_TIMEOUT_SECONDS)

    base_url = build_base_url(cloud_id, credentials.base_site_url, prefer_ex_gateway=settings.JIRA_PREFER_EX_GATEWAY)
    request_id = getattr(request.state, "request_id", None)
    logger.debug(
        "jira_client_config",
        extra={
            "request_id": request_id,
            "base_url": base_url,
            "email": credentials.masked_email(),
            "token_length": len(credentials.api_token),
        },
    )

    client = JiraClient(
        credentials,
        base_url,
        timeout=settings.JIRA_TIMEOUT_SECONDS,
        max_pages=settings.JIRA_MAX_PAGES,
        deadline_seconds=settings.JIRA_SEARCH_DEADLINE_SECONDS,
        request_id=request_id,
    )
    await client.open()
    try:
        yield client
    finally:
        await client.close()


# PUBLIC_INTERFACE
def require_search_get_enabled(settings: Settings = Depends(get_app_settings)) -> None:
    """Reject GET searches unless SEARCH_ALLOW_GET is set."""
    if not settings.SEARCH_ALLOW_GET:
        raise ProxyError("Method not allowed. Use POST.", status_code=405)
