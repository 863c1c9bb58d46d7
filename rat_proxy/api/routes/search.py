from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from rat_proxy.api.dependencies import get_app_settings, get_jira_client, require_search_get_enabled
from rat_proxy.core.config import Settings
from rat_proxy.core.errors import MISSING_JQL_MESSAGE, ValidationError
from rat_proxy.models.jira import SearchRequest, SearchResponse
from rat_proxy.models.schemas import ErrorResponse
from rat_proxy.services.jira_client import JiraClient
from rat_proxy.utils.logging import logger

router = APIRouter(tags=["search"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    405: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


async def run_search(
    jira: JiraClient,
    settings: Settings,
    jql: Any,
    fields: Optional[List[str]],
    max_results: Optional[int],
) -> SearchResponse:
    """Apply request defaults and run the fully paginated search."""
    if not isinstance(jql, str) or not jql.strip():
        raise ValidationError(MISSING_JQL_MESSAGE)
    fields = [f for f in (fields or []) if f] or settings.search_default_fields
    page_size = max_results or settings.SEARCH_DEFAULT_MAX_RESULTS

    logger.info(
        "jira_search",
        extra={
            "request_id": jira.request_id,
            "jql": jql,
            "fields_count": len(fields),
            "max_results": page_size,
        },
    )
    result = await jira.search_all(jql, fields, page_size)
    logger.info("jira_search_done", extra={"request_id": jira.request_id, "total": result.total})
    return result


@router.post(
    "/buscar-fsa",
    summary="Search Jira issues",
    description="Run a JQL search against Jira and return every page of results in one response.",
    response_model=SearchResponse,
    responses=ERROR_RESPONSES,
)
# PUBLIC_INTERFACE
async def search_issues(
    payload: Optional[SearchRequest] = Body(default=None),
    settings: Settings = Depends(get_app_settings),
    jira: JiraClient = Depends(get_jira_client),
) -> SearchResponse:
    """Search with a JSON body {jql, fields?, maxResults?}."""
    payload = payload or SearchRequest()
    return await run_search(jira, settings, payload.jql, payload.fields, payload.maxResults)


@router.get(
    "/buscar-fsa",
    summary="Search Jira issues (query parameters)",
    description="Legacy form of the search; only served when SEARCH_ALLOW_GET is enabled.",
    response_model=SearchResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_search_get_enabled)],
)
# PUBLIC_INTERFACE
async def search_issues_get(
    jql: Optional[str] = Query(None, description="JQL query string"),
    fields: Optional[str] = Query(None, description="Comma-separated field list"),
    maxResults: Optional[int] = Query(None, ge=1, description="Page size per Jira call"),
    settings: Settings = Depends(get_app_settings),
    jira: JiraClient = Depends(get_jira_client),
) -> SearchResponse:
    """Search with query parameters, for older clients."""
    field_list = [f.strip() for f in fields.split(",")] if fields else None
    return await run_search(jira, settings, jql, field_list, maxResults)
