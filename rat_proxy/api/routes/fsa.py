from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from rat_proxy.api.dependencies import get_app_settings, get_jira_client
from rat_proxy.core.config import Settings
from rat_proxy.models.jira import FsaDetails, SearchResponse
from rat_proxy.models.schemas import ErrorResponse
from rat_proxy.services.fsa import FSA_FIELDS, build_jql_all, fetch_fsa_details
from rat_proxy.services.jira_client import JiraClient

router = APIRouter(prefix="/fsa", tags=["fsa"])


@router.get(
    "",
    summary="List FSAs",
    description="All issues of the FSA project, newest first.",
    response_model=SearchResponse,
    responses={500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
# PUBLIC_INTERFACE
async def list_fsas(
    maxResults: Optional[int] = Query(None, ge=1, description="Page size per Jira call"),
    settings: Settings = Depends(get_app_settings),
    jira: JiraClient = Depends(get_jira_client),
) -> SearchResponse:
    """Every FSA issue with the fields the RAT form needs."""
    return await jira.search_all(build_jql_all(), FSA_FIELDS, maxResults or settings.SEARCH_DEFAULT_MAX_RESULTS)


@router.get(
    "/{fsa}",
    summary="Get FSA details",
    description="Look up an FSA by number and extract its store location data.",
    response_model=FsaDetails,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
# PUBLIC_INTERFACE
async def get_fsa(
    fsa: str = Path(..., description='FSA number: "1234", "FSA 1234" or "FSA-1234"'),
    codigoLoja: Optional[str] = Query(None, description="Store code used when the issue has none"),
    settings: Settings = Depends(get_app_settings),
    jira: JiraClient = Depends(get_jira_client),
) -> FsaDetails:
    """Resolve one FSA to address, city, state, store code and PDV."""
    return await fetch_fsa_details(jira, settings, fsa, store_hint=codigoLoja)
