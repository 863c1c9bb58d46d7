from __future__ import annotations

import base64
import binascii
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status

from rat_proxy.api.dependencies import get_jira_client
from rat_proxy.core.errors import TransitionUnavailableError, ValidationError
from rat_proxy.models.jira import ISSUE_KEY_PATTERN, AttachmentRequest, TransitionRequest
from rat_proxy.models.schemas import ErrorResponse
from rat_proxy.services.jira_client import JiraClient
from rat_proxy.services.transitions import annotate_transitions, pick_transition

router = APIRouter(prefix="/jira", tags=["workflow"])


@router.get(
    "/transitions",
    summary="List issue transitions",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
# PUBLIC_INTERFACE
async def list_transitions(
    issueKey: str = Query(..., pattern=ISSUE_KEY_PATTERN, description="Issue key, e.g. FSA-1234"),
    jira: JiraClient = Depends(get_jira_client),
) -> Dict[str, Any]:
    """Transitions available for the issue, each tagged with its workflow status."""
    transitions = await jira.get_transitions(issueKey)
    return {"transitions": annotate_transitions(transitions)}


@router.post(
    "/transition",
    summary="Transition an issue",
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
# PUBLIC_INTERFACE
async def transition_issue(
    payload: TransitionRequest,
    jira: JiraClient = Depends(get_jira_client),
) -> Dict[str, Any]:
    """Apply a transition given its id, or find it by target workflow status."""
    transition_id = payload.transitionId
    if not transition_id:
        if not payload.status:
            raise ValidationError("Missing required body parameter: transitionId or status")
        transitions = await jira.get_transitions(payload.issueKey)
        transition_id = pick_transition(transitions, payload.status)
        if not transition_id:
            raise TransitionUnavailableError(
                f"Transition to '{payload.status}' not available for {payload.issueKey}",
                details={"available": [t.get("name") for t in transitions]},
            )
    return await jira.transition_issue(payload.issueKey, transition_id)


@router.post(
    "/attach",
    summary="Attach a file to an issue",
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
# PUBLIC_INTERFACE
async def attach_file(
    payload: AttachmentRequest,
    jira: JiraClient = Depends(get_jira_client),
) -> Dict[str, Any]:
    """Upload a base64 file, usually the generated RAT PDF, as an issue attachment."""
    try:
        content = base64.b64decode(payload.fileBase64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("fileBase64 is not valid base64") from exc
    attachments = await jira.add_attachment(payload.issueKey, payload.fileName, content)
    return {"ok": True, "issueKey": payload.issueKey, "attachments": attachments}
