from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Jira issue key, e.g. FSA-1234; keys are placed in upstream URL paths
ISSUE_KEY_PATTERN = r"^[A-Z][A-Z0-9_]*-\d+$"


class Issue(BaseModel):
    """A Jira issue as returned by search. Fields are passed through untouched."""

    model_config = ConfigDict(extra="allow")

    key: str = Field(..., description="Issue key, e.g. FSA-1234")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Issue fields bag")


# PUBLIC_INTERFACE
class SearchRequest(BaseModel):
    """Request body for the search proxy."""

    jql: Optional[str] = Field(default=None, description="JQL query string (required)")
    fields: Optional[List[str]] = Field(default=None, description="Fields to return; defaults apply when empty")
    maxResults: Optional[int] = Field(default=None, ge=1, description="Page size requested per Jira call")


# PUBLIC_INTERFACE
class SearchResponse(BaseModel):
    """Aggregated search result. Pagination is resolved before responding, so isLast is always true."""

    issues: List[Issue] = Field(default_factory=list, description="Issues in Jira page order")
    total: int = Field(default=0, description="Number of issues returned")
    isLast: bool = Field(default=True, description="Always true")


# PUBLIC_INTERFACE
class FsaDetails(BaseModel):
    """Store/location details extracted from an FSA issue."""

    fsaId: Optional[str] = Field(default=None, description="Normalised FSA number")
    issueKey: Optional[str] = Field(default=None, description="Jira key of the matched issue")
    storeCode: Optional[str] = Field(default=None, description="Store code (3-5 digits)")
    endereco: Optional[str] = Field(default=None, description="Street address")
    cidade: Optional[str] = Field(default=None, description="City")
    uf: Optional[str] = Field(default=None, description="Two-letter state code")
    pdv: Optional[str] = Field(default=None, description="Point of sale")


# PUBLIC_INTERFACE
class TransitionRequest(BaseModel):
    """Move an issue through its workflow, by transition id or by target status."""

    issueKey: str = Field(..., pattern=ISSUE_KEY_PATTERN, description="Issue key to transition")
    transitionId: Optional[str] = Field(default=None, description="Transition id to apply")
    status: Optional[Literal["in_progress", "waiting", "done"]] = Field(
        default=None, description="Target workflow status, resolved to a transition by name"
    )


# PUBLIC_INTERFACE
class AttachmentRequest(BaseModel):
    """Attach a base64-encoded file (typically the RAT PDF) to an issue."""

    issueKey: str = Field(..., pattern=ISSUE_KEY_PATTERN, description="Issue key to attach to")
    fileName: str = Field(..., min_length=1, description="File name shown in Jira")
    fileBase64: str = Field(..., min_length=1, description="Base64-encoded file content")
