from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""
    error: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Upstream payload or validation details, when available")
    jql: Optional[str] = Field(default=None, description="JQL that Jira rejected")
