from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    PUBLIC_INTERFACE
    Application configuration loaded from environment variables using pydantic-settings.

    Jira credential variables accept the legacy names used by older deployments
    (JIRA_EMAIL, JIRA_TOKEN, JIRA_URL); the first name listed wins when both are set.
    """

    # JIRA credentials
    JIRA_USER_EMAIL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("JIRA_USER_EMAIL", "JIRA_EMAIL"),
        description="JIRA account email",
    )
    JIRA_API_TOKEN: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("JIRA_API_TOKEN", "JIRA_TOKEN"),
        description="JIRA API token",
    )
    JIRA_CLOUD_ID: Optional[str] = Field(default=None, description="Jira Cloud tenant id for the Ex gateway")
    JIRA_BASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("JIRA_BASE_URL", "JIRA_URL"),
        description="Site URL, e.g. https://yoursite.atlassian.net",
    )

    # Routing
    JIRA_PREFER_EX_GATEWAY: bool = Field(
        default=True, description="Address Jira through api.atlassian.com/ex/jira when a cloud id is known"
    )
    JIRA_DISCOVER_CLOUD_ID: bool = Field(
        default=False, description="Look up the cloud id via accessible-resources when only a site URL is set"
    )

    # JIRA client behavior
    JIRA_TIMEOUT_SECONDS: float = Field(default=15.0, description="HTTP timeout for a single JIRA call (seconds)")
    JIRA_SEARCH_DEADLINE_SECONDS: float = Field(
        default=60.0, description="Overall deadline for a paginated search (seconds)"
    )
    JIRA_MAX_PAGES: int = Field(default=100, ge=1, description="Maximum pages fetched by one search")

    # Search endpoint defaults
    SEARCH_DEFAULT_MAX_RESULTS: int = Field(default=50, ge=1, description="Page size when maxResults is omitted")
    SEARCH_DEFAULT_FIELDS: str = Field(
        default="summary,description,created", description="Comma-separated fields used when none are requested"
    )
    SEARCH_ALLOW_GET: bool = Field(default=False, description="Accept GET with query parameters on the search endpoint")

    # FSA field mapping (Jira field ids tried before the built-in candidates)
    JIRA_FIELD_ADDRESS: Optional[str] = Field(default=None, description="Field id holding the store address")
    JIRA_FIELD_CITY: Optional[str] = Field(default=None, description="Field id holding the city")
    JIRA_FIELD_STATE: Optional[str] = Field(default=None, description="Field id holding the state (UF)")
    JIRA_FIELD_STORE: Optional[str] = Field(default=None, description="Field id holding the store code")
    JIRA_FIELD_PDV: Optional[str] = Field(default=None, description="Field id holding the PDV")

    # App config
    APP_ENV: str = Field(default="development", description="Application environment")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level, e.g., DEBUG, INFO, WARNING")
    REDACT_UPSTREAM_DETAILS: bool = Field(
        default=False, description="Omit raw Jira error payloads from error responses"
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def search_default_fields(self) -> List[str]:
        """Default field list parsed from SEARCH_DEFAULT_FIELDS."""
        return [f.strip() for f in self.SEARCH_DEFAULT_FIELDS.split(",") if f.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    PUBLIC_INTERFACE
    Returns a singleton settings instance loaded from environment variables.
    """
    return Settings()
