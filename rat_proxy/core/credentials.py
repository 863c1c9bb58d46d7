from __future__ import annotations

import base64
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from rat_proxy.core.config import Settings
from rat_proxy.core.errors import ConfigurationError

EX_GATEWAY_BASE = "https://api.atlassian.com/ex/jira"
REST_API_PATH = "/rest/api/3"

_WHITESPACE = re.compile(r"\s+")


class Credentials(BaseModel):
    """Jira credentials for a single request. Never logged or persisted."""

    model_config = ConfigDict(frozen=True)

    email: str
    api_token: str
    cloud_id: Optional[str] = None
    base_site_url: Optional[str] = None

    def basic_token(self) -> str:
        return base64.b64encode(f"{self.email}:{self.api_token}".encode("utf-8")).decode("utf-8")

    def masked_email(self) -> str:
        if len(self.email) <= 6:
            return "***"
        return f"{self.email[:3]}***{self.email[-3:]}"


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# PUBLIC_INTERFACE
def resolve_credentials(settings: Settings) -> Credentials:
    """
    Build Credentials from settings.

    Raises ConfigurationError when the email or token is missing, or when neither
    a cloud id nor a site URL is configured. Tokens pasted with stray newlines or
    spaces are accepted; all whitespace is removed.
    """
    email = _clean(settings.JIRA_USER_EMAIL)
    token = _WHITESPACE.sub("", settings.JIRA_API_TOKEN or "")
    if not email or not token:
        raise ConfigurationError(
            "Jira credentials incomplete.",
            details={"email_set": bool(email), "token_set": bool(token)},
        )

    cloud_id = _clean(settings.JIRA_CLOUD_ID)
    site = _clean(settings.JIRA_BASE_URL)
    if not cloud_id and not site:
        raise ConfigurationError("Jira base config incomplete. Provide JIRA_CLOUD_ID or JIRA_BASE_URL.")

    return Credentials(email=email, api_token=token, cloud_id=cloud_id, base_site_url=site)


# PUBLIC_INTERFACE
def build_base_url(
    cloud_id: Optional[str] = None,
    base_site_url: Optional[str] = None,
    prefer_ex_gateway: bool = True,
) -> str:
    """
    Resolve the Jira REST v3 base URL.

    A cloud id is addressed through the Ex gateway when prefer_ex_gateway is set;
    otherwise the site URL is used. A cloud id on its own is always usable.
    """
    cloud_id = _clean(cloud_id)
    site = _clean(base_site_url)

    if cloud_id and (prefer_ex_gateway or not site):
        return f"{EX_GATEWAY_BASE}/{cloud_id}{REST_API_PATH}"
    if site:
        return f"{site.rstrip('/')}{REST_API_PATH}"
    raise ConfigurationError("Missing Jira base config: provide a cloud id or a site URL.")
