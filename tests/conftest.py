import functools
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from rat_proxy.api import dependencies
from rat_proxy.core.config import get_settings
from rat_proxy.main import app
from rat_proxy.services.cloud_id import clear_cloud_id_cache
from rat_proxy.services.jira_client import JiraClient

JIRA_ENV = {
    "JIRA_USER_EMAIL": "tech@example.com",
    "JIRA_API_TOKEN": "token-123",
    "JIRA_BASE_URL": "https://example.atlassian.net",
}

# Every variable the settings read, so the developer's shell cannot leak in
SETTINGS_ENV = [
    "JIRA_USER_EMAIL",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "JIRA_TOKEN",
    "JIRA_CLOUD_ID",
    "JIRA_BASE_URL",
    "JIRA_URL",
    "JIRA_PREFER_EX_GATEWAY",
    "JIRA_DISCOVER_CLOUD_ID",
    "JIRA_TIMEOUT_SECONDS",
    "JIRA_SEARCH_DEADLINE_SECONDS",
    "JIRA_MAX_PAGES",
    "SEARCH_DEFAULT_MAX_RESULTS",
    "SEARCH_DEFAULT_FIELDS",
    "SEARCH_ALLOW_GET",
    "JIRA_FIELD_ADDRESS",
    "JIRA_FIELD_CITY",
    "JIRA_FIELD_STATE",
    "JIRA_FIELD_STORE",
    "JIRA_FIELD_PDV",
    "REDACT_UPSTREAM_DETAILS",
]


@pytest.fixture(autouse=True)
def jira_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    for name, value in JIRA_ENV.items():
        monkeypatch.setenv(name, value)
    get_settings.cache_clear()
    clear_cloud_id_cache()
    yield
    get_settings.cache_clear()
    clear_cloud_id_cache()
    app.dependency_overrides.clear()


@pytest.fixture
def set_env(monkeypatch):
    """Set environment variables and drop the cached settings."""

    def _set(**values):
        for name, value in values.items():
            if value is None:
                monkeypatch.delenv(name, raising=False)
            else:
                monkeypatch.setenv(name, str(value))
        get_settings.cache_clear()

    return _set


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def mock_jira(monkeypatch):
    """Send the app's outbound Jira calls to a handler; returns the captured requests."""

    def _install(handler):
        seen = []

        def recording(request):
            seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(recording)
        monkeypatch.setattr(dependencies, "JiraClient", functools.partial(JiraClient, transport=transport))
        return seen

    return _install


def issue(key, **fields):
    return {"id": key.split("-")[-1], "key": key, "fields": fields}


def paged(pages):
    """Handler serving pages of issues, linked by nextPageToken t1, t2, ..."""

    def handler(request):
        body = json.loads(request.content)
        token = body.get("nextPageToken")
        index = int(token[1:]) if token else 0
        data = {"issues": pages[index], "isLast": index == len(pages) - 1}
        if index < len(pages) - 1:
            data["nextPageToken"] = f"t{index + 1}"
        return httpx.Response(200, json=data)

    return handler


@pytest.fixture
def pages():
    return paged


@pytest.fixture
def make_issue():
    return issue
