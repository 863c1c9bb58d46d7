import asyncio
import base64
import json

import httpx
import pytest

from rat_proxy.core.credentials import Credentials
from rat_proxy.core.errors import (
    JiraApiError,
    PaginationExceeded,
    ParseError,
    UpstreamRequestError,
    UpstreamTimeoutError,
)
from rat_proxy.services.jira_client import JiraClient

CREDS = Credentials(email="tech@example.com", api_token="tok", base_site_url="https://example.atlassian.net")
BASE = "https://example.atlassian.net/rest/api/3"
FIELDS = ["summary", "created"]


def run(handler, call, **kwargs):
    """Build a client on a mock transport, run call(client), close it. Returns (result, requests)."""
    seen = []

    def recording(request):
        seen.append(request)
        return handler(request)

    client = JiraClient(CREDS, BASE, transport=httpx.MockTransport(recording), **kwargs)

    async def main():
        try:
            return await call(client)
        finally:
            await client.close()

    return asyncio.run(main()), seen


def bodies(requests):
    return [json.loads(r.content) for r in requests]


def test_search_all_concatenates_every_page_in_order(pages, make_issue):
    handler = pages([
        [make_issue("FSA-1"), make_issue("FSA-2")],
        [make_issue("FSA-3")],
        [make_issue("FSA-4"), make_issue("FSA-5")],
    ])

    result, seen = run(handler, lambda c: c.search_all("project = FSA", FIELDS, 2))

    assert [i.key for i in result.issues] == ["FSA-1", "FSA-2", "FSA-3", "FSA-4", "FSA-5"]
    assert result.total == 5
    assert result.isLast is True
    sent = bodies(seen)
    assert len(sent) == 3
    assert "nextPageToken" not in sent[0]
    assert sent[1]["nextPageToken"] == "t1"
    assert sent[2]["nextPageToken"] == "t2"


def test_first_page_body_is_the_same_for_independent_calls(pages, make_issue):
    handler = pages([[make_issue("FSA-1")], [make_issue("FSA-2")]])

    async def twice(client):
        await client.search_all("project = FSA", FIELDS, 10)
        await client.search_all("project = FSA", FIELDS, 10)

    _, seen = run(handler, twice)

    sent = bodies(seen)
    assert sent[0] == sent[2] == {"jql": "project = FSA", "fields": FIELDS, "maxResults": 10}


def test_error_on_a_later_page_fails_the_whole_search(make_issue):
    def handler(request):
        body = json.loads(request.content)
        if "nextPageToken" not in body:
            return httpx.Response(200, json={"issues": [make_issue("FSA-1")], "nextPageToken": "t1"})
        if body["nextPageToken"] == "t1":
            return httpx.Response(404, json={"errorMessages": ["gone"]})
        return httpx.Response(200, json={"issues": [make_issue("FSA-3")]})

    with pytest.raises(JiraApiError) as exc_info:
        run(handler, lambda c: c.search_all("project = FSA", FIELDS, 1))

    assert exc_info.value.status_code == 404
    assert exc_info.value.jql == "project = FSA"
    assert exc_info.value.upstream == {"errorMessages": ["gone"]}


def test_empty_page_token_ends_pagination(make_issue):
    def handler(request):
        return httpx.Response(200, json={"issues": [make_issue("FSA-9")], "nextPageToken": ""})

    result, seen = run(handler, lambda c: c.search_all("project = FSA", FIELDS, 50))

    assert result.total == 1
    assert len(seen) == 1


def test_missing_issues_array_counts_as_empty_page():
    result, _ = run(lambda r: httpx.Response(200, json={"total": 0}), lambda c: c.search_all("x = 1", FIELDS, 5))

    assert result.issues == []
    assert result.total == 0


def test_search_request_shape_and_auth_headers():
    _, seen = run(lambda r: httpx.Response(200, json={"issues": []}), lambda c: c.search_all("x = 1", FIELDS, 5))

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE}/search/jql"
    expected = base64.b64encode(b"tech@example.com:tok").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Content-Type"] == "application/json"


def test_non_json_body_is_a_parse_error():
    with pytest.raises(ParseError) as exc_info:
        run(lambda r: httpx.Response(200, text="<html>maintenance</html>"), lambda c: c.search_all("x = 1", FIELDS, 5))

    assert exc_info.value.status_code == 500
    assert exc_info.value.details == "<html>maintenance</html>"


def test_endless_cursor_stops_at_page_limit(make_issue):
    def handler(request):
        return httpx.Response(200, json={"issues": [make_issue("FSA-1")], "nextPageToken": "again"})

    with pytest.raises(PaginationExceeded):
        run(handler, lambda c: c.search_all("x = 1", FIELDS, 1), max_pages=3)


def test_page_limit_allows_exactly_max_pages(pages, make_issue):
    handler = pages([[make_issue("FSA-1")], [make_issue("FSA-2")], [make_issue("FSA-3")]])

    result, seen = run(handler, lambda c: c.search_all("x = 1", FIELDS, 1), max_pages=3)

    assert result.total == 3
    assert len(seen) == 3


def test_read_timeout_maps_to_upstream_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamTimeoutError) as exc_info:
        run(handler, lambda c: c.search_all("x = 1", FIELDS, 5))

    assert exc_info.value.status_code == 504


def test_search_deadline_bounds_the_whole_loop():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={"issues": []})

    with pytest.raises(UpstreamTimeoutError):
        run(handler, lambda c: c.search_all("x = 1", FIELDS, 5), deadline_seconds=0.05)


def test_connection_failure_maps_to_upstream_request_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamRequestError) as exc_info:
        run(handler, lambda c: c.search_all("x = 1", FIELDS, 5))

    assert exc_info.value.status_code == 502


def test_search_first_reads_only_one_page(make_issue):
    def handler(request):
        return httpx.Response(200, json={"issues": [make_issue("FSA-7")], "nextPageToken": "more"})

    found, seen = run(handler, lambda c: c.search_first("key = FSA-7", FIELDS))

    assert found.key == "FSA-7"
    assert len(seen) == 1
    assert json.loads(seen[0].content)["maxResults"] == 1


def test_search_first_returns_none_without_matches():
    found, _ = run(lambda r: httpx.Response(200, json={"issues": []}), lambda c: c.search_first("x = 1", FIELDS))

    assert found is None


def test_transition_issue_posts_transition_id():
    result, seen = run(lambda r: httpx.Response(204), lambda c: c.transition_issue("FSA-1", "31"))

    assert result == {"ok": True, "issueKey": "FSA-1", "transitionId": "31"}
    assert str(seen[0].url) == f"{BASE}/issue/FSA-1/transitions"
    assert json.loads(seen[0].content) == {"transition": {"id": "31"}}


def test_add_attachment_sends_multipart_with_no_check_header():
    def handler(request):
        return httpx.Response(200, json=[{"id": "10", "filename": "rat.pdf"}])

    result, seen = run(handler, lambda c: c.add_attachment("FSA-1", "rat.pdf", b"%PDF-1.4"))

    assert result == [{"id": "10", "filename": "rat.pdf"}]
    request = seen[0]
    assert request.headers["X-Atlassian-Token"] == "no-check"
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="rat.pdf"' in request.content
    assert b"%PDF-1.4" in request.content


def test_issue_key_is_quoted_into_a_single_path_segment():
    _, seen = run(lambda r: httpx.Response(200, json={"transitions": []}), lambda c: c.get_transitions("../myself?x=#"))

    request = seen[0]
    assert request.url.path.startswith("/rest/api/3/issue/")
    assert request.url.path.endswith("/transitions")
    assert request.url.query == b""
    assert b"%2F" in request.url.raw_path


def test_open_returns_the_shared_client():
    async def main():
        client = JiraClient(CREDS, BASE, transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        try:
            first = await client.open()
            assert await client.open() is first
            assert await client._ensure_client() is first
        finally:
            await client.close()

    asyncio.run(main())
