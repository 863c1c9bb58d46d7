from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from rat_proxy.core.credentials import Credentials
from rat_proxy.core.errors import (
    JiraApiError,
    PaginationExceeded,
    ParseError,
    UpstreamRequestError,
    UpstreamTimeoutError,
)
from rat_proxy.models.jira import Issue, SearchResponse
from rat_proxy.utils.logging import logger, timed_log_debug


class JiraClient:
    """
    PUBLIC_INTERFACE
    Async Jira REST v3 client using basic auth (email + API token).

    One instance serves one inbound request. Errors are never retried: the first
    non-2xx answer, unparseable body, timeout or transport failure aborts the call.
    """

    def __init__(
        self,
        credentials: Credentials,
        base_url: str,
        timeout: float = 15.0,
        max_pages: int = 100,
        deadline_seconds: float = 60.0,
        request_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_pages = max_pages
        self.deadline_seconds = deadline_seconds
        self.request_id = request_id
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self) -> httpx.AsyncClient:
        if self._client is None:
            # Content-Type is set per request by httpx (json= or files=)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Basic {self.credentials.basic_token()}",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            return await self.open()
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request and map failures onto proxy errors."""
        client = await self._ensure_client()
        with timed_log_debug(
            "jira_http_request",
            request_id=self.request_id,
            extra={"method": method, "path": path},
        ):
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.TimeoutException as exc:
                raise UpstreamTimeoutError(
                    f"Jira did not answer within {self.timeout}s", details={"path": path}
                ) from exc
            except httpx.RequestError as exc:
                logger.error(
                    "jira_request_error",
                    extra={"request_id": self.request_id, "path": path, "error": str(exc)},
                )
                raise UpstreamRequestError("Failed to contact Jira", details={"path": path}) from exc

        if not resp.is_success:
            logger.warning(
                "jira_http_error",
                extra={"request_id": self.request_id, "path": path, "status_code": resp.status_code},
            )
            raise JiraApiError(resp.status_code, resp.text)
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ParseError(resp.text) from exc

    # PUBLIC_INTERFACE
    async def search_page(
        self,
        jql: str,
        fields: List[str],
        max_results: int,
        next_page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fetch a single page from POST /search/jql."""
        body: Dict[str, Any] = {"jql": jql, "fields": fields, "maxResults": max_results}
        if next_page_token:
            body["nextPageToken"] = next_page_token
        resp = await self._request("POST", "/search/jql", json=body)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise ParseError(resp.text)
        return data

    async def _collect_pages(self, jql: str, fields: List[str], page_size: int) -> List[Dict[str, Any]]:
        issues: List[Dict[str, Any]] = []
        next_page_token: Optional[str] = None
        pages = 0
        while True:
            if pages >= self.max_pages:
                raise PaginationExceeded(self.max_pages)
            pages += 1
            data = await self.search_page(jql, fields, page_size, next_page_token)
            page_issues = data.get("issues") or []
            issues.extend(page_issues)
            next_page_token = data.get("nextPageToken") or None
            logger.debug(
                "jira_search_page",
                extra={
                    "request_id": self.request_id,
                    "page": pages,
                    "issues_in_page": len(page_issues),
                    "has_next_page": bool(next_page_token),
                },
            )
            if not next_page_token:
                return issues

    # PUBLIC_INTERFACE
    async def search_all(self, jql: str, fields: List[str], page_size: int) -> SearchResponse:
        """
        Run a JQL search and follow nextPageToken until Jira stops returning one.

        Pages are requested one after another since each cursor comes from the
        previous page. The result is all-or-nothing: any failure discards the
        pages already fetched.
        """
        try:
            raw = await asyncio.wait_for(
                self._collect_pages(jql, fields, page_size),
                timeout=self.deadline_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(
                f"Jira search did not complete within {self.deadline_seconds}s",
                details={"jql": jql},
            ) from exc
        except JiraApiError as exc:
            exc.jql = jql
            raise

        try:
            issues = [Issue.model_validate(item) for item in raw]
        except PydanticValidationError as exc:
            raise ParseError(str(exc)) from exc
        return SearchResponse(issues=issues, total=len(issues), isLast=True)

    # PUBLIC_INTERFACE
    async def search_first(self, jql: str, fields: List[str]) -> Optional[Issue]:
        """First issue of a single one-result page, without following the cursor."""
        try:
            data = await self.search_page(jql, fields, 1)
        except JiraApiError as exc:
            exc.jql = jql
            raise
        issues = data.get("issues") or []
        if not issues:
            return None
        try:
            return Issue.model_validate(issues[0])
        except PydanticValidationError as exc:
            raise ParseError(str(exc)) from exc

    # PUBLIC_INTERFACE
    async def get_transitions(self, issue_key: str) -> List[Dict[str, Any]]:
        """List the workflow transitions currently available for an issue."""
        resp = await self._request("GET", f"/issue/{quote(issue_key, safe='')}/transitions")
        data = self._json(resp)
        return list(data.get("transitions") or []) if isinstance(data, dict) else []

    # PUBLIC_INTERFACE
    async def transition_issue(self, issue_key: str, transition_id: str) -> Dict[str, Any]:
        """Apply a transition. Jira answers 204, so a normalised ok payload is returned."""
        payload = {"transition": {"id": transition_id}}
        await self._request("POST", f"/issue/{quote(issue_key, safe='')}/transitions", json=payload)
        return {"ok": True, "issueKey": issue_key, "transitionId": transition_id}

    # PUBLIC_INTERFACE
    async def add_attachment(
        self,
        issue_key: str,
        file_name: str,
        content: bytes,
        content_type: str = "application/pdf",
    ) -> List[Dict[str, Any]]:
        """Upload a file to an issue; returns Jira's attachment descriptors."""
        resp = await self._request(
            "POST",
            f"/issue/{quote(issue_key, safe='')}/attachments",
            files={"file": (file_name, content, content_type)},
            headers={"X-Atlassian-Token": "no-check"},
        )
        if not resp.content:
            return []
        data = self._json(resp)
        return data if isinstance(data, list) else [data]
