"""Jira API client service with OAuth refresh-and-retry and compact issue records."""
import asyncio
import logging
import re
import time
from typing import Any, Optional

import aiohttp

from jira_context.auth.base import AuthKind, AuthStrategy
from jira_context.errors import (
    AuthRefreshError,
    ConfigurationError,
    IssueNotFoundError,
    JiraAPIError,
    JiraError,
    JiraNetworkError,
)
from jira_context.jira.adf import text_to_adf
from jira_context.jira.normalizer import DEFAULT_EPIC_LINK_FIELD, clean_comment, clean_issue
from jira_context.jira.relationships import merge_comment_mentions
from jira_context.jira.types import (
    Attachment,
    CleanComment,
    CleanIssue,
    CreatedIssue,
    SearchResult,
    Transition,
)
from jira_context.transport import HttpResponse, send_request

logger = logging.getLogger(__name__)

OAUTH_API_BASE = "https://api.atlassian.com/ex/jira/{cloud_id}"
ISSUE_PATH_PATTERN = re.compile(r"^/rest/api/3/issue/(?P<issue>[^/?]+)")
ERROR_TEXT_LIMIT = 200
AUTH_FAILURE_STATUSES = (401, 403)

ISSUE_FIELDS = [
    "id",
    "key",
    "summary",
    "description",
    "status",
    "created",
    "updated",
    "parent",
    "subtasks",
    "issuelinks",  # For formal issue links
]


def _error_message(response: HttpResponse) -> str:
    """Best-effort human message from a failed Jira response."""
    text = response.text or ""
    stripped = text.strip()
    if not stripped:
        return response.reason

    if stripped.startswith(("{", "[")):
        try:
            data = response.json()
        except ValueError:
            return _truncate(text)
        if isinstance(data, dict):
            messages = data.get("errorMessages")
            if isinstance(messages, list) and messages:
                return "; ".join(str(m) for m in messages)
            if data.get("message"):
                return str(data["message"])
            if data.get("errorMessage"):
                return str(data["errorMessage"])
            errors = data.get("errors")
            if isinstance(errors, dict) and errors:
                return "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        return response.reason

    # Not JSON, likely an HTML error page
    return _truncate(text)


def _truncate(text: str) -> str:
    if len(text) > ERROR_TEXT_LIMIT:
        return f"{text[:ERROR_TEXT_LIMIT]}..."
    return text


def _response_body(response: HttpResponse) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


# =============================================================================
# Jira Service
# =============================================================================


class JiraService:
    """Service for interacting with the Jira Cloud REST API.

    Sections:
    - Core: init, session, close, request
    - Read: search_issues, get_epic_children, get_issue_with_comments, get_transitions
    - Write: create_issue, update_issue, transition_issue, add_attachment, add_comment
    """

    # -------------------------------------------------------------------------
    # Core: Initialization and HTTP request handling
    # -------------------------------------------------------------------------

    def __init__(
        self,
        auth: AuthStrategy,
        base_url: str = "",
        epic_link_field: str = DEFAULT_EPIC_LINK_FIELD,
        search_max_results: int = 50,
        epic_children_max_results: int = 100,
    ):
        """Initialize JiraService.

        Args:
            auth: Authentication strategy supplying headers (and cloud id for OAuth).
            base_url: Jira site URL. Required for API token auth, unused for OAuth.
            epic_link_field: Custom field id holding the Epic Link.
            search_max_results: Default page size for search_issues.
            epic_children_max_results: Maximum children returned by get_epic_children.

        Raises:
            ConfigurationError: If API token auth is used without a base URL.
        """
        base_url = base_url or getattr(auth, "base_url", "")
        if auth.kind == AuthKind.STATIC_TOKEN and not base_url:
            raise ConfigurationError("Base URL is required for API Token authentication")

        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.epic_link_field = epic_link_field
        self.search_max_results = search_max_results
        self.epic_children_max_results = epic_children_max_results
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "JiraService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the aiohttp sessions of the service and its strategy."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
        await self.auth.close()

    async def _api_base_url(self) -> str:
        """Gateway URL for OAuth (resolved per call), else the configured site URL."""
        if self.auth.kind == AuthKind.OAUTH2:
            cloud_id = await self.auth.get_service_instance_id()
            return OAUTH_API_BASE.format(cloud_id=cloud_id)
        return self.base_url

    async def _build_headers(
        self,
        extra_headers: Optional[dict[str, str]],
        multipart: bool,
    ) -> dict[str, str]:
        headers = await self.auth.get_auth_headers()
        for name, value in (extra_headers or {}).items():
            # Caller headers never replace the credentials
            if name.lower() == "authorization":
                continue
            headers[name] = value
        if multipart:
            # Let aiohttp set the multipart boundary
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        return headers

    async def _send(self, method: str, url: str, **kwargs: Any) -> HttpResponse:
        session = await self._get_session()
        return await send_request(session, method, url, **kwargs)

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        json_data: Optional[Any],
        files: Optional[list[tuple[str, bytes, str]]],
        attempt: int,
    ) -> HttpResponse:
        kwargs: dict[str, Any] = {"headers": headers}
        if params:
            kwargs["params"] = params
        if json_data is not None:
            kwargs["json"] = json_data
        if files:
            # FormData is consumed on send, so build a fresh one per attempt
            form = aiohttp.FormData()
            for field_name, content, filename in files:
                form.add_field(field_name, content, filename=filename)
            kwargs["data"] = form

        start_time = time.monotonic()
        logger.debug(
            "Jira API request",
            extra={"method": method, "url": url, "attempt": attempt},
        )
        try:
            response = await self._send(method, url, **kwargs)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Jira API connection error: {e}",
                extra={"method": method, "url": url, "attempt": attempt},
            )
            raise JiraNetworkError(str(e) or type(e).__name__) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Jira API response",
            extra={
                "method": method,
                "url": url,
                "status": response.status,
                "attempt": attempt,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
        files: Optional[list[tuple[str, bytes, str]]] = None,
    ) -> Any:
        """Make an authenticated request and return the parsed JSON body.

        A 401/403 on the first attempt triggers one credential refresh and one
        retry when the strategy supports it. Nothing else is retried.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (e.g., /rest/api/3/issue/PROJ-1)
            params: Query parameters
            json_data: JSON body for POST/PUT requests
            headers: Extra headers; cannot override Authorization
            files: Multipart file parts as (field name, content, filename)

        Returns:
            Parsed response JSON ({} for an empty body)

        Raises:
            IssueNotFoundError: On 404 for an issue-scoped path
            JiraAPIError: On any other non-2xx status, or a 2xx body that is not JSON
            JiraNetworkError: When no response is obtained
        """
        base_url = await self._api_base_url()
        url = f"{base_url}{path}"
        multipart = bool(files)

        request_headers = await self._build_headers(headers, multipart)
        response = await self._attempt(
            method, url, request_headers, params, json_data, files, attempt=1
        )

        if response.status in AUTH_FAILURE_STATUSES and self.auth.supports_refresh:
            try:
                await self.auth.refresh()
            except AuthRefreshError as e:
                logger.warning(
                    "Token refresh failed, surfacing original authorization error",
                    extra={"url": url, "status": response.status, "error": str(e)},
                )
            else:
                request_headers = await self._build_headers(headers, multipart)
                response = await self._attempt(
                    method, url, request_headers, params, json_data, files, attempt=2
                )

        if not response.ok:
            self._raise_for_response(response, path)

        try:
            return response.json()
        except ValueError:
            # e.g. an HTML login page served with 200
            raise JiraAPIError(
                status_code=response.status,
                message=f"Unexpected non-JSON response: {_truncate(response.text)}",
                response_body=response.text,
            ) from None

    def _raise_for_response(self, response: HttpResponse, path: str) -> None:
        if response.status == 404:
            match = ISSUE_PATH_PATTERN.match(path)
            if match:
                raise IssueNotFoundError(match.group("issue"), _response_body(response))

        raise JiraAPIError(
            status_code=response.status,
            message=_error_message(response),
            response_body=_response_body(response),
        )

    # -------------------------------------------------------------------------
    # Read: search, epic children, issue details, transitions
    # -------------------------------------------------------------------------

    def _issue_fields(self) -> list[str]:
        fields = list(ISSUE_FIELDS)
        if self.epic_link_field:
            fields.append(self.epic_link_field)
        return fields

    async def _search_raw(self, jql: str, max_results: int) -> dict[str, Any]:
        # /search/jql replaces the removed GET /search endpoint
        payload = {
            "jql": jql,
            "maxResults": max_results,
            "fields": self._issue_fields(),
            "expand": "names,renderedFields",
        }
        return await self.request("POST", "/rest/api/3/search/jql", json_data=payload)

    async def search_issues(self, jql: str, max_results: Optional[int] = None) -> SearchResult:
        """Search for Jira issues using JQL.

        Args:
            jql: Jira Query Language search string.
            max_results: Maximum number of results (default from settings).

        Returns:
            SearchResult with cleaned issues (comments not included).
        """
        logger.info("Searching Jira issues", extra={"jql": jql})
        data = await self._search_raw(jql, max_results or self.search_max_results)
        raw_issues = data.get("issues", [])
        issues = [clean_issue(issue, self.epic_link_field) for issue in raw_issues]
        return SearchResult(total=data.get("total", len(issues)), issues=issues)

    async def _fetch_comments(self, issue_key: str) -> list[CleanComment]:
        data = await self.request("GET", f"/rest/api/3/issue/{issue_key}/comment")
        return [clean_comment(comment) for comment in data.get("comments", [])]

    async def _with_comments(self, raw_issue: dict[str, Any]) -> CleanIssue:
        comments = await self._fetch_comments(raw_issue.get("key", ""))
        return merge_comment_mentions(clean_issue(raw_issue, self.epic_link_field), comments)

    async def get_epic_children(
        self, epic_key: str, max_results: Optional[int] = None
    ) -> list[CleanIssue]:
        """Get all issues linked to an epic, each with its comments.

        Comments of the children are fetched concurrently.
        """
        logger.info("Getting epic children", extra={"epic_key": epic_key})
        data = await self._search_raw(
            f'"Epic Link" = {epic_key}',
            max_results or self.epic_children_max_results,
        )
        return list(
            await asyncio.gather(*(self._with_comments(issue) for issue in data.get("issues", [])))
        )

    async def get_issue_with_comments(self, issue_id: str) -> CleanIssue:
        """Get one issue with comments, relationships and epic summary.

        Raises:
            IssueNotFoundError: If the issue does not exist or is not visible.
        """
        logger.info("Getting Jira issue", extra={"issue_id": issue_id})
        params = {
            "fields": ",".join(self._issue_fields()),
            "expand": "names,renderedFields",
        }
        issue_data, comments = await asyncio.gather(
            self.request("GET", f"/rest/api/3/issue/{issue_id}", params=params),
            self._fetch_comments(issue_id),
        )

        issue = merge_comment_mentions(clean_issue(issue_data, self.epic_link_field), comments)

        if issue.epic_link:
            try:
                epic_data = await self.request(
                    "GET",
                    f"/rest/api/3/issue/{issue.epic_link.key}",
                    params={"fields": "summary"},
                )
                if isinstance(epic_data, dict):
                    issue.epic_link.summary = (epic_data.get("fields") or {}).get("summary")
            except JiraError as e:
                logger.warning(
                    f"Failed to fetch epic details: {e}",
                    extra={"issue_id": issue_id, "epic_key": issue.epic_link.key},
                )

        return issue

    async def get_transitions(self, issue_key: str) -> list[Transition]:
        """List workflow transitions available on an issue."""
        data = await self.request("GET", f"/rest/api/3/issue/{issue_key}/transitions")
        return [
            Transition(
                id=str(t.get("id", "")),
                name=t.get("name", ""),
                to_status=(t.get("to") or {}).get("name"),
            )
            for t in data.get("transitions", [])
        ]

    # -------------------------------------------------------------------------
    # Write: create, update, transition, attach, comment
    # -------------------------------------------------------------------------

    async def create_issue(
        self,
        project_key: str,
        issue_type: str,
        summary: str,
        description: Optional[str] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> CreatedIssue:
        """Create a Jira issue.

        Args:
            project_key: Project key (e.g., PROJ).
            issue_type: Issue type name (e.g., Task, Bug).
            summary: Issue summary/title.
            description: Plain-text description (converted to ADF).
            fields: Additional raw fields merged into the payload.

        Returns:
            Id and key of the created issue.
        """
        payload_fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            payload_fields["description"] = text_to_adf(description)
        if fields:
            payload_fields.update(fields)

        logger.info(
            "Creating Jira issue",
            extra={"project_key": project_key, "issue_type": issue_type},
        )
        response = await self.request(
            "POST", "/rest/api/3/issue", json_data={"fields": payload_fields}
        )
        return CreatedIssue(id=str(response.get("id", "")), key=response.get("key", ""))

    async def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        """Update fields of an issue. A plain-text description is converted to ADF."""
        updates = dict(fields)
        if isinstance(updates.get("description"), str):
            updates["description"] = text_to_adf(updates["description"])

        logger.info(
            "Updating Jira issue",
            extra={"issue_key": issue_key, "update_fields": list(updates.keys())},
        )
        await self.request("PUT", f"/rest/api/3/issue/{issue_key}", json_data={"fields": updates})

    async def transition_issue(
        self,
        issue_key: str,
        transition_id: str,
        comment: Optional[str] = None,
    ) -> None:
        """Move an issue through a transition, optionally adding a comment."""
        payload: dict[str, Any] = {"transition": {"id": transition_id}}
        if comment:
            payload["update"] = {"comment": [{"add": {"body": text_to_adf(comment)}}]}

        logger.info(
            "Transitioning Jira issue",
            extra={"issue_key": issue_key, "transition_id": transition_id},
        )
        await self.request(
            "POST", f"/rest/api/3/issue/{issue_key}/transitions", json_data=payload
        )

    async def add_attachment(self, issue_key: str, content: bytes, filename: str) -> Attachment:
        """Upload one file to an issue."""
        logger.info(
            "Adding attachment",
            extra={"issue_key": issue_key, "attachment_name": filename, "size": len(content)},
        )
        data = await self.request(
            "POST",
            f"/rest/api/3/issue/{issue_key}/attachments",
            headers={"X-Atlassian-Token": "no-check"},  # Required for uploads
            files=[("file", content, filename)],
        )
        # Jira returns a list with one entry per uploaded file
        attachment = data[0] if isinstance(data, list) and data else {}
        return Attachment(id=str(attachment.get("id", "")), filename=attachment.get("filename", filename))

    async def add_comment(self, issue_key: str, body: str) -> CleanComment:
        """Add a plain-text comment and return it in compact form."""
        logger.info(
            "Adding comment to Jira issue",
            extra={"issue_key": issue_key, "comment_length": len(body)},
        )
        response = await self.request(
            "POST",
            f"/rest/api/3/issue/{issue_key}/comment",
            json_data={"body": text_to_adf(body)},
        )
        return clean_comment(response)

