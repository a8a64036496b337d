"""
Jira REST API Client

Provides Jira API integration for:
- Issue lookup, normalized across the current and legacy (v2.0 alpha,
  ".value" wrapped) response schemas
- Watcher listing
- JQL search with a listing cap
- Retry on rate limiting / gateway errors
"""
import asyncio
import base64
import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from jirabot.config import Settings
from jirabot.exceptions import (
    ApiError,
    ConfigurationMissing,
    DecodeError,
    NotFound,
    TrackerError,
    TransportError,
)
from jirabot.models.schemas import NO_ASSIGNEE, Issue, SearchOutcome
from jirabot.utils.logger import get_logger

logger = get_logger(__name__)

API_PREFIX = "/rest/api/latest/"
RETRY_STATUS_CODES = (429, 502, 503, 504)


class JiraClient:
    """
    Jira API integration with retry logic and error handling
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            settings: Application settings (URL, credentials, schema flag)
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ConfigurationMissing: If JIRA_URL is not set
        """
        if not settings.jira_url:
            raise ConfigurationMissing("JIRA_URL is required")

        self.base_url = settings.JIRA_BASE_URL
        self.username = settings.jira_username
        self.password = settings.jira_password
        self.use_legacy_schema = settings.jira_use_v2
        self.timeout = settings.jira_timeout_seconds
        self.max_retries = settings.jira_max_retries
        self._transport = transport

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def build_request(self, path: str) -> Tuple[str, Dict[str, str]]:
        """
        Compose URL and headers for an API path

        Args:
            path: Path below /rest/api/latest/ (e.g. "issue/ABC-1")

        Returns:
            (url, headers) tuple
        """
        url = f"{self.base_url}{API_PREFIX}{path}"
        headers = {"Accept": "application/json"}

        if self.username:
            token = base64.b64encode(
                f"{self.username}:{self.password}".encode("utf-8")
            ).decode("ascii")
            headers["Authorization"] = f"Basic {token}"

        return url, headers

    async def fetch_json(self, path: str) -> Any:
        """
        GET an API path and parse the JSON body

        Args:
            path: Path below /rest/api/latest/

        Returns:
            Parsed JSON body

        Raises:
            TransportError: Network failure or timeout
            DecodeError: Body is not valid JSON
            NotFound: 404 with a Jira error payload
            ApiError: Any other body carrying an "errors" field
            ConfigurationMissing: 401 while no credentials are configured
        """
        url, headers = self.build_request(path)
        response = await self._get_with_retry(url, headers, path)

        if response.status_code == 401 and not self.username:
            raise ConfigurationMissing(
                "Jira rejected an anonymous request; set JIRA_USERNAME and JIRA_PASSWORD"
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(
                f"Could not decode Jira response for {path} "
                f"(HTTP {response.status_code}): {e}"
            )
            raise DecodeError(f"Invalid JSON from Jira: {e}", path=path) from e

        if isinstance(body, dict) and "errors" in body:
            messages = body.get("errorMessages") or []
            if isinstance(body["errors"], dict):
                messages = messages + [str(v) for v in body["errors"].values()]
            detail = "; ".join(messages) or f"HTTP {response.status_code}"
            logger.warning(f"Jira reported an error for {path}: {detail}")
            error_cls = NotFound if response.status_code == 404 else ApiError
            raise error_cls(
                detail,
                path=path,
                status_code=response.status_code,
                error_messages=messages
            )

        return body

    async def _get_with_retry(
        self,
        url: str,
        headers: Dict[str, str],
        path: str
    ) -> httpx.Response:
        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport
                ) as client:
                    response = await client.get(url, headers=headers)
            except httpx.TimeoutException as e:
                logger.error(f"Jira request timed out for {path}: {e}")
                raise TransportError(f"Timed out after {self.timeout}s", path=path) from e
            except httpx.RequestError as e:
                logger.error(f"Jira request failed for {path}: {e}")
                raise TransportError(str(e), path=path) from e

            if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries - 1:
                wait_time = 2 ** attempt  # Exponential backoff
                logger.warning(
                    f"Jira returned {response.status_code} for {path} "
                    f"(attempt {attempt + 1}/{self.max_retries}), retrying in {wait_time}s"
                )
                await asyncio.sleep(wait_time)
                continue

            return response

        # max_retries >= 1, loop always returns
        raise TransportError("No request attempted", path=path)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def browse_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    def navigator_url(self, jql: str) -> str:
        """Web UI link showing the results of a JQL query"""
        return (
            f"{self.base_url}/secure/IssueNavigator.jspa?reset=true"
            f"&jqlQuery={quote(jql, safe='')}"
        )

    async def get_issue(self, key: str) -> Issue:
        """
        Fetch and normalize a single issue

        Args:
            key: Issue key

        Returns:
            Normalized Issue
        """
        logger.info(f"Fetching issue {key}")
        body = await self.fetch_json(f"issue/{quote(key, safe='')}")
        return self.parse_issue(body)

    def parse_issue(self, body: Dict[str, Any]) -> Issue:
        """
        Normalize an issue payload into an Issue

        The legacy schema wraps every field in {"value": ...}; the current
        schema does not. Missing assignee and fix versions fall back to
        "no assignee" and an empty list.

        Args:
            body: Decoded issue JSON

        Returns:
            Normalized Issue

        Raises:
            DecodeError: If the payload lacks a key or fields object
        """
        if not isinstance(body, dict) or not body.get("key"):
            raise DecodeError("Issue payload has no key")

        key = body["key"]
        fields = body.get("fields") or {}
        if not isinstance(fields, dict):
            raise DecodeError(f"Issue payload for {key} has no fields", path=f"issue/{key}")

        issue_type = self._field(fields, "issuetype") or {}
        fix_versions = self._field(fields, "fixVersions") or []

        return Issue(
            key=key,
            summary=self._field(fields, "summary") or "",
            status=self._name(self._field(fields, "status")),
            assignee_name=self._display_name(self._field(fields, "assignee")) or NO_ASSIGNEE,
            fix_versions=[v["name"] for v in fix_versions if isinstance(v, dict) and v.get("name")],
            type=self._name(issue_type),
            priority=self._name(self._field(fields, "priority")),
            reporter_name=self._display_name(self._field(fields, "reporter")),
            description=self._field(fields, "description"),
            due_date=self._field(fields, "duedate"),
            icon_url=issue_type.get("iconUrl") if isinstance(issue_type, dict) else None,
            browse_url=self.browse_url(key),
        )

    def _field(self, fields: Dict[str, Any], name: str) -> Any:
        value = fields.get(name)
        if self.use_legacy_schema:
            if isinstance(value, dict):
                return value.get("value")
            return None
        return value

    @staticmethod
    def _name(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            return value.get("name")
        return None

    @staticmethod
    def _display_name(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            return value.get("displayName") or value.get("name")
        return None

    # ------------------------------------------------------------------
    # Watchers
    # ------------------------------------------------------------------

    async def get_watchers(self, key: str) -> List[str]:
        """
        List watcher display names for an issue

        Args:
            key: Issue key

        Returns:
            Display names in API order
        """
        logger.info(f"Fetching watchers for {key}")
        body = await self.fetch_json(f"issue/{quote(key, safe='')}/watchers")
        if not isinstance(body, dict):
            raise DecodeError("Watchers payload is not an object", path=f"issue/{key}/watchers")

        watchers = body.get("watchers") or []
        return [
            w.get("displayName") or w.get("name", "")
            for w in watchers if isinstance(w, dict)
        ]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, jql: str, max_list: int) -> SearchOutcome:
        """
        Run a JQL search

        Args:
            jql: Query expression
            max_list: Largest result count that is listed key by key

        Returns:
            SearchOutcome; keys are only listed when total <= max_list
        """
        logger.info(f"Searching Jira: {jql}")
        body = await self.fetch_json(
            f"search/?jql={quote(jql, safe='')}&maxResults={max_list}&fields=key"
        )
        if not isinstance(body, dict):
            raise DecodeError("Search payload is not an object", path="search/")

        total = int(body.get("total", 0))
        if total > max_list:
            logger.info(f"Search matched {total} issues, over listing cap {max_list}")
            return SearchOutcome(jql=jql, total=total, too_many=True)

        keys = [issue["key"] for issue in body.get("issues") or [] if "key" in issue]
        return SearchOutcome(jql=jql, total=total, keys=keys)

    async def search_issues(
        self,
        jql: str,
        max_list: int
    ) -> Tuple[SearchOutcome, List[Issue]]:
        """
        Search and resolve every listed key to a full Issue

        Per-issue lookups run concurrently; a failed lookup is logged and
        left out. Resolved issues keep the search result order.

        Args:
            jql: Query expression
            max_list: Listing cap (no per-issue fetches above it)

        Returns:
            (outcome, resolved issues)
        """
        outcome = await self.search(jql, max_list)
        if outcome.too_many or not outcome.keys:
            return outcome, []

        results = await asyncio.gather(
            *(self.get_issue(key) for key in outcome.keys),
            return_exceptions=True
        )

        issues = []
        for key, result in zip(outcome.keys, results):
            if isinstance(result, TrackerError):
                logger.warning(f"Skipping search result {key}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                issues.append(result)
        return outcome, issues

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def ping(self) -> Dict[str, Any]:
        """Fetch serverInfo to confirm the tracker is reachable"""
        return await self.fetch_json("serverInfo")
