"""GitHub API client for repository storage operations.

This module provides an async wrapper around the GitHub REST API for:
- Listing issues and updating issue state
- Reading branches, commits, git trees and file contents
- Creating and updating files through the contents API
- Pull requests, references, comments and organization members
- Starting organization migrations and downloading their archives

Includes rate limiting and retry logic for transport-level resilience.
Higher layers (poller, reconciler) add no retries of their own.
"""

import asyncio
import base64
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from src.hubstorage.github.models import (
    Branch,
    ContentChangeSet,
    CreateFileRequest,
    FileContent,
    GitHubCommit,
    Issue,
    IssueComment,
    IssueUpdate,
    Migration,
    NewReference,
    PullRequest,
    Reference,
    Repository,
    StartMigrationRequest,
    Tree,
    UpdateFileRequest,
    User,
)


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        """True for stale-sha conflicts (409) and "already exists" (422)."""
        return self.status_code in (409, 422)


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def format_timestamp(value: datetime) -> str:
    """Format a datetime as the ISO 8601 UTC form GitHub expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def encode_content(content: str) -> str:
    """Base64-encode file content for the contents API."""
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


class GitHubClient:
    """Async GitHub API client with rate limiting and retry logic.

    This client is the remote host collaborator of the storage facade. It
    implements:

    - Automatic retry with exponential backoff for transient failures
    - Rate limit handling by respecting X-RateLimit-* headers
    - Link-header pagination for list endpoints
    - Support for both github.com and GitHub Enterprise Server

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        user_agent: Product name sent in the User-Agent header.
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     branch = await client.get_branch(1296269, "main")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        user_agent: str = "hub-storage",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            user_agent: Product name for the User-Agent header.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, e.g. httpx.MockTransport
                       in tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary.

        Returns:
            The httpx AsyncClient instance.
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        """Build default headers for GitHub API requests.

        Returns:
            Dictionary of HTTP headers.
        """
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self.user_agent,
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - close the client."""
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        """Parse an integer header value, None if absent or invalid."""
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    async def _handle_rate_limit(
        self,
        response: httpx.Response,
    ) -> None:
        """Raise RateLimitError with the reset information of a response.

        Args:
            response: The rate-limited response from GitHub.

        Raises:
            RateLimitError: With information about when to retry.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._parse_int_header(response.headers, "x-ratelimit-limit"),
                "used": self._parse_int_header(response.headers, "x-ratelimit-used"),
            },
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.request.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            path: API path or absolute URL (pagination links).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: If the request fails after all retries.
            RateLimitError: If rate limit is exceeded.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )

                if response.status_code == 403:
                    remaining = self._parse_int_header(
                        response.headers,
                        "x-ratelimit-remaining",
                    )
                    if remaining == 0:
                        await self._handle_rate_limit(response)

                if response.status_code == 429:
                    await self._handle_rate_limit(response)

                if response.status_code in self.RETRYABLE_STATUS_CODES:
                    if attempt < self.max_retries:
                        delay = self._calculate_backoff(attempt)
                        logger.warning(
                            "Retryable error from GitHub API",
                            extra={
                                "status_code": response.status_code,
                                "attempt": attempt + 1,
                                "max_retries": self.max_retries,
                                "delay": delay,
                                "path": path,
                            },
                        )
                        await asyncio.sleep(delay)
                        continue

                if response.status_code >= 400:
                    error_body = response.text
                    logger.error(
                        "GitHub API error",
                        extra={
                            "status_code": response.status_code,
                            "path": path,
                            "method": method,
                            "response_body": error_body[:500],
                        },
                    )
                    raise GitHubAPIError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        response_body=error_body,
                        request_url=str(response.url),
                    )

                return response

            except GitHubAPIError:
                raise
            except (httpx.TimeoutException, httpx.RequestError) as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Request error, retrying",
                        extra={
                            "error": str(e),
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "delay": delay,
                            "path": path,
                        },
                    )
                    await asyncio.sleep(delay)
                    continue

        logger.error(
            "GitHub API request failed after all retries",
            extra={
                "path": path,
                "method": method,
                "max_retries": self.max_retries,
                "last_error": str(last_exception),
            },
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    async def _paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        max_pages: Optional[int] = 100,
    ) -> List[Dict[str, Any]]:
        """Fetch all pages of a list endpoint by following Link headers.

        Args:
            path: API path of the first page.
            params: Query parameters (per_page is added automatically).
            max_pages: Safety limit on the number of pages fetched; None
                       follows every page. Hitting the limit while a next
                       page exists logs a warning.

        Returns:
            Concatenated items across the fetched pages.
        """
        items: List[Dict[str, Any]] = []
        current_url = path
        current_params: Optional[Dict[str, Any]] = dict(params or {})
        current_params.setdefault("per_page", self.DEFAULT_PER_PAGE)
        pages = 0

        while True:
            response = await self._request("GET", current_url, params=current_params)
            pages += 1
            data = response.json()
            if isinstance(data, list):
                items.extend(data)

            next_link = response.links.get("next")
            if not next_link:
                break

            if max_pages is not None and pages >= max_pages:
                logger.warning(
                    "Page limit reached, results truncated",
                    extra={"path": path, "max_pages": max_pages, "items": len(items)},
                )
                break

            # The next URL embeds its own query string
            current_url = next_link["url"]
            current_params = None

            logger.debug(
                "Paginating",
                extra={"path": path, "page": pages, "items": len(items)},
            )

        return items

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    async def list_issues(
        self,
        since: datetime,
        filter: str = "all",
        state: str = "open",
    ) -> List[Issue]:
        """List issues visible to the authenticated user.

        Every page is fetched; a truncated listing would let the poll
        watermark move past issues that were never returned.

        Args:
            since: Only issues updated at or after this time are returned.
            filter: Which issues to return (assigned, created, mentioned,
                    subscribed, all).
            state: Issue state filter (open, closed, all).

        Returns:
            Issues across all repositories the token can see.

        Raises:
            GitHubAPIError: If the request fails.
        """
        data = await self._paginate(
            "/issues",
            params={
                "filter": filter,
                "state": state,
                "since": format_timestamp(since),
            },
            max_pages=None,
        )
        return [Issue.model_validate(item) for item in data]

    async def list_repository_issues(
        self,
        owner: str,
        repo: str,
        since: Optional[datetime] = None,
        state: str = "open",
    ) -> List[Issue]:
        """List issues of a single repository."""
        params: Dict[str, Any] = {"state": state}
        if since is not None:
            params["since"] = format_timestamp(since)
        data = await self._paginate(f"/repos/{owner}/{repo}/issues", params=params)
        return [Issue.model_validate(item) for item in data]

    async def update_issue(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        update: IssueUpdate,
    ) -> Issue:
        """Update an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to update.
            update: Fields to change; unset fields are left alone.

        Returns:
            The updated issue.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}"

        logger.info(
            "Updating issue",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
            },
        )

        response = await self._request(
            method="PATCH",
            path=path,
            json_data=update.model_dump(mode="json", exclude_none=True),
        )
        return Issue.model_validate(response.json())

    async def create_issue_comment(
        self,
        repository_id: int,
        issue_number: int,
        body: str,
    ) -> IssueComment:
        """Create a comment on an issue."""
        path = f"/repositories/{repository_id}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            extra={
                "repository_id": repository_id,
                "issue_number": issue_number,
                "body_length": len(body),
            },
        )

        response = await self._request("POST", path, json_data={"body": body})
        return IssueComment.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Branches, commits, trees and references
    # -------------------------------------------------------------------------

    async def get_branch(self, repository_id: int, branch: str) -> Branch:
        """Get a branch and its head commit.

        Raises:
            GitHubAPIError: If the request fails (404 for unknown branches).
        """
        path = f"/repositories/{repository_id}/branches/{quote(branch, safe='')}"
        response = await self._request("GET", path)
        return Branch.model_validate(response.json())

    async def get_tree_recursive(self, repository_id: int, sha: str) -> Tree:
        """Get the full recursive file tree of a commit.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repositories/{repository_id}/git/trees/{sha}"
        response = await self._request("GET", path, params={"recursive": "1"})
        tree = Tree.model_validate(response.json())

        if tree.truncated:
            logger.warning(
                "Git tree listing truncated",
                extra={
                    "repository_id": repository_id,
                    "sha": sha,
                    "entries": len(tree.tree),
                },
            )

        return tree

    async def list_commits(
        self,
        repository_id: int,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[GitHubCommit]:
        """List commits, filtered by sha, path, author, since or until."""
        data = await self._paginate(
            f"/repositories/{repository_id}/commits",
            params=params,
        )
        return [GitHubCommit.model_validate(item) for item in data]

    async def create_reference(
        self,
        repository_id: int,
        reference: NewReference,
    ) -> Reference:
        """Create a git reference."""
        logger.info(
            "Creating reference",
            extra={"repository_id": repository_id, "ref": reference.ref},
        )
        response = await self._request(
            "POST",
            f"/repositories/{repository_id}/git/refs",
            json_data=reference.model_dump(),
        )
        return Reference.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Contents
    # -------------------------------------------------------------------------

    def _contents_path(self, repository_id: int, file_path: str) -> str:
        return f"/repositories/{repository_id}/contents/{quote(file_path.lstrip('/'))}"

    async def get_file_contents(
        self,
        repository_id: int,
        file_path: str,
        ref: str,
    ) -> List[FileContent]:
        """Get file (or directory) contents at a ref.

        Returns:
            A single-item list for files, one item per entry for directories.

        Raises:
            GitHubAPIError: If the request fails (404 when the path is absent).
        """
        response = await self._request(
            "GET",
            self._contents_path(repository_id, file_path),
            params={"ref": ref},
        )
        data = response.json()
        if isinstance(data, list):
            return [FileContent.model_validate(item) for item in data]
        return [FileContent.model_validate(data)]

    async def create_file(
        self,
        repository_id: int,
        file_path: str,
        request: CreateFileRequest,
    ) -> ContentChangeSet:
        """Create a new file on a branch.

        Raises:
            GitHubAPIError: If the request fails (422 when the file exists).
        """
        logger.info(
            "Creating file",
            extra={
                "repository_id": repository_id,
                "path": file_path,
                "branch": request.branch,
            },
        )

        response = await self._request(
            "PUT",
            self._contents_path(repository_id, file_path),
            json_data={
                "message": request.message,
                "content": encode_content(request.content),
                "branch": request.branch,
            },
        )
        return ContentChangeSet.model_validate(response.json())

    async def update_file(
        self,
        repository_id: int,
        file_path: str,
        request: UpdateFileRequest,
    ) -> ContentChangeSet:
        """Update an existing file, guarded by its current blob sha.

        Raises:
            GitHubAPIError: If the request fails (409 when the sha is stale).
        """
        logger.info(
            "Updating file",
            extra={
                "repository_id": repository_id,
                "path": file_path,
                "sha": request.sha,
                "branch": request.branch,
            },
        )

        body: Dict[str, Any] = {
            "message": request.message,
            "content": encode_content(request.content),
            "sha": request.sha,
        }
        if request.branch:
            body["branch"] = request.branch

        response = await self._request(
            "PUT",
            self._contents_path(repository_id, file_path),
            json_data=body,
        )
        return ContentChangeSet.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Repositories, pull requests and organizations
    # -------------------------------------------------------------------------

    async def list_organization_repositories(self, organization: str) -> List[Repository]:
        data = await self._paginate(f"/orgs/{organization}/repos")
        return [Repository.model_validate(item) for item in data]

    async def list_organization_members(self, organization: str) -> List[User]:
        data = await self._paginate(f"/orgs/{organization}/members")
        return [User.model_validate(item) for item in data]

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "open",
    ) -> List[PullRequest]:
        data = await self._paginate(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": state},
        )
        return [PullRequest.model_validate(item) for item in data]

    async def list_pull_requests_by_id(
        self,
        repository_id: int,
        page_size: Optional[int] = None,
        max_pages: int = 100,
    ) -> List[PullRequest]:
        params: Dict[str, Any] = {}
        if page_size is not None:
            params["per_page"] = page_size
        data = await self._paginate(
            f"/repositories/{repository_id}/pulls",
            params=params,
            max_pages=max_pages,
        )
        return [PullRequest.model_validate(item) for item in data]

    async def get_pull_request(self, repository_id: int, number: int) -> PullRequest:
        response = await self._request(
            "GET",
            f"/repositories/{repository_id}/pulls/{number}",
        )
        return PullRequest.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Migrations
    # -------------------------------------------------------------------------

    async def start_migration(
        self,
        organization: str,
        request: StartMigrationRequest,
    ) -> Migration:
        """Start an organization migration export.

        Raises:
            GitHubAPIError: If the request fails.
        """
        logger.info(
            "Starting migration",
            extra={
                "organization": organization,
                "repositories": request.repositories,
            },
        )
        response = await self._request(
            "POST",
            f"/orgs/{organization}/migrations",
            json_data=request.model_dump(),
        )
        return Migration.model_validate(response.json())

    async def list_migrations(self, organization: str) -> List[Migration]:
        data = await self._paginate(f"/orgs/{organization}/migrations")
        return [Migration.model_validate(item) for item in data]

    async def get_migration(self, organization: str, migration_id: int) -> Migration:
        response = await self._request(
            "GET",
            f"/orgs/{organization}/migrations/{migration_id}",
        )
        return Migration.model_validate(response.json())

    async def get_migration_archive(self, organization: str, migration_id: int) -> bytes:
        """Download the archive of an exported migration.

        GitHub answers with a redirect to short-lived storage; the client
        follows it and returns the raw archive bytes.

        Raises:
            GitHubAPIError: If the request fails.
        """
        response = await self._request(
            "GET",
            f"/orgs/{organization}/migrations/{migration_id}/archive",
        )
        return response.content
