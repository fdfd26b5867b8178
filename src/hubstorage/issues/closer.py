"""Issue state transitions."""

import logging

from src.hubstorage.github.client import GitHubClient
from src.hubstorage.github.models import Issue, IssueUpdate, ItemState


logger = logging.getLogger(__name__)


async def close_issue_by_number(
    client: GitHubClient,
    owner: str,
    repo: str,
    issue_number: int,
) -> Issue:
    """Close an issue addressed by owner, repository and number.

    No check is made that the issue is currently open; closing an already
    closed issue is left to GitHub's semantics.

    Raises:
        GitHubAPIError: If the update fails.
    """
    logger.info(
        "Closing issue",
        extra={"owner": owner, "repo": repo, "issue_number": issue_number},
    )

    return await client.update_issue(
        owner,
        repo,
        issue_number,
        IssueUpdate(state=ItemState.CLOSED),
    )


async def close_issue(client: GitHubClient, issue: Issue) -> Issue:
    """Close an issue in its owning repository.

    Args:
        client: The GitHub client.
        issue: The issue to close. Must carry its repository, as issues
               returned by ``GitHubClient.list_issues`` do.

    Returns:
        The updated issue.

    Raises:
        ValueError: If the issue has no repository information.
        GitHubAPIError: If the update fails.
    """
    if issue.repository is None:
        raise ValueError(f"Issue {issue.id} has no repository information")

    return await close_issue_by_number(
        client,
        issue.repository.owner.login,
        issue.repository.name,
        issue.number,
    )
