"""Client-side storage facade over the GitHub API.

This package reads and mutates repository state on GitHub:
- Incremental polling of newly created issues
- Idempotent create-or-update of repository files
- Organization migration exports and archive downloads
- Pass-through access to pull requests, branches, commits and members
"""

from src.hubstorage.config import HubStorageSettings, get_settings
from src.hubstorage.storage import DEPENDABOT_ID, GitHubStorage, is_dependabot

__all__ = [
    "DEPENDABOT_ID",
    "GitHubStorage",
    "HubStorageSettings",
    "get_settings",
    "is_dependabot",
]
