from __future__ import annotations

from typing import Optional, Tuple

from .auth import resolve_token
from .config import EngineSettings
from .engine import MigrationEngine, http_status_for
from .exceptions import (
    BranchCreationFailed,
    CommitWriteFailed,
    GitHubApiError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    MigrationError,
    MigrationValidationError,
    PullRequestCreationFailed,
)
from .models import ChangedFile, MigrationRequest, MigrationResult
from .reporting import ErrorReporter
from .rest import GitHubRestClient

def create_clients(
    *,
    base_url: str = "https://api.github.com",
    api_version: str = "2022-11-28",
    hostname_for_gh: str = "github.com",
    settings: Optional[EngineSettings] = None,
    reporter: Optional[ErrorReporter] = None,
) -> Tuple[GitHubRestClient, MigrationEngine]:
    """
    Builds clients using:
      1) env token (GITHUB_TOKEN or GH_TOKEN)
      2) gh auth token
    Engine settings default to EngineSettings.from_env().
    """
    rest = GitHubRestClient(token=resolve_token(hostname_for_gh), base_url=base_url, api_version=api_version)
    kwargs = {"reporter": reporter} if reporter is not None else {}
    engine = MigrationEngine(rest, settings=settings or EngineSettings.from_env(), **kwargs)
    return rest, engine

__all__ = [
    "GitHubRestClient",
    "MigrationEngine",
    "EngineSettings",
    "create_clients",
    "http_status_for",
    "ChangedFile",
    "MigrationRequest",
    "MigrationResult",
    "GitHubApiError",
    "GitHubAuthError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "MigrationError",
    "MigrationValidationError",
    "BranchCreationFailed",
    "CommitWriteFailed",
    "PullRequestCreationFailed",
]
