from __future__ import annotations
from typing import Any, Optional

class GitHubApiError(RuntimeError):
    def __init__(
        self,
        status: int,
        message: str,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(f"GitHub API error ({status}): {message}")
        self.status = status
        self.response_json = response_json
        self.request_id = request_id


class GitHubAuthError(GitHubApiError):
    """401"""


class GitHubNotFoundError(GitHubApiError):
    """404"""


class GitHubValidationError(GitHubApiError):
    """422 - e.g. ref already exists, no commits between branches"""


class GitHubRateLimitError(GitHubApiError):
    """429, or 403 with the rate limit exhausted. reset_epoch is when to try again."""

    def __init__(
        self,
        status: int,
        message: str,
        reset_epoch: int | None,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(status, message, response_json=response_json, request_id=request_id)
        self.reset_epoch = reset_epoch


class GraphQLError(GitHubApiError):
    """200 response carrying an `errors` array"""


class MigrationError(RuntimeError):
    """Base for failures that abort a migration. `code` is machine-readable."""

    code = "MIGRATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        context = []
        if owner and repo:
            context.append(f"{owner}/{repo}")
        if branch:
            context.append(f"branch={branch}")
        if operation:
            context.append(f"op={operation}")
        full = f"{message} ({', '.join(context)})" if context else message
        super().__init__(full)
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.operation = operation


class MigrationValidationError(MigrationError):
    code = "VALIDATION_FAILED"


class BaseBranchNotFound(MigrationError):
    code = "BASE_BRANCH_NOT_FOUND"


class BranchCreationFailed(MigrationError):
    code = "BRANCH_CREATION_FAILED"


class CommitWriteFailed(MigrationError):
    code = "COMMIT_WRITE_FAILED"


class PullRequestCreationFailed(MigrationError):
    code = "PULL_REQUEST_CREATION_FAILED"


class TreeListingTruncated(MigrationError):
    code = "TREE_LISTING_TRUNCATED"


class UnknownMigration(MigrationError):
    code = "UNKNOWN_MIGRATION"


class DependencyNotFound(MigrationError):
    """A dependency version the migration needs is not published (yet)."""

    code = "DEPENDENCY_NOT_FOUND"
