from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from .commits import CommitWriter
from .config import EngineSettings
from .contents import ContentsClient
from .exceptions import GitHubApiError, MigrationError, MigrationValidationError
from .models import MigrationRequest, MigrationResult
from .pulls import PullRequestPublisher
from .reporting import ErrorReporter, LoggingErrorReporter
from .rest import GitHubRestClient
from .trees import TreeBuilder
from .types import EngineState
from .utils import normalize_repo_path, timestamped_branch_name

log = logging.getLogger(__name__)

VALID_OPERATIONS = (None, "created", "updated", "deleted")

NO_CHANGES_MESSAGE = "No changes needed"
SUCCESS_MESSAGE = "Migration completed successfully"

@dataclass
class MigrationEngine:
    """
    Applies a set of file changes to a repository as one commit on a fresh
    branch, then opens a pull request and asks for auto-merge.

    START -> DIFFING -> (NO_OP | BRANCHING -> COMMITTING -> PR_OPENING -> DONE) | ERROR

    Holds no per-call state; one instance may serve many threads.
    """

    gh: GitHubRestClient
    settings: EngineSettings = field(default_factory=EngineSettings)
    reporter: ErrorReporter = field(default_factory=LoggingErrorReporter)
    contents: Optional[ContentsClient] = None
    trees: Optional[TreeBuilder] = None
    commits: Optional[CommitWriter] = None
    pulls: Optional[PullRequestPublisher] = None

    def __post_init__(self) -> None:
        if self.contents is None:
            self.contents = ContentsClient(self.gh)
        if self.trees is None:
            self.trees = TreeBuilder(self.gh, self.contents)
        if self.commits is None:
            self.commits = CommitWriter(self.gh)
        if self.pulls is None:
            self.pulls = PullRequestPublisher(self.gh, merge_method=self.settings.merge_method, reporter=self.reporter)

    def apply(self, request: MigrationRequest) -> MigrationResult:
        self._enter("start", request)
        validate_request(request)

        base_branch = request.base_branch or self.settings.default_base_branch
        branch_name = request.branch_name or timestamped_branch_name(self.settings.branch_prefix)
        commit_message = request.commit_message or request.pull_request_title
        owner, repo = request.owner, request.repo

        if not request.changed_files:
            self._enter("no-op", request)
            return MigrationResult(status="no-op", branch_name=branch_name, message=NO_CHANGES_MESSAGE)

        try:
            self._enter("diffing", request)
            base = self.commits.resolve_base(owner, repo, base_branch)
            plan = self.trees.build(owner, repo, base_branch, base, request.changed_files)
            if plan.is_noop:
                self._enter("no-op", request)
                return MigrationResult(status="no-op", branch_name=branch_name, message=NO_CHANGES_MESSAGE)

            self._enter("branching", request)
            log.info(
                "%s/%s: %d write(s), %d deletion(s) -> %s",
                owner, repo, len(plan.writes), len(plan.deletions), branch_name,
            )
            self._enter("committing", request)
            self.commits.write(owner, repo, base_branch, branch_name, base.commit_sha, plan, commit_message)

            self._enter("pr-opening", request)
            pr = self.pulls.publish(
                owner, repo, base_branch, branch_name, request.pull_request_title, request.pull_request_body
            )
        except (MigrationError, GitHubApiError, requests.RequestException) as e:
            self._enter("error", request)
            self.reporter.report(e)
            return MigrationResult(
                status="error",
                branch_name=branch_name,
                message=f"Migration failed for {owner}/{repo}",
                error=str(e),
                error_code=error_code_for(e),
            )

        self._enter("done", request)
        return MigrationResult(
            status="success",
            branch_name=branch_name,
            changed_files=plan.changed_count,
            pull_request_number=pr.number,
            message=SUCCESS_MESSAGE,
            auto_merge_enabled=pr.auto_merge_enabled,
        )

    def _enter(self, state: EngineState, request: MigrationRequest) -> None:
        log.debug("%s/%s: %s", request.owner, request.repo, state)


def validate_request(request: MigrationRequest) -> None:
    """Raises MigrationValidationError; never touches the network.

    Paths are compared after normalization, so a write and a delete of the same
    path count as duplicates and are rejected. TreeBuilder on its own lets the
    write win.
    """
    if not request.owner or not request.repo:
        raise MigrationValidationError("owner and repo are required")
    if request.changed_files is None:
        raise MigrationValidationError("changed_files is required", owner=request.owner, repo=request.repo)
    if not request.pull_request_title:
        raise MigrationValidationError("pull_request_title is required", owner=request.owner, repo=request.repo)

    seen = set()
    for f in request.changed_files:
        path = normalize_repo_path(f.path or "")
        if not path:
            raise MigrationValidationError("changed file with empty path", owner=request.owner, repo=request.repo)
        if f.operation not in VALID_OPERATIONS:
            raise MigrationValidationError(
                f"invalid operation {f.operation!r} for {path}", owner=request.owner, repo=request.repo
            )
        if path in seen:
            raise MigrationValidationError(f"duplicate path {path}", owner=request.owner, repo=request.repo)
        seen.add(path)


def error_code_for(error: BaseException) -> str:
    if isinstance(error, MigrationError):
        return error.code
    if isinstance(error, GitHubApiError) and error.status == 403:
        return "FORBIDDEN"
    return MigrationError.code


def http_status_for(result: MigrationResult) -> int:
    if result.status != "error":
        return 200
    if result.error_code in ("DEPENDENCY_NOT_FOUND", "FORBIDDEN"):
        return 400
    return 424
