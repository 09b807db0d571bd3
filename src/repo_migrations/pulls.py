from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .exceptions import GitHubApiError, PullRequestCreationFailed
from .models import PublishResult
from .reporting import ErrorReporter, LoggingErrorReporter
from .rest import GitHubRestClient
from .types import MergeMethod

log = logging.getLogger(__name__)

ENABLE_AUTOMERGE_MUTATION = """
mutation($pullRequestId: ID!, $mergeMethod: PullRequestMergeMethod!) {
  enablePullRequestAutoMerge(input: { pullRequestId: $pullRequestId, mergeMethod: $mergeMethod }) {
    pullRequest { number }
  }
}
"""

@dataclass
class PullRequestPublisher:
    gh: GitHubRestClient
    merge_method: MergeMethod = "SQUASH"
    reporter: ErrorReporter = field(default_factory=LoggingErrorReporter)

    def publish(
        self,
        owner: str,
        repo: str,
        base_branch: str,
        head_branch: str,
        title: str,
        body: Optional[str] = None,
    ) -> PublishResult:
        payload: Dict[str, Any] = {"base": base_branch, "head": head_branch, "title": title}
        if body:
            payload["body"] = body
        try:
            pr = self.gh.request("POST", f"/repos/{owner}/{repo}/pulls", json_body=payload).json()
        except GitHubApiError as e:
            raise PullRequestCreationFailed(
                f"failed to open pull request from {head_branch} to {base_branch}: {e}",
                owner=owner,
                repo=repo,
                branch=head_branch,
                operation="create-pull-request",
            ) from e

        number = int(pr["number"])
        node_id = pr.get("node_id")
        log.info("%s/%s: opened #%s (%s -> %s)", owner, repo, number, head_branch, base_branch)

        enabled = self.enable_auto_merge(owner, repo, number, node_id)
        return PublishResult(number=number, node_id=node_id, auto_merge_enabled=enabled)

    def enable_auto_merge(self, owner: str, repo: str, number: int, node_id: Optional[str]) -> bool:
        """Best effort. The PR stands whether or not this succeeds."""
        if not node_id:
            log.warning("%s/%s#%s: no node id, cannot enable auto-merge", owner, repo, number)
            return False
        try:
            self.gh.graphql(ENABLE_AUTOMERGE_MUTATION, {"pullRequestId": node_id, "mergeMethod": self.merge_method})
        except (GitHubApiError, requests.RequestException) as e:
            # Common causes:
            # - auto-merge not allowed at repo level
            # - no branch protection requiring checks (PR is already mergeable)
            # - insufficient token scopes
            log.warning("%s/%s#%s: could not enable auto-merge: %s", owner, repo, number, e)
            self.reporter.report(e)
            return False
        log.info("%s/%s#%s: auto-merge (%s) enabled", owner, repo, number, self.merge_method.lower())
        return True
