from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import (
    BaseBranchNotFound,
    BranchCreationFailed,
    CommitWriteFailed,
    GitHubApiError,
    GitHubNotFoundError,
)
from .models import BaseCommit, CommitResult, TreeEntry, TreePlan
from .rest import GitHubRestClient

log = logging.getLogger(__name__)

@dataclass
class CommitWriter:
    """Branch, tree, commit and ref writes against the Git Data API."""

    gh: GitHubRestClient

    def resolve_base(self, owner: str, repo: str, branch: str) -> BaseCommit:
        try:
            ref = self.gh.request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}").json()
            commit_sha = (ref.get("object") or {}).get("sha")
            commit = self.gh.request("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}").json()
        except GitHubNotFoundError as e:
            raise BaseBranchNotFound(
                f"base branch {branch} not found", owner=owner, repo=repo, branch=branch, operation="get-ref"
            ) from e
        return BaseCommit(commit_sha=commit["sha"], tree_sha=commit["tree"]["sha"])

    def create_branch(self, owner: str, repo: str, branch: str, sha: str) -> None:
        try:
            self.gh.request(
                "POST",
                f"/repos/{owner}/{repo}/git/refs",
                json_body={"ref": f"refs/heads/{branch}", "sha": sha},
            )
        except GitHubApiError as e:
            raise BranchCreationFailed(
                f"failed to create branch: {e}", owner=owner, repo=repo, branch=branch, operation="create-ref"
            ) from e
        log.info("%s/%s: created branch %s at %s", owner, repo, branch, sha[:7])

    def write(
        self,
        owner: str,
        repo: str,
        base_branch: str,
        new_branch: str,
        base_commit_sha: str,
        plan: TreePlan,
        commit_message: str,
    ) -> CommitResult:
        """
        Creates `new_branch` at the base commit first, then one tree and one
        commit (sole parent: the base commit), then moves the branch to it.
        A failure after branch creation leaves the branch at the base commit.
        """
        self.create_branch(owner, repo, new_branch, base_commit_sha)

        tree_sha = self._create_tree(owner, repo, new_branch, plan.entries, plan.base_tree)
        commit_sha = self._create_commit(owner, repo, new_branch, commit_message, tree_sha, [base_commit_sha])
        self._update_ref(owner, repo, new_branch, commit_sha)

        log.info(
            "%s/%s: committed %s on %s (base %s)",
            owner, repo, commit_sha[:7], new_branch, base_branch,
        )
        return CommitResult(commit_sha=commit_sha, tree_sha=tree_sha)

    def commit_to_branch(
        self,
        owner: str,
        repo: str,
        branch: str,
        entries: Sequence[TreeEntry],
        commit_message: str,
    ) -> Optional[CommitResult]:
        """Layers `entries` onto the tip of an existing branch. None when empty."""
        if not entries:
            return None
        tip = self.resolve_base(owner, repo, branch)
        tree_sha = self._create_tree(owner, repo, branch, entries, tip.tree_sha)
        commit_sha = self._create_commit(owner, repo, branch, commit_message, tree_sha, [tip.commit_sha])
        self._update_ref(owner, repo, branch, commit_sha)
        return CommitResult(commit_sha=commit_sha, tree_sha=tree_sha)

    def _create_tree(
        self,
        owner: str,
        repo: str,
        branch: str,
        entries: Sequence[TreeEntry],
        base_tree: Optional[str],
    ) -> str:
        body: Dict[str, Any] = {"tree": [e.to_api() for e in entries]}
        if base_tree:
            body["base_tree"] = base_tree
        try:
            return self.gh.request("POST", f"/repos/{owner}/{repo}/git/trees", json_body=body).json()["sha"]
        except GitHubApiError as e:
            raise CommitWriteFailed(
                f"failed to create tree: {e}", owner=owner, repo=repo, branch=branch, operation="create-tree"
            ) from e

    def _create_commit(
        self,
        owner: str,
        repo: str,
        branch: str,
        message: str,
        tree_sha: str,
        parents: List[str],
    ) -> str:
        body = {"message": message, "tree": tree_sha, "parents": parents}
        try:
            return self.gh.request("POST", f"/repos/{owner}/{repo}/git/commits", json_body=body).json()["sha"]
        except GitHubApiError as e:
            raise CommitWriteFailed(
                f"failed to create commit: {e}", owner=owner, repo=repo, branch=branch, operation="create-commit"
            ) from e

    def _update_ref(self, owner: str, repo: str, branch: str, commit_sha: str) -> None:
        try:
            self.gh.request(
                "PATCH",
                f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
                json_body={"sha": commit_sha, "force": False},
            )
        except GitHubApiError as e:
            raise CommitWriteFailed(
                f"failed to update ref: {e}", owner=owner, repo=repo, branch=branch, operation="update-ref"
            ) from e
