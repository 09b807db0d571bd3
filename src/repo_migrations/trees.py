from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Set

from .contents import ContentsClient
from .exceptions import TreeListingTruncated
from .models import BaseCommit, ChangedFile, FileContent, TreeEntry, TreePlan
from .rest import GitHubRestClient
from .utils import git_blob_sha, normalize_repo_path

log = logging.getLogger(__name__)

@dataclass
class TreeBuilder:
    """
    Turns requested file changes into the minimal tree write.

    Writes whose content already matches the base branch are dropped. Deletions
    of missing paths are dropped. Git has no "delete" tree item, so when anything
    is deleted the new tree is sent as a complete listing without `base_tree`;
    otherwise only the changed blobs are layered onto the base tree.
    """

    gh: GitHubRestClient
    contents: ContentsClient

    def build(
        self,
        owner: str,
        repo: str,
        base_branch: str,
        base: BaseCommit,
        changed_files: Sequence[ChangedFile],
    ) -> TreePlan:
        to_write = [f for f in changed_files if not f.is_delete]
        to_delete = [f for f in changed_files if f.is_delete]

        writes = self._diff_writes(owner, repo, base_branch, to_write)

        requested_write_paths = {normalize_repo_path(f.path) for f in to_write}
        deletions = self._existing_deletions(owner, repo, base_branch, to_delete, requested_write_paths)

        if not writes and not deletions:
            log.info("%s/%s: nothing differs from %s", owner, repo, base_branch)
            return TreePlan()

        if not deletions:
            return TreePlan(writes=writes, entries=list(writes), base_tree=base.tree_sha)

        kept = self._surviving_entries(owner, repo, base.tree_sha, set(deletions), {w.path for w in writes})
        return TreePlan(writes=writes, deletions=deletions, entries=kept + writes, base_tree=None)

    def _diff_writes(
        self,
        owner: str,
        repo: str,
        ref: str,
        files: Sequence[ChangedFile],
    ) -> List[TreeEntry]:
        writes: List[TreeEntry] = []
        for f in files:
            path = normalize_repo_path(f.path)
            current = self.contents.get_content(owner, repo, path, ref)
            if _unchanged(current, f.content):
                log.debug("%s/%s: %s unchanged, skipping", owner, repo, path)
                continue
            writes.append(TreeEntry(path=path, content=f.content))
        return writes

    def _existing_deletions(
        self,
        owner: str,
        repo: str,
        ref: str,
        files: Sequence[ChangedFile],
        write_paths: Set[str],
    ) -> List[str]:
        deletions: List[str] = []
        for f in files:
            path = normalize_repo_path(f.path)
            if path in write_paths:
                # writes win over deletes of the same path
                continue
            if path in deletions:
                continue
            if not self.contents.get_content(owner, repo, path, ref).exists:
                log.debug("%s/%s: %s already absent, nothing to delete", owner, repo, path)
                continue
            deletions.append(path)
        return deletions

    def list_tree(self, owner: str, repo: str, tree_sha: str) -> List[Dict[str, Any]]:
        data = self.gh.request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{tree_sha}",
            params={"recursive": "1"},
        ).json()
        if data.get("truncated"):
            raise TreeListingTruncated(
                f"recursive listing of tree {tree_sha} is truncated",
                owner=owner,
                repo=repo,
                operation="list-tree",
            )
        return [e for e in data.get("tree") or [] if isinstance(e, dict)]

    def _surviving_entries(
        self,
        owner: str,
        repo: str,
        tree_sha: str,
        deletions: Set[str],
        write_paths: Set[str],
    ) -> List[TreeEntry]:
        kept: List[TreeEntry] = []
        for item in self.list_tree(owner, repo, tree_sha):
            path = item.get("path")
            if not isinstance(path, str):
                continue
            # Directories are rebuilt by git from the full path list
            if item.get("type") == "tree":
                continue
            if path in write_paths or _is_deleted(path, deletions):
                continue
            kept.append(
                TreeEntry(
                    path=path,
                    mode=item.get("mode", "100644"),
                    type=item.get("type", "blob"),
                    sha=item.get("sha"),
                )
            )
        return kept


def _is_deleted(path: str, deletions: Set[str]) -> bool:
    if path in deletions:
        return True
    # Deleting a directory drops everything beneath it
    return any(path.startswith(d.rstrip("/") + "/") for d in deletions)


def _unchanged(current: FileContent, content: str) -> bool:
    if not current.exists:
        return False
    if current.content is not None:
        return current.content == content
    # Files over 1 MB come back without content; fall back to the blob sha
    return current.sha is not None and current.sha == git_blob_sha(content)
