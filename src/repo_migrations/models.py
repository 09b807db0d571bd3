from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .types import FileMode, FileOperation, MigrationStatus, ObjectType, MODE_FILE, TYPE_BLOB

@dataclass(frozen=True)
class ChangedFile:
    path: str
    content: str = ""
    # None means update-or-create
    operation: Optional[FileOperation] = None

    @property
    def is_delete(self) -> bool:
        return self.operation == "deleted"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangedFile":
        return cls(
            path=data["path"],
            content=data.get("content") or "",
            operation=data.get("operation") or data.get("type"),
        )


@dataclass(frozen=True)
class TreeEntry:
    path: str
    mode: FileMode = MODE_FILE
    type: ObjectType = TYPE_BLOB
    content: Optional[str] = None
    sha: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"path": self.path, "mode": self.mode, "type": self.type}
        if self.content is not None:
            item["content"] = self.content
        else:
            item["sha"] = self.sha
        return item


@dataclass(frozen=True)
class FileContent:
    exists: bool
    content: Optional[str] = None
    sha: Optional[str] = None


@dataclass(frozen=True)
class BaseCommit:
    commit_sha: str
    tree_sha: str


@dataclass
class TreePlan:
    """What the tree write will look like.

    `writes` are the new/updated blobs. `deletions` are existing paths to drop.
    When `deletions` is non-empty, `entries` is the complete listing and
    `base_tree` is None; otherwise `entries == writes` layered on `base_tree`.
    """

    writes: List[TreeEntry] = field(default_factory=list)
    deletions: List[str] = field(default_factory=list)
    entries: List[TreeEntry] = field(default_factory=list)
    base_tree: Optional[str] = None

    @property
    def is_noop(self) -> bool:
        return not self.writes and not self.deletions

    @property
    def changed_count(self) -> int:
        return len(self.writes) + len(self.deletions)


@dataclass(frozen=True)
class CommitResult:
    commit_sha: str
    tree_sha: str


@dataclass(frozen=True)
class PublishResult:
    number: int
    node_id: Optional[str]
    auto_merge_enabled: bool


@dataclass
class MigrationRequest:
    owner: str
    repo: str
    changed_files: Optional[List[ChangedFile]]
    pull_request_title: str
    commit_message: Optional[str] = None
    base_branch: str = "main"
    branch_name: Optional[str] = None
    pull_request_body: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationRequest":
        raw_files = data.get("changedFiles", data.get("changed_files"))
        return cls(
            owner=data.get("owner") or "",
            repo=data.get("repo") or "",
            # Absent stays None so validation can reject it
            changed_files=None if raw_files is None else [ChangedFile.from_dict(f) for f in raw_files],
            pull_request_title=data.get("pullRequestTitle") or data.get("pull_request_title") or "",
            commit_message=data.get("commitMessage") or data.get("commit_message"),
            base_branch=data.get("baseBranch") or data.get("base_branch") or "main",
            branch_name=data.get("branchName") or data.get("branch_name"),
            pull_request_body=data.get("pullRequestBody") or data.get("pull_request_body"),
        )


@dataclass
class MigrationResult:
    status: MigrationStatus
    branch_name: Optional[str] = None
    changed_files: int = 0
    pull_request_number: Optional[int] = None
    message: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    auto_merge_enabled: bool = False

    @property
    def ok(self) -> bool:
        return self.status != "error"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status,
            "branchName": self.branch_name,
            "changedFiles": self.changed_files,
            "message": self.message,
        }
        if self.pull_request_number is not None:
            out["pullRequestNumber"] = self.pull_request_number
            out["autoMergeEnabled"] = self.auto_merge_enabled
        if self.error is not None:
            out["error"] = self.error
            out["errorCode"] = self.error_code
        return out
