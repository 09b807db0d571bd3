from __future__ import annotations
from typing import Literal

FileOperation = Literal["created", "updated", "deleted"]
MigrationStatus = Literal["success", "no-op", "error"]
MergeMethod = Literal["SQUASH", "MERGE", "REBASE"]
EngineState = Literal[
    "start",
    "diffing",
    "no-op",
    "branching",
    "committing",
    "pr-opening",
    "done",
    "error",
]

# Git file modes as used by the Git Data API
FileMode = Literal["100644", "100755", "040000", "160000", "120000"]
ObjectType = Literal["blob", "tree", "commit"]

MODE_FILE: FileMode = "100644"
TYPE_BLOB: ObjectType = "blob"
