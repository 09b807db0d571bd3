from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import MergeMethod

MERGE_METHODS = ("SQUASH", "MERGE", "REBASE")

@dataclass(frozen=True)
class EngineSettings:
    branch_prefix: str = "migration"
    merge_method: MergeMethod = "SQUASH"
    default_base_branch: str = "main"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Reads:
          MIGRATIONS_BRANCH_PREFIX  (default: migration)
          MIGRATIONS_MERGE_METHOD   (SQUASH | MERGE | REBASE, default: SQUASH)
          MIGRATIONS_BASE_BRANCH    (default: main)
        """
        env = os.environ if env is None else env
        merge_method = (env.get("MIGRATIONS_MERGE_METHOD") or "SQUASH").upper()
        if merge_method not in MERGE_METHODS:
            raise ValueError(f"MIGRATIONS_MERGE_METHOD must be one of {', '.join(MERGE_METHODS)}, got {merge_method!r}")
        return cls(
            branch_prefix=env.get("MIGRATIONS_BRANCH_PREFIX") or "migration",
            merge_method=merge_method,  # type: ignore[arg-type]
            default_base_branch=env.get("MIGRATIONS_BASE_BRANCH") or "main",
        )
