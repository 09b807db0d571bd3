from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Mapping, Protocol

from .engine import MigrationEngine
from .exceptions import MigrationValidationError
from .models import ChangedFile, MigrationRequest, TreeEntry

log = logging.getLogger(__name__)

Payload = Dict[str, Any]
Response = Dict[str, Any]
Handler = Callable[[Payload], Any]

class Channel(Protocol):
    """Request/response transport between a caller and the migration worker."""

    def invoke(self, command: str, payload: Payload) -> Response:
        ...


def stringify_error(error: BaseException) -> str:
    if str(error):
        return str(error)
    try:
        return json.dumps(getattr(error, "args", ()))
    except (TypeError, ValueError):
        return "Unknown error"


def wrap_command(fn: Handler) -> Callable[[Payload], Response]:
    """Every reply is {"type": "success", "data": ...} or {"type": "error", "error": "..."}."""

    def wrapped(payload: Payload) -> Response:
        try:
            return {"type": "success", "data": fn(payload)}
        except Exception as e:
            log.warning("Command failed: %s", e)
            return {"type": "error", "error": stringify_error(e)}

    return wrapped


class InProcessChannel:
    def __init__(self, command_map: Mapping[str, Handler]) -> None:
        self._commands = {name: wrap_command(fn) for name, fn in command_map.items()}

    @property
    def commands(self) -> list[str]:
        return sorted(self._commands)

    def invoke(self, command: str, payload: Payload) -> Response:
        handler = self._commands.get(command)
        if handler is None:
            return {"type": "error", "error": f"unknown command: {command}"}
        return handler(dict(payload))


def build_command_map(engine: MigrationEngine) -> Dict[str, Handler]:
    from .migrations import MIGRATIONS, run_migration

    def apply_migration_result(payload: Payload) -> Any:
        return engine.apply(MigrationRequest.from_dict(payload)).to_dict()

    def create_branch(payload: Payload) -> Any:
        owner, repo = payload["owner"], payload["repo"]
        base = engine.commits.resolve_base(owner, repo, payload.get("baseBranch") or engine.settings.default_base_branch)
        engine.commits.create_branch(owner, repo, payload["branchName"], base.commit_sha)
        return {"branchName": payload["branchName"], "sha": base.commit_sha}

    def commit_files(payload: Payload) -> Any:
        files = [ChangedFile.from_dict(f) for f in payload.get("files") or []]
        deleted = [f.path for f in files if f.is_delete]
        if deleted:
            # Layering onto the branch tip cannot remove paths
            raise MigrationValidationError(
                f"commit-files cannot delete {', '.join(deleted)}; use apply-migration-result",
                owner=payload.get("owner"),
                repo=payload.get("repo"),
            )
        entries = [TreeEntry(path=f.path, content=f.content) for f in files]
        result = engine.commits.commit_to_branch(
            payload["owner"], payload["repo"], payload["branchName"], entries, payload["commitMessage"]
        )
        return None if result is None else {"commitSha": result.commit_sha}

    def create_pull_request(payload: Payload) -> Any:
        pr = engine.pulls.publish(
            payload["owner"],
            payload["repo"],
            payload.get("baseBranch") or engine.settings.default_base_branch,
            payload["headBranch"],
            payload["title"],
            payload.get("body"),
        )
        return {"pullRequestNumber": pr.number, "autoMergeEnabled": pr.auto_merge_enabled}

    def run(payload: Payload) -> Any:
        options = dict(payload.get("options") or {})
        return run_migration(
            engine,
            payload["migration"],
            payload["owner"],
            payload["repo"],
            base_branch=payload.get("baseBranch"),
            options=options,
        ).to_dict()

    def list_migrations(payload: Payload) -> Any:
        return {"migrations": sorted(MIGRATIONS)}

    return {
        "/github/apply-migration-result": apply_migration_result,
        "/github/create-branch": create_branch,
        "/github/commit-files": commit_files,
        "/github/create-pull-request": create_pull_request,
        "/migrations/run": run,
        "/migrations/list": list_migrations,
    }
