from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..contents import ContentsClient
from ..engine import MigrationEngine
from ..exceptions import DependencyNotFound, MigrationValidationError, UnknownMigration
from ..models import ChangedFile, MigrationRequest, MigrationResult
from ..retry import RetryPolicy, is_version_not_found, run_with_retry
from ..utils import timestamped_branch_name
from . import transforms

log = logging.getLogger(__name__)

WORKFLOWS_DIR = ".github/workflows"
README_PATHS = ("README.md", "README.MD", "readme.md")
GITPOD_FILES = (".gitpod.yml", ".gitpod.Dockerfile")
GITATTRIBUTES_PATH = ".gitattributes"

@dataclass
class MigrationPlan:
    changed_files: List[ChangedFile] = field(default_factory=list)
    pull_request_title: str = ""
    commit_message: Optional[str] = None


# (contents, owner, repo, ref, options) -> plan
Handler = Callable[[ContentsClient, str, str, str, Dict[str, Any]], MigrationPlan]


@dataclass(frozen=True)
class Migration:
    id: str
    description: str
    branch_prefix: str
    handler: Handler
    # Handlers that resolve package versions set this (see version_not_found_policy)
    retry: Optional[RetryPolicy] = None


def _rewrite(
    contents: ContentsClient,
    owner: str,
    repo: str,
    ref: str,
    path: str,
    transform: Callable[[str], str],
) -> Optional[ChangedFile]:
    current = contents.get_text(owner, repo, path, ref)
    if current is None:
        return None
    updated = transform(current)
    if updated == current:
        return None
    return ChangedFile(path=path, content=updated, operation="updated")


def _require(options: Dict[str, Any], key: str) -> str:
    value = options.get(key)
    if not value:
        raise MigrationValidationError(f"option {key!r} is required")
    return str(value)


def plan_add_oidc_permissions(contents, owner, repo, ref, options) -> MigrationPlan:
    path = options.get("workflowPath") or f"{WORKFLOWS_DIR}/release.yml"
    changed = _rewrite(contents, owner, repo, ref, path, transforms.add_oidc_permissions)
    return MigrationPlan(
        changed_files=[changed] if changed else [],
        pull_request_title="feature: update permissions for open id connect publishing",
    )


def plan_remove_npm_token(contents, owner, repo, ref, options) -> MigrationPlan:
    path = options.get("workflowPath") or f"{WORKFLOWS_DIR}/release.yml"
    changed = _rewrite(contents, owner, repo, ref, path, transforms.remove_npm_token)
    return MigrationPlan(
        changed_files=[changed] if changed else [],
        pull_request_title="ci: remove NODE_AUTH_TOKEN from release workflow",
    )


def plan_ensure_lerna_excluded(contents, owner, repo, ref, options) -> MigrationPlan:
    path = options.get("scriptPath") or "scripts/update-dependencies.sh"
    changed = _rewrite(contents, owner, repo, ref, path, transforms.ensure_lerna_excluded)
    return MigrationPlan(
        changed_files=[changed] if changed else [],
        pull_request_title="ci: ensure lerna is excluded from ncu commands",
    )


def plan_update_node_version(contents, owner, repo, ref, options) -> MigrationPlan:
    version = _require(options, "newVersion")
    rewrites = [
        (".nvmrc", lambda s: transforms.compute_nvmrc_content(s, version)),
        ("Dockerfile", lambda s: transforms.compute_dockerfile_content(s, version)),
        (".gitpod.Dockerfile", lambda s: transforms.compute_gitpod_dockerfile_content(s, version)),
    ]
    changed_files: List[ChangedFile] = []
    for path, fn in rewrites:
        changed = _rewrite(contents, owner, repo, ref, path, fn)
        if changed:
            changed_files.append(changed)
    return MigrationPlan(
        changed_files=changed_files,
        pull_request_title=f"ci: update to node version {version}",
    )


def plan_remove_gitpod_section(contents, owner, repo, ref, options) -> MigrationPlan:
    changed_files: List[ChangedFile] = []
    for path in README_PATHS:
        changed = _rewrite(contents, owner, repo, ref, path, transforms.remove_gitpod_section)
        if changed:
            changed_files.append(changed)
    return MigrationPlan(changed_files=changed_files, pull_request_title="ci: remove Gitpod section from README")


def plan_remove_gitpod_config(contents, owner, repo, ref, options) -> MigrationPlan:
    present = [p for p in GITPOD_FILES if contents.get_content(owner, repo, p, ref).exists]
    if len(present) == 2:
        title = "ci: remove .gitpod.yml and .gitpod.Dockerfile"
    elif present:
        title = f"ci: remove {present[0]}"
    else:
        title = "ci: remove gitpod configuration"
    return MigrationPlan(
        changed_files=[ChangedFile(path=p, operation="deleted") for p in present],
        pull_request_title=title,
    )


def plan_update_github_actions(contents, owner, repo, ref, options) -> MigrationPlan:
    versions = {name: options.get(name) or default for name, default in transforms.DEFAULT_OS_VERSIONS.items()}
    changed_files: List[ChangedFile] = []
    for path in contents.list_dir(owner, repo, WORKFLOWS_DIR, ref):
        if not path.endswith((".yml", ".yaml")):
            continue
        changed = _rewrite(contents, owner, repo, ref, path, lambda s: transforms.update_os_versions(s, versions))
        if changed:
            changed_files.append(changed)
    return MigrationPlan(changed_files=changed_files, pull_request_title="ci: update CI OS versions")


def plan_add_gitattributes(contents, owner, repo, ref, options) -> MigrationPlan:
    plan = MigrationPlan(pull_request_title="ci: add .gitattributes file")
    # An existing .gitattributes is the repo's own choice and is never rewritten
    if not contents.get_content(owner, repo, GITATTRIBUTES_PATH, ref).exists:
        plan.changed_files.append(
            ChangedFile(path=GITATTRIBUTES_PATH, content=transforms.GITATTRIBUTES_CONTENT, operation="created")
        )
    return plan


MIGRATIONS: Dict[str, Migration] = {
    m.id: m
    for m in (
        Migration(
            "add-oidc-permissions",
            "Add OpenID Connect permissions to the release workflow for npm publishing",
            "add-oidc-permissions",
            plan_add_oidc_permissions,
        ),
        Migration(
            "remove-npm-token",
            "Drop the NPM_TOKEN env block from the release workflow",
            "remove-npm-token",
            plan_remove_npm_token,
        ),
        Migration(
            "ensure-lerna-excluded",
            "Exclude lerna from ncu commands in update-dependencies.sh",
            "ensure-lerna-excluded",
            plan_ensure_lerna_excluded,
        ),
        Migration(
            "update-node-version",
            "Update the Node.js version in .nvmrc, Dockerfile and .gitpod.Dockerfile",
            "update-node-version",
            plan_update_node_version,
        ),
        Migration(
            "remove-gitpod-section",
            "Remove Gitpod sections from README files",
            "remove-gitpod-section",
            plan_remove_gitpod_section,
        ),
        Migration(
            "remove-gitpod-config",
            "Delete .gitpod.yml and .gitpod.Dockerfile",
            "remove-gitpod-config",
            plan_remove_gitpod_config,
        ),
        Migration(
            "update-github-actions",
            "Pin ubuntu, windows and macos runner versions in workflow files",
            "update-github-actions",
            plan_update_github_actions,
        ),
        Migration(
            "add-gitattributes",
            "Add a .gitattributes with text=auto eol=lf when the repo has none",
            "add-gitattributes",
            plan_add_gitattributes,
        ),
    )
}


def get_migration(migration_id: str) -> Migration:
    try:
        return MIGRATIONS[migration_id]
    except KeyError:
        raise UnknownMigration(f"unknown migration {migration_id!r}") from None


def plan_migration(
    engine: MigrationEngine,
    migration_id: str,
    owner: str,
    repo: str,
    *,
    base_branch: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
) -> MigrationPlan:
    """
    Runs the handler against `base_branch`. Migrations with a retry policy are
    retried while a dependency version is unpublished; when retries run out
    that surfaces as DependencyNotFound.
    """
    migration = get_migration(migration_id)
    ref = base_branch or engine.settings.default_base_branch

    def compute() -> MigrationPlan:
        return migration.handler(engine.contents, owner, repo, ref, dict(options or {}))

    if migration.retry is None:
        return compute()
    try:
        return run_with_retry(migration.retry, compute)
    except Exception as e:
        if is_version_not_found(e):
            raise DependencyNotFound(
                f"dependency version not found: {e}", owner=owner, repo=repo, branch=ref, operation="plan"
            ) from e
        raise


def run_migration(
    engine: MigrationEngine,
    migration_id: str,
    owner: str,
    repo: str,
    *,
    base_branch: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
) -> MigrationResult:
    """Computes the migration's plan against the base branch and applies it."""
    migration = get_migration(migration_id)
    base = base_branch or engine.settings.default_base_branch
    try:
        plan = plan_migration(engine, migration_id, owner, repo, base_branch=base, options=options)
    except DependencyNotFound as e:
        engine.reporter.report(e)
        return MigrationResult(
            status="error",
            message=f"Migration failed for {owner}/{repo}",
            error=str(e),
            error_code=e.code,
        )
    log.info("%s/%s: %s planned %d file change(s)", owner, repo, migration.id, len(plan.changed_files))

    request = MigrationRequest(
        owner=owner,
        repo=repo,
        changed_files=plan.changed_files,
        pull_request_title=plan.pull_request_title,
        commit_message=plan.commit_message,
        base_branch=base,
        branch_name=timestamped_branch_name(migration.branch_prefix),
    )
    return engine.apply(request)
