#!/usr/bin/env python3
"""
Run one catalog migration across repositories.

Each repository gets (at most) one branch, one commit and one pull request with
squash auto-merge requested. Repositories where nothing differs are left alone.

Examples:
  run_migration.py --owner my-org --migration update-node-version --option newVersion=v22.11.0
  run_migration.py --owner my-org --repos a b c --migration remove-gitpod-config --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from repo_migrations import create_clients
from repo_migrations.engine import error_code_for
from repo_migrations.exceptions import GitHubApiError, MigrationError
from repo_migrations.migrations import MIGRATIONS, plan_migration, run_migration
from repo_migrations.models import MigrationResult
from repo_migrations.reporting import RecordingErrorReporter

log = logging.getLogger("run_migration")


def iter_repos(rest, owner: str, max_repos: Optional[int] = None) -> Iterable[Dict[str, Any]]:
    who = rest.request("GET", f"/users/{owner}").json()
    if who.get("type") == "Organization":
        path, params = f"/orgs/{owner}/repos", {"per_page": 100, "type": "all"}
    else:
        path, params = f"/users/{owner}/repos", {"per_page": 100, "type": "owner"}

    count = 0
    for repo in rest.paginate(path, params=params):
        if repo.get("archived") or repo.get("fork"):
            continue
        yield repo
        count += 1
        if max_repos is not None and count >= max_repos:
            return


def parse_options(items: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for raw in items:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise SystemExit(f"--option expects key=value, got {raw!r}")
        out[key] = value
    return out


def run_one(engine, args, repo: str, base_branch: str, options: Dict[str, str]) -> MigrationResult:
    full = f"{args.owner}/{repo}"
    try:
        if args.dry_run:
            plan = plan_migration(engine, args.migration, args.owner, repo, base_branch=base_branch, options=options)
            for f in plan.changed_files:
                log.info("DRY-RUN %s: would %s %s", full, f.operation or "write", f.path)
            return MigrationResult(status="no-op", changed_files=len(plan.changed_files), message="dry run")
        return run_migration(engine, args.migration, args.owner, repo, base_branch=base_branch, options=options)
    except (MigrationError, GitHubApiError, requests.RequestException) as e:
        return MigrationResult(
            status="error", message=f"Migration failed for {full}", error=str(e), error_code=error_code_for(e)
        )


def resolve_targets(rest, args, fallback_branch: str) -> List[Tuple[str, str]]:
    """(repo, base branch) pairs. Without --base-branch each repo's default branch is used."""
    if not args.repos:
        return [
            (r["name"], args.base_branch or r.get("default_branch") or fallback_branch)
            for r in iter_repos(rest, args.owner, args.max_repos)
        ]

    targets: List[Tuple[str, str]] = []
    for name in args.repos:
        base = args.base_branch
        if not base:
            try:
                base = rest.request("GET", f"/repos/{args.owner}/{name}").json().get("default_branch")
            except (GitHubApiError, requests.RequestException) as e:
                log.warning("%s/%s: could not read default branch (%s), using %s", args.owner, name, e, fallback_branch)
        targets.append((name, base or fallback_branch))
    return targets


def main() -> int:
    ap = argparse.ArgumentParser(description="Apply a repository migration and open auto-merge PRs.")
    ap.add_argument("--owner", required=True, help="Org or user owner.")
    ap.add_argument("--migration", required=True, choices=sorted(MIGRATIONS))
    ap.add_argument("--repos", nargs="*", default=None, help="Repo names (default: every repo of --owner).")
    ap.add_argument("--base-branch", default=None, help="Base branch (default: each repo's default branch).")
    ap.add_argument("--option", action="append", default=[], help="Migration option as key=value.")
    ap.add_argument("--max-repos", type=int, default=None)
    ap.add_argument("--workers", type=int, default=4)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    options = parse_options(args.option)
    reporter = RecordingErrorReporter()
    rest, engine = create_clients(reporter=reporter)

    targets = resolve_targets(rest, args, engine.settings.default_base_branch)

    log.info("Running %s on %d repositories (dry-run=%s)", args.migration, len(targets), args.dry_run)

    results: Dict[str, MigrationResult] = {}
    with ThreadPoolExecutor(max_workers=max(1, args.workers)) as pool:
        futures = {
            pool.submit(run_one, engine, args, name, base, options): name
            for name, base in targets
        }
        for fut in as_completed(futures):
            name = futures[fut]
            result = fut.result()
            results[name] = result
            if result.status == "success":
                log.info("%s/%s: PR #%s (%d file(s))", args.owner, name, result.pull_request_number, result.changed_files)
            elif result.status == "no-op":
                log.info("%s/%s: %s", args.owner, name, result.message)
            else:
                log.warning("%s/%s: %s", args.owner, name, result.error)

    succeeded = sum(1 for r in results.values() if r.status == "success")
    noop = sum(1 for r in results.values() if r.status == "no-op")
    failed = sum(1 for r in results.values() if r.status == "error")
    log.info(
        "Done. repos=%d prs=%d no-op=%d failed=%d reported=%d",
        len(results), succeeded, noop, failed, len(reporter.errors),
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
