"""Shared fixtures: an in-memory GitHub REST double and engine wiring."""

from __future__ import annotations

import base64
import hashlib
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from repo_migrations.config import EngineSettings
from repo_migrations.engine import MigrationEngine
from repo_migrations.exceptions import GitHubApiError, GitHubNotFoundError, GitHubValidationError
from repo_migrations.reporting import RecordingErrorReporter

OWNER = "acme"
REPO = "widgets"


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.headers: Dict[str, str] = {}

    def json(self) -> Any:
        return self._payload


class FakeGitHub:
    """
    Serves refs, commits, trees, contents and pulls for one repository and
    records every call. Trees are stored flat: path -> {mode, type, sha}.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None, branch: str = "main") -> None:
        self.calls: List[Tuple[str, str, Any]] = []
        self.blobs: Dict[str, str] = {}
        self.trees: Dict[str, Dict[str, Dict[str, str]]] = {}
        self.commits: Dict[str, Dict[str, Any]] = {}
        self.refs: Dict[str, str] = {}
        self.pulls: List[Dict[str, Any]] = []
        self.graphql_calls: List[Dict[str, Any]] = []
        self.automerge_error: Optional[Exception] = None
        self.truncated = False
        # Paths served like files over 1 MB: encoding "none", empty content
        self.large_files: set = set()
        self._failures: List[Tuple[str, str, Exception]] = []
        self._seq = 0

        tree: Dict[str, Dict[str, str]] = {}
        for path, content in (files or {}).items():
            tree[path] = {"mode": "100644", "type": "blob", "sha": self._store_blob(content)}
        tree_sha = self._store_tree(tree)
        commit_sha = self._store_commit(tree_sha, [], "initial")
        self.base_commit_sha = commit_sha
        self.base_tree_sha = tree_sha
        self.refs[branch] = commit_sha
        self.default_branch = branch

    # -- helpers used by tests --------------------------------------------

    def add_entry(self, path: str, mode: str, type_: str, sha: str) -> None:
        """Adds a non-blob entry (submodule, symlink) to the base tree."""
        self.trees[self.base_tree_sha][path] = {"mode": mode, "type": type_, "sha": sha}

    def fail_on(self, method: str, path_pattern: str, error: Exception) -> None:
        self._failures.append((method.upper(), path_pattern, error))

    def writes(self) -> List[Tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] != "GET"]

    def calls_to(self, method: str, fragment: str) -> List[Tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] == method and fragment in c[1]]

    def files_at(self, branch: str) -> Dict[str, str]:
        tree = self.trees[self.commits[self.refs[branch]]["tree"]["sha"]]
        return {p: self.blobs.get(e["sha"], "") for p, e in tree.items() if e["type"] == "blob"}

    def tree_at(self, branch: str) -> Dict[str, Dict[str, str]]:
        return self.trees[self.commits[self.refs[branch]]["tree"]["sha"]]

    def new_commits(self) -> List[Dict[str, Any]]:
        return [c for sha, c in self.commits.items() if sha != self.base_commit_sha]

    # -- GitHubRestClient surface -----------------------------------------

    def request(self, method: str, path: str, *, params=None, json_body=None) -> FakeResponse:
        method = method.upper()
        self.calls.append((method, path, json_body if json_body is not None else params))
        for m, pattern, error in self._failures:
            if m == method and re.search(pattern, path):
                raise error
        return FakeResponse(self._route(method, path, params or {}, json_body or {}))

    def graphql(self, query: str, variables=None) -> Dict[str, Any]:
        self.calls.append(("POST", "/graphql", {"query": query, "variables": variables}))
        self.graphql_calls.append(dict(variables or {}))
        if self.automerge_error is not None:
            raise self.automerge_error
        return {"data": {"enablePullRequestAutoMerge": {"pullRequest": {"number": 1}}}}

    # -- routing ----------------------------------------------------------

    def _route(self, method: str, path: str, params: Dict[str, Any], body: Dict[str, Any]) -> Any:
        prefix = f"/repos/{OWNER}/{REPO}"
        if not path.startswith(prefix):
            raise GitHubNotFoundError(404, "Not Found")
        rest = path[len(prefix):]

        if method == "GET" and rest == "":
            return {"name": REPO, "full_name": f"{OWNER}/{REPO}", "default_branch": self.default_branch}

        m = re.fullmatch(r"/git/ref/heads/(.+)", rest)
        if method == "GET" and m:
            if m.group(1) not in self.refs:
                raise GitHubNotFoundError(404, "Not Found")
            return {"ref": f"refs/heads/{m.group(1)}", "object": {"sha": self.refs[m.group(1)], "type": "commit"}}

        m = re.fullmatch(r"/git/commits/(\w+)", rest)
        if method == "GET" and m:
            if m.group(1) not in self.commits:
                raise GitHubNotFoundError(404, "Not Found")
            return self.commits[m.group(1)]

        m = re.fullmatch(r"/contents/(.+)", rest)
        if method == "GET" and m:
            return self._get_contents(m.group(1), params.get("ref", "main"))

        m = re.fullmatch(r"/git/trees/(\w+)", rest)
        if method == "GET" and m:
            return self._list_tree(m.group(1))

        if method == "POST" and rest == "/git/refs":
            name = body["ref"][len("refs/heads/"):]
            if name in self.refs:
                raise GitHubValidationError(422, "Reference already exists")
            self.refs[name] = body["sha"]
            return {"ref": body["ref"], "object": {"sha": body["sha"]}}

        if method == "POST" and rest == "/git/trees":
            return {"sha": self._create_tree(body)}

        if method == "POST" and rest == "/git/commits":
            return {"sha": self._store_commit(body["tree"], body["parents"], body["message"])}

        m = re.fullmatch(r"/git/refs/heads/(.+)", rest)
        if method == "PATCH" and m:
            if m.group(1) not in self.refs:
                raise GitHubValidationError(422, "Reference does not exist")
            self.refs[m.group(1)] = body["sha"]
            return {"object": {"sha": body["sha"]}}

        if method == "POST" and rest == "/pulls":
            if body["head"] not in self.refs:
                raise GitHubValidationError(422, "Validation Failed")
            number = len(self.pulls) + 1
            pr = {"number": number, "node_id": f"PR_node{number}", **body}
            self.pulls.append(pr)
            return pr

        raise GitHubApiError(400, f"unhandled {method} {path}")

    def _get_contents(self, path: str, ref: str) -> Any:
        if ref not in self.refs:
            raise GitHubNotFoundError(404, "No commit found for the ref")
        tree = self.tree_at(ref)
        entry = tree.get(path)
        if entry is None:
            prefix = path.rstrip("/") + "/"
            children = sorted({prefix + p[len(prefix):].split("/")[0] for p in tree if p.startswith(prefix)})
            if children:
                return [
                    {"name": c[len(prefix):], "path": c, "type": "file" if c in tree else "dir"}
                    for c in children
                ]
            raise GitHubNotFoundError(404, "Not Found")
        if path in self.large_files:
            return {"type": "file", "path": path, "sha": entry["sha"], "encoding": "none", "content": ""}
        encoded = base64.b64encode(self.blobs.get(entry["sha"], "").encode("utf-8")).decode("ascii")
        # GitHub wraps base64 content at 60 columns
        wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60)) + "\n"
        return {"type": "file", "path": path, "sha": entry["sha"], "encoding": "base64", "content": wrapped}

    def _list_tree(self, tree_sha: str) -> Any:
        if tree_sha not in self.trees:
            raise GitHubNotFoundError(404, "Not Found")
        items = []
        dirs = set()
        for path, entry in sorted(self.trees[tree_sha].items()):
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                d = "/".join(parts[:i])
                if d not in dirs:
                    dirs.add(d)
                    items.append({"path": d, "mode": "040000", "type": "tree", "sha": f"dir-{d}"})
            items.append({"path": path, **entry})
        return {"sha": tree_sha, "tree": items, "truncated": self.truncated}

    def _create_tree(self, body: Dict[str, Any]) -> str:
        base = body.get("base_tree")
        tree = dict(self.trees[base]) if base else {}
        for item in body["tree"]:
            if "content" in item:
                sha = self._store_blob(item["content"])
            else:
                sha = item.get("sha")
            if sha is None:
                tree.pop(item["path"], None)
                continue
            tree[item["path"]] = {"mode": item["mode"], "type": item["type"], "sha": sha}
        return self._store_tree(tree)

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq:04d}"

    def _store_blob(self, content: str) -> str:
        # Real git blob ids, so sha comparisons behave like GitHub's
        data = content.encode("utf-8")
        sha = hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()
        self.blobs[sha] = content
        return sha

    def _store_tree(self, tree: Dict[str, Dict[str, str]]) -> str:
        sha = self._next("t")
        self.trees[sha] = tree
        return sha

    def _store_commit(self, tree_sha: str, parents: List[str], message: str) -> str:
        sha = self._next("c")
        self.commits[sha] = {"sha": sha, "tree": {"sha": tree_sha}, "parents": [{"sha": p} for p in parents], "message": message}
        return sha


@pytest.fixture
def make_gh() -> Callable[..., FakeGitHub]:
    return FakeGitHub


@pytest.fixture
def reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture
def make_engine(reporter) -> Callable[[FakeGitHub], MigrationEngine]:
    def _make(gh: FakeGitHub, **settings: Any) -> MigrationEngine:
        return MigrationEngine(gh, settings=EngineSettings(**settings), reporter=reporter)  # type: ignore[arg-type]

    return _make
