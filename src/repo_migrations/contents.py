from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List
from urllib.parse import quote

from .exceptions import GitHubNotFoundError
from .models import FileContent
from .rest import GitHubRestClient
from .utils import b64decode_text, normalize_repo_path

log = logging.getLogger(__name__)

MISSING = FileContent(exists=False)

@dataclass
class ContentsClient:
    """Reads a file's current text and blob sha at a ref."""

    gh: GitHubRestClient

    def get_content(self, owner: str, repo: str, path: str, ref: str) -> FileContent:
        """
        404 means "does not exist yet" and returns FileContent(exists=False).
        Anything else (auth, 5xx, network) propagates.
        """
        norm_path = normalize_repo_path(path)
        api_path = f"/repos/{owner}/{repo}/contents/{quote(norm_path)}"
        try:
            obj = self.gh.request("GET", api_path, params={"ref": ref}).json()
        except GitHubNotFoundError:
            log.debug("%s/%s: %s not found at %s", owner, repo, norm_path, ref)
            return MISSING

        # Directory listings come back as arrays
        if isinstance(obj, list):
            return FileContent(exists=True)

        sha = obj.get("sha")
        if obj.get("encoding") == "base64" and isinstance(obj.get("content"), str):
            return FileContent(exists=True, content=b64decode_text(obj["content"]), sha=sha)
        return FileContent(exists=True, sha=sha)

    def get_text(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        return self.get_content(owner, repo, path, ref).content

    def list_dir(self, owner: str, repo: str, path: str, ref: str) -> List[str]:
        """Paths of the files directly under `path`. A missing directory lists as empty."""
        norm_path = normalize_repo_path(path)
        try:
            obj = self.gh.request(
                "GET", f"/repos/{owner}/{repo}/contents/{quote(norm_path)}", params={"ref": ref}
            ).json()
        except GitHubNotFoundError:
            return []
        if not isinstance(obj, list):
            return []
        return [e["path"] for e in obj if isinstance(e, dict) and e.get("type") == "file" and "path" in e]
