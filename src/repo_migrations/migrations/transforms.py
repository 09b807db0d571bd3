"""
Pure text transforms behind the catalog migrations. Each takes the current file
text and returns the desired text; returning the input unchanged means "nothing
to do" and the engine will skip the file.
"""
from __future__ import annotations

import re
from typing import Mapping, Optional

NODE_IMAGE_RE = re.compile(r"node:\d+\.\d+\.\d+")
NVM_VERSION_RE = re.compile(r"(nvm [\w\s]+?) \d+\.\d+\.\d+")
LEADING_INT_RE = re.compile(r"^\s*v?(\d+)")
NCU_RE = re.compile(r"OUTPUT=`ncu -u(.*?)`")
GITPOD_SECTION_RE = re.compile(r"^#{1,6}\s*[Gg]itpod.*?(?=^#{1,6}\s|\Z)", re.MULTILINE | re.DOTALL)
NPM_TOKEN_ENV_RE = re.compile(
    r"^\s*env:\s*\n\s*NODE_AUTH_TOKEN:\s*\$\{\{\s*secrets\.NPM_TOKEN\s*\}\}\s*$",
    re.MULTILINE,
)

RUNNER_IMAGE_RES = {
    "ubuntu": re.compile(r"ubuntu-\d{2}\.\d{2}"),
    "windows": re.compile(r"windows-\d{4}"),
    "macos": re.compile(r"macos-\d+"),
}
DEFAULT_OS_VERSIONS = {"ubuntu": "24.04", "windows": "2025", "macos": "15"}

GITATTRIBUTES_CONTENT = "* text=auto eol=lf\n"

OIDC_PERMISSIONS = [
    "permissions:",
    "  id-token: write # Required for OIDC",
    "  contents: write",
]


def strip_v(version: str) -> str:
    return version[1:] if version.startswith("v") else version


def _major(version: str) -> Optional[int]:
    m = LEADING_INT_RE.match(version)
    return int(m.group(1)) if m else None


def compute_nvmrc_content(current: str, new_version: str) -> str:
    """Never downgrades: a newer major already pinned is left alone."""
    existing, wanted = _major(current), _major(new_version)
    if existing is not None and wanted is not None and existing > wanted:
        return current
    return f"{new_version}\n"


def compute_dockerfile_content(current: str, new_version: str) -> str:
    return NODE_IMAGE_RE.sub(f"node:{strip_v(new_version)}", current)


def compute_gitpod_dockerfile_content(current: str, new_version: str) -> str:
    return NVM_VERSION_RE.sub(lambda m: f"{m.group(1)} {strip_v(new_version)}", current)


def add_oidc_permissions(content: str) -> str:
    if "permissions:" in content:
        return content

    lines = content.split("\n")
    jobs_index = next((i for i, line in enumerate(lines) if line.strip().startswith("jobs:")), None)
    if jobs_index is None:
        return "\n".join(lines + [""] + OIDC_PERMISSIONS)

    return "\n".join(lines[:jobs_index] + [""] + OIDC_PERMISSIONS + [""] + lines[jobs_index:])


def remove_npm_token(content: str) -> str:
    return NPM_TOKEN_ENV_RE.sub("", content)


def ensure_lerna_excluded(content: str) -> str:
    def add_exclusion(m: "re.Match[str]") -> str:
        args = m.group(1)
        if "-x lerna" in args:
            return m.group(0)
        return f"OUTPUT=`ncu -u{args.rstrip()} -x lerna`"

    return NCU_RE.sub(add_exclusion, content)


def remove_gitpod_section(content: str) -> str:
    return GITPOD_SECTION_RE.sub("", content)


def update_os_versions(content: str, os_versions: Mapping[str, Optional[str]]) -> str:
    """Pins runner images (ubuntu-22.04, windows-2022, macos-13) to the given versions. -latest is left alone."""
    updated = content
    for os_name, pattern in RUNNER_IMAGE_RES.items():
        version = os_versions.get(os_name)
        if version:
            updated = pattern.sub(f"{os_name}-{version}", updated)
    if updated != content and not updated.endswith("\n"):
        updated += "\n"
    return updated
