from __future__ import annotations

import logging
import os
import subprocess
from typing import Optional

log = logging.getLogger(__name__)

# Checked in order. An installation token minted for the bot's GitHub App goes in GITHUB_TOKEN.
TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def get_token_from_env() -> Optional[str]:
    for name in TOKEN_ENV_VARS:
        token = os.getenv(name)
        if token:
            log.debug("Using token from $%s", name)
            return token
    return None


def get_token_from_gh_cli(hostname: str = "github.com") -> Optional[str]:
    """Falls back to the GitHub CLI's stored credentials (gh auth login)."""
    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", hostname],
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        log.debug("gh auth token unavailable: %s", e)
        return None
    return proc.stdout.strip() or None


def resolve_token(hostname: str = "github.com") -> str:
    token = get_token_from_env() or get_token_from_gh_cli(hostname)
    if not token:
        raise RuntimeError(
            f"No GitHub token found. Set {' or '.join(TOKEN_ENV_VARS)}, or run `gh auth login --hostname {hostname}`."
        )
    return token
