from __future__ import annotations

import base64
import hashlib
import re
import time
from typing import Any, Dict, Optional
import requests

LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="([^"]+)"')


def is_absolute_url(s: str) -> bool:
    return s.startswith(("https://", "http://"))


def parse_link_header(link: str) -> Dict[str, str]:
    """
    Parses GitHub Link headers:
      <https://api.github.com/...page=2>; rel="next", <...>; rel="last"
    Returns mapping rel -> url.
    """
    if not link:
        return {}
    return {m.group(2): m.group(1) for m in (LINK_RE.match(p.strip()) for p in link.split(",")) if m}


def safe_json(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def req_id(resp: requests.Response) -> Optional[str]:
    return resp.headers.get("X-GitHub-Request-Id")


def is_rate_limited(resp: requests.Response) -> bool:
    """Primary limits zero out X-RateLimit-Remaining; secondary ones only say so in the message."""
    if resp.headers.get("X-RateLimit-Remaining") == "0":
        return True
    payload = safe_json(resp)
    return isinstance(payload, dict) and "rate limit" in str(payload.get("message", "")).lower()


def rate_limit_reset_epoch(resp: requests.Response) -> Optional[int]:
    """Epoch second at which the caller may try again, from Retry-After or X-RateLimit-Reset."""
    retry_after = resp.headers.get("Retry-After")
    if retry_after and retry_after.isdigit():
        return int(time.time()) + int(retry_after)
    reset = resp.headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        return int(reset)
    return None


def b64decode_text(content: str) -> str:
    # The Contents API wraps base64 payloads at 60 columns
    raw = base64.b64decode("".join(content.split()))
    return raw.decode("utf-8", errors="replace")


def normalize_repo_path(path: str) -> str:
    # GitHub expects paths without leading "/" and without "./"
    p = path.strip()
    while p.startswith("/"):
        p = p[1:]
    while p.startswith("./"):
        p = p[2:]
    return p


def timestamped_branch_name(prefix: str) -> str:
    """<prefix>-<epoch millis>, unique enough for one bot run per repo."""
    return f"{prefix}-{int(time.time() * 1000)}"


def git_blob_sha(content: str) -> str:
    """The sha git assigns to `content` stored as a blob (UTF-8)."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()
