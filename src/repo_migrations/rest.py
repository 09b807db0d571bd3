from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

import requests

from .exceptions import (
    GitHubApiError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubValidationError,
    GraphQLError,
)
from .retry import RetryPolicy, exponential_backoff, run_with_retry
from .utils import (
    is_absolute_url,
    is_rate_limited,
    parse_link_header,
    rate_limit_reset_epoch,
    req_id,
    safe_json,
)

log = logging.getLogger(__name__)

TRANSIENT_STATUSES = (500, 502, 503, 504)

# Rate limits resetting further out than this surface to the caller
MAX_RATE_LIMIT_WAIT_S = 15

STATUS_ERRORS = {
    401: (GitHubAuthError, "Unauthorized"),
    404: (GitHubNotFoundError, "Not Found"),
    422: (GitHubValidationError, "Unprocessable Entity"),
}

@dataclass
class GitHubRestClient:
    """
    Thin requests.Session wrapper for the REST and GraphQL endpoints the bot uses.

    Non-2xx responses raise GitHubApiError subclasses. Timeouts, connection
    errors, 5xx and short rate-limit windows are retried; everything else
    (including 422 "reference already exists") is returned to the caller at once.
    """

    token: str
    base_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    timeout_s: int = 30

    max_retries: int = 4
    backoff_base_s: float = 0.8
    max_backoff_s: float = 10.0

    user_agent: str = "repo-migrations-bot/1.0"
    session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": self.user_agent,
        })

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_retries + 1,
            backoff=exponential_backoff(self.backoff_base_s, self.max_backoff_s),
            is_retryable=_is_transient,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = path if is_absolute_url(path) else self.base_url.rstrip("/") + path
        return run_with_retry(
            self.retry_policy,
            lambda: self._send(method.upper(), url, params, json_body),
            on_retry=_wait_for_rate_limit,
        )

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GraphQL reports failures in an `errors` array with HTTP 200; those raise GraphQLError."""
        resp = self.request("POST", "/graphql", json_body={"query": query, "variables": variables or {}})
        payload = resp.json()
        if not isinstance(payload, dict):
            raise GraphQLError(resp.status_code, "Unexpected GraphQL payload", response_json={"payload": payload})
        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            msg = first.get("message", "GraphQL error") if isinstance(first, dict) else str(first)
            raise GraphQLError(resp.status_code, msg, response_json=payload, request_id=req_id(resp))
        return payload

    def paginate(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Any]:
        """Yields items of a JSON-array endpoint, following Link: rel="next"."""
        next_url: Optional[str] = path
        page_params: Optional[Dict[str, Any]] = dict(params or {})

        while next_url:
            resp = self.request("GET", next_url, params=page_params)
            data = resp.json()
            if not isinstance(data, list):
                raise GitHubApiError(
                    resp.status_code,
                    "Expected list response for paginated endpoint.",
                    response_json=data,
                    request_id=req_id(resp),
                )
            yield from data

            next_url = parse_link_header(resp.headers.get("Link", "")).get("next")
            # next links already carry the query string
            page_params = None

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json_body: Optional[Dict[str, Any]],
    ) -> requests.Response:
        log.debug("%s %s", method, url)
        resp = self.session.request(method=method, url=url, params=params, json=json_body, timeout=self.timeout_s)
        if resp.status_code < 400:
            return resp

        payload = safe_json(resp)
        request_id = req_id(resp)
        if resp.status_code == 429 or (resp.status_code == 403 and is_rate_limited(resp)):
            raise GitHubRateLimitError(
                resp.status_code,
                f"Rate limit exceeded ({resp.status_code}).",
                reset_epoch=rate_limit_reset_epoch(resp),
                response_json=payload,
                request_id=request_id,
            )

        if isinstance(payload, dict) and "message" in payload:
            msg = str(payload.get("message", ""))
        else:
            msg = resp.text[:200]
        exc_type, default_msg = STATUS_ERRORS.get(resp.status_code, (GitHubApiError, "Request failed"))
        raise exc_type(resp.status_code, msg or default_msg, response_json=payload, request_id=request_id)


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, GitHubRateLimitError):
        return error.reset_epoch is not None and error.reset_epoch - time.time() <= MAX_RATE_LIMIT_WAIT_S
    if isinstance(error, GitHubApiError):
        return error.status in TRANSIENT_STATUSES
    return isinstance(error, (requests.Timeout, requests.ConnectionError))


def _wait_for_rate_limit(attempt: int, error: BaseException) -> None:
    if isinstance(error, GitHubRateLimitError) and error.reset_epoch is not None:
        wait_s = max(0, error.reset_epoch - int(time.time())) + 1
        log.warning("Rate limited, waiting %ds for reset", wait_s)
        time.sleep(wait_s)
