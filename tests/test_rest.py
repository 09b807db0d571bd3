"""Tests for GitHubRestClient error mapping, retries and GraphQL handling."""

from unittest import mock

import pytest
import requests

from repo_migrations.exceptions import (
    GitHubApiError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubValidationError,
    GraphQLError,
)
from repo_migrations.rest import GitHubRestClient


def _resp(status, payload=None, headers=None):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = payload
    resp.text = "" if payload is None else str(payload)
    return resp


@pytest.fixture
def client():
    c = GitHubRestClient(token="t0ken", max_retries=2, backoff_base_s=0.0, max_backoff_s=0.0)
    c.session = mock.Mock()
    return c


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,exc",
        [(401, GitHubAuthError), (404, GitHubNotFoundError), (422, GitHubValidationError), (409, GitHubApiError)],
    )
    def test_status_to_exception(self, client, status, exc):
        client.session.request.return_value = _resp(status, {"message": "nope"})

        with pytest.raises(exc) as info:
            client.request("GET", "/repos/a/b")
        assert info.value.status == status
        assert "nope" in str(info.value)

    def test_builds_absolute_url(self, client):
        client.session.request.return_value = _resp(200, {})
        client.request("GET", "/repos/a/b/git/ref/heads/main")

        kwargs = client.session.request.call_args.kwargs
        assert kwargs["url"] == "https://api.github.com/repos/a/b/git/ref/heads/main"
        assert kwargs["timeout"] == client.timeout_s

    def test_auth_header(self):
        c = GitHubRestClient(token="abc")
        assert c.session.headers["Authorization"] == "Bearer abc"
        assert c.session.headers["X-GitHub-Api-Version"] == "2022-11-28"


class TestRetries:
    def test_transient_5xx_is_retried(self, client):
        client.session.request.side_effect = [_resp(502, {"message": "bad gateway"}), _resp(200, {"ok": True})]

        resp = client.request("GET", "/x")

        assert resp.json() == {"ok": True}
        assert client.session.request.call_count == 2

    def test_connection_errors_exhaust_retries(self, client):
        client.session.request.side_effect = requests.ConnectionError("reset")

        with pytest.raises(requests.ConnectionError):
            client.request("GET", "/x")
        assert client.session.request.call_count == client.max_retries + 1

    def test_client_errors_are_not_retried(self, client):
        client.session.request.return_value = _resp(422, {"message": "Reference already exists"})

        with pytest.raises(GitHubValidationError):
            client.request("POST", "/x", json_body={})
        assert client.session.request.call_count == 1


class TestGraphQL:
    def test_variables_are_sent(self, client):
        client.session.request.return_value = _resp(200, {"data": {"ok": 1}})

        assert client.graphql("query { ok }", {"a": 1}) == {"data": {"ok": 1}}
        body = client.session.request.call_args.kwargs["json"]
        assert body == {"query": "query { ok }", "variables": {"a": 1}}

    def test_errors_array_raises(self, client):
        client.session.request.return_value = _resp(
            200, {"errors": [{"message": "Pull request is in clean status"}]}
        )

        with pytest.raises(GraphQLError) as info:
            client.graphql("mutation { x }")
        assert "clean status" in str(info.value)


class TestRateLimits:
    def test_short_rate_limit_waits_and_retries(self, client, monkeypatch):
        waits = []
        monkeypatch.setattr("repo_migrations.rest.time.sleep", waits.append)
        client.session.request.side_effect = [
            _resp(429, {"message": "secondary rate limit"}, headers={"Retry-After": "2"}),
            _resp(200, {"ok": True}),
        ]

        assert client.request("GET", "/x").json() == {"ok": True}
        assert waits and waits[0] >= 2

    def test_long_rate_limit_surfaces(self, client):
        client.session.request.return_value = _resp(
            403,
            {"message": "API rate limit exceeded"},
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "9999999999"},
        )

        with pytest.raises(GitHubRateLimitError) as info:
            client.request("GET", "/x")
        assert info.value.reset_epoch == 9999999999
        assert client.session.request.call_count == 1


class TestPaginate:
    def test_follows_next_links(self, client):
        client.session.request.side_effect = [
            _resp(200, [1, 2], headers={"Link": '<https://api.github.com/x?page=2>; rel="next"'}),
            _resp(200, [3]),
        ]

        assert list(client.paginate("/x", params={"per_page": 2})) == [1, 2, 3]
        second = client.session.request.call_args_list[1].kwargs
        assert second["url"] == "https://api.github.com/x?page=2"
        assert second["params"] is None
