"""Unit tests for the GitHub pulls REST client."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from github_pr_publisher.publisher.errors import GitHubApiError
from github_pr_publisher.publisher.github.client import GitHubClient


def _response(status_code: int, payload: object = None) -> Mock:
    resp = Mock()
    resp.status_code = status_code
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


def _pull(number: int, *, head: str = "feature", state: str = "open") -> dict[str, object]:
    return {
        "number": number,
        "state": state,
        "title": "Internal change.",
        "body": "Internal change.",
        "head": {"ref": head},
        "base": {"ref": "master"},
        "html_url": f"https://github.com/google/example/pull/{number}",
    }


@pytest.fixture
def session() -> Mock:
    s = Mock()
    s.headers = {}
    return s


@pytest.fixture
def client(session: Mock) -> GitHubClient:
    return GitHubClient(token="test-token", repository="google/example/", session=session)


def test_client_sets_auth_headers(client: GitHubClient, session: Mock) -> None:
    assert session.headers["Authorization"] == "Bearer test-token"
    assert session.headers["Accept"] == "application/vnd.github+json"
    assert client.repository == "google/example"


def test_client_requires_token_and_repository(session: Mock) -> None:
    with pytest.raises(ValueError, match="token"):
        GitHubClient(token="", repository="google/example", session=session)
    with pytest.raises(ValueError, match="repository"):
        GitHubClient(token="t", repository="/", session=session)


def test_list_pull_requests_sends_filters(client: GitHubClient, session: Mock) -> None:
    session.get.return_value = _response(200, [_pull(1), _pull(2, head="other")])

    pulls = client.list_pull_requests(head="google:feature", base="master")

    assert [pr.number for pr in pulls] == [1, 2]
    assert pulls[0].head_ref == "feature"
    assert pulls[0].base_ref == "master"
    url = session.get.call_args.args[0]
    assert url == "https://api.github.com/repos/google/example/pulls"
    params = session.get.call_args.kwargs["params"]
    assert params["head"] == "google:feature"
    assert params["base"] == "master"
    assert params["state"] == "open"


def test_list_pull_requests_follows_pages(client: GitHubClient, session: Mock) -> None:
    first = [_pull(n) for n in range(1, 101)]
    session.get.side_effect = [_response(200, first), _response(200, [_pull(101)])]

    pulls = client.list_pull_requests(head="feature", base="master")

    assert len(pulls) == 101
    assert [c.kwargs["params"]["page"] for c in session.get.call_args_list] == [1, 2]


def test_list_pull_requests_unknown_repository_is_empty(
    client: GitHubClient, session: Mock
) -> None:
    session.get.return_value = _response(404, {"message": "Not Found"})

    assert client.list_pull_requests(head="feature", base="master") == []


def test_list_pull_requests_rejects_non_list(client: GitHubClient, session: Mock) -> None:
    session.get.return_value = _response(200, {"number": 1})

    with pytest.raises(GitHubApiError, match="expected a list"):
        client.list_pull_requests(head="feature", base="master")


def test_list_pull_requests_rejects_malformed_body(client: GitHubClient, session: Mock) -> None:
    session.get.return_value = _response(200, ValueError("not json"))

    with pytest.raises(GitHubApiError, match="malformed"):
        client.list_pull_requests(head="feature", base="master")


def test_create_pull_request_payload(client: GitHubClient, session: Mock) -> None:
    session.post.return_value = _response(201, _pull(12345))

    pr = client.create_pull_request(
        base="master", body="test summary", head="feature", title="test summary"
    )

    assert pr.number == 12345
    payload = session.post.call_args.kwargs["json"]
    assert list(payload) == ["base", "body", "head", "title"]
    assert payload == {
        "base": "master",
        "body": "test summary",
        "head": "feature",
        "title": "test summary",
    }


def test_create_pull_request_http_error(client: GitHubClient, session: Mock) -> None:
    session.post.return_value = _response(422, {"message": "Validation Failed"})

    with pytest.raises(GitHubApiError) as excinfo:
        client.create_pull_request(base="master", body="b", head="feature", title="t")

    assert excinfo.value.status_code == 422
    assert "Validation Failed" in str(excinfo.value)
    assert excinfo.value.retryable is False


def test_create_pull_request_requires_number(client: GitHubClient, session: Mock) -> None:
    session.post.return_value = _response(201, {"state": "open"})

    with pytest.raises(GitHubApiError, match="missing number"):
        client.create_pull_request(base="master", body="b", head="feature", title="t")


def test_update_pull_request(client: GitHubClient, session: Mock) -> None:
    session.patch.return_value = _response(200, _pull(7))

    pr = client.update_pull_request(pull_number=7, title="New", body="Body")

    assert pr.number == 7
    assert session.patch.call_args.args[0] == (
        "https://api.github.com/repos/google/example/pulls/7"
    )
    assert session.patch.call_args.kwargs["json"] == {"body": "Body", "title": "New"}


def test_update_pull_request_rejects_bad_number(client: GitHubClient) -> None:
    with pytest.raises(ValueError, match="positive"):
        client.update_pull_request(pull_number=0, title="t", body="b")


def test_enterprise_base_url(session: Mock) -> None:
    client = GitHubClient(
        token="t",
        repository="foo",
        base_url="https://ghe.example.com/api/v3/",
        session=session,
    )
    session.get.return_value = _response(200, [])

    client.list_pull_requests(head="feature", base="master")

    assert session.get.call_args.args[0] == "https://ghe.example.com/api/v3/repos/foo/pulls"


def test_list_pull_requests_server_error_propagates(client: GitHubClient, session: Mock) -> None:
    session.get.return_value = _response(500, {"message": "Server Error"})

    with pytest.raises(GitHubApiError) as excinfo:
        client.list_pull_requests(head="feature", base="master")

    assert excinfo.value.status_code == 500
    assert "list pull requests failed with HTTP 500" in str(excinfo.value)
