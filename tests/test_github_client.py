import base64
import json

import httpx
import pytest

from ci_gantt.github_client import GitHubClient, RunUrl, api_base_url, parse_workflow_run_url


class TestParseWorkflowRunUrl:
    def test_github_com(self):
        assert parse_workflow_run_url("https://github.com/Kesin11/actions-timeline/actions/runs/5977929222") == RunUrl(
            origin="https://github.com",
            owner="Kesin11",
            repo="actions-timeline",
            run_id=5977929222,
            run_attempt=None,
        )

    def test_with_attempt(self):
        u = parse_workflow_run_url("https://github.com/o/r/actions/runs/12/attempts/3")
        assert (u.run_id, u.run_attempt) == (12, 3)

    def test_enterprise_host(self):
        u = parse_workflow_run_url("https://ghe.example.com/o/r/actions/runs/12/")
        assert u.origin == "https://ghe.example.com"

    @pytest.mark.parametrize(
        "url",
        [
            "not a url",
            "https://github.com/o/r",
            "https://github.com/o/r/actions/runs/abc",
            "https://github.com/o/r/pull/1",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(ValueError):
            parse_workflow_run_url(url)


def test_api_base_url():
    assert api_base_url("https://github.com") == "https://api.github.com"
    assert api_base_url("https://ghe.example.com") == "https://ghe.example.com/api/v3"


def make_client(handler, **kwargs):
    return GitHubClient("https://api.github.com", "secret", transport=httpx.MockTransport(handler), **kwargs)


def test_requests_carry_token_and_attempt():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": 12, "name": "CI"})

    with make_client(handler) as client:
        assert client.get_workflow_run("o", "r", 12, 2) == {"id": 12, "name": "CI"}
    assert seen[0].url.path == "/repos/o/r/actions/runs/12/attempts/2"
    assert seen[0].headers["Authorization"] == "Bearer secret"


def test_list_jobs_follows_pagination():
    pages = {
        "1": [{"id": 1}, {"id": 2}],
        "2": [{"id": 3}],
    }

    def handler(request):
        page = request.url.params["page"]
        return httpx.Response(200, json={"total_count": 3, "jobs": pages[page]})

    with make_client(handler, per_page=2) as client:
        jobs = client.list_jobs("o", "r", 12)
    assert [j["id"] for j in jobs] == [1, 2, 3]


def test_job_log_follows_redirect():
    def handler(request):
        if request.url.host == "api.github.com":
            return httpx.Response(302, headers={"Location": "https://logs.example.com/job/9.txt"})
        return httpx.Response(200, text="2024-01-15T10:00:00.0000000Z hello\n")

    with make_client(handler) as client:
        assert client.get_job_log("o", "r", 9).endswith("hello\n")


def test_file_content_decodes_wrapped_base64():
    body = "name: setup\nruns:\n  using: composite\n"
    encoded = base64.b64encode(body.encode()).decode()
    wrapped = "\n".join(encoded[i:i + 20] for i in range(0, len(encoded), 20))

    def handler(request):
        assert request.url.params["ref"] == "abc123"
        return httpx.Response(200, json={"type": "file", "encoding": "base64", "content": wrapped})

    with make_client(handler) as client:
        assert client.get_file_content("o", "r", ".github/actions/setup/action.yml", "abc123") == body


def test_file_content_missing():
    with make_client(lambda request: httpx.Response(404, json={"message": "Not Found"})) as client:
        assert client.get_file_content("o", "r", "missing/action.yml") is None


def test_http_errors_propagate():
    with make_client(lambda request: httpx.Response(500, text="oops")) as client:
        with pytest.raises(httpx.HTTPStatusError):
            client.list_jobs("o", "r", 1)


def test_requests_are_logged():
    messages = []
    client = make_client(lambda request: httpx.Response(200, text=json.dumps({"jobs": []})), log=messages.append)
    client.list_jobs("o", "r", 1)
    client.close()
    assert messages == ["[HTTP] GET /repos/o/r/actions/runs/1/attempts/1/jobs"]
