"""GitHub REST client for workflow runs, jobs, job logs and file contents."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import httpx

GITHUB_COM_API = "https://api.github.com"
API_VERSION = "2022-11-28"

RUN_PATH_RE = re.compile(r"^/([^/]+)/([^/]+)/actions/runs/(\d+)(?:/attempts/(\d+))?/?$")


@dataclass(frozen=True)
class RunUrl:
    origin: str
    owner: str
    repo: str
    run_id: int
    run_attempt: Optional[int] = None


def parse_workflow_run_url(url: str) -> RunUrl:
    """Split a workflow run page URL into its parts.

    ``https://github.com/OWNER/REPO/actions/runs/RUN_ID[/attempts/N]``; any
    host is accepted so GitHub Enterprise Server URLs work too.
    """
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f'Not a workflow run URL: "{url}"')
    m = RUN_PATH_RE.match(parsed.path)
    if not m:
        raise ValueError(f'Not a workflow run URL: "{url}"')
    owner, repo, run_id, attempt = m.groups()
    return RunUrl(
        origin=f"{parsed.scheme}://{parsed.netloc}",
        owner=owner,
        repo=repo,
        run_id=int(run_id),
        run_attempt=int(attempt) if attempt else None,
    )


def api_base_url(origin: str, github_com_api: str = GITHUB_COM_API) -> str:
    """REST API root for github.com or a GitHub Enterprise Server host."""
    if urlparse(origin).netloc.lower() in ("github.com", "www.github.com"):
        return github_com_api
    return origin.rstrip("/") + "/api/v3"


class GitHubClient:
    """Thin synchronous wrapper over the endpoints the timeline needs."""

    def __init__(
        self,
        base_url: str = GITHUB_COM_API,
        token: Optional[str] = None,
        *,
        timeout_s: int = 60,
        per_page: int = 100,
        transport: Optional[httpx.BaseTransport] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.per_page = per_page
        self.log = log
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        if self.log is not None:
            self.log(f"[HTTP] GET {path}")
        r = self._client.get(path, params=params)
        r.raise_for_status()
        return r

    def get_workflow_run(self, owner: str, repo: str, run_id: int, attempt: int = 1) -> Dict[str, Any]:
        return self._get(f"/repos/{owner}/{repo}/actions/runs/{run_id}/attempts/{attempt}").json()

    def list_jobs(self, owner: str, repo: str, run_id: int, attempt: int = 1) -> List[Dict[str, Any]]:
        """All jobs of a run attempt, following pagination."""
        jobs: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = self._get(
                f"/repos/{owner}/{repo}/actions/runs/{run_id}/attempts/{attempt}/jobs",
                params={"per_page": self.per_page, "page": page},
            ).json()
            batch = data.get("jobs") or []
            jobs.extend(batch)
            total = data.get("total_count")
            if not batch or len(batch) < self.per_page:
                break
            if isinstance(total, int) and len(jobs) >= total:
                break
            page += 1
        return jobs

    def get_job_log(self, owner: str, repo: str, job_id: int) -> str:
        # The endpoint answers with a redirect to a plain-text download.
        return self._get(f"/repos/{owner}/{repo}/actions/jobs/{job_id}/logs").text

    def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Optional[str]:
        """Decoded text of a repository file, or None if it does not exist."""
        params = {"ref": ref} if ref else None
        try:
            data = self._get(f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", params=params).json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        if not isinstance(data, dict) or data.get("type") != "file":
            return None
        # The API wraps base64 payloads at 60 columns.
        raw = str(data.get("content") or "").replace("\n", "")
        return base64.b64decode(raw).decode("utf-8", errors="replace")
