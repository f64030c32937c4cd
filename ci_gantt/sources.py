"""Sources of run, job and log data: the GitHub API or a local directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from .github_client import GitHubClient, RunUrl
from .models import Job, WorkflowRun


class GitHubSource:
    """Fetch one run attempt from the REST API."""

    def __init__(
        self,
        client: GitHubClient,
        run_url: RunUrl,
        *,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.client = client
        self.run_url = run_url
        self.attempt = run_url.run_attempt or 1
        self.log = log

    def fetch_run(self) -> WorkflowRun:
        u = self.run_url
        return WorkflowRun.from_api(self.client.get_workflow_run(u.owner, u.repo, u.run_id, self.attempt))

    def fetch_jobs(self) -> List[Job]:
        u = self.run_url
        return [Job.from_api(raw) for raw in self.client.list_jobs(u.owner, u.repo, u.run_id, self.attempt)]

    def fetch_job_log(self, job_id: int) -> Optional[str]:
        """Raw log text, or None when the log cannot be downloaded."""
        u = self.run_url
        try:
            return self.client.get_job_log(u.owner, u.repo, job_id)
        except httpx.HTTPError as e:
            if self.log is not None:
                self.log(f"[WARN] failed to fetch log for job {job_id}: {e}")
            return None


def _load_json(path: Path) -> object:
    if not path.exists():
        raise RuntimeError(f'File not found: "{path}"')
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise RuntimeError(f'Failed to read JSON "{path}": {e}') from e


class DirectorySource:
    """Read a saved run from ``run.json``, ``jobs.json`` and ``logs/<job_id>.txt``."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()

    def fetch_run(self) -> WorkflowRun:
        data = _load_json(self.root / "run.json")
        if not isinstance(data, dict):
            raise RuntimeError(f'"{self.root / "run.json"}" must be a JSON object')
        return WorkflowRun.from_api(data)

    def fetch_jobs(self) -> List[Job]:
        data = _load_json(self.root / "jobs.json")
        if isinstance(data, dict):
            data = data.get("jobs")
        if not isinstance(data, list):
            raise RuntimeError(f'"{self.root / "jobs.json"}" must be a list or contain "jobs"')
        return [Job.from_api(raw) for raw in data if isinstance(raw, dict)]

    def fetch_job_log(self, job_id: int) -> Optional[str]:
        path = self.root / "logs" / f"{job_id}.txt"
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")
