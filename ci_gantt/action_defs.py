"""Read declared step counts of repo-local composite actions."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
import yaml

from .github_client import GitHubClient

ACTION_FILENAMES = ("action.yml", "action.yaml")


def count_composite_steps(text: str) -> Optional[int]:
    """Number of ``runs.steps`` of a composite action definition.

    Returns None when the text is not a composite definition or when any step
    uses another local action (``uses: ./...``), whose own groups make the log
    block count unpredictable.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None
    runs = data.get("runs")
    if not isinstance(runs, dict) or runs.get("using") != "composite":
        return None
    steps = runs.get("steps")
    if not isinstance(steps, list):
        return None
    for step in steps:
        if isinstance(step, dict) and str(step.get("uses") or "").startswith("./"):
            return None
    return len(steps)


def reference_path(reference: str) -> str:
    """``./.github/actions/foo`` -> ``.github/actions/foo``."""
    path = reference.strip()
    if path.startswith("./"):
        path = path[2:]
    return path.strip("/")


class ActionDefinitions:
    """Resolve composite references to step counts, caching every answer.

    ``loader`` returns the definition text for a repository-relative file
    path, or None when it is missing. Unknown answers are cached as well, so
    a broken definition disables expansion for every use of that action.
    """

    def __init__(
        self,
        loader: Callable[[str], Optional[str]],
        *,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._loader = loader
        self._cache: Dict[str, Optional[int]] = {}
        self.log = log

    def _load_definition(self, reference: str) -> Optional[str]:
        base = reference_path(reference)
        for filename in ACTION_FILENAMES:
            text = self._loader(f"{base}/{filename}")
            if text is not None:
                return text
        return None

    def step_count(self, reference: str) -> Optional[int]:
        if reference in self._cache:
            return self._cache[reference]
        count: Optional[int] = None
        # Undecodable text, bad base64 and non-JSON bodies all raise ValueError subclasses.
        try:
            text = self._load_definition(reference)
        except (httpx.HTTPError, OSError, ValueError) as e:
            text = None
            if self.log is not None:
                self.log(f"[WARN] failed to fetch definition of {reference}: {e}")
        if text is None:
            if self.log is not None:
                self.log(f"[WARN] no action.yml found for {reference}")
        else:
            count = count_composite_steps(text)
            if count is None and self.log is not None:
                self.log(f"[WARN] {reference} is not an expandable composite (parse failure or nested local action)")
        self._cache[reference] = count
        return count

    __call__ = step_count

    @classmethod
    def from_github(
        cls,
        client: GitHubClient,
        owner: str,
        repo: str,
        ref: Optional[str],
        *,
        log: Optional[Callable[[str], None]] = None,
    ) -> "ActionDefinitions":
        return cls(lambda path: client.get_file_content(owner, repo, path, ref), log=log)

    @classmethod
    def from_directory(
        cls,
        repo_dir: Path,
        *,
        log: Optional[Callable[[str], None]] = None,
    ) -> "ActionDefinitions":
        root = repo_dir.expanduser().resolve()

        def _read(path: str) -> Optional[str]:
            p = root / path
            if not p.is_file():
                return None
            return p.read_text(encoding="utf-8")

        return cls(_read, log=log)
