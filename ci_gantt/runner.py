"""CLI runner: fetch a workflow run and render its Mermaid gantt timeline."""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from .action_defs import ActionDefinitions
from .config import get_config_path, get_github_config, get_matching_config, get_render_config
from .gantt import create_gantt_jobs, diagram_title
from .github_client import GitHubClient, api_base_url, parse_workflow_run_url
from .mermaid import create_gantt_diagrams
from .models import GanttOptions, Job, WorkflowRun
from .output import write_timeline_md
from .registry import CompositeLookup, StepCountResolver, expand_composite_steps
from .sources import DirectorySource, GitHubSource


def _format_duration(seconds: float) -> str:
    """Format elapsed seconds into a compact, human-readable string."""
    if seconds < 0:
        seconds = 0.0
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m{secs:04.1f}s"


def build_arg_parser() -> argparse.ArgumentParser:
    render_cfg = get_render_config()
    ap = argparse.ArgumentParser(description="Render a GitHub Actions workflow run as a Mermaid gantt chart")
    ap.add_argument(
        "url",
        nargs="?",
        help="Workflow run URL, e.g. https://github.com/OWNER/REPO/actions/runs/RUN_ID[/attempts/N]",
    )
    ap.add_argument("-t", "--token", default=None, help="GitHub token (default: $GITHUB_TOKEN)")
    ap.add_argument("--out", default=None, help="Write Markdown to this file instead of stdout")
    ap.add_argument("--from-dir", default=None, help="Read run.json, jobs.json and logs/<job_id>.txt from a directory")
    ap.add_argument("--repo-dir", default=None, help="Local checkout used to read composite action.yml files")
    ap.add_argument(
        "--no-waiting-runner",
        dest="show_waiting_runner",
        action="store_false",
        default=render_cfg["show_waiting_runner"],
        help='Hide the "Waiting for a runner" entry',
    )
    ap.add_argument(
        "--no-composite-actions",
        dest="show_composite_actions",
        action="store_false",
        default=render_cfg["show_composite_actions"],
        help="Do not expand repo-local composite actions",
    )
    ap.add_argument("--max-chars", type=int, default=render_cfg["max_chars"], help="Max characters per diagram")
    ap.add_argument("--verbose", action="store_true", help="Log per-block matching details")
    ap.add_argument("--log-file", default=None, help="Append log lines to this file")
    return ap


def render_timeline(
    run: WorkflowRun,
    jobs: List[Job],
    *,
    fetch_log: Callable[[int], Optional[str]],
    resolve_step_count: Optional[StepCountResolver],
    options: GanttOptions,
    max_chars: int,
    max_name_length: int,
    tolerance_s: float,
    log: Optional[Callable[[str], None]] = None,
) -> List[str]:
    """Expand composites (when enabled) and render the gantt documents."""
    lookup: CompositeLookup = {}
    if options.show_composite_actions:
        lookup = expand_composite_steps(
            jobs,
            fetch_log=fetch_log,
            resolve_step_count=resolve_step_count,
            tolerance_s=tolerance_s,
            log=log,
        )
    gantt_jobs = create_gantt_jobs(run, jobs, lookup=lookup, options=options, max_name_length=max_name_length)
    return create_gantt_diagrams(diagram_title(run, jobs), gantt_jobs, max_chars)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    ap = build_arg_parser()
    args = ap.parse_args(argv)
    render_cfg = get_render_config()
    matching_cfg = get_matching_config()
    github_cfg = get_github_config()

    log_path = Path(args.log_file).expanduser() if args.log_file else None

    def _append_log(line: str) -> None:
        if log_path is None:
            return
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def _log(msg: str) -> None:
        # stdout may carry the diagram itself, so progress goes to stderr.
        print(msg, file=sys.stderr)
        _append_log(msg)

    def _detail(msg: str) -> None:
        if args.verbose or msg.startswith(("[WARN]", "[ERROR]")):
            _log(msg)
        else:
            _append_log(msg)

    if not args.url and not args.from_dir:
        ap.error("either a workflow run URL or --from-dir is required")

    _append_log(f"[RUN] start {time.strftime('%Y-%m-%d %H:%M:%S')} config={get_config_path()}")
    started = time.perf_counter()
    options = GanttOptions(
        show_waiting_runner=args.show_waiting_runner,
        show_composite_actions=args.show_composite_actions,
    )
    client: Optional[GitHubClient] = None
    try:
        resolve: Optional[StepCountResolver] = None
        if args.repo_dir:
            resolve = ActionDefinitions.from_directory(Path(args.repo_dir), log=_detail)

        if args.from_dir:
            source = DirectorySource(Path(args.from_dir))
            _log(f"[SOURCE] directory {source.root}")
        else:
            try:
                run_url = parse_workflow_run_url(args.url)
            except ValueError as e:
                _log(f"[ERROR] {e}")
                return 2
            token = args.token or os.environ.get(github_cfg["token_env"], "")
            client = GitHubClient(
                api_base_url(run_url.origin, github_cfg["api_url"]),
                token or None,
                timeout_s=github_cfg["timeout_s"],
                per_page=github_cfg["per_page"],
                log=_detail,
            )
            source = GitHubSource(client, run_url, log=_detail)
            _log(f"[SOURCE] {run_url.owner}/{run_url.repo} run={run_url.run_id} attempt={source.attempt}")

        _log("[FETCH] workflow run")
        run = source.fetch_run()
        _log("[FETCH] workflow jobs")
        jobs = source.fetch_jobs()
        _log(f"[FETCH] {len(jobs)} job(s)")

        if resolve is None and client is not None and isinstance(source, GitHubSource):
            u = source.run_url
            resolve = ActionDefinitions.from_github(client, u.owner, u.repo, run.head_sha, log=_detail)

        documents = render_timeline(
            run,
            jobs,
            fetch_log=source.fetch_job_log,
            resolve_step_count=resolve,
            options=options,
            max_chars=args.max_chars,
            max_name_length=render_cfg["max_name_length"],
            tolerance_s=matching_cfg["tolerance_seconds"],
            log=_detail,
        )
    except httpx.HTTPStatusError as e:
        _log(f"[ERROR] GitHub API returned {e.response.status_code} for {e.request.url}")
        return 1
    except (httpx.HTTPError, RuntimeError) as e:
        _log(f"[ERROR] {e}")
        return 1
    finally:
        if client is not None:
            client.close()

    if args.out:
        out_path = Path(args.out).expanduser()
        summary = write_timeline_md(out_path, documents)
        _log(f"[OK] wrote {out_path} ({summary})")
    else:
        print("\n".join(documents))
    _log(f"[TIME] total={_format_duration(time.perf_counter() - started)}")
    return 0
