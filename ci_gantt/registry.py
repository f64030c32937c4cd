"""Expand composite steps per job and index the results by (job, step)."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .composite import composite_reference, filter_nested_composite_blocks, is_repo_local_composite
from .extractor import extract_inner_steps
from .log_parser import parse_log_blocks
from .matcher import DEFAULT_TOLERANCE_S, match_composite_blocks
from .models import CompositeActionStep, Job, Step

CompositeLookup = Dict[Tuple[int, int], CompositeActionStep]
StepCountResolver = Callable[[str], Optional[int]]
LogFetcher = Callable[[int], Optional[str]]


def build_composite_step_lookup(
    per_job: Mapping[int, Iterable[CompositeActionStep]],
) -> CompositeLookup:
    """Index composite expansions by (job id, parent step number)."""
    lookup: CompositeLookup = {}
    for job_id, composites in per_job.items():
        for composite in composites:
            if not composite.inner_steps:
                continue
            lookup[(job_id, composite.parent_step_number)] = composite
    return lookup


def _next_step_start(job: Job, step: Step) -> Optional[datetime]:
    """Start of the first later step, else the job's completion time."""
    for other in job.steps:
        if other.number <= step.number or other.started_at is None:
            continue
        if step.started_at is not None and other.started_at < step.started_at:
            continue
        return other.started_at
    return job.completed_at


def expand_job(
    job: Job,
    log_text: str,
    *,
    resolve_step_count: Optional[StepCountResolver] = None,
    tolerance_s: float = DEFAULT_TOLERANCE_S,
    log: Optional[Callable[[str], None]] = None,
) -> List[CompositeActionStep]:
    """Recover the inner steps of every composite step of one job.

    Without ``resolve_step_count`` every invocation inside a step's window is
    taken. With it, a reference whose count is unknown is not expanded.
    """
    blocks = parse_log_blocks(log_text, log=log)
    if not blocks:
        return []
    headers = [b for b in blocks if is_repo_local_composite(b.name)]
    if not headers:
        return []
    top_level = filter_nested_composite_blocks(headers)
    if log is not None and len(top_level) < len(headers):
        log(f"[EXPAND] job={job.id} ignored {len(headers) - len(top_level)} nested composite header(s)")

    out: List[CompositeActionStep] = []
    for step, header in match_composite_blocks(top_level, job.steps, tolerance_s=tolerance_s, log=log):
        expected: Optional[int] = None
        if resolve_step_count is not None:
            reference = composite_reference(header.name) or ""
            expected = resolve_step_count(reference)
            if expected is None:
                if log is not None:
                    log(f"[EXPAND] job={job.id} step={step.number} skipped: unknown step count for {reference}")
                continue
        inner = extract_inner_steps(
            header,
            blocks,
            upper_bound=_next_step_start(job, step),
            parent_completed_at=step.completed_at,
            expected_step_count=expected,
            log=log,
        )
        if not inner:
            if log is not None:
                log(f"[EXPAND] job={job.id} step={step.number} has no inner steps in its window")
            continue
        out.append(
            CompositeActionStep(
                parent_step_name=step.name,
                parent_step_number=step.number,
                inner_steps=tuple(inner),
            )
        )
        if log is not None:
            log(f"[EXPAND] job={job.id} step={step.number} -> {len(inner)} inner step(s)")
    return out


def expand_composite_steps(
    jobs: Iterable[Job],
    *,
    fetch_log: LogFetcher,
    resolve_step_count: Optional[StepCountResolver] = None,
    tolerance_s: float = DEFAULT_TOLERANCE_S,
    log: Optional[Callable[[str], None]] = None,
) -> CompositeLookup:
    """Run the expansion pass over all jobs and build the lookup.

    A job whose log cannot be fetched keeps its steps unexpanded.
    """
    per_job: Dict[int, List[CompositeActionStep]] = {}
    for job in jobs:
        if job.conclusion == "skipped" or not job.steps:
            continue
        try:
            log_text = fetch_log(job.id)
        except Exception as e:
            if log is not None:
                log(f"[WARN] job={job.id} log unavailable: {e}")
            continue
        if not log_text:
            if log is not None:
                log(f"[WARN] job={job.id} log unavailable; composite steps not expanded")
            continue
        composites = expand_job(
            job,
            log_text,
            resolve_step_count=resolve_step_count,
            tolerance_s=tolerance_s,
            log=log,
        )
        if composites:
            per_job[job.id] = composites
    return build_composite_step_lookup(per_job)
