"""Build per-job gantt timelines from workflow jobs and composite expansions."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .mermaid import (
    DEFAULT_MAX_CHARS,
    DEFAULT_MAX_NAME_LENGTH,
    create_gantt_diagrams,
    escape_name,
    format_elapsed_time,
    format_name,
)
from .models import CompositeActionStep, GanttJob, GanttOptions, GanttStep, Job, WorkflowRun

WAITING_RUNNER_NAME = "Waiting for a runner"
COMPLETED = "completed"

STEP_STATUS_MAP: Dict[str, str] = {
    "success": "",
    "failure": "crit",
    "cancelled": "done",
    "skipped": "done",
    "timed_out": "done",
    "neutral": "active",
    "action_required": "active",
}


def convert_step_to_status(conclusion: Optional[str]) -> str:
    """Map a step conclusion to a gantt task status tag."""
    if conclusion is None:
        return "active"
    return STEP_STATUS_MAP.get(conclusion, "active")


def diff_sec(start: Optional[datetime], end: Optional[datetime]) -> float:
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds()


def duration_sec(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Whole seconds between two instants, floored and never negative."""
    return max(0, math.floor(diff_sec(start, end)))


class _Chain:
    """Hands out sequential ids; only the first entry is absolutely positioned."""

    def __init__(self, job_index: int, anchor: str, max_name_length: int) -> None:
        self.job_index = job_index
        self.anchor = anchor
        self.max_name_length = max_name_length
        self.steps: List[GanttStep] = []

    def add(self, name: str, status: str, sec: int) -> None:
        seq = len(self.steps)
        position = self.anchor if seq == 0 else f"after job{self.job_index}-{seq - 1}"
        self.steps.append(
            GanttStep(
                name=format_name(name, sec, self.max_name_length),
                id=f"job{self.job_index}-{seq}",
                status=status,
                position=position,
                sec=sec,
            )
        )


def create_gantt_job(
    run: WorkflowRun,
    job: Job,
    job_index: int,
    *,
    lookup: Optional[Dict[Tuple[int, int], CompositeActionStep]] = None,
    options: Optional[GanttOptions] = None,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> GanttJob:
    options = options or GanttOptions()
    lookup = lookup or {}
    show_waiting = options.show_waiting_runner and job.has_created_at

    anchor_at = job.created_at if show_waiting else job.started_at
    anchor = format_elapsed_time(diff_sec(run.started_at, anchor_at))
    chain = _Chain(job_index, anchor, max_name_length)

    if show_waiting:
        chain.add(WAITING_RUNNER_NAME, "active", duration_sec(job.created_at, job.started_at))

    for step in job.steps:
        if step.status != COMPLETED:
            continue
        composite = lookup.get((job.id, step.number)) if options.show_composite_actions else None
        if composite is not None and composite.inner_steps:
            # Inner steps only carry timing; the composite's failure is not attributable.
            for inner in composite.inner_steps:
                chain.add(inner.name, "", duration_sec(inner.started_at, inner.completed_at))
            continue
        chain.add(
            step.name,
            convert_step_to_status(step.conclusion),
            duration_sec(step.started_at, step.completed_at),
        )

    return GanttJob(section=escape_name(job.name), steps=tuple(chain.steps))


def create_gantt_jobs(
    run: WorkflowRun,
    jobs: List[Job],
    *,
    lookup: Optional[Dict[Tuple[int, int], CompositeActionStep]] = None,
    options: Optional[GanttOptions] = None,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> List[GanttJob]:
    """One gantt section per job that was not skipped."""
    visible = [job for job in jobs if job.conclusion != "skipped"]
    return [
        create_gantt_job(
            run,
            job,
            job_index,
            lookup=lookup,
            options=options,
            max_name_length=max_name_length,
        )
        for job_index, job in enumerate(visible)
    ]


def diagram_title(run: WorkflowRun, jobs: List[Job]) -> str:
    if run.name:
        return run.name
    for job in jobs:
        if job.workflow_name:
            return job.workflow_name
    return ""


def create_mermaid(
    run: WorkflowRun,
    jobs: List[Job],
    *,
    lookup: Optional[Dict[Tuple[int, int], CompositeActionStep]] = None,
    options: Optional[GanttOptions] = None,
    max_chars: int = DEFAULT_MAX_CHARS,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> str:
    """Render the whole run as one or more newline-joined gantt documents."""
    gantt_jobs = create_gantt_jobs(
        run,
        jobs,
        lookup=lookup,
        options=options,
        max_name_length=max_name_length,
    )
    return "\n".join(create_gantt_diagrams(diagram_title(run, jobs), gantt_jobs, max_chars))
