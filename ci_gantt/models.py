"""Immutable records for workflow runs, jobs, steps and timeline entries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

ISO_TS_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?$"
)


def parse_iso_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z`` or a numeric offset and fractions of any length
    (runner logs carry 7 digits, more than ``datetime`` can hold).
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    m = ISO_TS_RE.match(value.strip())
    if not m:
        return None
    base, fraction, offset = m.groups()
    text = base
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    if not offset or offset == "Z":
        text += "+00:00"
    elif ":" not in offset:
        text += offset[:3] + ":" + offset[3:]
    else:
        text += offset
    try:
        return datetime.fromisoformat(text).astimezone(timezone.utc)
    except ValueError:
        return None


def _opt_int(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _opt_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class LogBlock:
    """A named span delimited by group markers in a job log."""
    name: str
    started_at: datetime
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Step:
    """One step of a job as reported by the jobs API."""
    number: int
    name: str
    status: str = "completed"
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Step":
        number = _opt_int(raw.get("number"))
        return cls(
            number=number if number is not None else 0,
            name=str(raw.get("name") or ""),
            status=str(raw.get("status") or ""),
            conclusion=_opt_str(raw.get("conclusion")),
            started_at=parse_iso_timestamp(raw.get("started_at")),
            completed_at=parse_iso_timestamp(raw.get("completed_at")),
        )


@dataclass(frozen=True)
class Job:
    """A workflow job with its ordered steps."""
    id: int
    name: str
    status: str = "completed"
    conclusion: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    steps: Tuple[Step, ...] = field(default_factory=tuple)
    workflow_name: Optional[str] = None

    @property
    def has_created_at(self) -> bool:
        # GHES < 3.9 does not report job creation time at all.
        return self.created_at is not None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Job":
        raw_steps = raw.get("steps") or []
        if not isinstance(raw_steps, list):
            raise RuntimeError(f'Job {raw.get("id")} has a non-list "steps" field')
        job_id = _opt_int(raw.get("id"))
        return cls(
            id=job_id if job_id is not None else 0,
            name=str(raw.get("name") or ""),
            status=str(raw.get("status") or ""),
            conclusion=_opt_str(raw.get("conclusion")),
            created_at=parse_iso_timestamp(raw.get("created_at")),
            started_at=parse_iso_timestamp(raw.get("started_at")),
            completed_at=parse_iso_timestamp(raw.get("completed_at")),
            steps=tuple(Step.from_api(s) for s in raw_steps if isinstance(s, dict)),
            workflow_name=_opt_str(raw.get("workflow_name")),
        )


@dataclass(frozen=True)
class WorkflowRun:
    """Run-level metadata needed to anchor the timeline."""
    id: int
    name: str
    created_at: Optional[datetime] = None
    run_started_at: Optional[datetime] = None
    run_attempt: Optional[int] = None
    head_sha: Optional[str] = None

    @property
    def started_at(self) -> Optional[datetime]:
        # A retried run keeps created_at but gets a new run_started_at.
        return self.run_started_at or self.created_at

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "WorkflowRun":
        run_id = _opt_int(raw.get("id"))
        return cls(
            id=run_id if run_id is not None else 0,
            name=str(raw.get("name") or ""),
            created_at=parse_iso_timestamp(raw.get("created_at")),
            run_started_at=parse_iso_timestamp(raw.get("run_started_at")),
            run_attempt=_opt_int(raw.get("run_attempt")),
            head_sha=_opt_str(raw.get("head_sha")),
        )


@dataclass(frozen=True)
class InnerStep:
    """One recovered step inside a composite action."""
    name: str
    started_at: datetime
    completed_at: datetime


@dataclass(frozen=True)
class CompositeActionStep:
    """A composite step and its time-corrected inner steps."""
    parent_step_name: str
    parent_step_number: int
    inner_steps: Tuple[InnerStep, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GanttStep:
    """A single Mermaid gantt task line."""
    name: str
    id: str
    status: str
    position: str
    sec: int


@dataclass(frozen=True)
class GanttJob:
    """A Mermaid gantt section for one job."""
    section: str
    steps: Tuple[GanttStep, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GanttOptions:
    """Rendering switches for the waiting-runner entry and composite expansion."""
    show_waiting_runner: bool = True
    show_composite_actions: bool = True
