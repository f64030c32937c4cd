"""Format Mermaid gantt sections and split them into size-bounded documents."""

from __future__ import annotations

from typing import List

from .models import GanttJob, GanttStep

# mermaid.js refuses diagrams above this many characters (maxTextSize).
DEFAULT_MAX_CHARS = 50_000
DEFAULT_MAX_NAME_LENGTH = 80
ELLIPSIS = "..."

MERMAID_FOOTER = "\n```"


def mermaid_header(title: str) -> str:
    """Fenced gantt preamble with the title and time axis directives."""
    return (
        "\n```mermaid\n"
        "gantt\n"
        f"title {title}\n"
        "dateFormat  HH:mm:ss\n"
        "axisFormat  %H:%M:%S\n"
    )


def escape_name(name: str) -> str:
    """Drop characters that end a task name in gantt syntax."""
    return name.replace(":", "").replace(";", "").replace("\n", " ")


def truncate_name(name: str, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> str:
    if len(name) <= max_length:
        return name
    return name[:max_length] + ELLIPSIS


def format_elapsed_time(sec: float) -> str:
    """Seconds to a zero-padded ``HH:MM:SS`` offset (70 -> 00:01:10)."""
    total = max(0, int(sec))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_short_elapsed_time(sec: float) -> str:
    """Seconds to a compact duration (70 -> 1m10s)."""
    total = max(0, int(sec))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if total < 60:
        return f"{seconds}s"
    if total < 3600:
        return f"{minutes}m{seconds}s"
    return f"{hours}h{minutes}m{seconds}s"


def format_name(name: str, sec: float, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> str:
    return f"{truncate_name(escape_name(name), max_length)} ({format_short_elapsed_time(sec)})"


def format_step(step: GanttStep) -> str:
    if not step.status:
        return f"{step.name} :{step.id}, {step.position}, {step.sec}s"
    return f"{step.name} :{step.status}, {step.id}, {step.position}, {step.sec}s"


def format_section(job: GanttJob) -> str:
    return "\n".join([f"section {job.section}"] + [format_step(s) for s in job.steps])


def _render_document(title: str, sections: List[str]) -> str:
    return mermaid_header(title) + "\n".join(sections) + MERMAID_FOOTER


def create_gantt_diagrams(
    title: str,
    gantt_jobs: List[GanttJob],
    max_chars: int = DEFAULT_MAX_CHARS,
) -> List[str]:
    """Serialize jobs into as many gantt documents as the size budget needs.

    Sections are never split, so a single oversized job still yields one
    document above the budget.
    """
    frame_len = len(mermaid_header(title)) + len(MERMAID_FOOTER)
    documents: List[str] = []
    current: List[str] = []
    current_len = 0

    for job in gantt_jobs:
        section = format_section(job)
        # One "\n" joins each accumulated section to the next.
        projected = frame_len + current_len + len(current) + len(section)
        if current and projected > max_chars:
            documents.append(_render_document(title, current))
            current = []
            current_len = 0
        current.append(section)
        current_len += len(section)

    documents.append(_render_document(title, current))
    return documents
