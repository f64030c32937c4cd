"""Derive the inner steps of a matched composite action from log blocks."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from .composite import (
    is_action_invocation,
    is_primary_block,
    is_repo_local_composite,
    strip_run_prefix,
)
from .models import InnerStep, LogBlock


def _in_window(block: LogBlock, start: datetime, upper_bound: Optional[datetime]) -> bool:
    if block.started_at <= start:
        return False
    return upper_bound is None or block.started_at < upper_bound


def _take_counted(candidates: List[LogBlock], expected_step_count: int) -> List[LogBlock]:
    # Auxiliary groups (no "Run" marker) ride along with the primaries around them.
    taken: List[LogBlock] = []
    primaries = 0
    for block in candidates:
        primary = is_primary_block(block.name)
        if primary and primaries >= expected_step_count:
            break
        taken.append(block)
        if primary:
            primaries += 1
    return taken


def extract_inner_steps(
    header: LogBlock,
    blocks: List[LogBlock],
    *,
    upper_bound: Optional[datetime],
    parent_completed_at: Optional[datetime] = None,
    expected_step_count: Optional[int] = None,
    log: Optional[Callable[[str], None]] = None,
) -> List[InnerStep]:
    """Return the ordered, time-corrected inner steps of one composite.

    ``upper_bound`` is the start of the next step (``None`` for end of job).
    With ``expected_step_count`` the walk stops after that many primary
    invocation blocks; without it every qualifying block in the window is
    taken. A block's closing marker is not its real completion, so each inner
    step ends where the next begins and the last ends at the bound.
    """
    if expected_step_count is not None and expected_step_count <= 0:
        return []
    if upper_bound is not None and header.started_at >= upper_bound:
        if log is not None:
            log(f"[EXPAND] header {header.name!r} lies outside its step window")
        return []

    candidates = sorted(
        (
            b
            for b in blocks
            if _in_window(b, header.started_at, upper_bound)
            and not is_repo_local_composite(b.name)
            and is_action_invocation(b.name)
        ),
        key=lambda b: b.started_at,
    )
    if expected_step_count is not None:
        candidates = _take_counted(candidates, expected_step_count)
    if not candidates:
        return []

    last_end = upper_bound or parent_completed_at
    inner: List[InnerStep] = []
    for i, block in enumerate(candidates):
        if i + 1 < len(candidates):
            completed_at = candidates[i + 1].started_at
        else:
            completed_at = last_end or block.started_at
            if completed_at < block.started_at:
                # The bound is second-truncated; never render a negative span.
                completed_at = block.started_at
        inner.append(
            InnerStep(
                name=strip_run_prefix(block.name),
                started_at=block.started_at,
                completed_at=completed_at,
            )
        )
    return inner
