"""Classify step and block names and drop nested composite headers."""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional

from .models import LogBlock

LOCAL_ACTIONS_DIR = ".github/actions/"
RUN_PREFIX = "Run "

# "Run ./.github/actions/foo"; the API sometimes reports "Run /./.github/actions/foo".
REPO_LOCAL_COMPOSITE_RE = re.compile(r"^Run /?\./\.github/actions/(\S.*)$")
PRE_POST_RE = re.compile(r"^(Pre Run |Post Run |Pre |Post )")
INVOCATION_RE = re.compile(r"^[A-Za-z0-9_][^\s/]*/\S+")


def is_repo_local_composite(name: str) -> bool:
    """True when a step or block name invokes a repo-local composite action."""
    return bool(REPO_LOCAL_COMPOSITE_RE.match(name.strip()))


def composite_reference(name: str) -> Optional[str]:
    """Return the normalized ``./.github/actions/...`` reference of a name."""
    m = REPO_LOCAL_COMPOSITE_RE.match(name.strip())
    if not m:
        return None
    return "./" + LOCAL_ACTIONS_DIR + m.group(1).strip().rstrip("/")


def reference_token_name(reference: str) -> str:
    """Trailing path segment of a composite reference."""
    parts = [p for p in reference.strip().split("/") if p]
    return parts[-1] if parts else ""


def strip_run_prefix(name: str) -> str:
    if name.startswith(RUN_PREFIX):
        return name[len(RUN_PREFIX):]
    return name


def is_action_invocation(name: str) -> bool:
    """True for ``owner/action`` style names (shell commands do not qualify)."""
    return bool(INVOCATION_RE.match(strip_run_prefix(name.strip())))


def is_primary_block(name: str) -> bool:
    """A primary block is an action invocation carrying the ``Run`` marker."""
    return name.startswith(RUN_PREFIX) and is_action_invocation(name)


def is_pre_or_post_step(name: str) -> bool:
    return bool(PRE_POST_RE.match(name))


def _block_end(block: LogBlock) -> datetime:
    return block.completed_at or block.started_at


def filter_nested_composite_blocks(blocks: List[LogBlock]) -> List[LogBlock]:
    """Keep only top-level composite header blocks.

    Group markers nest properly, so a header that starts before the end of the
    last accepted top-level header lies inside it. One pass over the headers
    sorted by start time handles every nesting depth.
    """
    kept: List[LogBlock] = []
    bound: Optional[datetime] = None
    for block in sorted(blocks, key=lambda b: b.started_at):
        if bound is not None and block.started_at < bound:
            continue
        kept.append(block)
        bound = _block_end(block)
    return kept
