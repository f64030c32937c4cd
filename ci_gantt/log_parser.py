"""Recover timestamped ##[group] blocks from raw job log text."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .models import LogBlock, parse_iso_timestamp

TIMESTAMP_RE = re.compile(r"^\ufeff?(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z)\s?")
GROUP_START_RE = re.compile(r"^##\[group\](.*)$")
GROUP_END_RE = re.compile(r"^##\[endgroup\]\s*$")


def parse_timestamp(line: str) -> Optional[datetime]:
    """Return the leading UTC timestamp of a log line, if any."""
    m = TIMESTAMP_RE.match(line)
    if not m:
        return None
    return parse_iso_timestamp(m.group(1))


def _split_line(line: str) -> Tuple[Optional[datetime], str]:
    m = TIMESTAMP_RE.match(line)
    if not m:
        return None, line
    return parse_iso_timestamp(m.group(1)), line[m.end():]


def parse_log_blocks(
    log_text: str,
    *,
    log: Optional[Callable[[str], None]] = None,
) -> List[LogBlock]:
    """Parse all closed group blocks, in the order they close.

    Open markers are kept on a stack so nested groups each get their own
    start/end pair. Blocks still open at the end of the text are dropped.
    """
    blocks: List[LogBlock] = []
    stack: List[Tuple[str, datetime]] = []
    if not log_text:
        return blocks

    for raw_line in log_text.splitlines():
        ts, rest = _split_line(raw_line)
        if ts is None:
            continue
        m = GROUP_START_RE.match(rest)
        if m:
            stack.append((m.group(1).strip(), ts))
            continue
        if GROUP_END_RE.match(rest):
            if not stack:
                continue
            name, started_at = stack.pop()
            blocks.append(LogBlock(name=name, started_at=started_at, completed_at=ts))

    if stack and log is not None:
        log(f"[LOG] dropped {len(stack)} unclosed group block(s)")
    return blocks
