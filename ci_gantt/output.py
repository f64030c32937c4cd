"""Write rendered timelines to disk."""

from __future__ import annotations

from pathlib import Path
from typing import List


def _format_bytes(num: float) -> str:
    if num < 0:
        num = 0
    for unit in ("B", "KB", "MB"):
        if num < 1024:
            return f"{num:.0f} {unit}"
        num /= 1024.0
    return f"{num:.1f} GB"


def write_timeline_md(out_path: Path, documents: List[str]) -> str:
    """Write gantt documents joined by newlines; return a short summary."""
    text = "\n".join(documents)
    if not text.endswith("\n"):
        text += "\n"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    size = len(text.encode("utf-8", errors="ignore"))
    return f"{len(documents)} diagram(s), {_format_bytes(size)}"
