"""Match composite header log blocks to API steps by time and name.

Log timestamps carry millisecond precision while the jobs API truncates step
times to whole seconds, so a header block is paired with the steps that
started within a small tolerance of it. Candidates are ranked by a single
key, in order of preference:

1. the step name itself follows the ``Run ./.github/actions/...`` convention
   (the step was not given a custom ``name:``);
2. smaller time delta;
3. lower step number (declaration order).

When the best candidate is custom-named, the block's reference is compared
with the candidate names token by token; anything still unresolved is paired
positionally with the same-second candidates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .composite import (
    composite_reference,
    is_pre_or_post_step,
    is_repo_local_composite,
    reference_token_name,
)
from .models import LogBlock, Step

DEFAULT_TOLERANCE_S = 2.0
TOKEN_PREFIX_LEN = 3

_TOKEN_SPLIT_RE = re.compile(r"[\s\-_]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Candidate:
    """An in-tolerance step for one header block."""
    step: Step
    delta_s: float
    composite_named: bool


def rank_key(candidate: Candidate) -> Tuple[int, float, int]:
    """Total order over candidates; smaller sorts first."""
    return (
        0 if candidate.composite_named else 1,
        candidate.delta_s,
        candidate.step.number,
    )


def rank_candidates(
    block: LogBlock,
    steps: Iterable[Step],
    *,
    consumed: Optional[Set[int]] = None,
    tolerance_s: float = DEFAULT_TOLERANCE_S,
) -> List[Candidate]:
    """Return the unconsumed steps within tolerance of a block, best first."""
    consumed = consumed or set()
    out: List[Candidate] = []
    for step in steps:
        if step.number in consumed or step.started_at is None:
            continue
        if is_pre_or_post_step(step.name):
            continue
        delta = abs((block.started_at - step.started_at).total_seconds())
        if delta > tolerance_s:
            continue
        out.append(Candidate(step=step, delta_s=delta, composite_named=is_repo_local_composite(step.name)))
    out.sort(key=rank_key)
    return out


def name_tokens(text: str) -> List[str]:
    """Lowercase tokens split on whitespace, hyphens and underscores."""
    tokens: List[str] = []
    for raw in _TOKEN_SPLIT_RE.split(text.lower()):
        token = _NON_ALNUM_RE.sub("", raw)
        if token:
            tokens.append(token)
    return tokens


def _tokens_share_prefix(a: str, b: str) -> bool:
    n = min(TOKEN_PREFIX_LEN, len(a), len(b))
    return a[:n] == b[:n]


def names_correspond(reference: str, step_name: str) -> bool:
    """True when every token of the reference's last segment abbreviates a step token.

    ``./.github/actions/setup-vars`` corresponds to ``Setup variables``.
    """
    ref_tokens = name_tokens(reference_token_name(reference))
    step_tokens = name_tokens(step_name)
    if not ref_tokens or not step_tokens:
        return False
    return all(any(_tokens_share_prefix(r, s) for s in step_tokens) for r in ref_tokens)


def _same_second(block: LogBlock, candidate: Candidate) -> bool:
    step_start = candidate.step.started_at
    if step_start is None:
        return False
    return step_start.replace(microsecond=0) == block.started_at.replace(microsecond=0)


def match_composite_blocks(
    blocks: List[LogBlock],
    steps: Iterable[Step],
    *,
    tolerance_s: float = DEFAULT_TOLERANCE_S,
    log: Optional[Callable[[str], None]] = None,
) -> List[Tuple[Step, LogBlock]]:
    """Assign each header block to at most one step; each step is used once.

    Returned pairs are ordered by step number.
    """
    step_list = list(steps)
    consumed: Set[int] = set()
    matched: List[Tuple[Step, LogBlock]] = []
    deferred: List[LogBlock] = []

    def _accept(step: Step, block: LogBlock, how: str) -> None:
        consumed.add(step.number)
        matched.append((step, block))
        if log is not None:
            log(f"[MATCH] {how} block={block.name!r} step={step.number}:{step.name!r}")

    for block in sorted(blocks, key=lambda b: b.started_at):
        candidates = rank_candidates(block, step_list, consumed=consumed, tolerance_s=tolerance_s)
        if not candidates:
            if log is not None:
                log(f"[MATCH] unmatched block={block.name!r} (no step within {tolerance_s:g}s)")
            continue
        top = candidates[0]
        if top.composite_named:
            _accept(top.step, block, "name")
            continue
        reference = composite_reference(block.name) or block.name
        by_name = next((c for c in candidates if names_correspond(reference, c.step.name)), None)
        if by_name is not None:
            _accept(by_name.step, block, "token")
            continue
        deferred.append(block)

    for block in deferred:
        candidates = rank_candidates(block, step_list, consumed=consumed, tolerance_s=tolerance_s)
        if not candidates:
            if log is not None:
                log(f"[MATCH] unmatched block={block.name!r} (candidates already taken)")
            continue
        same_second = sorted(
            (c for c in candidates if _same_second(block, c)),
            key=lambda c: c.step.number,
        )
        chosen = same_second[0] if same_second else candidates[0]
        _accept(chosen.step, block, "position")

    matched.sort(key=lambda pair: pair[0].number)
    return matched
