"""Goal mini-language used inside ``goals.<title>`` extraction values.

A value is a loose, pipe-delimited run of tagged tokens::

    desired_outcome: recover the relic | current_status: still searching |
    progress: 40 | new_steps: Step 1: Search Step 2: Ask | complete_steps: 1

Every token is optional and may appear in any order. Each one is located
independently and case-insensitively, so a token that is misspelled or
missing simply leaves its slot empty; nothing here raises. Text that belongs
to no token is ignored except for the ``current_status`` fallback: when there
is no ``current_status:`` token but a ``progress:`` token is present, the
value with the ``progress:`` and ``desired_outcome:`` tokens removed is used
as the status.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from chronicle.utils.wire import clamp_percent


class GoalToken(str, Enum):
    DESIRED_OUTCOME = "desired_outcome"
    CURRENT_STATUS = "current_status"
    PROGRESS = "progress"
    COMPLETE_STEPS = "complete_steps"
    NEW_STEPS = "new_steps"


_TOKEN_NAMES = "|".join(token.value for token in GoalToken)

_DESIRED_OUTCOME_RE = re.compile(r"desired_outcome\s*:\s*([^|]*)", re.IGNORECASE)
_CURRENT_STATUS_RE = re.compile(r"current_status\s*:\s*([^|]*)", re.IGNORECASE)
_PROGRESS_RE = re.compile(r"(?<![a-z_])progress\s*:\s*(\d+)", re.IGNORECASE)
_COMPLETE_STEPS_RE = re.compile(r"complete_steps\s*:\s*([\d\s,]*)", re.IGNORECASE)
_NEW_STEPS_RE = re.compile(
    rf"new_steps\s*:\s*(.*?)(?=\|\s*(?:{_TOKEN_NAMES})\s*:|$)",
    re.IGNORECASE | re.DOTALL,
)
_STEP_MARKER_RE = re.compile(r"step\s*\d+\s*:", re.IGNORECASE)
_MAX_STEP_INDEX_DIGITS = 9

_PROGRESS_TOKEN_RE = re.compile(r"(?<![a-z_])progress\s*:\s*\d+", re.IGNORECASE)
_DESIRED_OUTCOME_TOKEN_RE = re.compile(r"desired_outcome\s*:\s*[^|]*", re.IGNORECASE)


@dataclass(slots=True)
class GoalDirective:
    desired_outcome: str | None = None
    current_status: str | None = None
    progress: int | None = None
    complete_steps: list[int] = field(default_factory=list)
    new_steps: list[str] | None = None

    @property
    def tokens(self) -> set[GoalToken]:
        present: set[GoalToken] = set()
        if self.desired_outcome is not None:
            present.add(GoalToken.DESIRED_OUTCOME)
        if self.current_status is not None:
            present.add(GoalToken.CURRENT_STATUS)
        if self.progress is not None:
            present.add(GoalToken.PROGRESS)
        if self.complete_steps:
            present.add(GoalToken.COMPLETE_STEPS)
        if self.new_steps is not None:
            present.add(GoalToken.NEW_STEPS)
        return present


def _clean_segment(text: str) -> str:
    return text.strip().rstrip("|").strip()


def _collapse_pipes(text: str) -> str:
    return " | ".join(part.strip() for part in text.split("|") if part.strip())


def split_step_list(body: str) -> list[str]:
    markers = list(_STEP_MARKER_RE.finditer(body))
    if not markers:
        single = _clean_segment(body)
        return [single] if single else []
    out: list[str] = []
    for idx, marker in enumerate(markers):
        end = markers[idx + 1].start() if idx + 1 < len(markers) else len(body)
        segment = _clean_segment(body[marker.end() : end])
        if segment:
            out.append(segment)
    return out


def parse_percent(digits: str) -> int:
    significant = digits.lstrip("0")
    # anything past three digits is already over 100
    if len(significant) > 3:
        return 100
    return clamp_percent(int(significant or "0"))


def parse_step_indices(raw: str) -> list[int]:
    out: list[int] = []
    for part in raw.split(","):
        text = part.strip()
        if text.isdecimal() and len(text.lstrip("0")) <= _MAX_STEP_INDEX_DIGITS:
            out.append(int(text))
    return out


def parse_goal_value(raw: str | None) -> GoalDirective:
    text = str(raw or "")
    directive = GoalDirective()

    match = _DESIRED_OUTCOME_RE.search(text)
    if match:
        directive.desired_outcome = match.group(1).strip()

    match = _CURRENT_STATUS_RE.search(text)
    if match:
        directive.current_status = match.group(1).strip()

    match = _PROGRESS_RE.search(text)
    if match:
        directive.progress = parse_percent(match.group(1))

    match = _COMPLETE_STEPS_RE.search(text)
    if match:
        directive.complete_steps = parse_step_indices(match.group(1))

    match = _NEW_STEPS_RE.search(text)
    if match:
        # an empty plan counts as absent
        directive.new_steps = split_step_list(match.group(1)) or None

    if directive.current_status is None and directive.progress is not None:
        remainder = _PROGRESS_TOKEN_RE.sub("", text)
        remainder = _DESIRED_OUTCOME_TOKEN_RE.sub("", remainder)
        directive.current_status = _collapse_pipes(remainder) or None

    return directive
