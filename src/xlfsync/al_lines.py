"""Source lines and the per-line indentation classifier.

The classifier looks at one line at a time.  A line may both close and
open a block (``end else begin``); callers apply the decrease first
because it closes the level the line itself belongs to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_INDENTATION_DECREASE = re.compile(r"^\s*}|}\s*/{2}.*$|^\s*\bend\b", re.IGNORECASE)
_INDENTATION_INCREASE = re.compile(
    r"^\s*{|{\s*/{2}.*$|\bbegin\b\s*$|\bbegin\b\s*/{2}.*$|\bcase\b\s.*\s\bof\b",
    re.IGNORECASE,
)


class LevelChange(Enum):
    DECREASE = -1
    NONE = 0
    INCREASE = 1


@dataclass
class CodeLine:
    code: str
    line_no: int
    indentation: int = 0


def split_lines(text: str) -> list[CodeLine]:
    """Split source text into CodeLines (any of \\r\\n, \\n, \\r)."""
    return [CodeLine(code, i) for i, code in enumerate(text.splitlines())]


def is_indentation_decrease(code: str) -> bool:
    return _INDENTATION_DECREASE.search(code) is not None


def is_indentation_increase(code: str) -> bool:
    return _INDENTATION_INCREASE.search(code) is not None


def classify(code: str) -> list[LevelChange]:
    """Return the level changes of *code* in the order they apply.

    ``end else begin`` gives ``[DECREASE, INCREASE]``; a neutral line
    gives an empty list.
    """
    changes: list[LevelChange] = []
    if is_indentation_decrease(code):
        changes.append(LevelChange.DECREASE)
    if is_indentation_increase(code):
        changes.append(LevelChange.INCREASE)
    return changes


def resolve_levels(lines: list[CodeLine], start_level: int = 0) -> int:
    """Assign an indentation level to every line; return the final level.

    Each line records its level after its own changes are applied.
    """
    level = start_level
    for line in lines:
        for change in classify(line.code):
            level += change.value
        line.indentation = level
    return level
