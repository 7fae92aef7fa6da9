"""Heuristic detection of structured plans in model output."""

import re

_PLAN_TITLE = re.compile(r"^#\s*Plan\s+for", re.IGNORECASE | re.MULTILINE)
_OBJECTIVE = re.compile(r"^##\s*Objective", re.IGNORECASE | re.MULTILINE)
_FILES_TO_MODIFY = re.compile(r"^##\s*Files\s+to\s+Modify", re.IGNORECASE | re.MULTILINE)
_IMPLEMENTATION_STEPS = re.compile(r"^##\s*Implementation\s+Steps", re.IGNORECASE | re.MULTILINE)
_LIST_ITEM = re.compile(r"^\d+\.\s|^[-*+]\s", re.MULTILINE)

PLAN_KEYWORDS = (
    "plan",
    "objective",
    "analysis",
    "modify",
    "implement",
    "steps",
    "files to modify",
    "expected outcome",
    "codebase",
)


def has_main_structure(content: str) -> bool:
    return bool(
        _PLAN_TITLE.search(content)
        and _OBJECTIVE.search(content)
        and (_FILES_TO_MODIFY.search(content) or _IMPLEMENTATION_STEPS.search(content))
    )


def keyword_count(content: str) -> int:
    """Number of distinct plan keywords present (case-insensitive)."""
    lower = content.lower()
    return sum(1 for keyword in PLAN_KEYWORDS if keyword in lower)


def is_plan_content(content: str) -> bool:
    """True when content looks like the plan format plan mode asks for.

    Either the full header skeleton is present, or at least three plan
    keywords appear alongside a numbered or bulleted list.
    """
    if not content:
        return False
    if has_main_structure(content):
        return True
    return keyword_count(content) >= 3 and bool(_LIST_ITEM.search(content))
