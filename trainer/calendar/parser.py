"""Parsers for program markdown.

Program documents are authored (and rewritten) by a model, so these
functions never raise on malformed input: they fall back to empty results
or documented defaults and leave the decision to the caller.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

DEFAULT_DURATION_MIN = 45
DEFAULT_INTENSITY = "moderate"
DEFAULT_DAYS_PER_WEEK = 3

_SECTION_HEADING = re.compile(r"^#\s+(.+?)\s*$")
_DAY_HEADER = re.compile(r"^##\s+Day\s+(\d+)\s*[:\-\u2013\u2014]\s*(.+?)\s*$", re.IGNORECASE)
_DURATION = re.compile(r"(\d+)\s*(?:min|minutes?)\b", re.IGNORECASE)
_INTENSITY = re.compile(r"\b([A-Za-z]+(?:[-\s][A-Za-z]+)?)\s+intensity\b", re.IGNORECASE)
_DAYS_PER_WEEK = re.compile(r"train\s+\*\*(\d+)\*\*\s+days?\s+per\s+week", re.IGNORECASE)


class PlannedSession(BaseModel):
    """A day-level slot parsed from the Training Sessions section."""

    day_number: int
    name: str
    duration_min: int = DEFAULT_DURATION_MIN
    intensity: str = DEFAULT_INTENSITY


def _training_sessions_lines(document: str) -> list[str] | None:
    """Return the lines of the '# Training Sessions' section, or None if absent."""
    lines = document.splitlines()
    start = None
    for idx, line in enumerate(lines):
        match = _SECTION_HEADING.match(line)
        if match and match.group(1).strip().lower() == "training sessions":
            start = idx + 1
            break
    if start is None:
        return None

    section = []
    for line in lines[start:]:
        if _SECTION_HEADING.match(line):
            break
        section.append(line)
    return section


def _is_detail_line(line: str) -> bool:
    """Detail lines are emphasised ('*...*', '_..._') or start with the duration."""
    text = line.strip()
    return bool(text) and (text[0] in "*_" or text[0].isdigit()) and not _DAY_HEADER.match(text)


def _parse_detail_line(line: str) -> tuple[int | None, str | None]:
    """Read duration and intensity from a line like '*45 minutes — moderate intensity*'."""
    text = line.strip().strip("*_ ")
    duration = _DURATION.search(text)
    intensity = _INTENSITY.search(text)
    return (
        int(duration.group(1)) if duration else None,
        intensity.group(1).strip().lower() if intensity else None,
    )


def parse_sessions_from_markdown(document: str | None) -> list[PlannedSession]:
    """Extract planned sessions from the Training Sessions section.

    Each session starts with a '## Day N: Name' header. The first non-blank
    line after the header may carry duration and intensity; missing values
    default to 45 minutes and "moderate".

    Returns:
        Planned sessions in document order; [] when the document is empty,
        the section is absent, or no headers match.
    """
    if not document:
        return []
    section = _training_sessions_lines(document)
    if not section:
        return []

    sessions: list[PlannedSession] = []
    idx = 0
    while idx < len(section):
        header = _DAY_HEADER.match(section[idx])
        idx += 1
        if not header:
            continue

        duration, intensity = None, None
        while idx < len(section) and not section[idx].strip():
            idx += 1
        if idx < len(section) and _is_detail_line(section[idx]):
            duration, intensity = _parse_detail_line(section[idx])

        sessions.append(
            PlannedSession(
                day_number=int(header.group(1)),
                name=header.group(2),
                duration_min=duration or DEFAULT_DURATION_MIN,
                intensity=intensity or DEFAULT_INTENSITY,
            )
        )
    return sessions


def parse_days_per_week(document: str | None) -> int:
    """Extract N from 'train **N** day(s) per week', defaulting to 3."""
    if not document:
        return DEFAULT_DAYS_PER_WEEK
    match = _DAYS_PER_WEEK.search(document)
    if not match:
        return DEFAULT_DAYS_PER_WEEK
    return int(match.group(1))
