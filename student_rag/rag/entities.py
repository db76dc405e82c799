"""Entity extraction for free-text questions."""

import re

# Tried in order; the first pattern that matches anywhere wins.
STUDENT_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"student\s+(?:id\s+|with\s+id\s+)?(\d+)", re.IGNORECASE),
    re.compile(r"id\s*(\d+)", re.IGNORECASE),  # "id1001" without a space
    re.compile(r"(?:student|pupil)\s*(\d{4})", re.IGNORECASE),
    re.compile(r"\b(\d{4})\b"),
)


def extract_student_id(query: str) -> str | None:
    """
    Pull a student ID out of a question.

    Args:
        query: Raw user question

    Returns:
        The first capture of the first matching pattern, or None when no pattern matches
    """
    if not query:
        return None

    for pattern in STUDENT_ID_PATTERNS:
        match = pattern.search(query)
        if match:
            return match.group(1)
    return None
