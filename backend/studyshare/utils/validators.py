"""
StudyShare Backend — Input Normalization Helpers
==================================================

What:  Best-effort coercion of loosely-typed request values.
Why:   Query strings and multipart forms deliver everything as text, and the
       same value may arrive as "a,b" or as a repeated parameter. These
       helpers give schemas and services one consistent interpretation.
"""

from typing import Any, Iterable, List, Optional, Union


def split_tags(value: Union[None, str, Iterable[Any]]) -> List[str]:
    """
    Normalize a tag parameter into a de-duplicated list of trimmed tags.

    Accepts a comma-separated string, a list of strings (each of which may
    itself be comma-separated), or None. Empty entries are dropped; first
    occurrence order is kept.

        >>> split_tags("midterm, notes,,notes")
        ['midterm', 'notes']
        >>> split_tags(["final", "2023,exam"])
        ['final', '2023', 'exam']
    """
    if value is None:
        return []
    raw = [value] if isinstance(value, str) else list(value)

    tags: List[str] = []
    seen = set()
    for item in raw:
        if item is None:
            continue
        for part in str(item).split(","):
            tag = part.strip()
            if tag and tag not in seen:
                seen.add(tag)
                tags.append(tag)
    return tags


def coerce_int(value: Any) -> Optional[int]:
    """
    Parse an integer the forgiving way, or return None.

    "3", " 3 ", 3 and "3.0" all give 3. "abc", "", "2.5", NaN and booleans
    give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or not value.is_integer():  # NaN or fractional
            return None
        return int(value)

    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")) or not number.is_integer():
        return None
    return int(number)


def coerce_positive_int(value: Any, default: int) -> int:
    """coerce_int(), falling back to `default` for missing, invalid or < 1 values."""
    number = coerce_int(value)
    if number is None or number < 1:
        return default
    return number


def blank_to_none(value: Any) -> Optional[str]:
    """Trim a text value; empty or whitespace-only text means "not supplied"."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
