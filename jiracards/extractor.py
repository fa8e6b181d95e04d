"""Issue-key extraction from free text (email bodies, card-request payloads)."""

import re
from collections.abc import Iterable

# Project key: uppercase letter then 1-9 more uppercase letters/digits, not glued to a
# preceding letter, digit or hyphen. Trailing text is not checked, so "ABC-3abc" yields "ABC-3".
DEFAULT_ISSUE_PATTERN = r"(?<![A-Za-z0-9-])[A-Z][A-Z0-9]{1,9}-[0-9]+"

_DEFAULT_RE = re.compile(DEFAULT_ISSUE_PATTERN)


def dedupe(values: Iterable[str]) -> list[str]:
    """Drop repeats (exact, case-sensitive), keeping first-seen order."""
    return list(dict.fromkeys(values))


def extract_identifiers(text: str | None, pattern: str | re.Pattern[str] | None = None) -> list[str]:
    """Return issue keys found in text, de-duplicated in order of first appearance.

    A pattern with a capturing group contributes group 1; otherwise the whole match.
    """
    if not text:
        return []
    if pattern is None:
        regex = _DEFAULT_RE
    elif isinstance(pattern, str):
        regex = re.compile(pattern)
    else:
        regex = pattern

    found = (m.group(1) if regex.groups else m.group(0) for m in regex.finditer(text))
    return dedupe(found)
